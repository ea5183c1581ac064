"""
StatisticsFactory - Knowledge graph statistics queries.

Three mutually exclusive shapes, chosen by precedence:
    entity-type breakdown > detailed breakdown > basic counts.

License: MIT
"""

from typing import List, Optional

from codegraph_core.queries.base import BaseQueryFactory
from codegraph_db.models import Statement
from codegraph_db.statement_builder import StatementBuilder

BASIC_STATISTICS_QUERY = """\
MATCH (e:CodeEntity) WITH count(e) AS codeEntities
MATCH (p:Pattern) WITH codeEntities, count(p) AS patterns
MATCH (r:Rule) WITH codeEntities, patterns, count(r) AS rules
MATCH (s:Standard) WITH codeEntities, patterns, rules, count(s) AS standards
OPTIONAL MATCH (d:Decision)
RETURN codeEntities, patterns, rules, standards, count(d) AS decisions"""

DETAILED_STATISTICS_QUERY = """\
MATCH (e:CodeEntity) WITH count(e) AS codeEntities
MATCH (p:Pattern) WITH codeEntities, count(p) AS patterns
MATCH (r:Rule) WITH codeEntities, patterns, count(r) AS rules
MATCH (s:Standard) WITH codeEntities, patterns, rules, count(s) AS standards
OPTIONAL MATCH (d:Decision)
WITH codeEntities, patterns, rules, standards, count(d) AS decisions
MATCH (t:CodeEntity)
WITH codeEntities, patterns, rules, standards, decisions, t.type AS entityType, count(t) AS typeCount
WITH codeEntities, patterns, rules, standards, decisions,
     collect({type: entityType, count: typeCount}) AS entityBreakdown
MATCH (q:Pattern)
WITH codeEntities, patterns, rules, standards, decisions, entityBreakdown,
     CASE WHEN q.confidence >= 0.8 THEN 'high'
          WHEN q.confidence >= 0.5 THEN 'medium'
          ELSE 'low' END AS confidenceBucket,
     count(q) AS bucketCount
RETURN codeEntities, patterns, rules, standards, decisions, entityBreakdown,
       collect({bucket: confidenceBucket, count: bucketCount}) AS patternConfidence"""

SAMPLE_FILE_LIMIT = 10


class StatisticsFactory(BaseQueryFactory):
    """
    Builds knowledge graph statistics queries.

    Example:
        ```python
        statement = StatisticsFactory().with_entity_type("function").build()
        ```
    """

    query_type = "kg-statistics"
    description = "Knowledge Graph statistics and metrics"

    def __init__(self) -> None:
        self.include_details = False
        self.entity_type: Optional[str] = None

    def with_details(self, include_details: bool = True) -> "StatisticsFactory":
        self.include_details = bool(include_details)
        return self

    def with_entity_type(self, entity_type: Optional[str]) -> "StatisticsFactory":
        self.entity_type = entity_type
        return self

    def _collect_errors(self) -> List[str]:
        if self.entity_type is not None and (
            not isinstance(self.entity_type, str) or not self.entity_type.strip()
        ):
            return ["Entity type must be a non-empty string"]
        return []

    @property
    def shape(self) -> str:
        if self.entity_type:
            return "entity-type"
        if self.include_details:
            return "detailed"
        return "basic"

    def build(self) -> Statement:
        self._ensure_valid()
        if self.entity_type:
            return self._build_entity_type_query()
        if self.include_details:
            return Statement.from_text(DETAILED_STATISTICS_QUERY)
        return Statement.from_text(BASIC_STATISTICS_QUERY)

    def _build_entity_type_query(self) -> Statement:
        # sampleFiles keeps store order; no global sort
        return (
            StatementBuilder()
            .match("(e:CodeEntity)")
            .where("e.type = $entityType", {"entityType": self.entity_type})
            .return_(
                [
                    "count(e) AS total",
                    "avg(e.complexity) AS avgComplexity",
                    "max(e.complexity) AS maxComplexity",
                    f"collect(DISTINCT e.filePath)[0..{SAMPLE_FILE_LIMIT}] AS sampleFiles",
                ]
            )
            .build()
        )
