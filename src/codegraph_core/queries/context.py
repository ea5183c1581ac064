"""
ContextQueryFactory - Task context retrieval.

Derives keywords from a free-text task description and gathers the patterns,
implementing code, rules, standards and decisions that mention them.

License: MIT
"""

from typing import List, Sequence, Union

from codegraph_core.queries.base import BaseQueryFactory
from codegraph_db.exceptions import ValidationError
from codegraph_db.models import Statement

MAX_KEYWORDS = 5
MIN_KEYWORD_LENGTH = 4
MAX_DESCRIPTION_LENGTH = 1000
MIN_DEPTH = 1
MAX_DEPTH = 5
DEFAULT_DEPTH = 2

CONTEXT_QUERY = """\
OPTIONAL MATCH (p:Pattern)
WHERE any(keyword IN $keywords WHERE toLower(p.name) CONTAINS keyword
                                  OR toLower(p.description) CONTAINS keyword)
WITH collect(DISTINCT p)[0..5] AS patterns
OPTIONAL MATCH (e:CodeEntity)-[:IMPLEMENTS]->(ip:Pattern)
WHERE ip IN patterns AND (size($entityTypes) = 0 OR e.type IN $entityTypes)
OPTIONAL MATCH (e)-[:DEPENDS_ON*1..{depth}]->(dep:CodeEntity)
WITH patterns,
     collect(DISTINCT {{name: e.name, type: e.type, filePath: e.filePath,
                       complexity: e.complexity}}) AS relatedCode,
     collect(DISTINCT dep.name) AS dependencies
OPTIONAL MATCH (r:Rule)
WHERE any(keyword IN $keywords WHERE toLower(r.description) CONTAINS keyword)
WITH patterns, relatedCode, dependencies,
     collect(DISTINCT {{name: r.name, description: r.description, severity: r.severity}}) AS rules
OPTIONAL MATCH (s:Standard)
WHERE size($entityTypes) = 0 OR s.category IN $entityTypes
WITH patterns, relatedCode, dependencies, rules,
     collect(DISTINCT {{name: s.name, value: s.value, category: s.category}}) AS standards
OPTIONAL MATCH (d:Decision)
WHERE any(keyword IN $keywords WHERE toLower(d.rationale) CONTAINS keyword)
WITH patterns, relatedCode, dependencies, rules, standards,
     collect(DISTINCT {{title: d.title, rationale: d.rationale, status: d.status}}) AS decisions
RETURN $taskDescription AS taskDescription,
       [x IN patterns | {{name: x.name, category: x.category, description: x.description}}] AS patterns,
       relatedCode, dependencies, rules, standards, decisions,
       CASE WHEN size(patterns) > 2 THEN 0.9
            WHEN size(patterns) > 0 THEN 0.7
            ELSE 0.3 END AS relevanceScore"""


def extract_keywords(description: str) -> List[str]:
    """Lower-cased words longer than 3 characters, first 5 in order of appearance."""
    words = (description or "").lower().split()
    return [word for word in words if len(word) >= MIN_KEYWORD_LENGTH][:MAX_KEYWORDS]


def relevance_score(pattern_count: int) -> float:
    """More than 2 matched patterns -> 0.9, 1-2 -> 0.7, none -> 0.3."""
    if pattern_count > 2:
        return 0.9
    if pattern_count > 0:
        return 0.7
    return 0.3


class ContextQueryFactory(BaseQueryFactory):
    """
    Builds the context query for a task description.

    Example:
        ```python
        statement = (
            ContextQueryFactory()
            .with_task_description("Add retry logic to the sensor reader")
            .with_entity_types(["function"])
            .with_depth(3)
            .build()
        )
        ```
    """

    query_type = "context"
    description = "Context retrieval for task assistance"

    def __init__(self) -> None:
        self.task_description = ""
        self.keywords: List[str] = []
        self.entity_types: List[str] = []
        self.depth = DEFAULT_DEPTH

    def with_task_description(self, description: str) -> "ContextQueryFactory":
        self.task_description = description or ""
        self.keywords = extract_keywords(self.task_description)
        return self

    def with_entity_types(self, entity_types: Union[str, Sequence[str]]) -> "ContextQueryFactory":
        if isinstance(entity_types, str):
            entity_types = [entity_types]
        self.entity_types = list(entity_types or [])
        return self

    def with_depth(self, depth: int) -> "ContextQueryFactory":
        """Traversal depth for related code, clamped to [1, 5]."""
        if isinstance(depth, bool) or not isinstance(depth, int):
            raise ValidationError(f"Depth must be an integer, got {depth!r}")
        self.depth = max(MIN_DEPTH, min(depth, MAX_DEPTH))
        return self

    def _collect_errors(self) -> List[str]:
        errors = []
        if not isinstance(self.task_description, str) or not self.task_description.strip():
            errors.append("Task description is required")
        elif len(self.task_description) > MAX_DESCRIPTION_LENGTH:
            errors.append(
                f"Task description too long (max {MAX_DESCRIPTION_LENGTH} characters)"
            )
        return errors

    def _missing_inputs(self) -> List[str]:
        if not isinstance(self.task_description, str) or not self.task_description.strip():
            return ["task_description"]
        return []

    def build(self) -> Statement:
        self._ensure_valid()
        # depth is a clamped int; variable-length bounds cannot be parameters
        return Statement.from_text(
            CONTEXT_QUERY.format(depth=self.depth),
            {
                "keywords": self.keywords,
                "taskDescription": self.task_description,
                "entityTypes": self.entity_types,
            },
        )
