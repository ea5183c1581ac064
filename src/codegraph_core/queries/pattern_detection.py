"""
PatternDetectionFactory - Design pattern queries.

With an entity id: that entity's implemented patterns, filtered by an
optional pattern-name allow-list and a confidence threshold (inclusive).
Without: the global pattern catalogue with usage counts, average confidence
and the five most confident example implementations per pattern.

License: MIT
"""

from typing import List, Optional, Sequence, Union

from codegraph_core.queries.base import BaseQueryFactory
from codegraph_db.models import Statement

DEFAULT_CONFIDENCE_THRESHOLD = 0.5
EXAMPLE_IMPLEMENTATIONS = 5

ENTITY_PATTERNS_QUERY = """\
MATCH (e:CodeEntity {id: $entityId})
OPTIONAL MATCH (e)-[impl:IMPLEMENTS]->(p:Pattern)
WHERE (size($patternTypes) = 0 OR p.name IN $patternTypes)
  AND impl.confidence >= $confidenceThreshold
RETURN e.name AS entity, e.type AS type, e.filePath AS filePath,
       collect({name: p.name, confidence: impl.confidence, category: p.category,
                description: p.description}) AS implementedPatterns,
       count(p) AS patternCount,
       avg(impl.confidence) AS avgConfidence"""

PATTERN_CATALOGUE_QUERY = f"""\
MATCH (p:Pattern)
WHERE size($patternTypes) = 0 OR p.name IN $patternTypes
OPTIONAL MATCH (e:CodeEntity)-[impl:IMPLEMENTS]->(p)
WHERE impl.confidence >= $confidenceThreshold
WITH p, e, impl
ORDER BY impl.confidence DESC
WITH p, count(e) AS usageCount, avg(impl.confidence) AS avgConfidence,
     collect({{entity: e.name, confidence: impl.confidence}}) AS implementations
RETURN p.name AS name, p.category AS category, p.description AS description,
       usageCount, avgConfidence,
       implementations[0..{EXAMPLE_IMPLEMENTATIONS}] AS implementations
ORDER BY usageCount DESC"""


class PatternDetectionFactory(BaseQueryFactory):
    """Builds pattern detection queries for one entity or the whole graph."""

    query_type = "pattern-detection"
    description = "Design pattern detection and analysis"

    def __init__(self) -> None:
        self.entity_id: Optional[str] = None
        self.pattern_types: List[str] = []
        self.confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD

    def with_entity_id(self, entity_id: Optional[str]) -> "PatternDetectionFactory":
        self.entity_id = entity_id
        return self

    def with_pattern_types(self, pattern_types: Union[str, Sequence[str]]) -> "PatternDetectionFactory":
        if isinstance(pattern_types, str):
            pattern_types = [pattern_types]
        self.pattern_types = list(pattern_types or [])
        return self

    def with_confidence_threshold(self, threshold: float) -> "PatternDetectionFactory":
        self.confidence_threshold = threshold
        return self

    def _collect_errors(self) -> List[str]:
        errors = []
        threshold = self.confidence_threshold
        if isinstance(threshold, bool) or not isinstance(threshold, (int, float)):
            errors.append("Confidence threshold must be a number")
        elif not 0.0 <= threshold <= 1.0:
            errors.append(f"Confidence threshold must be in [0.0, 1.0], got {threshold}")

        if not all(isinstance(t, str) and t.strip() for t in self.pattern_types):
            errors.append("Pattern types must be non-empty strings")

        if self.entity_id is not None and (
            not isinstance(self.entity_id, str) or not self.entity_id.strip()
        ):
            errors.append("Entity id must be a non-empty string")
        return errors

    def build(self) -> Statement:
        self._ensure_valid()
        parameters = {
            "patternTypes": self.pattern_types,
            "confidenceThreshold": float(self.confidence_threshold),
        }
        if self.entity_id:
            return Statement.from_text(
                ENTITY_PATTERNS_QUERY, {**parameters, "entityId": self.entity_id}
            )
        return Statement.from_text(PATTERN_CATALOGUE_QUERY, parameters)
