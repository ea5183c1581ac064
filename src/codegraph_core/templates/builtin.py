"""
Built-in template library for the code knowledge graph.

Categories: entity, pattern, dependency, validation, analytics, search,
maintenance.

License: MIT
"""

import time
from typing import TYPE_CHECKING, Any, Dict

import structlog

from codegraph_db.exceptions import ValidationError
from codegraph_db.models import OperationKind
from codegraph_db.statement_builder import StatementBuilder

if TYPE_CHECKING:
    from codegraph_core.templates.manager import TemplateManager

logger = structlog.get_logger(__name__)

DEFAULT_TRAVERSAL_DEPTH = 3
MAX_TRAVERSAL_DEPTH = 10


def _now_ms() -> int:
    return int(time.time() * 1000)


def _with_limit(builder: StatementBuilder, params: Dict[str, Any]) -> StatementBuilder:
    if params.get("limit") is not None:
        builder.limit(params["limit"])
    return builder


def _property_map(params: Dict[str, Any], key: str = "properties") -> Dict[str, Any]:
    value = params.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValidationError(f"{key} must be a mapping, got {type(value).__name__}")
    return dict(value)


def _traversal_depth(params: Dict[str, Any]) -> int:
    depth = params.get("maxDepth")
    if depth is None:
        depth = DEFAULT_TRAVERSAL_DEPTH
    if isinstance(depth, bool) or not isinstance(depth, int) or not (
        1 <= depth <= MAX_TRAVERSAL_DEPTH
    ):
        raise ValidationError(f"maxDepth must be an integer in [1, {MAX_TRAVERSAL_DEPTH}], got {depth!r}")
    return depth


# ----------------------------------------------------------------------
# Entity
# ----------------------------------------------------------------------


def find_entity_by_id(params):
    return (
        StatementBuilder()
        .match("(e:CodeEntity)")
        .where("e.id = $entityId", {"entityId": params["entityId"]})
        .return_("e")
    )


def find_entities_by_type(params):
    builder = (
        StatementBuilder()
        .match("(e:CodeEntity)")
        .where("e.type = $entityType", {"entityType": params["entityType"]})
        .return_(["e.id", "e.name", "e.filePath", "e.type"])
        .order_by("e.name")
    )
    return _with_limit(builder, params)


def find_entities_by_file(params):
    return (
        StatementBuilder()
        .match("(e:CodeEntity)")
        .where("e.filePath = $filePath", {"filePath": params["filePath"]})
        .return_(["e.id", "e.name", "e.type", "e.lineStart", "e.lineEnd"])
        .order_by("e.lineStart")
    )


def create_entity(params):
    properties = {
        "id": params["id"],
        "type": params["type"],
        "name": params["name"],
        "filePath": params["filePath"],
        "lastModified": _now_ms(),
        **_property_map(params),
    }
    return (
        StatementBuilder()
        .create("(e:CodeEntity)")
        .merge_properties("e", "properties", properties)
        .return_("e")
    )


def update_entity_properties(params):
    properties = {**_property_map(params), "lastModified": _now_ms()}
    return (
        StatementBuilder()
        .match("(e:CodeEntity)")
        .where("e.id = $entityId", {"entityId": params["entityId"]})
        .merge_properties("e", "properties", properties)
        .return_("e")
    )


# ----------------------------------------------------------------------
# Pattern
# ----------------------------------------------------------------------


def find_patterns_for_entity(params):
    return (
        StatementBuilder()
        .match("(e:CodeEntity)-[impl:IMPLEMENTS]->(p:Pattern)")
        .where("e.id = $entityId", {"entityId": params["entityId"]})
        .return_(["p.name", "p.description", "p.category", "impl.confidence"])
        .order_by_desc("impl.confidence")
    )


def find_entities_implementing_pattern(params):
    builder = (
        StatementBuilder()
        .match("(e:CodeEntity)-[impl:IMPLEMENTS]->(p:Pattern)")
        .where("p.name = $patternName", {"patternName": params["patternName"]})
    )
    if params.get("minConfidence") is not None:
        builder.where("impl.confidence >= $minConfidence", {"minConfidence": params["minConfidence"]})
    return (
        builder.return_(["e.id", "e.name", "e.type", "e.filePath", "impl.confidence"])
        .order_by_desc("impl.confidence")
    )


def create_pattern_implementation(params):
    return (
        StatementBuilder()
        .match("(e:CodeEntity), (p:Pattern)")
        .where(
            "e.id = $entityId AND p.name = $patternName",
            {"entityId": params["entityId"], "patternName": params["patternName"]},
        )
        .create(
            "(e)-[impl:IMPLEMENTS {confidence: $confidence, timestamp: $timestamp}]->(p)",
            {"confidence": params["confidence"], "timestamp": _now_ms()},
        )
        .return_("impl")
    )


# ----------------------------------------------------------------------
# Dependency
# ----------------------------------------------------------------------


def find_direct_dependencies(params):
    return (
        StatementBuilder()
        .match("(e:CodeEntity)-[dep:DEPENDS_ON]->(target:CodeEntity)")
        .where("e.id = $entityId", {"entityId": params["entityId"]})
        .return_(["target.id", "target.name", "target.type", "dep.type", "dep.strength"])
        .order_by_desc("dep.strength")
    )


def find_transitive_dependencies(params):
    depth = _traversal_depth(params)
    return (
        StatementBuilder()
        .match(f"(e:CodeEntity)-[:DEPENDS_ON*1..{depth}]->(target:CodeEntity)")
        .where("e.id = $entityId", {"entityId": params["entityId"]})
        .return_distinct(["target.id", "target.name", "target.type"])
        .order_by("target.name")
    )


def find_dependents(params):
    return (
        StatementBuilder()
        .match("(dependent:CodeEntity)-[dep:DEPENDS_ON]->(e:CodeEntity)")
        .where("e.id = $entityId", {"entityId": params["entityId"]})
        .return_(["dependent.id", "dependent.name", "dependent.type", "dep.type"])
        .order_by("dependent.name")
    )


def create_dependency(params):
    strength = params.get("strength")
    return (
        StatementBuilder()
        .match("(source:CodeEntity), (target:CodeEntity)")
        .where(
            "source.id = $fromEntityId AND target.id = $toEntityId",
            {"fromEntityId": params["fromEntityId"], "toEntityId": params["toEntityId"]},
        )
        .create(
            "(source)-[dep:DEPENDS_ON {type: $depType, strength: $strength}]->(target)",
            {
                "depType": params["dependencyType"],
                "strength": 1.0 if strength is None else strength,
            },
        )
        .return_("dep")
    )


# ----------------------------------------------------------------------
# Validation
# ----------------------------------------------------------------------


def find_violations_by_entity(params):
    return (
        StatementBuilder()
        .match("(e:CodeEntity)-[viol:VIOLATES]->(r:Rule)")
        .where("e.id = $entityId", {"entityId": params["entityId"]})
        .return_(["r.id", "r.description", "r.category", "viol.severity", "viol.message"])
        .order_by_desc("viol.severity")
    )


def find_violations_by_rule(params):
    return (
        StatementBuilder()
        .match("(e:CodeEntity)-[viol:VIOLATES]->(r:Rule)")
        .where("r.id = $ruleId", {"ruleId": params["ruleId"]})
        .return_(["e.id", "e.name", "e.filePath", "viol.severity", "viol.message"])
        .order_by_desc("viol.severity")
    )


def find_violations_by_severity(params):
    builder = (
        StatementBuilder()
        .match("(e:CodeEntity)-[viol:VIOLATES]->(r:Rule)")
        .where("viol.severity = $severity", {"severity": params["severity"]})
        .return_(["e.id", "e.name", "e.filePath", "r.description", "viol.message"])
        .order_by("e.filePath")
    )
    return _with_limit(builder, params)


def create_violation(params):
    return (
        StatementBuilder()
        .match("(e:CodeEntity), (r:Rule)")
        .where(
            "e.id = $entityId AND r.id = $ruleId",
            {"entityId": params["entityId"], "ruleId": params["ruleId"]},
        )
        .create(
            "(e)-[viol:VIOLATES {severity: $severity, message: $message, timestamp: $timestamp}]->(r)",
            {
                "severity": params["severity"],
                "message": params.get("message") or "",
                "timestamp": _now_ms(),
            },
        )
        .return_("viol")
    )


# ----------------------------------------------------------------------
# Analytics
# ----------------------------------------------------------------------


def get_entity_statistics(params):
    return (
        StatementBuilder()
        .match("(e:CodeEntity)")
        .return_([
            "count(e) AS totalEntities",
            "count(DISTINCT e.type) AS entityTypes",
            "count(DISTINCT e.filePath) AS filesWithEntities",
            "avg(e.complexity) AS avgComplexity",
        ])
    )


def get_pattern_statistics(params):
    return (
        StatementBuilder()
        .match("(p:Pattern)<-[impl:IMPLEMENTS]-(e:CodeEntity)")
        .return_([
            "p.name AS pattern",
            "count(impl) AS implementations",
            "avg(impl.confidence) AS avgConfidence",
            "max(impl.confidence) AS maxConfidence",
        ])
        .order_by_desc("implementations")
    )


def get_violation_statistics(params):
    return (
        StatementBuilder()
        .match("(e:CodeEntity)-[viol:VIOLATES]->(r:Rule)")
        .return_([
            "viol.severity AS severity",
            "count(viol) AS violationCount",
            "count(DISTINCT e) AS affectedEntities",
            "count(DISTINCT r) AS violatedRules",
        ])
        .order_by_desc("violationCount")
    )


def get_dependency_complexity(params):
    builder = StatementBuilder().match("(e:CodeEntity)")
    # Filter must sit on the MATCH, not on the optional matches
    if params.get("entityType"):
        builder.where("e.type = $entityType", {"entityType": params["entityType"]})
    return (
        builder.optional_match("(e)-[:DEPENDS_ON]->(outgoing:CodeEntity)")
        .optional_match("(incoming:CodeEntity)-[:DEPENDS_ON]->(e)")
        .return_([
            "e.id AS entityId",
            "e.name AS entityName",
            "e.type AS entityType",
            "count(DISTINCT outgoing) AS outgoingDependencies",
            "count(DISTINCT incoming) AS incomingDependencies",
            "(count(DISTINCT outgoing) + count(DISTINCT incoming)) AS totalConnections",
        ])
        .order_by_desc("totalConnections")
    )


# ----------------------------------------------------------------------
# Search
# ----------------------------------------------------------------------


def search_entities_by_name(params):
    builder = (
        StatementBuilder()
        .match("(e:CodeEntity)")
        .where("toLower(e.name) CONTAINS toLower($searchTerm)", {"searchTerm": params["searchTerm"]})
        .return_(["e.id", "e.name", "e.type", "e.filePath"])
        .order_by("e.name")
    )
    return _with_limit(builder, params)


def search_by_context(params):
    builder = (
        StatementBuilder()
        .match("(e:CodeEntity)")
        .where(
            "toLower(e.context) CONTAINS toLower($contextTerm)",
            {"contextTerm": params["contextTerm"]},
        )
        .return_(["e.id", "e.name", "e.type", "e.context"])
        .order_by("e.name")
    )
    return _with_limit(builder, params)


# ----------------------------------------------------------------------
# Maintenance
# ----------------------------------------------------------------------


def cleanup_orphaned_entities(params):
    return (
        StatementBuilder()
        .match("(e:CodeEntity)")
        .where("NOT (e)--()")
        .return_(["e.id", "e.name", "e.type", "e.filePath"])
        .order_by("e.filePath")
    )


def find_duplicate_entities(params):
    return (
        StatementBuilder()
        .match("(e1:CodeEntity), (e2:CodeEntity)")
        .where("e1.name = e2.name AND e1.type = e2.type AND e1.id < e2.id")
        .return_(["e1.id AS id1", "e2.id AS id2", "e1.name AS name", "e1.type AS type"])
        .order_by("e1.name")
    )


# name -> (builder, description, parameters, category, complexity, operation kind)
BUILTIN_TEMPLATES = {
    "findEntityById": (
        find_entity_by_id, "Find a specific entity by ID",
        ["entityId"], "entity", 1, OperationKind.READ,
    ),
    "findEntitiesByType": (
        find_entities_by_type, "Find all entities of a specific type",
        ["entityType", "limit?"], "entity", 2, OperationKind.READ,
    ),
    "findEntitiesByFile": (
        find_entities_by_file, "Find all entities in a specific file",
        ["filePath"], "entity", 2, OperationKind.READ,
    ),
    "createEntity": (
        create_entity, "Create a new code entity",
        ["id", "type", "name", "filePath", "properties?"], "entity", 2, OperationKind.WRITE,
    ),
    "updateEntityProperties": (
        update_entity_properties, "Update properties of an existing entity",
        ["entityId", "properties"], "entity", 2, OperationKind.UPDATE,
    ),
    "findPatternsForEntity": (
        find_patterns_for_entity, "Find all patterns implemented by an entity",
        ["entityId"], "pattern", 3, OperationKind.READ,
    ),
    "findEntitiesImplementingPattern": (
        find_entities_implementing_pattern, "Find entities that implement a specific pattern",
        ["patternName", "minConfidence?"], "pattern", 3, OperationKind.READ,
    ),
    "createPatternImplementation": (
        create_pattern_implementation, "Create a relationship between entity and pattern",
        ["entityId", "patternName", "confidence"], "pattern", 3, OperationKind.WRITE,
    ),
    "findDirectDependencies": (
        find_direct_dependencies, "Find direct dependencies of an entity",
        ["entityId"], "dependency", 3, OperationKind.READ,
    ),
    "findTransitiveDependencies": (
        find_transitive_dependencies, "Find transitive dependencies of an entity",
        ["entityId", "maxDepth?"], "dependency", 5, OperationKind.READ,
    ),
    "findDependents": (
        find_dependents, "Find entities that depend on this entity",
        ["entityId"], "dependency", 3, OperationKind.READ,
    ),
    "createDependency": (
        create_dependency, "Create a dependency relationship between entities",
        ["fromEntityId", "toEntityId", "dependencyType", "strength?"], "dependency", 3,
        OperationKind.WRITE,
    ),
    "findViolationsByEntity": (
        find_violations_by_entity, "Find rule violations for a specific entity",
        ["entityId"], "validation", 3, OperationKind.READ,
    ),
    "findViolationsByRule": (
        find_violations_by_rule, "Find all violations of a specific rule",
        ["ruleId"], "validation", 3, OperationKind.READ,
    ),
    "findViolationsBySeverity": (
        find_violations_by_severity, "Find violations by severity level",
        ["severity", "limit?"], "validation", 3, OperationKind.READ,
    ),
    "createViolation": (
        create_violation, "Create a rule violation relationship",
        ["entityId", "ruleId", "severity", "message?"], "validation", 3, OperationKind.WRITE,
    ),
    "getEntityStatistics": (
        get_entity_statistics, "Get comprehensive statistics about entities",
        [], "analytics", 4, OperationKind.READ,
    ),
    "getPatternStatistics": (
        get_pattern_statistics, "Get statistics about pattern implementations",
        [], "analytics", 4, OperationKind.READ,
    ),
    "getViolationStatistics": (
        get_violation_statistics, "Get statistics about rule violations",
        [], "analytics", 4, OperationKind.READ,
    ),
    "getDependencyComplexity": (
        get_dependency_complexity, "Analyze dependency complexity for entities",
        ["entityType?"], "analytics", 5, OperationKind.READ,
    ),
    "searchEntitiesByName": (
        search_entities_by_name, "Search entities by name pattern",
        ["searchTerm", "limit?"], "search", 3, OperationKind.READ,
    ),
    "searchByContext": (
        search_by_context, "Search entities by context information",
        ["contextTerm", "limit?"], "search", 3, OperationKind.READ,
    ),
    "cleanupOrphanedEntities": (
        cleanup_orphaned_entities, "Find entities without any relationships",
        [], "maintenance", 4, OperationKind.READ,
    ),
    "findDuplicateEntities": (
        find_duplicate_entities, "Find potentially duplicate entities",
        [], "maintenance", 5, OperationKind.READ,
    ),
}


def register_builtin_templates(manager: "TemplateManager") -> None:
    """Register every built-in template on ``manager``."""
    for name, (builder, description, parameters, category, complexity, kind) in BUILTIN_TEMPLATES.items():
        manager.register_template(
            name,
            builder=builder,
            description=description,
            parameters=parameters,
            category=category,
            complexity=complexity,
            operation_kind=kind,
            customizable=False,
        )

    logger.info(
        "builtin_templates_registered",
        template_count=len(BUILTIN_TEMPLATES),
        categories=manager.get_template_categories(),
    )
