"""
Named query templates: registry, execution and usage statistics.

License: MIT
"""

from codegraph_core.templates.builtin import BUILTIN_TEMPLATES, register_builtin_templates
from codegraph_core.templates.custom import (
    detect_operation_kind,
    estimate_query_complexity,
    generate_dummy_parameters,
)
from codegraph_core.templates.manager import TemplateManager
from codegraph_core.templates.models import (
    TemplateDefinition,
    TemplateExecutionResult,
    UsageStatistics,
)

__all__ = [
    "TemplateManager",
    "TemplateDefinition",
    "TemplateExecutionResult",
    "UsageStatistics",
    "BUILTIN_TEMPLATES",
    "register_builtin_templates",
    "detect_operation_kind",
    "estimate_query_complexity",
    "generate_dummy_parameters",
]
