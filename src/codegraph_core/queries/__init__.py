"""
Domain query factories: statistics, technical debt, pattern detection and
task context.

License: MIT
"""

from codegraph_core.queries.base import BaseQueryFactory, ValidationResult
from codegraph_core.queries.context import ContextQueryFactory, extract_keywords, relevance_score
from codegraph_core.queries.factory import QueryFactory
from codegraph_core.queries.pattern_detection import PatternDetectionFactory
from codegraph_core.queries.statistics import StatisticsFactory
from codegraph_core.queries.technical_debt import DebtScope, TechnicalDebtFactory, classify_risk

__all__ = [
    "BaseQueryFactory",
    "ValidationResult",
    "QueryFactory",
    "StatisticsFactory",
    "TechnicalDebtFactory",
    "DebtScope",
    "classify_risk",
    "PatternDetectionFactory",
    "ContextQueryFactory",
    "extract_keywords",
    "relevance_score",
]
