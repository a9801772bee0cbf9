"""
Utilities for the mineral–element network study.

This package exposes helpers to filter the element catalog, extract
per-element network statistics from a mineral occurrence graph restricted to
a geological age window, aggregate them with element metadata, fit candidate
regression forms between the statistics, and plot fit diagnostics.
"""

from .analysis import (
    CANDIDATE_FORMS,
    LOCALITY_RELATIONSHIPS,
    FitFailure,
    ModelFitResult,
    fit_candidate_forms,
    fit_locality_relationships,
    fit_relationship,
    format_equation,
    residual_qq,
    serialize_fit_results,
)
from .config import StudyConfig, load_study_config
from .data import (
    AggregationResult,
    aggregate_network_table,
    filter_catalog,
    load_element_catalog,
)
from .errors import (
    DegenerateFitError,
    ElementNetworkError,
    JoinMismatchError,
    QueryError,
    UndefinedTransformError,
)
from .network import ElementNetworkRecord, extract_network_stats
from .occurrence import AgeRange, OccurrenceGraph, TableOccurrenceGraph, load_occurrence_table

__all__ = [
    "CANDIDATE_FORMS",
    "LOCALITY_RELATIONSHIPS",
    "AgeRange",
    "AggregationResult",
    "DegenerateFitError",
    "ElementNetworkError",
    "ElementNetworkRecord",
    "FitFailure",
    "JoinMismatchError",
    "ModelFitResult",
    "OccurrenceGraph",
    "QueryError",
    "StudyConfig",
    "TableOccurrenceGraph",
    "UndefinedTransformError",
    "aggregate_network_table",
    "extract_network_stats",
    "filter_catalog",
    "fit_candidate_forms",
    "fit_locality_relationships",
    "fit_relationship",
    "format_equation",
    "load_element_catalog",
    "load_occurrence_table",
    "load_study_config",
    "residual_qq",
    "serialize_fit_results",
]
