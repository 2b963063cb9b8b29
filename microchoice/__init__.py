"""
Microchoice: Discrete-choice evaluation and event sampling

A Python library for turning estimated regression coefficients into outcome
probabilities for individual agents (binary, ordered, generalized ordered,
multinomial and multi-link models), drawing outcomes from those
probabilities, and bootstrapping coefficients from their covariance matrix.
"""

from .bootstrap import (
    bootstrap,
    bootstrap_multinomial,
    bootstrap_with_covariance,
    check_symmetric,
)
from .coefficients import (
    ColumnRole,
    CoefficientTable,
    populate_multinomial_coefficients,
)
from .covariates import (
    CovariateSource,
    MappingCovariates,
    ReflectiveCovariates,
    as_covariate_source,
    canonical_label,
)
from .exceptions import (
    ConfigurationError,
    MicrochoiceError,
    NumericalInvariantError,
    SamplingError,
)
from .links import Link, ProbabilityCalculator
from .models import (
    BinaryChoiceModel,
    DiscreteChoiceModel,
    GeneralizedOrderedChoiceModel,
    MultiChoiceCoefficients,
    MultiLinkModel,
    MultinomialChoiceModel,
    OrderedChoiceModel,
    RegressionType,
    build_model,
    validate_probabilities,
)
from .sampling import (
    draw,
    draw_binary,
    draw_from_mapping,
    draw_index,
    draw_interpolated,
    draw_uniform,
)
from .score import compute_score, multiply_coefficients
from .simulate import outcome_frequencies, simulate_covariates, simulate_outcomes

__all__ = [
    "BinaryChoiceModel",
    "CoefficientTable",
    "ColumnRole",
    "ConfigurationError",
    "CovariateSource",
    "DiscreteChoiceModel",
    "GeneralizedOrderedChoiceModel",
    "Link",
    "MappingCovariates",
    "MicrochoiceError",
    "MultiChoiceCoefficients",
    "MultiLinkModel",
    "MultinomialChoiceModel",
    "NumericalInvariantError",
    "OrderedChoiceModel",
    "ProbabilityCalculator",
    "ReflectiveCovariates",
    "RegressionType",
    "SamplingError",
    "as_covariate_source",
    "bootstrap",
    "bootstrap_multinomial",
    "bootstrap_with_covariance",
    "build_model",
    "canonical_label",
    "check_symmetric",
    "compute_score",
    "draw",
    "draw_binary",
    "draw_from_mapping",
    "draw_index",
    "draw_interpolated",
    "draw_uniform",
    "multiply_coefficients",
    "outcome_frequencies",
    "populate_multinomial_coefficients",
    "simulate_covariates",
    "simulate_outcomes",
    "validate_probabilities",
]
