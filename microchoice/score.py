"""
Linear score evaluation

The score of an agent under a coefficient table is the sum over rows of
``coefficient * covariate``. Rows whose regressor contains the interaction
marker contribute their coefficient directly. Tables with conditioning keys
only include the rows whose conditioning values match the agent's attributes.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from .coefficients import CoefficientTable
from .covariates import CovariateSource, as_covariate_source, resolve_attribute
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

INTERACTION_MARKER = "@"


def _contribution(
    regressor: str,
    coefficient: float,
    source: CovariateSource,
    *,
    strict: bool,
    interaction_marker: str,
) -> float:
    if interaction_marker and interaction_marker in regressor:
        return coefficient
    covariate = source.get_numeric(regressor)
    if covariate is None:
        if strict:
            raise ConfigurationError(
                f"Covariate source {source!r} has no value for regressor {regressor!r}"
            )
        logger.debug("Regressor %r missing from %r; using 0.0", regressor, source)
        return 0.0
    return coefficient * covariate


def compute_score(
    table: CoefficientTable,
    agent: Any,
    *,
    strict: bool = False,
    interaction_marker: str = INTERACTION_MARKER,
) -> float:
    """
    Compute the linear score ``Xb`` of one agent.

    Args:
        table: Coefficient table with a REGRESSOR key column and a COEFFICIENT
            value column, optionally keyed by conditioning attributes too.
        agent: A ``CovariateSource``, a name -> value mapping, or any object
            whose attributes are looked up by name.
        strict: If True, a regressor with no covariate value raises instead of
            contributing 0.0.
        interaction_marker: Regressors containing this string contribute their
            coefficient without a covariate.

    Returns:
        The weighted sum as a float.

    Raises:
        ConfigurationError: If the table lacks the reserved roles, or the agent
            lacks a conditioning attribute named by the table.

    Example:
        >>> table = CoefficientTable.from_coefficients({"age": 2.0, "income": 0.001})
        >>> compute_score(table, {"age": 30, "income": 50000})
        110.0
    """
    table.require_regression_roles()
    source = as_covariate_source(agent)
    regressor_idx = table.regressor_index()
    coefficients = table.coefficients()

    if table.is_simple:
        total = 0.0
        for key, coefficient in coefficients.items():
            total += _contribution(
                key[0],
                coefficient,
                source,
                strict=strict,
                interaction_marker=interaction_marker,
            )
        return total

    # Resolve every conditioning attribute once; a missing one is a setup error.
    conditions = {
        i: resolve_attribute(source, name)
        for i, name in enumerate(table.key_names)
        if i != regressor_idx
    }

    total = 0.0
    for key, coefficient in coefficients.items():
        if any(key[i] != label for i, label in conditions.items()):
            continue
        total += _contribution(
            key[regressor_idx],
            coefficient,
            source,
            strict=strict,
            interaction_marker=interaction_marker,
        )
    return total


def multiply_coefficients(
    coefficients: Mapping[str, float],
    values: Mapping[str, float],
    *,
    interaction_marker: str = INTERACTION_MARKER,
) -> float:
    """
    Weighted sum of two name-keyed maps.

    Missing values (or None coefficients) count as 0.0; names containing the
    interaction marker contribute their coefficient alone.
    """
    total = 0.0
    for name, coefficient in coefficients.items():
        if coefficient is None:
            continue
        if interaction_marker and interaction_marker in name:
            total += float(coefficient)
            continue
        value = values.get(name)
        if value is None:
            continue
        total += float(coefficient) * float(value)
    return total
