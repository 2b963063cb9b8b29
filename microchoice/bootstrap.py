"""
Coefficient bootstrapping

Draws a new coefficient vector from N(estimates, covariance) so that a
simulation can be rerun under parameter uncertainty. Rows and columns of the
covariance matrix are always aligned by regressor name, never by the order
in which a table happens to store them.
"""

from __future__ import annotations

import logging
import warnings
from collections.abc import Mapping, Sequence
from typing import Any, Protocol

import numpy as np
import numpy.typing as npt

from .coefficients import (
    MULTINOMIAL_SEPARATOR,
    ColumnRole,
    CoefficientTable,
)
from .covariates import canonical_label
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

SYMMETRY_TOLERANCE = 1e-5  # Relative tolerance on |M_ij - M_ji|
PSD_TOLERANCE = 1e-10  # Smallest eigenvalue allowed below 0, relative to the largest


class NormalSource(Protocol):
    """Random source with a multivariate normal primitive (``numpy.random.Generator``)."""

    def multivariate_normal(
        self, mean: npt.ArrayLike, cov: npt.ArrayLike, check_valid: str = ...
    ) -> npt.NDArray[np.float64]: ...


def check_symmetric(
    matrix: npt.ArrayLike,
    names: Sequence[str] | None = None,
    tolerance: float = SYMMETRY_TOLERANCE,
) -> npt.NDArray[np.float64]:
    """
    Validate a square, finite, symmetric matrix.

    Entries are compared as ``|M_ij - M_ji| <= max(|M_ij|, |M_ji|) * tolerance``.

    Returns:
        The matrix as a float64 array.

    Raises:
        ConfigurationError: If the matrix is not square, holds non-finite
            values, or is asymmetric beyond tolerance.
    """
    m = np.asarray(matrix, dtype=np.float64)
    if m.ndim != 2 or m.shape[0] != m.shape[1]:
        raise ConfigurationError(f"Covariance matrix must be square, got shape {m.shape}")
    if not np.all(np.isfinite(m)):
        raise ConfigurationError("Covariance matrix has non-finite entries")

    scale = np.maximum(np.abs(m), np.abs(m.T))
    bad = np.argwhere(np.abs(m - m.T) > scale * tolerance)
    if bad.size:
        i, j = (int(v) for v in bad[0])
        label_i = names[i] if names is not None else i
        label_j = names[j] if names is not None else j
        raise ConfigurationError(
            f"Covariance matrix is not symmetric: entry ({label_i!r}, {label_j!r}) = "
            f"{m[i, j]!r} but ({label_j!r}, {label_i!r}) = {m[j, i]!r}"
        )
    return m


def _warn_if_not_psd(matrix: npt.NDArray[np.float64]) -> None:
    if matrix.size == 0:
        return
    eigenvalues = np.linalg.eigvalsh(matrix)
    largest = max(float(np.max(np.abs(eigenvalues))), 1.0)
    smallest = float(np.min(eigenvalues))
    if smallest < -PSD_TOLERANCE * largest:
        warnings.warn(
            f"Covariance matrix is not positive semi-definite "
            f"(smallest eigenvalue {smallest:.3g}); bootstrap draws may be unreliable",
            RuntimeWarning,
            stacklevel=3,
        )


def _sample(
    means: npt.NDArray[np.float64],
    covariance: npt.NDArray[np.float64],
    names: Sequence[str],
    rng: NormalSource,
    tolerance: float,
) -> npt.NDArray[np.float64]:
    covariance = check_symmetric(covariance, names, tolerance)
    _warn_if_not_psd(covariance)
    logger.debug("Bootstrapping %d coefficients", len(names))
    # Validity was already checked and warned about above
    draw = np.asarray(
        rng.multivariate_normal(means, covariance, check_valid="ignore"),
        dtype=np.float64,
    )
    if draw.shape != means.shape:
        raise ConfigurationError(
            f"Random source returned shape {draw.shape}, expected {means.shape}"
        )
    return draw


def _regressor_names(table: CoefficientTable, role: str) -> list[str]:
    if not table.is_simple:
        raise ConfigurationError(
            f"The {role} table must have a single key column, got "
            f"{list(table.key_names)}; conditioning keys cannot be bootstrapped"
        )
    return [key[0] for key in table]


def bootstrap(
    table: CoefficientTable,
    rng: NormalSource,
    *,
    tolerance: float = SYMMETRY_TOLERANCE,
) -> CoefficientTable:
    """
    Bootstrap a table holding both estimates and their covariance matrix.

    The table is keyed by REGRESSOR and carries a COEFFICIENT column plus one
    value column per regressor holding that regressor's covariance column.

    Args:
        table: Combined estimates and covariance table.
        rng: Random source with ``multivariate_normal(mean, cov, check_valid=...)``.
        tolerance: Relative symmetry tolerance.

    Returns:
        A new ``REGRESSOR -> COEFFICIENT`` table with the same rows.

    Raises:
        ConfigurationError: If roles are missing, the table has conditioning
            keys, the covariance columns do not match the regressors, or the
            matrix is asymmetric.

    Example:
        >>> rng = np.random.default_rng(1)
        >>> table = CoefficientTable(
        ...     ["REGRESSOR"], ["COEFFICIENT", "age", "male"],
        ...     {"age": (0.5, 0.01, 0.0), "male": (-1.0, 0.0, 0.04)},
        ... )
        >>> bootstrap(table, rng).regressors()
        ['age', 'male']
    """
    coefficient = ColumnRole.COEFFICIENT.value
    names = _regressor_names(table, "combined estimates")
    if table.key_names[0] != ColumnRole.REGRESSOR.value:
        raise ConfigurationError(
            f"Table {table!r} has no key column named {ColumnRole.REGRESSOR.value!r}"
        )
    if coefficient not in table.value_names:
        raise ConfigurationError(
            f"Table {table!r} has no value column named {coefficient!r}"
        )

    index = {name: i for i, name in enumerate(names)}
    covariance_columns = [v for v in table.value_names if v != coefficient]
    if set(covariance_columns) != set(names):
        raise ConfigurationError(
            "Covariance columns must name every regressor exactly once: columns "
            f"{sorted(set(covariance_columns) - set(names))} have no row, rows "
            f"{sorted(set(names) - set(covariance_columns))} have no column"
        )

    n = len(names)
    means = np.zeros(n, dtype=np.float64)
    covariance = np.zeros((n, n), dtype=np.float64)
    estimates = table.column(coefficient)
    for column_name in covariance_columns:
        j = index[column_name]
        for key, value in table.column(column_name).items():
            covariance[index[key[0]], j] = value
    for key, value in estimates.items():
        means[index[key[0]]] = value

    sampled = _sample(means, covariance, names, rng, tolerance)
    return CoefficientTable(
        table.key_names,
        (coefficient,),
        {(name,): (float(sampled[index[name]]),) for name in names},
    )


def _covariance_from_table(
    covariance: CoefficientTable,
    names: Sequence[str],
) -> npt.NDArray[np.float64]:
    rows = _regressor_names(covariance, "covariance")
    missing_rows = [name for name in names if name not in set(rows)]
    missing_columns = [name for name in names if name not in covariance.value_names]
    if missing_rows or missing_columns:
        raise ConfigurationError(
            f"Covariance table lacks rows {missing_rows} and columns "
            f"{missing_columns} for coefficients {list(names)}"
        )
    n = len(names)
    matrix = np.empty((n, n), dtype=np.float64)
    for i, row in enumerate(names):
        for j, column in enumerate(names):
            matrix[i, j] = covariance.value(row, column)
    return matrix


def bootstrap_with_covariance(
    coefficients: CoefficientTable,
    covariance: CoefficientTable,
    rng: NormalSource,
    *,
    tolerance: float = SYMMETRY_TOLERANCE,
) -> CoefficientTable:
    """
    Bootstrap estimates against a separately supplied covariance table.

    ``coefficients`` has one key column and one value column. ``covariance``
    is keyed by regressor name with one value column per regressor; its row
    and column order need not match the estimates. Extra rows or columns in
    ``covariance`` are ignored.

    Returns:
        A new table with the key and value names of ``coefficients``.
    """
    names = _regressor_names(coefficients, "estimates")
    if len(coefficients.value_names) != 1:
        raise ConfigurationError(
            "The estimates table must have exactly one value column, got "
            f"{list(coefficients.value_names)}"
        )
    means = np.array([coefficients.value(name) for name in names], dtype=np.float64)
    matrix = _covariance_from_table(covariance, names)
    sampled = _sample(means, matrix, names, rng, tolerance)
    return CoefficientTable(
        coefficients.key_names,
        coefficients.value_names,
        {(name,): (float(value),) for name, value in zip(names, sampled)},
    )


def bootstrap_multinomial(
    tables: Mapping[Any, CoefficientTable],
    covariance: CoefficientTable,
    events: Any,
    rng: NormalSource,
    *,
    separator: str = MULTINOMIAL_SEPARATOR,
    tolerance: float = SYMMETRY_TOLERANCE,
) -> dict[Any, CoefficientTable]:
    """
    Jointly bootstrap the per-event coefficient tables of a multinomial model.

    Every event's estimates are flattened into one name space
    ``<event><separator><regressor>`` (the event label as in
    ``canonical_label``), sampled against ``covariance`` keyed by those
    names, and split back into per-event tables with the original structure.

    Args:
        tables: Event -> simple single-value coefficient table. At most one
            event of ``events`` (the base) may be absent.
        covariance: Covariance table over the flattened names.
        events: The full event set (sequence or Enum class).
        rng: Random source with ``multivariate_normal(mean, cov, check_valid=...)``.
        separator: Joins event label and regressor name.
        tolerance: Relative symmetry tolerance.

    Returns:
        Event -> new coefficient table, for the events present in ``tables``.

    Raises:
        ConfigurationError: If more than one event is missing, an unknown
            event is supplied, or the tables do not share key names, value
            names and regressors.
    """
    event_list = list(events)
    unknown = [event for event in tables if event not in event_list]
    if unknown:
        raise ConfigurationError(
            f"Coefficients given for unknown events {unknown}; events are {event_list}"
        )
    missing = [event for event in event_list if event not in tables]
    if len(missing) > 1:
        raise ConfigurationError(
            f"At most one event (the base) may lack coefficients; missing {missing}"
        )
    specified = [event for event in event_list if event in tables]
    if not specified:
        raise ConfigurationError("No event coefficient tables to bootstrap")

    reference_event = specified[0]
    reference = tables[reference_event]
    regressors = _regressor_names(reference, f"event {reference_event!r}")
    if len(reference.value_names) != 1:
        raise ConfigurationError(
            f"Event {reference_event!r} table must have exactly one value column, got "
            f"{list(reference.value_names)}"
        )
    for event in specified[1:]:
        table = tables[event]
        if table.key_names != reference.key_names:
            raise ConfigurationError(
                f"Key columns of event {event!r} {list(table.key_names)} differ from "
                f"event {reference_event!r} {list(reference.key_names)}"
            )
        if table.value_names != reference.value_names:
            raise ConfigurationError(
                f"Value columns of event {event!r} {list(table.value_names)} differ "
                f"from event {reference_event!r} {list(reference.value_names)}"
            )
        if set(table.regressors()) != set(regressors):
            raise ConfigurationError(
                f"The covariates of event {event!r} {table.regressors()} do not match "
                f"those of event {reference_event!r} {regressors}"
            )

    flat_names: list[str] = []
    means: list[float] = []
    for event in specified:
        label = canonical_label(event)
        for regressor in regressors:
            flat_names.append(f"{label}{separator}{regressor}")
            means.append(tables[event].value(regressor))

    matrix = _covariance_from_table(covariance, flat_names)
    sampled = _sample(np.array(means, dtype=np.float64), matrix, flat_names, rng, tolerance)

    result: dict[Any, CoefficientTable] = {}
    position = 0
    for event in specified:
        rows = {}
        for regressor in regressors:
            rows[(regressor,)] = (float(sampled[position]),)
            position += 1
        result[event] = CoefficientTable(reference.key_names, reference.value_names, rows)
    return result
