"""
Coefficient tables

A coefficient table is an immutable set of rows. Each row has a key tuple
(the regressor name first, optionally followed by conditioning attributes such
as gender) and one or more named numeric value columns. Column headers with a
reserved meaning are listed in ``ColumnRole`` and must match existing
coefficient files exactly.
"""

from __future__ import annotations

import enum
import math
from collections.abc import Iterable, Iterator, Mapping, Sequence
from types import MappingProxyType
from typing import Any, Optional

import numpy as np
import pandas as pd

from .covariates import canonical_label
from .exceptions import ConfigurationError

Key = tuple[str, ...]

MULTINOMIAL_SEPARATOR = "_"  # Joins regressor and event names in combined tables


class ColumnRole(str, enum.Enum):
    """Reserved column headers of coefficient tables."""

    REGRESSOR = "REGRESSOR"  # key column holding regressor (covariate) names
    COEFFICIENT = "COEFFICIENT"  # value column holding the estimated coefficient
    ESTIMATE = "ESTIMATE"
    COVARIANCE = "COVARIANCE"

    def __str__(self) -> str:
        return self.value


def _normalise_key(key: Any, arity: int) -> Key:
    if isinstance(key, tuple):
        parts = key
    elif isinstance(key, list):
        parts = tuple(key)
    else:
        parts = (key,)
    if len(parts) != arity:
        raise ConfigurationError(
            f"Row key {key!r} has {len(parts)} entries but the table has "
            f"{arity} key columns; mixed key arity inside one table is invalid"
        )
    return tuple(canonical_label(p) for p in parts)


def _normalise_values(key: Key, values: Any, width: int) -> tuple[float, ...]:
    if isinstance(values, (str, bytes)):
        raise ConfigurationError(f"Row {key!r} has non-numeric value {values!r}")
    if np.ndim(values) == 0:
        values = (values,)
    values = tuple(values)
    if len(values) != width:
        raise ConfigurationError(
            f"Row {key!r} has {len(values)} values but the table has {width} value columns"
        )
    out = []
    for v in values:
        try:
            f = float(v)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(
                f"Row {key!r} has non-numeric value {v!r}"
            ) from exc
        if not math.isfinite(f):
            raise ConfigurationError(f"Row {key!r} has non-finite value {v!r}")
        out.append(f)
    return tuple(out)


class CoefficientTable:
    """
    Immutable multi-key table of regression coefficients.

    Attributes:
        key_names (tuple[str, ...]): Names of the key columns, in order.
        value_names (tuple[str, ...]): Names of the value columns, in order.
        rows (Mapping[tuple[str, ...], tuple[float, ...]]): Read-only row view,
            in insertion order.
    """

    __slots__ = ("_key_names", "_value_names", "_rows", "_value_index")

    def __init__(
        self,
        key_names: Sequence[str],
        value_names: Sequence[str],
        rows: Mapping[Any, Any] | Iterable[tuple[Any, Any]],
    ) -> None:
        """
        Build a table from column names and ``key -> values`` rows.

        Args:
            key_names: Key column names (at least one).
            value_names: Value column names (at least one).
            rows: Mapping or iterable of ``(key, values)`` pairs. A key may be a
                plain string for single-key tables; values may be a scalar for
                single-value tables.

        Raises:
            ConfigurationError: On empty or duplicated column names, wrong key
                or value arity, duplicated keys, or non-finite values.
        """
        key_names = tuple(str(k) for k in key_names)
        value_names = tuple(str(v) for v in value_names)
        if len(key_names) < 1:
            raise ConfigurationError("A coefficient table needs at least one key column")
        if len(value_names) < 1:
            raise ConfigurationError("A coefficient table needs at least one value column")
        if len(set(key_names)) != len(key_names):
            raise ConfigurationError(f"Duplicate key column names: {key_names}")
        if len(set(value_names)) != len(value_names):
            raise ConfigurationError(f"Duplicate value column names: {value_names}")
        overlap = set(key_names) & set(value_names)
        if overlap:
            raise ConfigurationError(
                f"Columns {sorted(overlap)} appear both as key and value columns"
            )

        items = rows.items() if isinstance(rows, Mapping) else rows
        store: dict[Key, tuple[float, ...]] = {}
        for raw_key, raw_values in items:
            key = _normalise_key(raw_key, len(key_names))
            if key in store:
                raise ConfigurationError(f"Duplicate row key {key!r}")
            store[key] = _normalise_values(key, raw_values, len(value_names))

        self._key_names = key_names
        self._value_names = value_names
        self._rows = MappingProxyType(store)
        self._value_index = {name: i for i, name in enumerate(value_names)}

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------
    @classmethod
    def from_coefficients(
        cls,
        coefficients: Mapping[str, float],
        value_name: str = ColumnRole.COEFFICIENT.value,
    ) -> "CoefficientTable":
        """Build a simple ``REGRESSOR -> COEFFICIENT`` table from a dict."""
        return cls(
            (ColumnRole.REGRESSOR.value,),
            (value_name,),
            {(name,): (value,) for name, value in coefficients.items()},
        )

    @classmethod
    def from_records(
        cls,
        key_names: Sequence[str],
        value_names: Sequence[str],
        records: Iterable[Sequence[Any]],
    ) -> "CoefficientTable":
        """Build a table from flat records ``(*keys, *values)``."""
        n_keys = len(key_names)
        pairs = []
        for record in records:
            record = tuple(record)
            if len(record) != n_keys + len(value_names):
                raise ConfigurationError(
                    f"Record {record!r} must have {n_keys + len(value_names)} fields"
                )
            pairs.append((record[:n_keys], record[n_keys:]))
        return cls(key_names, value_names, pairs)

    @classmethod
    def from_frame(cls, frame: pd.DataFrame, key_columns: int = 1) -> "CoefficientTable":
        """
        Build a table from a DataFrame laid out like a coefficient spreadsheet.

        The first ``key_columns`` columns form the key tuple and the remaining
        columns are named value columns.
        """
        if key_columns < 1:
            raise ConfigurationError(f"key_columns must be >= 1, got {key_columns}")
        if frame.shape[1] <= key_columns:
            raise ConfigurationError(
                f"Frame has {frame.shape[1]} columns; need more than key_columns={key_columns}"
            )
        columns = [str(c) for c in frame.columns]
        key_names = columns[:key_columns]
        value_names = columns[key_columns:]
        keys = frame.iloc[:, :key_columns].itertuples(index=False, name=None)
        values = frame.iloc[:, key_columns:].to_numpy(dtype=float)
        return cls(key_names, value_names, zip(keys, values))

    def to_frame(self) -> pd.DataFrame:
        """Return the table as a DataFrame with key columns first."""
        records = [key + values for key, values in self._rows.items()]
        return pd.DataFrame.from_records(
            records, columns=list(self._key_names + self._value_names)
        )

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    @property
    def key_names(self) -> tuple[str, ...]:
        return self._key_names

    @property
    def value_names(self) -> tuple[str, ...]:
        return self._value_names

    @property
    def rows(self) -> Mapping[Key, tuple[float, ...]]:
        return self._rows

    @property
    def is_simple(self) -> bool:
        """True when the only key column is the regressor name."""
        return len(self._key_names) == 1

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self) -> Iterator[Key]:
        return iter(self._rows)

    def __contains__(self, key: object) -> bool:
        if isinstance(key, str):
            key = (key,)
        return key in self._rows

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CoefficientTable):
            return NotImplemented
        return (
            self._key_names == other._key_names
            and self._value_names == other._value_names
            and list(self._rows.items()) == list(other._rows.items())
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return (
            f"CoefficientTable(keys={list(self._key_names)}, "
            f"values={list(self._value_names)}, rows={len(self._rows)})"
        )

    def items(self) -> Iterable[tuple[Key, tuple[float, ...]]]:
        return self._rows.items()

    def regressor_index(self) -> int:
        """Position of the REGRESSOR column inside the key tuple."""
        try:
            return self._key_names.index(ColumnRole.REGRESSOR.value)
        except ValueError:
            raise ConfigurationError(
                f"Table {self!r} has no key column named {ColumnRole.REGRESSOR.value!r}"
            ) from None

    def regressors(self) -> list[str]:
        """Distinct regressor names, in row order."""
        idx = self.regressor_index()
        seen: dict[str, None] = {}
        for key in self._rows:
            seen.setdefault(key[idx], None)
        return list(seen)

    def _coefficient_position(self) -> int:
        position = self._value_index.get(ColumnRole.COEFFICIENT.value)
        if position is not None:
            return position
        if len(self._value_names) == 1:
            return 0
        raise ConfigurationError(
            f"Table {self!r} has no value column named {ColumnRole.COEFFICIENT.value!r}"
        )

    def value(self, key: Any, column: Optional[str] = None) -> float:
        """
        Return the value stored under ``key`` in ``column``.

        ``column`` may be omitted for single-value tables.

        Raises:
            KeyError: If the row or column does not exist.
        """
        key = _normalise_key(key, len(self._key_names))
        values = self._rows[key]
        if column is None:
            if len(self._value_names) != 1:
                raise KeyError(
                    f"Table has {len(self._value_names)} value columns; name one of "
                    f"{list(self._value_names)}"
                )
            return values[0]
        position = self._value_index.get(str(column))
        if position is None:
            raise KeyError(f"No value column {column!r} in {list(self._value_names)}")
        return values[position]

    def get(self, key: Any, column: Optional[str] = None, default: Any = None) -> Any:
        try:
            return self.value(key, column)
        except KeyError:
            return default

    def coefficient(self, *key: Any) -> float:
        """Return the COEFFICIENT of the row identified by ``key``."""
        normalised = _normalise_key(key if len(key) != 1 else key[0], len(self._key_names))
        return self._rows[normalised][self._coefficient_position()]

    def coefficients(self) -> dict[Key, float]:
        """All rows mapped to their COEFFICIENT value."""
        position = self._coefficient_position()
        return {key: values[position] for key, values in self._rows.items()}

    def column(self, name: str) -> dict[Key, float]:
        """All rows mapped to the value in column ``name``."""
        position = self._value_index.get(str(name))
        if position is None:
            raise KeyError(f"No value column {name!r} in {list(self._value_names)}")
        return {key: values[position] for key, values in self._rows.items()}

    def with_coefficients(self, coefficients: Mapping[Any, float]) -> "CoefficientTable":
        """
        Return a new table with the same keys and a single COEFFICIENT column.

        Every key of this table must be present in ``coefficients``.
        """
        normalised = {
            _normalise_key(k, len(self._key_names)): v for k, v in coefficients.items()
        }
        missing = [key for key in self._rows if key not in normalised]
        if missing:
            raise ConfigurationError(f"No replacement coefficient for rows {missing}")
        return CoefficientTable(
            self._key_names,
            (ColumnRole.COEFFICIENT.value,),
            {key: normalised[key] for key in self._rows},
        )

    def require_regression_roles(self) -> None:
        """
        Check the table can drive a linear score.

        The REGRESSOR role must be a key column and COEFFICIENT a value column
        (a table with a single value column may leave it unnamed); each
        misplaced on the other side gets a dedicated message.

        Raises:
            ConfigurationError: If either role is missing or misplaced.
        """
        regressor = ColumnRole.REGRESSOR.value
        coefficient = ColumnRole.COEFFICIENT.value
        if regressor not in self._key_names:
            if regressor in self._value_names:
                raise ConfigurationError(
                    f"{regressor!r} is stored as a value column of {self!r}; it must "
                    "be a key column positioned before the value columns"
                )
            raise ConfigurationError(
                f"Table {self!r} has no key column named {regressor!r}"
            )
        if coefficient not in self._value_names:
            if coefficient in self._key_names:
                raise ConfigurationError(
                    f"{coefficient!r} is stored as a key column of {self!r}; it must "
                    "be a value column after the key columns"
                )
            if len(self._value_names) == 1:
                return
            raise ConfigurationError(
                f"Table {self!r} has no value column named {coefficient!r}"
            )


def populate_multinomial_coefficients(
    events: Iterable[Any],
    table: CoefficientTable,
    *,
    separator: str = MULTINOMIAL_SEPARATOR,
) -> dict[Any, CoefficientTable]:
    """
    Split a combined table into one coefficient table per event.

    Rows of ``table`` are named ``<regressor><separator><event>``; each is
    moved to the table of its event with the suffix removed. Events whose
    coefficients are all zero are left out, so they act as the base category.

    Args:
        events: The ordered event set; labels are matched via their canonical
            string (enum members by name).
        table: Single-key table whose regressor names carry an event suffix.
        separator: String joining regressor and event names.

    Returns:
        Per-event simple tables, in event order.

    Raises:
        ConfigurationError: If fewer than three events are given, the table
            has conditioning keys, or a row matches no event.
    """
    events = list(events)
    if len(events) < 3:
        raise ConfigurationError(
            f"Multinomial coefficients need at least three events, got {len(events)}"
        )
    if not table.is_simple:
        raise ConfigurationError(
            "Splitting multinomial coefficients requires a single-key table; "
            f"got key columns {list(table.key_names)}"
        )
    coefficients = {key[0]: value for key, value in table.coefficients().items()}

    allocated: set[str] = set()
    result: dict[Any, CoefficientTable] = {}
    for event in events:
        suffix = f"{separator}{canonical_label(event)}"
        own: dict[str, float] = {}
        for name, value in coefficients.items():
            if name.endswith(suffix) and len(name) > len(suffix):
                if name in allocated:
                    raise ConfigurationError(
                        f"Regressor {name!r} matches more than one event suffix"
                    )
                own[name[: -len(suffix)]] = value
                allocated.add(name)
        if any(value != 0.0 for value in own.values()):
            result[event] = CoefficientTable.from_coefficients(own)

    unallocated = [name for name in coefficients if name not in allocated]
    if unallocated:
        raise ConfigurationError(
            f"Regressors {unallocated} do not end with '{separator}<event>' for any "
            f"event in {[canonical_label(e) for e in events]}"
        )
    return result
