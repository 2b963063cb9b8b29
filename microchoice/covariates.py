"""
Covariate sources

Agents are heterogeneous: a scoring call only needs to ask "what is the numeric
value named X" and "what is the attribute named Y" for one agent. Agents that
care about speed implement ``get_numeric``/``get_attribute`` themselves; plain
mappings and arbitrary objects are wrapped by the adapters below.
"""

from __future__ import annotations

import enum
import logging
import numbers
from collections.abc import Mapping
from typing import Any, Optional, Protocol, runtime_checkable

import numpy as np

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_MISSING = object()


@runtime_checkable
class CovariateSource(Protocol):
    """Typed access to one agent's covariates and conditioning attributes."""

    def get_numeric(self, name: str) -> Optional[float]:
        """Return the numeric covariate ``name``, or None when it is undefined."""
        ...

    def get_attribute(self, name: str) -> Any:
        """Return the conditioning attribute ``name``; raise KeyError if absent."""
        ...


def canonical_label(value: Any) -> str:
    """
    Normalise an attribute or key value to the string used for key matching.

    Booleans become ``"true"``/``"false"``, enum members their ``name``, floats
    their ``repr`` (``1.0``), and numpy scalars are unwrapped first.
    """
    if isinstance(value, np.generic):
        value = value.item()
    # str-mixin enums must resolve to their name, not their value
    if isinstance(value, enum.Enum):
        return value.name
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return repr(value)
    if isinstance(value, numbers.Integral):
        return str(int(value))
    if value is None:
        raise ConfigurationError("Cannot build a key label from None")
    return str(value)


def _to_float(name: str, value: Any) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, numbers.Real):
        return float(value)
    raise ConfigurationError(
        f"Covariate {name!r} has non-numeric value {value!r} "
        f"({type(value).__name__})"
    )


class MappingCovariates:
    """Covariate source backed by a name -> value mapping."""

    __slots__ = ("_values",)

    def __init__(self, values: Mapping[str, Any]) -> None:
        self._values = values

    def get_numeric(self, name: str) -> Optional[float]:
        return _to_float(name, self._values.get(name))

    def get_attribute(self, name: str) -> Any:
        return self._values[name]

    def __repr__(self) -> str:
        return f"MappingCovariates({dict(self._values)!r})"


class ReflectiveCovariates:
    """
    Slow-path covariate source that inspects an arbitrary object by name.

    Attributes, properties and zero-argument getters (``get_<name>``) are
    tried in that order. Use only when the agent cannot implement
    ``CovariateSource`` directly.
    """

    __slots__ = ("_target",)

    def __init__(self, target: Any) -> None:
        self._target = target

    def _lookup(self, name: str) -> Any:
        value = getattr(self._target, name, _MISSING)
        if value is _MISSING:
            getter = getattr(self._target, f"get_{name}", None)
            if callable(getter):
                return getter()
            return _MISSING
        if callable(value) and not isinstance(value, (enum.Enum, numbers.Number)):
            # bound method exposing the value, e.g. ``agent.age()``
            return value()
        return value

    def get_numeric(self, name: str) -> Optional[float]:
        value = self._lookup(name)
        if value is _MISSING:
            return None
        return _to_float(name, value)

    def get_attribute(self, name: str) -> Any:
        value = self._lookup(name)
        if value is _MISSING:
            raise KeyError(name)
        return value

    def __repr__(self) -> str:
        return f"ReflectiveCovariates({type(self._target).__name__})"


def as_covariate_source(agent: Any) -> CovariateSource:
    """
    Return a ``CovariateSource`` view of ``agent``.

    Objects implementing the protocol are returned unchanged (fast path);
    mappings and pandas rows (``Series``) are wrapped in ``MappingCovariates``;
    anything else falls back to ``ReflectiveCovariates``.
    """
    if isinstance(agent, CovariateSource):
        return agent
    if isinstance(agent, Mapping):
        return MappingCovariates(agent)
    # Handle pandas rows gracefully; their attributes would shadow the labels
    if hasattr(agent, "to_dict") and hasattr(agent, "index"):
        return MappingCovariates(agent.to_dict())
    logger.debug(
        "Using reflective covariate lookup for %s", type(agent).__name__
    )
    return ReflectiveCovariates(agent)


def resolve_attribute(source: CovariateSource, name: str) -> str:
    """Fetch conditioning attribute ``name`` from ``source`` as a canonical label."""
    try:
        value = source.get_attribute(name)
    except (KeyError, AttributeError) as exc:
        raise ConfigurationError(
            f"Covariate source {source!r} has no conditioning attribute {name!r}; "
            "check the spelling and case of the coefficient table key column"
        ) from exc
    if value is None:
        raise ConfigurationError(
            f"Conditioning attribute {name!r} of {source!r} is None"
        )
    return canonical_label(value)
