"""
Discrete-choice models

Each model turns one agent's covariates into a probability for every event of
a finite event set, and can draw one event from that distribution.

Binary:             P(y=1) = F(Xb)
Ordered:            P(y_j) = F(cut_j - Xb) - F(cut_{j-1} - Xb)
Generalized ordered P(y_j) = F(Xb_{j-1}) - F(Xb_j), one coefficient set per boundary
Multinomial logit:  P(y_i) = exp(Xb_i) / (1 + sum_k exp(Xb_k)), base category omitted
Multi-link:         P(y_i) = F(Xb_i) / sum_k F(Xb_k), base category contributes F(0)
"""

from __future__ import annotations

import abc
import enum
import logging
import math
import warnings
from collections.abc import Mapping, Sequence
from typing import Any, Callable, Optional

import numpy as np
from scipy.special import logsumexp

from .coefficients import (
    MULTINOMIAL_SEPARATOR,
    CoefficientTable,
    populate_multinomial_coefficients,
)
from .exceptions import ConfigurationError, NumericalInvariantError
from .links import Link, ProbabilityCalculator
from .sampling import UniformSource, draw
from .score import compute_score

logger = logging.getLogger(__name__)

PROBABILITY_SUM_TOLERANCE = 1e-9  # Allowed |sum(P) - 1| and overshoot of [0, 1]
DEFAULT_CUT_TOLERANCE = 0.0  # Allowed decrease of F(cut_j - Xb) between boundaries
CUT_PREFIX = "Cut"


def _check_events(
    events: Any,
    model_name: str,
    *,
    minimum: int = 3,
    exact: Optional[int] = None,
) -> tuple[Any, ...]:
    # Sequences and Enum classes both iterate in declaration order
    out = tuple(events)
    if exact is not None and len(out) != exact:
        raise ConfigurationError(
            f"{model_name} requires exactly {exact} events, got {len(out)}"
        )
    if len(out) < minimum:
        raise ConfigurationError(
            f"{model_name} requires at least {minimum} events, got {len(out)}"
        )
    if len(set(out)) != len(out):
        raise ConfigurationError(f"{model_name} events must be unique, got {out}")
    return out


def validate_probabilities(
    probabilities: Mapping[Any, float],
    *,
    tolerance: float = PROBABILITY_SUM_TOLERANCE,
    context: str = "",
) -> None:
    """
    Check a probability vector is finite, inside [0, 1] and sums to 1.

    Raises:
        NumericalInvariantError: Naming the offending event or the total.
    """
    where = f" in {context}" if context else ""
    total = 0.0
    for event, p in probabilities.items():
        if not math.isfinite(p):
            raise NumericalInvariantError(f"P({event!r}) = {p!r} is not finite{where}")
        if p < -tolerance or p > 1.0 + tolerance:
            raise NumericalInvariantError(f"P({event!r}) = {p!r} is outside [0, 1]{where}")
        total += p
    if abs(total - 1.0) > tolerance:
        raise NumericalInvariantError(
            f"Probabilities{where} sum to {total!r}, not 1: {dict(probabilities)}"
        )


class DiscreteChoiceModel(abc.ABC):
    """
    Common interface of the discrete-choice model family.

    Attributes:
        calculator (ProbabilityCalculator): Score and link evaluation.
        events (tuple): The ordered event set.
    """

    name = "DiscreteChoiceModel"

    def __init__(
        self,
        link: Link | str,
        events: Any,
        *,
        minimum_events: int = 3,
        exact_events: Optional[int] = None,
        strict: bool = False,
        interaction_marker: Optional[str] = None,
    ) -> None:
        self.calculator = ProbabilityCalculator(link)
        self.events = _check_events(
            events, self.name, minimum=minimum_events, exact=exact_events
        )
        self._score_options: dict[str, Any] = {"strict": strict}
        if interaction_marker is not None:
            self._score_options["interaction_marker"] = interaction_marker

    @property
    def link(self) -> Link:
        return self.calculator.link

    def __repr__(self) -> str:
        return f"{type(self).__name__}(link={self.link.value}, events={list(self.events)})"

    def _score(self, table: CoefficientTable, agent: Any) -> float:
        return self.calculator.score(table, agent, **self._score_options)

    @abc.abstractmethod
    def _raw_probabilities(self, agent: Any) -> dict[Any, float]:
        """Probability per event, before validation."""

    def probabilities(self, agent: Any) -> dict[Any, float]:
        """
        Probability of every event for one agent, in event order.

        Raises:
            NumericalInvariantError: If the vector is not a valid distribution.
        """
        probs = self._raw_probabilities(agent)
        validate_probabilities(probs, context=repr(self))
        return {event: probs[event] for event in self.events}

    def probability_of(self, event: Any, agent: Any) -> float:
        """Probability of a single event."""
        if event not in self.events:
            raise KeyError(f"{event!r} is not one of {list(self.events)}")
        return self.probabilities(agent)[event]

    def sample(self, agent: Any, rng: UniformSource) -> Any:
        """Draw one event from this agent's probability vector."""
        probs = self.probabilities(agent)
        # Zero-mass events can never be selected; drop them before drawing.
        support = [(event, p) for event, p in probs.items() if p > 0.0]
        events = [event for event, _ in support]
        weights = [p for _, p in support]
        return draw(events, weights, rng, True, tolerance=PROBABILITY_SUM_TOLERANCE)


class BinaryChoiceModel(DiscreteChoiceModel):
    """
    Binary choice: ``P(events[1]) = F(Xb)`` and ``P(events[0]) = 1 - F(Xb)``.

    Example:
        >>> table = CoefficientTable.from_coefficients({"age": 0.05, "const@": -2.0})
        >>> model = BinaryChoiceModel(Link.LOGIT, ["stay", "leave"], table)
        >>> model.probabilities({"age": 40})
        {'stay': 0.5, 'leave': 0.5}
    """

    name = "BinaryChoiceModel"

    def __init__(
        self,
        link: Link | str,
        events: Any,
        table: CoefficientTable,
        **score_options: Any,
    ) -> None:
        super().__init__(link, events, minimum_events=2, exact_events=2, **score_options)
        table.require_regression_roles()
        self.table = table

    def score(self, agent: Any) -> float:
        return self._score(self.table, agent)

    def probability(self, agent: Any) -> float:
        """``P(events[1]) = F(Xb)``."""
        return self.calculator.probability_of_score(self.score(agent))

    def _raw_probabilities(self, agent: Any) -> dict[Any, float]:
        p = self.probability(agent)
        return {self.events[0]: 1.0 - p, self.events[1]: p}


class OrderedChoiceModel(DiscreteChoiceModel):
    """
    Ordered choice with one coefficient set and ``len(events) - 1`` cut-points.

    ``P(y <= j) = F(cut_j - Xb)``; each event takes the increment of this
    cumulative probability and the last event takes the remainder. Cut-points
    named ``Cut1``, ``Cut2``, ... are read from the table unless given
    explicitly; they are excluded from the score.
    """

    name = "OrderedChoiceModel"

    def __init__(
        self,
        link: Link | str,
        events: Any,
        table: CoefficientTable,
        *,
        cuts: Optional[Sequence[float]] = None,
        cut_prefix: str = CUT_PREFIX,
        cut_tolerance: float = DEFAULT_CUT_TOLERANCE,
        **score_options: Any,
    ) -> None:
        """
        Args:
            link: Logit or probit link.
            events: Ordered event set (at least three).
            table: Coefficient table, optionally holding the cut rows.
            cuts: Explicit cut-points; if None, read ``<cut_prefix>1`` ...
                from ``table``.
            cut_prefix: Regressor-name prefix of cut rows.
            cut_tolerance: Largest decrease of the cumulative probability that
                is absorbed (with a warning) instead of raising.

        Raises:
            ConfigurationError: If events or cut-points are missing or the
                table lacks the reserved roles.
        """
        super().__init__(link, events, **score_options)
        table.require_regression_roles()
        if cut_tolerance < 0:
            raise ConfigurationError(f"cut_tolerance must be >= 0, got {cut_tolerance}")
        self.cut_tolerance = float(cut_tolerance)
        n_cuts = len(self.events) - 1
        cut_names = [f"{cut_prefix}{j}" for j in range(1, n_cuts + 1)]

        if cuts is None:
            if not table.is_simple:
                raise ConfigurationError(
                    "Cut-points can only be read from a single-key table; pass cuts= "
                    f"explicitly for key columns {list(table.key_names)}"
                )
            missing = [name for name in cut_names if name not in table]
            if missing:
                raise ConfigurationError(
                    f"{self.name} with {len(self.events)} events needs cut rows "
                    f"{cut_names}; missing {missing}"
                )
            self._cuts = tuple(table.coefficient(name) for name in cut_names)
            cut_keys = set(cut_names)
            score_rows = {
                key: values for key, values in table.items() if key[0] not in cut_keys
            }
            self.table = CoefficientTable(table.key_names, table.value_names, score_rows)
        else:
            if len(cuts) != n_cuts:
                raise ConfigurationError(
                    f"{self.name} with {len(self.events)} events needs {n_cuts} cuts, "
                    f"got {len(cuts)}"
                )
            self._cuts = tuple(float(c) for c in cuts)
            self.table = table
        self._cut_names = tuple(cut_names)
        self._source_table = table

    def coefficient(self, regressor: str) -> float:
        """COEFFICIENT of ``regressor`` (cut rows included) in a single-key table."""
        if regressor in self._cut_names:
            return self._cuts[self._cut_names.index(regressor)]
        if not self._source_table.is_simple:
            raise ConfigurationError(
                "Individual coefficient access is only supported for single-key tables"
            )
        return self._source_table.coefficient(regressor)

    def cuts(self) -> list[float]:
        return list(self._cuts)

    def score(self, agent: Any) -> float:
        return self._score(self.table, agent)

    def _raw_probabilities(self, agent: Any) -> dict[Any, float]:
        score = self.score(agent)
        probs: dict[Any, float] = {}
        preceding = 0.0
        for j, event in enumerate(self.events[:-1]):
            here = self.calculator.probability_of_score(self._cuts[j] - score)
            if here < preceding:
                drop = preceding - here
                if drop > self.cut_tolerance:
                    raise NumericalInvariantError(
                        f"Estimated cuts must be increasing in categories: "
                        f"F({self._cut_names[j]} - Xb) = {here!r} is below the "
                        f"preceding cumulative probability {preceding!r} "
                        f"(cuts={list(self._cuts)}, score={score!r})"
                    )
                warnings.warn(
                    f"Cumulative probability decreased by {drop:.3g} at "
                    f"{self._cut_names[j]}; treated as equal cuts",
                    RuntimeWarning,
                    stacklevel=3,
                )
                here = preceding
            probs[event] = here - preceding
            preceding = here
        probs[self.events[-1]] = 1.0 - preceding
        return probs


def _resolve_event_tables(
    events: Sequence[Any],
    coefficients: Mapping[Any, CoefficientTable] | CoefficientTable,
    model_name: str,
    separator: str,
) -> dict[Any, CoefficientTable]:
    if isinstance(coefficients, CoefficientTable):
        tables = populate_multinomial_coefficients(
            events, coefficients, separator=separator
        )
    else:
        tables = dict(coefficients)
    unknown = [event for event in tables if event not in events]
    if unknown:
        raise ConfigurationError(
            f"{model_name} has coefficients for unknown events {unknown}; "
            f"events are {list(events)}"
        )
    for event, table in tables.items():
        if not isinstance(table, CoefficientTable):
            raise ConfigurationError(
                f"Coefficients for event {event!r} must be a CoefficientTable, "
                f"got {type(table).__name__}"
            )
        table.require_regression_roles()
    return tables


class GeneralizedOrderedChoiceModel(DiscreteChoiceModel):
    """
    Generalized ordered choice: every boundary owns its coefficient set.

    The table of event ``j`` gives ``F(Xb_j) = P(y > j)``. Events take the
    successive decrements of this survivor probability and the last event
    keeps what remains. Tables are required for every event but the last.
    """

    name = "GeneralizedOrderedChoiceModel"

    def __init__(
        self,
        link: Link | str,
        events: Any,
        coefficients: Mapping[Any, CoefficientTable] | CoefficientTable,
        *,
        cut_tolerance: float = DEFAULT_CUT_TOLERANCE,
        separator: str = MULTINOMIAL_SEPARATOR,
        **score_options: Any,
    ) -> None:
        super().__init__(link, events, **score_options)
        if cut_tolerance < 0:
            raise ConfigurationError(f"cut_tolerance must be >= 0, got {cut_tolerance}")
        self.cut_tolerance = float(cut_tolerance)
        tables = _resolve_event_tables(self.events, coefficients, self.name, separator)
        missing = [event for event in self.events[:-1] if event not in tables]
        if missing:
            raise ConfigurationError(
                f"{self.name} needs coefficients for every event but the last; "
                f"missing {missing}"
            )
        if self.events[-1] in tables:
            raise ConfigurationError(
                f"{self.name} takes no coefficients for the last event "
                f"{self.events[-1]!r}; its probability is the remainder"
            )
        self.tables = {event: tables[event] for event in self.events[:-1]}

    def _raw_probabilities(self, agent: Any) -> dict[Any, float]:
        probs: dict[Any, float] = {}
        preceding = 1.0
        for event in self.events[:-1]:
            here = self.calculator.probability(
                self.tables[event], agent, **self._score_options
            )
            if here > preceding:
                rise = here - preceding
                if rise > self.cut_tolerance:
                    raise NumericalInvariantError(
                        f"P(y > {event!r}) = {here!r} exceeds the preceding survivor "
                        f"probability {preceding!r}; boundary scores must decrease "
                        "in categories"
                    )
                warnings.warn(
                    f"Survivor probability increased by {rise:.3g} at {event!r}; "
                    "treated as equal boundaries",
                    RuntimeWarning,
                    stacklevel=3,
                )
                here = preceding
            probs[event] = preceding - here
            preceding = here
        probs[self.events[-1]] = preceding
        return probs


def _find_base(events: Sequence[Any], tables: Mapping[Any, Any]) -> list[Any]:
    return [event for event in events if event not in tables]


class MultiChoiceCoefficients:
    """
    Per-event coefficient tables that must share one regressor set.

    Raises:
        ConfigurationError: If tables differ in key names, value names or
            regressor keys.
    """

    def __init__(self, tables: Mapping[Any, CoefficientTable]) -> None:
        if not tables:
            raise ConfigurationError("At least one event coefficient table is required")
        self.tables = dict(tables)
        reference_event, reference = next(iter(self.tables.items()))
        reference_keys = set(reference.rows)
        for event, table in self.tables.items():
            if table.key_names != reference.key_names:
                raise ConfigurationError(
                    f"Key columns of event {event!r} {list(table.key_names)} do not "
                    f"match those of event {reference_event!r} {list(reference.key_names)}"
                )
            if table.value_names != reference.value_names:
                raise ConfigurationError(
                    f"Value columns of event {event!r} {list(table.value_names)} do not "
                    f"match those of event {reference_event!r} {list(reference.value_names)}"
                )
            keys = set(table.rows)
            if keys != reference_keys:
                extra = sorted(keys - reference_keys)
                absent = sorted(reference_keys - keys)
                raise ConfigurationError(
                    f"The covariates of event {event!r} do not match those of event "
                    f"{reference_event!r}: extra {extra}, missing {absent}"
                )

    @property
    def events(self) -> list[Any]:
        return list(self.tables)

    def score(self, event: Any, agent: Any, **score_options: Any) -> float:
        return compute_score(self.tables[event], agent, **score_options)

    def scores(self, agent: Any, **score_options: Any) -> dict[Any, float]:
        return {event: self.score(event, agent, **score_options) for event in self.tables}


class MultinomialChoiceModel(DiscreteChoiceModel):
    """
    Multinomial logit with exactly one omitted (base) event.

    ``P(y_i) = exp(Xb_i) / (1 + sum_k exp(Xb_k))`` for events with
    coefficients; the base event has ``Xb = 0``. Evaluated as
    ``exp(s_i - logsumexp(s))`` to stay finite for large scores.
    """

    name = "MultinomialChoiceModel"

    def __init__(
        self,
        events: Any,
        coefficients: Mapping[Any, CoefficientTable] | CoefficientTable,
        *,
        link: Link | str = Link.LOGIT,
        separator: str = MULTINOMIAL_SEPARATOR,
        **score_options: Any,
    ) -> None:
        super().__init__(link, events, **score_options)
        if self.link is not Link.LOGIT:
            raise ConfigurationError(
                f"{self.name} supports only the logit link, got {self.link.value}"
            )
        tables = _resolve_event_tables(self.events, coefficients, self.name, separator)
        base = _find_base(self.events, tables)
        if len(base) != 1:
            raise ConfigurationError(
                f"{self.name} needs coefficients for all events but exactly one base "
                f"event; events without coefficients: {base}"
            )
        self.base_event = base[0]
        self.tables = {event: tables[event] for event in self.events if event in tables}
        logger.debug("%r: base event %r", self, self.base_event)

    def scores(self, agent: Any) -> dict[Any, float]:
        """``Xb`` per event; the base event scores 0."""
        return {
            event: (0.0 if event == self.base_event else self._score(self.tables[event], agent))
            for event in self.events
        }

    def _raw_probabilities(self, agent: Any) -> dict[Any, float]:
        scores = self.scores(agent)
        s = np.array([scores[event] for event in self.events], dtype=np.float64)
        p = np.exp(s - logsumexp(s))
        return {event: float(pi) for event, pi in zip(self.events, p)}


class MultiLinkModel(DiscreteChoiceModel):
    """
    Multi-logit / multi-probit: link-transformed scores normalised to sum 1.

    ``P(y_i) = F(Xb_i) / sum_k F(Xb_k)``. At most one event may lack
    coefficients; it contributes ``F(0) = 0.5``. All supplied tables must
    share the same regressors.
    """

    name = "MultiLinkModel"

    def __init__(
        self,
        link: Link | str,
        events: Any,
        coefficients: Mapping[Any, CoefficientTable] | CoefficientTable,
        *,
        separator: str = MULTINOMIAL_SEPARATOR,
        **score_options: Any,
    ) -> None:
        super().__init__(link, events, **score_options)
        tables = _resolve_event_tables(self.events, coefficients, self.name, separator)
        self.coefficients = MultiChoiceCoefficients(tables)
        base = _find_base(self.events, tables)
        if len(base) > 1:
            raise ConfigurationError(
                f"{self.name} allows at most one event without coefficients; "
                f"got {base}"
            )
        self.base_event = base[0] if base else None

    def _raw_probabilities(self, agent: Any) -> dict[Any, float]:
        transformed = {}
        for event in self.events:
            if event == self.base_event:
                transformed[event] = self.calculator.probability_of_score(0.0)
            else:
                transformed[event] = self.calculator.probability(
                    self.coefficients.tables[event], agent, **self._score_options
                )
        denominator = sum(transformed.values())
        if denominator <= 0.0:
            raise NumericalInvariantError(
                f"Link-transformed scores of {self!r} sum to {denominator!r}"
            )
        return {event: value / denominator for event, value in transformed.items()}


class RegressionType(enum.Enum):
    """Closed set of supported model specifications."""

    LOGIT = "Logit"
    PROBIT = "Probit"
    ORDERED_LOGIT = "OrderedLogit"
    ORDERED_PROBIT = "OrderedProbit"
    GEN_ORDERED_LOGIT = "GenOrderedLogit"
    GEN_ORDERED_PROBIT = "GenOrderedProbit"
    MULTINOMIAL_LOGIT = "MultinomialLogit"
    MULTI_LOGIT = "MultiLogit"
    MULTI_PROBIT = "MultiProbit"

    @property
    def link(self) -> Link:
        return Link.PROBIT if self.value.endswith("Probit") else Link.LOGIT


def _binary(rt: RegressionType, events: Any, coefficients: Any, **kw: Any) -> DiscreteChoiceModel:
    return BinaryChoiceModel(rt.link, events, coefficients, **kw)


def _ordered(rt: RegressionType, events: Any, coefficients: Any, **kw: Any) -> DiscreteChoiceModel:
    return OrderedChoiceModel(rt.link, events, coefficients, **kw)


def _gen_ordered(rt: RegressionType, events: Any, coefficients: Any, **kw: Any) -> DiscreteChoiceModel:
    return GeneralizedOrderedChoiceModel(rt.link, events, coefficients, **kw)


def _multinomial(rt: RegressionType, events: Any, coefficients: Any, **kw: Any) -> DiscreteChoiceModel:
    return MultinomialChoiceModel(events, coefficients, link=rt.link, **kw)


def _multi_link(rt: RegressionType, events: Any, coefficients: Any, **kw: Any) -> DiscreteChoiceModel:
    return MultiLinkModel(rt.link, events, coefficients, **kw)


_BUILDERS: dict[RegressionType, Callable[..., DiscreteChoiceModel]] = {
    RegressionType.LOGIT: _binary,
    RegressionType.PROBIT: _binary,
    RegressionType.ORDERED_LOGIT: _ordered,
    RegressionType.ORDERED_PROBIT: _ordered,
    RegressionType.GEN_ORDERED_LOGIT: _gen_ordered,
    RegressionType.GEN_ORDERED_PROBIT: _gen_ordered,
    RegressionType.MULTINOMIAL_LOGIT: _multinomial,
    RegressionType.MULTI_LOGIT: _multi_link,
    RegressionType.MULTI_PROBIT: _multi_link,
}


def build_model(
    regression_type: RegressionType | str,
    events: Any,
    coefficients: CoefficientTable | Mapping[Any, CoefficientTable],
    **kwargs: Any,
) -> DiscreteChoiceModel:
    """
    Construct the model for ``regression_type``.

    Args:
        regression_type: A ``RegressionType`` or its value (e.g. ``"OrderedProbit"``).
        events: Event set (sequence or Enum class).
        coefficients: One table (binary, ordered, or suffixed multi-event
            table) or an event -> table mapping.
        **kwargs: Forwarded to the model constructor.

    Raises:
        ConfigurationError: For unknown regression types.
    """
    try:
        rt = RegressionType(regression_type)
    except ValueError:
        raise ConfigurationError(
            f"Unknown regression type {regression_type!r}; expected one of "
            f"{[t.value for t in RegressionType]}"
        ) from None
    builder = _BUILDERS.get(rt)
    if builder is None:
        raise ConfigurationError(f"No model registered for {rt!r}")
    model = builder(rt, events, coefficients, **kwargs)
    logger.debug("Built %r for %s", model, rt.value)
    return model
