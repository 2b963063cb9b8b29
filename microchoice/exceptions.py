"""Exception types raised by microchoice."""

from __future__ import annotations


class MicrochoiceError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(MicrochoiceError, ValueError):
    """A coefficient table, event set or covariate source is set up incorrectly."""


class NumericalInvariantError(MicrochoiceError, ArithmeticError):
    """A computed quantity breaks a probability or ordering invariant."""


class SamplingError(MicrochoiceError, ValueError):
    """The inputs to a random draw are invalid."""
