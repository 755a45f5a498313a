"""Errors raised by the conformal predictor."""


class ConformalError(Exception):
    """Base class for all transcp errors."""


class InvalidInputError(ConformalError, ValueError):
    """Training data is malformed (length mismatch, bad label indices)."""


class NotTrainedError(ConformalError, RuntimeError):
    """Prediction or update attempted before training."""


class EpsilonNotSetError(ConformalError, RuntimeError):
    """Region prediction attempted without a significance level."""


class ScoringError(ConformalError, RuntimeError):
    """The nonconformity scorer failed or returned a non-finite score."""
