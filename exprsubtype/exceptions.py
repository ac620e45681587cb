"""
Exception hierarchy for the expression subtype pipeline.

Parameter misuse and data problems are separate branches so callers can tell
them apart:

    PipelineError
    ├── InvalidParameterError (also a ValueError)
    │   └── ConflictingParametersError
    ├── InvalidDataError (also a ValueError)
    ├── DegenerateClusteringError
    ├── EmptyClusterError
    ├── MissingClinicalDataError
    ├── InsufficientSurvivalDataError
    └── OperationCancelled
"""

from typing import Optional, Sequence


class PipelineError(Exception):
    """Base exception for all pipeline errors."""
    pass


class InvalidParameterError(PipelineError, ValueError):
    """
    Bad user-supplied parameter.

    Raised when:
    - a probe or cluster count is out of range
    - a percentage is outside (0, 100]
    - a method, distance or linkage name is not supported
    """

    def __init__(self, message: str, parameter: Optional[str] = None):
        super().__init__(message)
        self.parameter = parameter


class ConflictingParametersError(InvalidParameterError):
    """More than one selection mode was supplied at the same time."""

    def __init__(self, message: str, parameters: Sequence[str] = ()):
        super().__init__(message)
        self.parameters = tuple(parameters)


class InvalidDataError(PipelineError, ValueError):
    """
    Malformed input data.

    Raised when:
    - the expression matrix holds NaN, infinite or non-numeric values
    - probe or sample identifiers are duplicated
    - survival times are not positive
    """
    pass


class DegenerateClusteringError(PipelineError):
    """The requested partition cannot be realized."""

    def __init__(self, message: str, requested: Optional[int] = None,
                 realized: Optional[int] = None):
        super().__init__(message)
        self.requested = requested
        self.realized = realized


class EmptyClusterError(PipelineError):
    """A cluster label has no samples assigned."""

    def __init__(self, message: str, labels: Sequence[int] = ()):
        super().__init__(message)
        self.labels = tuple(labels)


class MissingClinicalDataError(PipelineError):
    """
    Clustered samples have no clinical record.

    Partial misses are recovered by dropping the samples; this error is only
    raised when nothing is left to analyse.
    """

    def __init__(self, message: str, missing: Sequence[str] = ()):
        super().__init__(message)
        self.missing = tuple(missing)


class InsufficientSurvivalDataError(PipelineError):
    """Fewer than two non-empty clusters, or no observed events."""
    pass


class OperationCancelled(PipelineError):
    """A long-running stage was cancelled through its cancellation token."""

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.stage = stage
