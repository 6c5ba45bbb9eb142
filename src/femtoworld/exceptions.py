"""Exception hierarchy for the femtoworld producer tasks.

All package-specific errors inherit from `FemtoWorldError`, so callers can
catch everything raised by the tasks with a single except clause.
"""


class FemtoWorldError(Exception):
    """Base class for all femtoworld errors."""


class ConfigurationError(FemtoWorldError, ValueError):
    """Raised at startup when selection or task configuration is malformed.

    Examples:
    - empty threshold list for a criterion
    - bit layout wider than the cut-container column
    - unknown configuration key, observable or PID species
    """


class ConditionsError(FemtoWorldError):
    """Raised when the conditions database has no object for the current run.

    This is fatal for the run: the lookup is not retried.
    """

    def __init__(self, path: str, timestamp: int) -> None:
        self.path = path
        self.timestamp = timestamp
        super().__init__(f"Conditions object '{path}' not found for timestamp {timestamp}")


class InputFormatError(FemtoWorldError, ValueError):
    """Raised when an input JSON document does not match the expected layout."""
