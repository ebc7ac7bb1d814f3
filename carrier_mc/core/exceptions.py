"""
Exceptions raised while setting up or running charge propagation.

Configuration problems derive from ValueError so callers that only guard
against bad input keep working.
"""


class ConfigurationError(ValueError):
    """Configuration cannot be used to start a simulation."""


class InvalidValueError(ConfigurationError):
    """A single configuration key holds an unusable value."""

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Invalid value for '{key}': {reason}")


class ModelError(Exception):
    """Base class for physics model construction errors."""


class InvalidModelError(ModelError):
    """Requested model name is not known."""

    def __init__(self, model: str, available=()):
        message = f"Model '{model}' does not exist"
        if available:
            message += f". Available: {sorted(available)}"
        super().__init__(message)


class ModelUnsuitable(ModelError):
    """Model exists but cannot be used with the current detector."""


class MissingDataError(RuntimeError):
    """Required upstream data was not provided for an event."""
