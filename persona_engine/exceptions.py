"""
Exceptions for the Persona Engine
"""


class PersonaEngineError(Exception):
    """Base exception for all persona engine errors."""
    pass


class ConfigurationError(PersonaEngineError):
    """Exception raised when a required credential or setting is missing."""
    pass


class InsufficientDataError(PersonaEngineError):
    """Exception raised when there is not enough source data to generate personas."""

    def __init__(self, missing, message=None):
        self.missing = list(missing)
        super().__init__(message or f"Insufficient data for persona generation: {', '.join(self.missing)}")


class ModelError(PersonaEngineError):
    """Base exception for failed calls to the generative model."""
    pass


class RateLimitError(ModelError):
    """Exception raised when rate limit is exceeded."""
    pass


class APIError(ModelError):
    """Exception raised when API error occurs."""
    pass


class TimeoutError(ModelError):
    """Exception raised when request times out."""
    pass
