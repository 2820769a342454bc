# server/core/exceptions.py
"""
Custom exceptions for the backend
"""

class AquaMindError(Exception):
    """Base exception for AquaMind backend"""
    kind = "internal"
    retryable = False

class AgentError(AquaMindError):
    """Agent-related errors"""
    pass

class AgentConfigError(AquaMindError):
    """Agent configuration errors"""
    kind = "config"

class ExternalAPIError(AquaMindError):
    """External API errors"""
    kind = "external"

class CommandValidationError(AquaMindError):
    """Malformed or out-of-range command parameters; nothing was executed"""
    kind = "validation"

    def __init__(self, message: str, errors=None):
        super().__init__(message)
        self.errors = list(errors or [])

class NetworkError(ExternalAPIError):
    """Generation or weather backend unreachable or timed out"""
    kind = "network"
    retryable = True

class LocationNotFoundError(ExternalAPIError):
    """Postal code could not be geocoded"""
    kind = "location"

class SchemaError(AgentError):
    """Generation backend reply is missing required structural fields"""
    kind = "schema"

class StateError(AquaMindError):
    """Confirm/cancel for an unknown or expired pending action, or a stale plan revision"""
    kind = "state"

class TimingConstraintError(AquaMindError):
    """Command understood but impossible because the slot has already elapsed"""
    kind = "timing"

def user_message(error: Exception) -> str:
    """Short explanation of ``error`` for the user"""
    if isinstance(error, (CommandValidationError, StateError)):
        return f"{str(error).rstrip('.')}. Nothing was changed."
    if isinstance(error, NetworkError):
        return "The service is temporarily unavailable, please retry shortly."
    if isinstance(error, TimingConstraintError):
        return f"{str(error).rstrip('.')}. That is not possible anymore."
    if isinstance(error, SchemaError):
        return "The AI returned an unusable answer, so the current plan was kept. Please try again."
    if isinstance(error, LocationNotFoundError):
        return f"{error}. Please check the zip code."
    return "Something went wrong while processing your request."
