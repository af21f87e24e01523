"""
Domain errors raised by the risk register services.

The API layer translates each kind into a structured JSON response.
"""


class RiskRegisterError(Exception):
    """Base class for all domain errors."""

    default_message = 'Risk register error.'

    def __init__(self, message=None, errors=None):
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)


class NotFound(RiskRegisterError):
    """Referenced entity does not resolve to a visible record."""

    default_message = 'Resource not found.'


class Forbidden(RiskRegisterError):
    """Actor lacks ownership and lacks the overriding capability."""

    default_message = 'This action is unauthorized.'


class ValidationFailed(RiskRegisterError):
    """Input violates a structural or range constraint."""

    default_message = 'Validation failed.'

    def __init__(self, errors, message=None):
        super().__init__(message, errors=errors)


class ConflictState(RiskRegisterError):
    """Mutation conflicts with the entity's current state."""

    default_message = 'The resource was modified by another request.'
