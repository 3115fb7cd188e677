"""Errors raised by game operations.

Every error carries a message that is safe to show to the player who triggered it.
The socket layer catches ``GameError`` and reports it back to that connection only.
"""


class GameError(Exception):
    """Base class for errors reported back to a client."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(GameError):
    """Missing or malformed field in an inbound event."""
    pass


class NotFoundError(GameError):
    """Unknown room code."""
    pass


class StateConflict(GameError):
    """Action is not valid in the room's current phase."""
    pass


class AuthorizationError(GameError):
    """A non-host tried a host-only action."""
    pass


class ExternalProviderError(GameError):
    """The AI provider call failed or returned nothing usable."""
    pass
