"""
Custom exceptions shared by all layers.

Every error raised on purpose by this package derives from GameError, so the layer above (the UI / an HTTP router) can
catch a single type and translate it into a user-facing message.

NOTE: InvalidRequestError is raised from inside pydantic validators. It must NOT subclass ValueError, otherwise pydantic
wraps it into a ValidationError instead of letting it propagate.
"""


class GameError(Exception):
    """Base class for every error raised on purpose by this package."""


# --- VALIDATION ---
class InvalidRequestError(GameError):
    """Bad input shape (malformed room code, invalid UPI id, amount out of bounds, ...)."""


# --- PRECONDITIONS ---
class PreconditionError(GameError):
    """The current state does not permit the requested operation. Nothing was changed."""


class GameStateError(PreconditionError):
    """Game (record) is in a state that does not allow the action, or a stored record is inconsistent."""


class IllegalMoveError(PreconditionError):
    """The piece cannot make this move with the current die value."""


class NotYourTurnError(PreconditionError):
    pass


class GameNotFoundError(PreconditionError):
    pass


class GameNotActiveError(PreconditionError):
    pass


class RoomNotFoundError(PreconditionError):
    pass


class RoomFullError(PreconditionError):
    pass


class GameAlreadyStartedError(PreconditionError):
    pass


class AlreadyInRoomError(PreconditionError):
    pass


class NotInRoomError(PreconditionError):
    pass


class NotHostError(PreconditionError):
    pass


class NotEnoughPlayersError(PreconditionError):
    pass


class PlayersNotReadyError(PreconditionError):
    pass


class TournamentNotFoundError(PreconditionError):
    pass


class TournamentNotOpenError(PreconditionError):
    pass


class TournamentStateError(PreconditionError):
    """Tournament cannot be started / cancelled / completed from its current status."""


class AlreadyRegisteredError(PreconditionError):
    pass


class TournamentFullError(PreconditionError):
    pass


class MatchStateError(PreconditionError):
    """Reported result does not fit the match (unknown match, already completed, winner not playing in it)."""


class InsufficientBalanceError(PreconditionError):
    pass


class TransactionNotFoundError(PreconditionError):
    pass


# --- EXTERNAL DEPENDENCIES ---
class RepositoryError(GameError):
    """Persistence layer failed or returned something unusable."""


class StoreUnavailableError(RepositoryError):
    """The remote data store could not be reached."""


class PaymentFailedError(GameError):
    """The payment processor declined, failed, or the user cancelled the payment."""
