"""Exception types shared by the game and bracket services."""


class CupGameError(Exception):
    """Base class for cup game errors."""


class IllegalAction(CupGameError):
    """A guarded action was attempted while its guard condition failed."""


class GameNotFound(CupGameError):
    pass


class MatchNotFound(CupGameError):
    pass


class InvalidScoreEvent(CupGameError):
    """A score event failed ledger validation."""
