"""Error taxonomy for zombies match and player statistics."""


class ZombieStatsError(Exception):
    """Base class for match lifecycle and stats persistence failures."""


class NotFoundError(ZombieStatsError):
    """Referenced match or player does not exist."""


class ValidationError(ZombieStatsError):
    """Malformed input reached the orchestrator."""


class ConflictError(ValidationError):
    """Operation would violate the one-active-match-per-server rule."""


class PersistenceError(ZombieStatsError):
    """Underlying storage I/O failed."""


class MalformedDataWarning(Warning):  # noqa: N818
    """A stored free-form column could not be decoded.

    Never propagates past the row mapper: the affected field degrades to an
    empty structure and the failure is logged.
    """
