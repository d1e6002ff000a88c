"""Rules engine for a hidden-role social deduction game of agency versus syndicate."""

from .engine import Engine, WSClient, WSClientType
from .errors import (
    AlreadyResolved,
    ConcurrencyConflict,
    ConfigurationError,
    EngineError,
    InsufficientCards,
    InvalidPhase,
    InvalidTarget,
    Rejected,
    RoomNotFound,
    Status,
    Unauthorized,
)
from .gateway import Gateway, Outcome, RoomStore
from .models import (
    GameStatus,
    Phase,
    Player,
    PolicyCard,
    Role,
    Room,
    RoomSettings,
    SyndicatePower,
    Team,
    VoteChoice,
    WinReason,
)

__all__ = [
    "Engine",
    "WSClient",
    "WSClientType",
    "AlreadyResolved",
    "ConcurrencyConflict",
    "ConfigurationError",
    "EngineError",
    "InsufficientCards",
    "InvalidPhase",
    "InvalidTarget",
    "Rejected",
    "RoomNotFound",
    "Status",
    "Unauthorized",
    "Gateway",
    "Outcome",
    "RoomStore",
    "GameStatus",
    "Phase",
    "Player",
    "PolicyCard",
    "Role",
    "Room",
    "RoomSettings",
    "SyndicatePower",
    "Team",
    "VoteChoice",
    "WinReason",
]
