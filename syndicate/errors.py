from __future__ import annotations

from enum import Enum


class Status(str, Enum):
    OK = "ok"
    UNAUTHORIZED = "unauthorized"
    INVALID_PHASE = "invalid_phase"
    INVALID_TARGET = "invalid_target"
    ALREADY_RESOLVED = "already_resolved"
    INSUFFICIENT_CARDS = "insufficient_cards"
    CONFIGURATION_ERROR = "configuration_error"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"


class EngineError(Exception):
    status = Status.OK


class Rejected(EngineError):
    """An action that no longer applies; the room is left as it was."""


class Unauthorized(Rejected):
    status = Status.UNAUTHORIZED


class InvalidPhase(Rejected):
    status = Status.INVALID_PHASE


class InvalidTarget(Rejected):
    status = Status.INVALID_TARGET


class AlreadyResolved(Rejected):
    status = Status.ALREADY_RESOLVED


class FatalError(EngineError):
    """Broken data or setup: logged and raised to the caller."""


class InsufficientCards(FatalError):
    status = Status.INSUFFICIENT_CARDS


class ConfigurationError(FatalError, ValueError):
    status = Status.CONFIGURATION_ERROR


class ConcurrencyConflict(FatalError):
    status = Status.CONFLICT


class RoomNotFound(EngineError, LookupError):
    status = Status.NOT_FOUND
