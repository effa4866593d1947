from __future__ import annotations

import os
import uuid
from dataclasses import asdict, dataclass, field
from enum import Enum, StrEnum, auto
from typing import Any, Dict, List, Optional, Set, Tuple

BASE_DIR: str = os.path.dirname(os.path.realpath(__file__))


def _env_int(name: str) -> Optional[int]:
    value = os.environ.get(name, "").strip()
    return int(value) if value.isdigit() else None


class Config:
    TOKEN: str = os.environ.get("TRIBUNAL_TOKEN", "")
    DATA_DIR: str = os.environ.get("TRIBUNAL_DATA_DIR", os.path.join(BASE_DIR, "data"))
    LOG_CHANNEL_ID: Optional[int] = _env_int("TRIBUNAL_LOG_CHANNEL_ID")
    DEBUG_GUILD_ID: Optional[int] = _env_int("TRIBUNAL_DEBUG_GUILD_ID")
    STORE_TIMEOUT: float = float(os.environ.get("TRIBUNAL_STORE_TIMEOUT", "5.0"))
    PLATFORM_TIMEOUT: float = float(os.environ.get("TRIBUNAL_PLATFORM_TIMEOUT", "10.0"))
    MAX_CHANNEL_NAME_LENGTH: int = 100
    MAX_TOPIC_LENGTH: int = 1024


class Outcome(StrEnum):
    CREATED = auto()
    VERDICT_RECORDED = auto()
    CLEARED = auto()
    CONFIGURED = auto()
    ARRESTED = auto()
    RELEASED = auto()
    ROLE_RESTORED = auto()
    NOTHING_TO_DO = auto()
    NO_COURT_CATEGORY = auto()
    NO_PRISON_ROLE = auto()
    NO_ACTIVE_CASE = auto()
    NOT_A_CATEGORY = auto()
    UNAUTHORIZED = auto()

    @property
    def ok(self) -> bool:
        return self not in NEGATIVE_OUTCOMES


NEGATIVE_OUTCOMES: Set[Outcome] = {
    Outcome.NO_COURT_CATEGORY,
    Outcome.NO_PRISON_ROLE,
    Outcome.NO_ACTIVE_CASE,
    Outcome.NOT_A_CATEGORY,
    Outcome.UNAUTHORIZED,
}


class Effect(Enum):
    CHANNEL_CREATED = auto()
    LAWSUIT_PERSISTED = auto()
    ENTRY_RECORDED = auto()
    ENTRY_REMOVED = auto()
    ROLE_GRANTED = auto()
    ROLE_REVOKED = auto()


# Errors


class TribunalError(Exception):
    pass


class StoreError(TribunalError):
    pass


class PlatformError(TribunalError):
    pass


class OperationFailed(TribunalError):
    """An operation stopped after some of its effects already took place.

    ``completed`` lists the effects that were acknowledged before ``failed``
    raised; nothing in ``completed`` is rolled back.
    """

    def __init__(
        self, operation: str, completed: Tuple[Effect, ...], failed: Effect
    ) -> None:
        super().__init__(
            f"{operation}: {failed.name} failed after "
            f"{', '.join(e.name for e in completed) or 'no effects'}"
        )
        self.operation = operation
        self.completed = completed
        self.failed = failed


# Schema


def _check_snowflake(value: Optional[int], name: str) -> None:
    if value is not None and value <= 0:
        raise ValueError(f"Invalid {name}")


@dataclass
class CourtRoom:
    channel_id: int

    def __post_init__(self):
        _check_snowflake(self.channel_id, "court room channel ID")


@dataclass
class Lawsuit:
    plaintiff: int
    accused: int
    judge: int
    reason: str
    court_room: int
    plaintiff_lawyer: Optional[int] = None
    accused_lawyer: Optional[int] = None
    verdict: Optional[str] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def __post_init__(self):
        for name in ("plaintiff", "accused", "judge", "court_room"):
            _check_snowflake(getattr(self, name), name)
        _check_snowflake(self.plaintiff_lawyer, "plaintiff lawyer")
        _check_snowflake(self.accused_lawyer, "accused lawyer")
        if not self.reason or not self.reason.strip():
            raise ValueError("Invalid reason")
        if not self.id:
            raise ValueError("Invalid lawsuit ID")

    @property
    def active(self) -> bool:
        return self.verdict is None


@dataclass
class GuildState:
    guild_id: int
    prison_role: Optional[int] = None
    court_category: Optional[int] = None
    lawsuits: List[Lawsuit] = field(default_factory=list)
    court_rooms: List[CourtRoom] = field(default_factory=list)
    prison_entries: Set[int] = field(default_factory=set)

    def __post_init__(self):
        _check_snowflake(self.guild_id, "guild ID")
        _check_snowflake(self.prison_role, "prison role ID")
        _check_snowflake(self.court_category, "court category ID")

    @classmethod
    def from_document(cls, data: Dict[str, Any]) -> GuildState:
        return cls(
            guild_id=data["guild_id"],
            prison_role=data.get("prison_role"),
            court_category=data.get("court_category"),
            lawsuits=[Lawsuit(**item) for item in data.get("lawsuits", ())],
            court_rooms=[CourtRoom(**item) for item in data.get("court_rooms", ())],
            prison_entries=set(data.get("prison_entries", ())),
        )

    def to_document(self) -> Dict[str, Any]:
        data = asdict(self)
        data["prison_entries"] = sorted(self.prison_entries)
        return data

    def has_room(self, channel_id: int) -> bool:
        return any(r.channel_id == channel_id for r in self.court_rooms)

    def active_lawsuit_for_room(self, channel_id: int) -> Optional[Lawsuit]:
        if not self.has_room(channel_id):
            return None
        return next(
            (case for case in self.lawsuits if case.court_room == channel_id and case.active),
            None,
        )


@dataclass(frozen=True)
class MemberInfo:
    id: int
    display_name: str


@dataclass(frozen=True)
class Result:
    outcome: Outcome
    lawsuit: Optional[Lawsuit] = None
    room: Optional[CourtRoom] = None

    @property
    def ok(self) -> bool:
        return self.outcome.ok
