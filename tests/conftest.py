from __future__ import annotations

from typing import Dict, List, Set, Tuple

import pytest

from tribunal.context import Context
from tribunal.schema import Config, MemberInfo, PlatformError
from tribunal.store import Repo, Store

GUILD_ID = 1000
CATEGORY_ID = 2000
PRISON_ROLE_ID = 3000


class FakePlatform:
    """In-memory guild: members, their roles, channels and sent messages."""

    def __init__(self) -> None:
        self.members: Dict[Tuple[int, int], MemberInfo] = {}
        self.roles: Dict[Tuple[int, int], Set[int]] = {}
        self.categories: Set[Tuple[int, int]] = set()
        self.channels: Dict[int, Dict[str, object]] = {}
        self.messages: List[Tuple[int, str]] = []
        self.failing: Set[str] = set()
        self.calls: List[str] = []
        self.next_channel_id = 5000

    def add_member(self, guild_id: int, member_id: int, name: str = "") -> None:
        self.members[(guild_id, member_id)] = MemberInfo(
            id=member_id, display_name=name or f"member{member_id}"
        )
        self.roles.setdefault((guild_id, member_id), set())

    def leave(self, guild_id: int, member_id: int) -> None:
        self.members.pop((guild_id, member_id), None)
        self.roles.pop((guild_id, member_id), None)

    def has_role(self, guild_id: int, member_id: int, role_id: int) -> bool:
        return role_id in self.roles.get((guild_id, member_id), set())

    def _check(self, action: str) -> None:
        self.calls.append(action)
        if action in self.failing:
            raise PlatformError(f"{action} failed")

    def _member(self, guild_id: int, member_id: int) -> MemberInfo:
        if (member := self.members.get((guild_id, member_id))) is None:
            raise PlatformError(f"Member {member_id} not found")
        return member

    async def fetch_member(self, guild_id: int, member_id: int) -> MemberInfo:
        self._check("fetch_member")
        return self._member(guild_id, member_id)

    async def grant_role(self, guild_id: int, member_id: int, role_id: int) -> None:
        self._check("grant_role")
        self._member(guild_id, member_id)
        self.roles[(guild_id, member_id)].add(role_id)

    async def revoke_role(self, guild_id: int, member_id: int, role_id: int) -> None:
        self._check("revoke_role")
        self._member(guild_id, member_id)
        self.roles[(guild_id, member_id)].discard(role_id)

    async def create_channel(
        self, guild_id: int, parent_id: int, name: str, topic: str
    ) -> int:
        self._check("create_channel")
        channel_id = self.next_channel_id
        self.next_channel_id += 1
        self.channels[channel_id] = {
            "guild_id": guild_id,
            "parent_id": parent_id,
            "name": name,
            "topic": topic,
        }
        return channel_id

    async def is_category(self, guild_id: int, channel_id: int) -> bool:
        self._check("is_category")
        return (guild_id, channel_id) in self.categories

    async def send_message(self, channel_id: int, content: str) -> None:
        self._check("send_message")
        self.messages.append((channel_id, content))


@pytest.fixture
def store(tmp_path) -> Store:
    return Store(str(tmp_path), timeout=5.0)


@pytest.fixture
def repo(store) -> Repo:
    return Repo(store)


@pytest.fixture
def platform() -> FakePlatform:
    fake = FakePlatform()
    fake.categories.add((GUILD_ID, CATEGORY_ID))
    for member_id, name in ((1, "Alice"), (2, "Bob"), (3, "Judy"), (4, "Larry")):
        fake.add_member(GUILD_ID, member_id, name)
    return fake


@pytest.fixture
def ctx(repo, platform) -> Context:
    return Context(repo=repo, platform=platform, config=Config())
