from __future__ import annotations

import asyncio
import contextlib
import logging
import os
from dataclasses import asdict
from typing import Any, AsyncGenerator, Callable, Dict, Optional, TypeVar

import aiofiles
import aiofiles.os
import orjson

from .schema import CourtRoom, GuildState, Lawsuit, StoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Store:
    """One JSON document per guild, each guarded by its own lock."""

    def __init__(self, data_dir: str, timeout: float = 5.0) -> None:
        self.db_dir = os.path.join(data_dir, "guilds")
        self.timeout = timeout
        self.store_initialized = False
        self.store_lock = asyncio.Lock()
        self.guild_locks: Dict[int, asyncio.Lock] = {}
        self.lock_users: Dict[int, int] = {}

    async def initialize_store(self) -> None:
        if self.store_initialized:
            return

        async with self.store_lock:
            if not self.store_initialized:
                try:
                    await asyncio.to_thread(os.makedirs, self.db_dir, 0o755, True)
                    self.store_initialized = True
                except OSError as e:
                    logger.critical("Failed to initialize store: %s", repr(e))
                    raise StoreError(
                        f"Store initialization failed: {e.__class__.__name__}"
                    ) from e

    def guild_path(self, guild_id: int) -> str:
        return os.path.join(self.db_dir, f"{guild_id}.json")

    def checkout_lock(self, guild_id: int) -> asyncio.Lock:
        self.lock_users[guild_id] = self.lock_users.get(guild_id, 0) + 1
        return self.guild_locks.setdefault(guild_id, asyncio.Lock())

    def checkin_lock(self, guild_id: int) -> None:
        # A lock is dropped only once no task holds or waits on it.
        self.lock_users[guild_id] -= 1
        if not self.lock_users[guild_id]:
            del self.lock_users[guild_id]
            del self.guild_locks[guild_id]

    @contextlib.asynccontextmanager
    async def transaction(self, guild_id: int) -> AsyncGenerator[None, None]:
        await self.initialize_store()
        lock = self.checkout_lock(guild_id)
        try:
            async with asyncio.timeout(self.timeout), lock:
                yield
        except TimeoutError as e:
            logger.error(
                "Store operation timed out after %ss for guild %s",
                self.timeout,
                guild_id,
            )
            raise StoreError(f"Store operation timed out for guild {guild_id}") from e
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.exception(
                "Store operation failed for guild %s: %s", guild_id, type(e).__name__
            )
            raise StoreError(
                f"Store operation failed for guild {guild_id}: {type(e).__name__}"
            ) from e
        finally:
            self.checkin_lock(guild_id)

    async def read_document(self, guild_id: int) -> Optional[Dict[str, Any]]:
        path = self.guild_path(guild_id)
        if not await aiofiles.os.path.exists(path):
            return None
        async with aiofiles.open(path, mode="rb") as f:
            return orjson.loads(await f.read())

    async def write_document(self, guild_id: int, data: Dict[str, Any]) -> None:
        path = self.guild_path(guild_id)
        tmp_path = f"{path}.tmp"
        async with aiofiles.open(tmp_path, mode="wb") as f:
            await f.write(orjson.dumps(data, option=orjson.OPT_INDENT_2))
        await aiofiles.os.replace(tmp_path, path)

    async def delete_document(self, guild_id: int) -> None:
        with contextlib.suppress(FileNotFoundError):
            await aiofiles.os.remove(self.guild_path(guild_id))


class Repo:
    def __init__(self, store: Store) -> None:
        self.store = store

    async def find_or_insert(self, guild_id: int) -> GuildState:
        async with self.store.transaction(guild_id):
            if (data := await self.store.read_document(guild_id)) is not None:
                return GuildState.from_document(data)

            state = GuildState(guild_id=guild_id)
            await self.store.write_document(guild_id, state.to_document())
            logger.info("Guild state created for guild %s", guild_id)
            return state

    async def update(
        self, guild_id: int, mutate: Callable[[Dict[str, Any]], T]
    ) -> T:
        """Apply ``mutate`` to the stored document and persist it if it changed.

        The document is re-read inside the guild lock, so ``mutate`` only ever
        sees the latest state and should touch nothing but its own field.
        """
        async with self.store.transaction(guild_id):
            data = await self.store.read_document(guild_id)
            if data is None:
                data = GuildState(guild_id=guild_id).to_document()
            before = orjson.dumps(data)
            result = mutate(data)
            if orjson.dumps(data) != before:
                GuildState.from_document(data)
                await self.store.write_document(guild_id, data)
            return result

    async def set_prison_role(self, guild_id: int, role_id: int) -> None:
        def mutate(data: Dict[str, Any]) -> None:
            data["prison_role"] = role_id

        await self.update(guild_id, mutate)

    async def set_court_category(self, guild_id: int, category_id: int) -> None:
        def mutate(data: Dict[str, Any]) -> None:
            data["court_category"] = category_id

        await self.update(guild_id, mutate)

    async def add_lawsuit(
        self, guild_id: int, lawsuit: Lawsuit, room: CourtRoom
    ) -> None:
        def mutate(data: Dict[str, Any]) -> None:
            rooms = data.setdefault("court_rooms", [])
            if any(r["channel_id"] == room.channel_id for r in rooms):
                raise StoreError(f"Court room {room.channel_id} is already registered")
            rooms.append(asdict(room))
            data.setdefault("lawsuits", []).append(asdict(lawsuit))

        await self.update(guild_id, mutate)

    async def add_court_room(self, guild_id: int, room: CourtRoom) -> None:
        def mutate(data: Dict[str, Any]) -> None:
            rooms = data.setdefault("court_rooms", [])
            if all(r["channel_id"] != room.channel_id for r in rooms):
                rooms.append(asdict(room))

        await self.update(guild_id, mutate)

    async def record_verdict(self, guild_id: int, lawsuit_id: str, verdict: str) -> bool:
        def mutate(data: Dict[str, Any]) -> bool:
            for lawsuit in data.get("lawsuits", ()):
                if lawsuit["id"] == lawsuit_id and lawsuit.get("verdict") is None:
                    lawsuit["verdict"] = verdict
                    return True
            return False

        return await self.update(guild_id, mutate)

    async def add_prison_entry(self, guild_id: int, member_id: int) -> bool:
        def mutate(data: Dict[str, Any]) -> bool:
            entries = data.setdefault("prison_entries", [])
            if member_id in entries:
                return False
            entries.append(member_id)
            entries.sort()
            return True

        return await self.update(guild_id, mutate)

    async def remove_prison_entry(self, guild_id: int, member_id: int) -> bool:
        def mutate(data: Dict[str, Any]) -> bool:
            entries = data.setdefault("prison_entries", [])
            if member_id not in entries:
                return False
            entries.remove(member_id)
            return True

        return await self.update(guild_id, mutate)

    async def find_prison_entry(self, guild_id: int, member_id: int) -> bool:
        async with self.store.transaction(guild_id):
            data = await self.store.read_document(guild_id)
            return data is not None and member_id in data.get("prison_entries", ())

    async def delete_guild(self, guild_id: int) -> None:
        async with self.store.transaction(guild_id):
            await self.store.delete_document(guild_id)
        logger.info("Guild state deleted for guild %s", guild_id)
