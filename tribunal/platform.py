from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import AsyncGenerator, Optional, Protocol

import interactions
from interactions.client.errors import HTTPException

from .schema import MemberInfo, PlatformError

logger = logging.getLogger(__name__)


class Platform(Protocol):
    async def fetch_member(self, guild_id: int, member_id: int) -> MemberInfo: ...

    async def grant_role(self, guild_id: int, member_id: int, role_id: int) -> None: ...

    async def revoke_role(self, guild_id: int, member_id: int, role_id: int) -> None: ...

    async def create_channel(
        self, guild_id: int, parent_id: int, name: str, topic: str
    ) -> int: ...

    async def is_category(self, guild_id: int, channel_id: int) -> bool: ...

    async def send_message(self, channel_id: int, content: str) -> None: ...


class InteractionsPlatform:
    def __init__(self, bot: interactions.Client, timeout: float = 10.0) -> None:
        self.bot = bot
        self.timeout = timeout

    @contextlib.asynccontextmanager
    async def call(self, action: str, **context: int) -> AsyncGenerator[None, None]:
        target = " ".join(f"{key}={value}" for key, value in context.items())
        try:
            async with asyncio.timeout(self.timeout):
                yield
        except TimeoutError as e:
            logger.error("Platform call timed out: %s (%s)", action, target)
            raise PlatformError(f"{action} timed out") from e
        except HTTPException as e:
            logger.exception("Platform call failed: %s (%s)", action, target)
            raise PlatformError(f"{action} failed: {type(e).__name__}") from e

    async def _guild(self, guild_id: int) -> interactions.Guild:
        if not (guild := await self.bot.fetch_guild(guild_id)):
            raise PlatformError(f"Guild {guild_id} not found")
        return guild

    async def _member(self, guild_id: int, member_id: int) -> interactions.Member:
        guild = await self._guild(guild_id)
        if not (member := await guild.fetch_member(member_id)):
            raise PlatformError(f"Member {member_id} not found in guild {guild_id}")
        return member

    async def fetch_member(self, guild_id: int, member_id: int) -> MemberInfo:
        async with self.call("fetch member", guild_id=guild_id, member_id=member_id):
            member = await self._member(guild_id, member_id)
        return MemberInfo(id=int(member.id), display_name=member.display_name)

    async def grant_role(self, guild_id: int, member_id: int, role_id: int) -> None:
        async with self.call(
            "grant role", guild_id=guild_id, member_id=member_id, role_id=role_id
        ):
            member = await self._member(guild_id, member_id)
            await member.add_role(role_id, reason="Imprisoned")

    async def revoke_role(self, guild_id: int, member_id: int, role_id: int) -> None:
        async with self.call(
            "revoke role", guild_id=guild_id, member_id=member_id, role_id=role_id
        ):
            member = await self._member(guild_id, member_id)
            await member.remove_role(role_id, reason="Released")

    async def create_channel(
        self, guild_id: int, parent_id: int, name: str, topic: str
    ) -> int:
        async with self.call("create channel", guild_id=guild_id, parent_id=parent_id):
            guild = await self._guild(guild_id)
            channel = await guild.create_text_channel(
                name, topic=topic, category=parent_id, reason="Court room"
            )
        return int(channel.id)

    async def is_category(self, guild_id: int, channel_id: int) -> bool:
        async with self.call("fetch channel", guild_id=guild_id, channel_id=channel_id):
            channel: Optional[interactions.BaseChannel] = await self.bot.fetch_channel(
                channel_id
            )
        if not isinstance(channel, interactions.GuildCategory):
            return False
        return (guild := channel.guild) is not None and int(guild.id) == guild_id

    async def send_message(self, channel_id: int, content: str) -> None:
        async with self.call("send message", channel_id=channel_id):
            if not (channel := await self.bot.fetch_channel(channel_id)):
                raise PlatformError(f"Channel {channel_id} not found")
            await channel.send(
                content, allowed_mentions=interactions.AllowedMentions.none()
            )
