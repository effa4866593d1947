from __future__ import annotations

import logging

from .context import Context
from .schema import Effect, OperationFailed, Outcome, PlatformError, Result

logger = logging.getLogger(__name__)


async def set_role(ctx: Context, guild_id: int, role_id: int) -> Result:
    await ctx.repo.set_prison_role(guild_id, role_id)
    logger.info("Prison role set to %s in guild %s", role_id, guild_id)
    return Result(Outcome.CONFIGURED)


async def arrest(ctx: Context, guild_id: int, member_id: int) -> Result:
    """Record the prison entry, then grant the role.

    The role is granted even when the entry already existed so a member whose
    role was removed by someone else gets it back. A failed grant keeps the
    entry; the next rejoin restores the role.
    """
    state = await ctx.repo.find_or_insert(guild_id)
    if (role_id := state.prison_role) is None:
        return Result(Outcome.NO_PRISON_ROLE)

    added = await ctx.repo.add_prison_entry(guild_id, member_id)

    try:
        await ctx.platform.grant_role(guild_id, member_id, role_id)
    except PlatformError as e:
        raise OperationFailed(
            "arrest", (Effect.ENTRY_RECORDED,), Effect.ROLE_GRANTED
        ) from e

    logger.info(
        "Member %s arrested in guild %s (new entry: %s)", member_id, guild_id, added
    )
    return Result(Outcome.ARRESTED)


async def release(ctx: Context, guild_id: int, member_id: int) -> Result:
    """Remove the prison entry, then revoke the role.

    A failed revoke leaves the member with the role but without an entry;
    nothing re-grants it.
    """
    state = await ctx.repo.find_or_insert(guild_id)
    if (role_id := state.prison_role) is None:
        return Result(Outcome.NO_PRISON_ROLE)

    removed = await ctx.repo.remove_prison_entry(guild_id, member_id)

    try:
        await ctx.platform.revoke_role(guild_id, member_id, role_id)
    except PlatformError as e:
        raise OperationFailed(
            "release", (Effect.ENTRY_REMOVED,), Effect.ROLE_REVOKED
        ) from e

    logger.info(
        "Member %s released in guild %s (had entry: %s)", member_id, guild_id, removed
    )
    return Result(Outcome.RELEASED)


async def resync_member(ctx: Context, guild_id: int, member_id: int) -> Result:
    state = await ctx.repo.find_or_insert(guild_id)
    if state.prison_role is None:
        return Result(Outcome.NOTHING_TO_DO)
    if not await ctx.repo.find_prison_entry(guild_id, member_id):
        return Result(Outcome.NOTHING_TO_DO)

    logger.info(
        "Member %s rejoined guild %s while imprisoned, restoring prison role",
        member_id,
        guild_id,
    )
    await ctx.platform.grant_role(guild_id, member_id, state.prison_role)
    return Result(Outcome.ROLE_RESTORED)
