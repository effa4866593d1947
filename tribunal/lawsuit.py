from __future__ import annotations

import logging
import re
import uuid
from typing import Optional

from .context import Context
from .schema import (
    CourtRoom,
    Effect,
    Lawsuit,
    OperationFailed,
    Outcome,
    Result,
    StoreError,
)

logger = logging.getLogger(__name__)

CHANNEL_NAME_RX = re.compile(r"[^\w-]+")


def court_room_name(plaintiff: str, accused: str, max_length: int = 100) -> str:
    name = CHANNEL_NAME_RX.sub("-", f"{plaintiff} vs {accused}".lower())
    name = re.sub(r"-{2,}", "-", name).strip("-_")
    return name[:max_length].rstrip("-_") or "court-room"


async def create(
    ctx: Context,
    guild_id: int,
    plaintiff: int,
    accused: int,
    judge: int,
    reason: str,
    plaintiff_lawyer: Optional[int] = None,
    accused_lawyer: Optional[int] = None,
    plaintiff_name: Optional[str] = None,
    accused_name: Optional[str] = None,
) -> Result:
    """Open a case and provision the court room it is tried in.

    The room is named after the parties' display names as resolved by the
    caller, falling back to their ids. The channel is created before anything
    is persisted. If persisting then fails the channel is left in place and
    :class:`OperationFailed` reports ``CHANNEL_CREATED`` as completed.
    """
    if not (reason := reason.strip()):
        raise ValueError("Invalid reason")

    state = await ctx.repo.find_or_insert(guild_id)
    if state.court_category is None:
        return Result(Outcome.NO_COURT_CATEGORY)

    lawsuit_id = uuid.uuid4().hex
    channel_id = await ctx.platform.create_channel(
        guild_id,
        state.court_category,
        court_room_name(
            plaintiff_name or str(plaintiff),
            accused_name or str(accused),
            ctx.config.MAX_CHANNEL_NAME_LENGTH,
        ),
        f"Case {lawsuit_id}: {reason}"[: ctx.config.MAX_TOPIC_LENGTH],
    )
    logger.info(
        "Court room %s provisioned for case %s in guild %s",
        channel_id,
        lawsuit_id,
        guild_id,
    )

    lawsuit = Lawsuit(
        id=lawsuit_id,
        plaintiff=plaintiff,
        accused=accused,
        judge=judge,
        reason=reason,
        court_room=channel_id,
        plaintiff_lawyer=plaintiff_lawyer,
        accused_lawyer=accused_lawyer,
    )
    room = CourtRoom(channel_id=channel_id)

    try:
        await ctx.repo.add_lawsuit(guild_id, lawsuit, room)
    except StoreError as e:
        logger.error(
            "Court room %s created but case %s was not persisted in guild %s",
            channel_id,
            lawsuit_id,
            guild_id,
        )
        raise OperationFailed(
            "create lawsuit", (Effect.CHANNEL_CREATED,), Effect.LAWSUIT_PERSISTED
        ) from e

    logger.info("Lawsuit %s created in guild %s", lawsuit_id, guild_id)
    return Result(Outcome.CREATED, lawsuit=lawsuit, room=room)


async def rule_verdict(
    ctx: Context,
    guild_id: int,
    requester_id: int,
    has_override: bool,
    verdict: str,
    room_id: int,
) -> Result:
    state = await ctx.repo.find_or_insert(guild_id)

    if not (lawsuit := state.active_lawsuit_for_room(room_id)):
        return Result(Outcome.NO_ACTIVE_CASE)

    if lawsuit.judge != requester_id and not has_override:
        logger.info(
            "Verdict on case %s refused for user %s in guild %s",
            lawsuit.id,
            requester_id,
            guild_id,
        )
        return Result(Outcome.UNAUTHORIZED, lawsuit=lawsuit)

    if not await ctx.repo.record_verdict(guild_id, lawsuit.id, verdict):
        return Result(Outcome.NO_ACTIVE_CASE)

    lawsuit.verdict = verdict
    logger.info(
        "Verdict on case %s recorded by user %s in guild %s",
        lawsuit.id,
        requester_id,
        guild_id,
    )
    return Result(
        Outcome.VERDICT_RECORDED, lawsuit=lawsuit, room=CourtRoom(channel_id=room_id)
    )


async def clear(ctx: Context, guild_id: int) -> Result:
    await ctx.repo.delete_guild(guild_id)
    return Result(Outcome.CLEARED)


async def set_court_category(ctx: Context, guild_id: int, channel_id: int) -> Result:
    if not await ctx.platform.is_category(guild_id, channel_id):
        return Result(Outcome.NOT_A_CATEGORY)

    await ctx.repo.set_court_category(guild_id, channel_id)
    logger.info("Court category set to %s in guild %s", channel_id, guild_id)
    return Result(Outcome.CONFIGURED)
