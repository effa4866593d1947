from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Union

from . import lawsuit, prison
from .context import Context
from .schema import Outcome, OperationFailed, Result, TribunalError
from .view import View

logger = logging.getLogger(__name__)


# Commands


@dataclass(frozen=True)
class CreateLawsuit:
    plaintiff: int
    accused: int
    judge: int
    reason: str
    plaintiff_lawyer: Optional[int] = None
    accused_lawyer: Optional[int] = None
    plaintiff_name: Optional[str] = None
    accused_name: Optional[str] = None


@dataclass(frozen=True)
class SetCourtCategory:
    channel_id: int


@dataclass(frozen=True)
class CloseLawsuit:
    verdict: str


@dataclass(frozen=True)
class ClearLawsuits:
    pass


@dataclass(frozen=True)
class SetPrisonRole:
    role_id: int


@dataclass(frozen=True)
class Arrest:
    member_id: int


@dataclass(frozen=True)
class Release:
    member_id: int


Command = Union[
    CreateLawsuit,
    SetCourtCategory,
    CloseLawsuit,
    ClearLawsuits,
    SetPrisonRole,
    Arrest,
    Release,
]

# Closing is gated by the judge-or-override rule instead.
OPEN_COMMANDS = (CloseLawsuit,)


@dataclass(frozen=True)
class Invocation:
    guild_id: Optional[int]
    requester_id: int
    channel_id: int
    has_manage_guild: bool = False


@dataclass(frozen=True)
class Reply:
    text: str
    ok: bool


async def route(ctx: Context, guild_id: int, invocation: Invocation, command: Command) -> Result:
    match command:
        case CreateLawsuit():
            return await lawsuit.create(
                ctx,
                guild_id,
                command.plaintiff,
                command.accused,
                command.judge,
                command.reason,
                command.plaintiff_lawyer,
                command.accused_lawyer,
                command.plaintiff_name,
                command.accused_name,
            )
        case SetCourtCategory(channel_id=channel_id):
            return await lawsuit.set_court_category(ctx, guild_id, channel_id)
        case CloseLawsuit(verdict=verdict):
            return await lawsuit.rule_verdict(
                ctx,
                guild_id,
                invocation.requester_id,
                invocation.has_manage_guild,
                verdict,
                invocation.channel_id,
            )
        case ClearLawsuits():
            return await lawsuit.clear(ctx, guild_id)
        case SetPrisonRole(role_id=role_id):
            return await prison.set_role(ctx, guild_id, role_id)
        case Arrest(member_id=member_id):
            return await prison.arrest(ctx, guild_id, member_id)
        case Release(member_id=member_id):
            return await prison.release(ctx, guild_id, member_id)
        case _:
            raise TypeError(f"Unknown command: {type(command).__name__}")


async def dispatch(
    ctx: Context, invocation: Invocation, command: Command, view: Optional[View] = None
) -> Reply:
    view = view or View()

    if (guild_id := invocation.guild_id) is None:
        return Reply(view.GUILD_ONLY, ok=False)

    if not isinstance(command, OPEN_COMMANDS) and not invocation.has_manage_guild:
        return Reply(view.NO_PERMISSION, ok=False)

    try:
        result = await route(ctx, guild_id, invocation, command)
    except OperationFailed as e:
        logger.exception(
            "%s in guild %s left partial effects: completed %s, failed %s",
            type(command).__name__,
            guild_id,
            ", ".join(effect.name for effect in e.completed),
            e.failed.name,
        )
        return Reply(view.FAILURE, ok=False)
    except ValueError as e:
        logger.warning(
            "Rejected %s input in guild %s: %s", type(command).__name__, guild_id, e
        )
        return Reply(view.INVALID_INPUT, ok=False)
    except TribunalError:
        logger.exception("%s failed in guild %s", type(command).__name__, guild_id)
        return Reply(view.FAILURE, ok=False)

    if result.outcome is Outcome.CREATED and result.lawsuit:
        await post_case_summary(ctx, view, result)

    member_id = getattr(command, "member_id", None)
    return Reply(view.render(result, member_id=member_id), ok=result.ok)


async def post_case_summary(ctx: Context, view: View, result: Result) -> None:
    try:
        await ctx.platform.send_message(
            result.lawsuit.court_room, view.case_summary(result.lawsuit)
        )
    except TribunalError:
        logger.exception(
            "Failed to send summary of case %s to court room %s",
            result.lawsuit.id,
            result.lawsuit.court_room,
        )


async def handle_member_join(
    ctx: Context, guild_id: int, member_id: int, view: Optional[View] = None
) -> Optional[Result]:
    """Give a returning prisoner their role back.

    Failures are logged and, if an operator channel is configured, reported
    there. The joining member is never told.
    """
    view = view or View()
    logger.debug("Member %s joined guild %s", member_id, guild_id)

    try:
        return await prison.resync_member(ctx, guild_id, member_id)
    except TribunalError as e:
        logger.exception(
            "Failed to resync member %s on joining guild %s", member_id, guild_id
        )
        if (channel_id := ctx.config.LOG_CHANNEL_ID) is not None:
            try:
                await ctx.platform.send_message(
                    channel_id, view.join_failure_report(guild_id, member_id, e)
                )
            except TribunalError:
                logger.exception(
                    "Failed to report join failure of member %s to operator channel %s",
                    member_id,
                    channel_id,
                )
        return None
