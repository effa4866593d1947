from __future__ import annotations

import pytest

from tribunal.dispatch import (
    Arrest,
    ClearLawsuits,
    CloseLawsuit,
    CreateLawsuit,
    Invocation,
    Release,
    SetCourtCategory,
    SetPrisonRole,
    dispatch,
)
from tribunal.schema import GuildState, Outcome
from tribunal.view import View

from .conftest import CATEGORY_ID, GUILD_ID, PRISON_ROLE_ID

ADMIN = Invocation(guild_id=GUILD_ID, requester_id=4, channel_id=10, has_manage_guild=True)
FILE_CASE = CreateLawsuit(
    plaintiff=1,
    accused=2,
    judge=3,
    reason="noise",
    plaintiff_name="Alice",
    accused_name="Bob",
)


def in_room(room_id: int, requester_id: int, has_manage_guild: bool = False) -> Invocation:
    return Invocation(
        guild_id=GUILD_ID,
        requester_id=requester_id,
        channel_id=room_id,
        has_manage_guild=has_manage_guild,
    )


async def open_case(ctx) -> int:
    await dispatch(ctx, ADMIN, SetCourtCategory(channel_id=CATEGORY_ID))
    await dispatch(ctx, ADMIN, FILE_CASE)
    state = await ctx.repo.find_or_insert(GUILD_ID)
    return state.court_rooms[-1].channel_id


@pytest.mark.asyncio
async def test_commands_are_guild_only(ctx, repo):
    invocation = Invocation(guild_id=None, requester_id=4, channel_id=10, has_manage_guild=True)

    reply = await dispatch(ctx, invocation, ClearLawsuits())

    assert reply.text == View.GUILD_ONLY
    assert not reply.ok


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "command",
    [
        CreateLawsuit(plaintiff=1, accused=2, judge=3, reason="noise"),
        SetCourtCategory(channel_id=CATEGORY_ID),
        ClearLawsuits(),
        SetPrisonRole(role_id=PRISON_ROLE_ID),
        Arrest(member_id=2),
        Release(member_id=2),
    ],
)
async def test_manage_guild_required(ctx, repo, platform, command):
    invocation = Invocation(guild_id=GUILD_ID, requester_id=1, channel_id=10)

    reply = await dispatch(ctx, invocation, command)

    assert reply.text == View.NO_PERMISSION
    assert platform.calls == []
    assert await repo.find_or_insert(GUILD_ID) == GuildState(guild_id=GUILD_ID)


@pytest.mark.asyncio
async def test_create_reports_missing_category(ctx):
    reply = await dispatch(
        ctx, ADMIN, CreateLawsuit(plaintiff=1, accused=2, judge=3, reason="noise")
    )

    assert not reply.ok
    assert reply.text == View.OUTCOME_MESSAGES[Outcome.NO_COURT_CATEGORY]


@pytest.mark.asyncio
async def test_create_posts_summary_in_room(ctx, platform):
    room_id = await open_case(ctx)

    channel_id, summary = platform.messages[-1]
    assert channel_id == room_id
    assert "<@1>" in summary and "<@2>" in summary and "<@3>" in summary
    assert "noise" in summary


@pytest.mark.asyncio
async def test_create_names_room_after_parties(ctx, platform):
    room_id = await open_case(ctx)

    assert platform.channels[room_id]["name"] == "alice-vs-bob"
    assert "fetch_member" not in platform.calls


@pytest.mark.asyncio
async def test_create_succeeds_when_summary_fails(ctx, repo, platform):
    await dispatch(ctx, ADMIN, SetCourtCategory(channel_id=CATEGORY_ID))
    platform.failing.add("send_message")

    reply = await dispatch(
        ctx, ADMIN, CreateLawsuit(plaintiff=1, accused=2, judge=3, reason="noise")
    )

    assert reply.ok
    room_id = (await repo.find_or_insert(GUILD_ID)).court_rooms[0].channel_id
    assert f"<#{room_id}>" in reply.text


@pytest.mark.asyncio
async def test_judge_closes_case_without_manage_guild(ctx, repo):
    room_id = await open_case(ctx)

    reply = await dispatch(ctx, in_room(room_id, requester_id=3), CloseLawsuit("guilty"))

    assert reply.ok
    assert "guilty" in reply.text
    again = await dispatch(ctx, in_room(room_id, requester_id=3), CloseLawsuit("guilty"))
    assert again.text == View.OUTCOME_MESSAGES[Outcome.NO_ACTIVE_CASE]


@pytest.mark.asyncio
async def test_non_judge_cannot_close(ctx, repo):
    room_id = await open_case(ctx)

    reply = await dispatch(ctx, in_room(room_id, requester_id=1), CloseLawsuit("guilty"))

    assert not reply.ok
    assert reply.text == View.OUTCOME_MESSAGES[Outcome.UNAUTHORIZED]
    assert (await repo.find_or_insert(GUILD_ID)).lawsuits[0].verdict is None


@pytest.mark.asyncio
async def test_manager_overrides_judge(ctx, repo):
    room_id = await open_case(ctx)

    reply = await dispatch(
        ctx, in_room(room_id, requester_id=1, has_manage_guild=True), CloseLawsuit("x")
    )

    assert reply.ok
    assert (await repo.find_or_insert(GUILD_ID)).lawsuits[0].verdict == "x"


@pytest.mark.asyncio
async def test_set_category_rejects_text_channel(ctx):
    reply = await dispatch(ctx, ADMIN, SetCourtCategory(channel_id=4242))

    assert reply.text == View.OUTCOME_MESSAGES[Outcome.NOT_A_CATEGORY]


@pytest.mark.asyncio
async def test_prison_flow_replies(ctx, platform):
    reply = await dispatch(ctx, ADMIN, Arrest(member_id=2))
    assert reply.text == View.OUTCOME_MESSAGES[Outcome.NO_PRISON_ROLE]

    assert (await dispatch(ctx, ADMIN, SetPrisonRole(role_id=PRISON_ROLE_ID))).ok

    reply = await dispatch(ctx, ADMIN, Arrest(member_id=2))
    assert reply.ok and "<@2>" in reply.text
    reply = await dispatch(ctx, ADMIN, Release(member_id=2))
    assert reply.ok and "<@2>" in reply.text


@pytest.mark.asyncio
async def test_platform_failure_renders_generic_apology(ctx, platform):
    await dispatch(ctx, ADMIN, SetPrisonRole(role_id=PRISON_ROLE_ID))
    platform.failing.add("grant_role")

    reply = await dispatch(ctx, ADMIN, Arrest(member_id=2))

    assert not reply.ok
    assert reply.text == View.FAILURE


@pytest.mark.asyncio
async def test_blank_reason_renders_invalid_input(ctx, platform):
    await dispatch(ctx, ADMIN, SetCourtCategory(channel_id=CATEGORY_ID))

    reply = await dispatch(
        ctx, ADMIN, CreateLawsuit(plaintiff=1, accused=2, judge=3, reason="  ")
    )

    assert reply.text == View.INVALID_INPUT
    assert platform.channels == {}


@pytest.mark.asyncio
async def test_clear_then_fresh_state(ctx, repo):
    await open_case(ctx)
    await dispatch(ctx, ADMIN, SetPrisonRole(role_id=PRISON_ROLE_ID))
    await dispatch(ctx, ADMIN, Arrest(member_id=2))

    reply = await dispatch(ctx, ADMIN, ClearLawsuits())

    assert reply.ok
    state = await repo.find_or_insert(GUILD_ID)
    assert (state.lawsuits, state.court_rooms, state.prison_entries) == ([], [], set())
