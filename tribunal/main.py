from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

import interactions
from interactions.api.events import MemberAdd

from .context import Context
from .dispatch import (
    Arrest,
    ClearLawsuits,
    CloseLawsuit,
    Command,
    CreateLawsuit,
    Invocation,
    Release,
    SetCourtCategory,
    SetPrisonRole,
    dispatch,
    handle_member_join,
)
from .platform import InteractionsPlatform
from .schema import BASE_DIR, Config
from .store import Repo, Store
from .view import View

LOG_FILE: str = os.path.join(BASE_DIR, "tribunal.log")

logger = logging.getLogger("tribunal")
logger.setLevel(logging.DEBUG)
formatter = logging.Formatter(
    "%(asctime)s | %(process)d:%(thread)d | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d - %(message)s",
    "%Y-%m-%d %H:%M:%S %z",
)
if not logger.handlers:
    file_handler = RotatingFileHandler(
        LOG_FILE, maxBytes=1024 * 1024, backupCount=1, encoding="utf-8"
    )
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)


# Controller


class Tribunal(interactions.Extension):
    def __init__(self, bot: interactions.Client) -> None:
        self.bot: interactions.Client = bot
        self.config: Config = Config()
        self.view: View = View()
        self.context: Context = Context(
            repo=Repo(Store(self.config.DATA_DIR, self.config.STORE_TIMEOUT)),
            platform=InteractionsPlatform(bot, self.config.PLATFORM_TIMEOUT),
            config=self.config,
        )

    @staticmethod
    def create_invocation(ctx: interactions.SlashContext) -> Invocation:
        author = ctx.author
        return Invocation(
            guild_id=int(ctx.guild_id) if ctx.guild_id else None,
            requester_id=int(author.id),
            channel_id=int(ctx.channel_id),
            has_manage_guild=isinstance(author, interactions.Member)
            and author.has_permission(interactions.Permissions.MANAGE_GUILD),
        )

    async def run_command(self, ctx: interactions.SlashContext, command: Command) -> None:
        try:
            await ctx.defer()
            reply = await dispatch(
                self.context, self.create_invocation(ctx), command, self.view
            )
            await self.view.send_reply(ctx, reply.text, reply.ok)
        except Exception:
            logger.exception(
                "Error during %s execution for user %s",
                type(command).__name__,
                ctx.author.id,
            )
            await self.view.send_reply(ctx, self.view.FAILURE, ok=False)

    # Listen

    @interactions.listen(MemberAdd)
    async def on_member_add(self, event: MemberAdd) -> None:
        try:
            await handle_member_join(
                self.context, int(event.guild_id), int(event.member.id), self.view
            )
        except Exception:
            logger.exception(
                "Unhandled error in member join listener for member %s in guild %s",
                event.member.id,
                event.guild_id,
            )

    # Commands

    lawsuit_base = interactions.SlashCommand(
        name="lawsuit",
        description="Lawsuit management system",
    )

    @lawsuit_base.subcommand("create", sub_cmd_description="File a new lawsuit")
    @interactions.slash_option(
        name="plaintiff",
        description="The plaintiff",
        opt_type=interactions.OptionType.USER,
        required=True,
    )
    @interactions.slash_option(
        name="accused",
        description="The accused",
        opt_type=interactions.OptionType.USER,
        required=True,
    )
    @interactions.slash_option(
        name="judge",
        description="The judge",
        opt_type=interactions.OptionType.USER,
        required=True,
    )
    @interactions.slash_option(
        name="reason",
        description="The reason for the lawsuit",
        opt_type=interactions.OptionType.STRING,
        required=True,
        min_length=1,
        max_length=1000,
    )
    @interactions.slash_option(
        name="plaintiff_lawyer",
        description="The plaintiff's lawyer",
        opt_type=interactions.OptionType.USER,
        required=False,
    )
    @interactions.slash_option(
        name="accused_lawyer",
        description="The accused's lawyer",
        opt_type=interactions.OptionType.USER,
        required=False,
    )
    async def lawsuit_create(
        self,
        ctx: interactions.SlashContext,
        plaintiff: interactions.User,
        accused: interactions.User,
        judge: interactions.User,
        reason: str,
        plaintiff_lawyer: Optional[interactions.User] = None,
        accused_lawyer: Optional[interactions.User] = None,
    ) -> None:
        await self.run_command(
            ctx,
            CreateLawsuit(
                plaintiff=int(plaintiff.id),
                accused=int(accused.id),
                judge=int(judge.id),
                reason=reason,
                plaintiff_lawyer=int(plaintiff_lawyer.id) if plaintiff_lawyer else None,
                accused_lawyer=int(accused_lawyer.id) if accused_lawyer else None,
                plaintiff_name=plaintiff.display_name,
                accused_name=accused.display_name,
            ),
        )

    @lawsuit_base.subcommand(
        "set_category", sub_cmd_description="Set the category for court rooms"
    )
    @interactions.slash_option(
        name="category",
        description="The category",
        opt_type=interactions.OptionType.CHANNEL,
        required=True,
    )
    async def lawsuit_set_category(
        self, ctx: interactions.SlashContext, category: interactions.BaseChannel
    ) -> None:
        await self.run_command(ctx, SetCourtCategory(channel_id=int(category.id)))

    @lawsuit_base.subcommand(
        "close", sub_cmd_description="Close the lawsuit in this channel with a verdict"
    )
    @interactions.slash_option(
        name="verdict",
        description="The verdict",
        opt_type=interactions.OptionType.STRING,
        required=True,
    )
    async def lawsuit_close(self, ctx: interactions.SlashContext, verdict: str) -> None:
        await self.run_command(ctx, CloseLawsuit(verdict=verdict))

    @lawsuit_base.subcommand("clear", sub_cmd_description="Delete all lawsuit data")
    async def lawsuit_clear(self, ctx: interactions.SlashContext) -> None:
        await self.run_command(ctx, ClearLawsuits())

    prison_base = interactions.SlashCommand(
        name="prison",
        description="Prison management system",
    )

    @prison_base.subcommand("set_role", sub_cmd_description="Set the role for prisoners")
    @interactions.slash_option(
        name="role",
        description="The role",
        opt_type=interactions.OptionType.ROLE,
        required=True,
    )
    async def prison_set_role(
        self, ctx: interactions.SlashContext, role: interactions.Role
    ) -> None:
        await self.run_command(ctx, SetPrisonRole(role_id=int(role.id)))

    @prison_base.subcommand("arrest", sub_cmd_description="Lock someone up")
    @interactions.slash_option(
        name="user",
        description="The person to lock up",
        opt_type=interactions.OptionType.USER,
        required=True,
    )
    async def prison_arrest(
        self, ctx: interactions.SlashContext, user: interactions.User
    ) -> None:
        await self.run_command(ctx, Arrest(member_id=int(user.id)))

    @prison_base.subcommand("release", sub_cmd_description="Release a prisoner")
    @interactions.slash_option(
        name="user",
        description="The person to release",
        opt_type=interactions.OptionType.USER,
        required=True,
    )
    async def prison_release(
        self, ctx: interactions.SlashContext, user: interactions.User
    ) -> None:
        await self.run_command(ctx, Release(member_id=int(user.id)))


def run() -> None:
    config = Config()
    if not config.TOKEN:
        raise SystemExit("TRIBUNAL_TOKEN is not set")

    bot = interactions.Client(
        intents=interactions.Intents.DEFAULT | interactions.Intents.GUILD_MEMBERS,
        debug_scope=config.DEBUG_GUILD_ID or interactions.MISSING,
    )
    bot.load_extension("tribunal.main")
    logger.info("Starting tribunal")
    bot.start(config.TOKEN)


if __name__ == "__main__":
    run()
