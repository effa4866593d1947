from __future__ import annotations

from datetime import datetime, timezone
from enum import IntEnum
from typing import Dict, Optional

import interactions

from .schema import Lawsuit, Outcome, Result


class EmbedColor(IntEnum):
    ERROR = 0xE81123
    INFO = 0x0078D7


class View:
    NO_PERMISSION: str = "You don't have permission to do that!"
    GUILD_ONLY: str = "You can only use this command in a server!"
    FAILURE: str = "Sorry, something went wrong. Please try again later."
    INVALID_INPUT: str = "That input is not valid."

    OUTCOME_MESSAGES: Dict[Outcome, str] = {
        Outcome.CLEARED: "All lawsuit and prison data has been deleted.",
        Outcome.CONFIGURED: "Saved.",
        Outcome.ARRESTED: "<@{member_id}> has been locked up.",
        Outcome.RELEASED: "<@{member_id}> is free to go.",
        Outcome.VERDICT_RECORDED: "The case is closed. Verdict: {verdict}",
        Outcome.NO_COURT_CATEGORY: (
            "Set a court category first with /lawsuit set_category."
        ),
        Outcome.NO_PRISON_ROLE: "Set a prison role first with /prison set_role.",
        Outcome.NO_ACTIVE_CASE: "There is no active case in this channel!",
        Outcome.NOT_A_CATEGORY: "That is not a category!",
        Outcome.UNAUTHORIZED: "Only the judge of this case can close it!",
    }

    def render(self, result: Result, member_id: Optional[int] = None) -> str:
        match result.outcome:
            case Outcome.CREATED if result.room:
                return f"The lawsuit has been filed in <#{result.room.channel_id}>."
            case Outcome.VERDICT_RECORDED if result.lawsuit:
                return self.OUTCOME_MESSAGES[result.outcome].format(
                    verdict=result.lawsuit.verdict
                )
            case outcome if outcome in self.OUTCOME_MESSAGES:
                return self.OUTCOME_MESSAGES[outcome].format(member_id=member_id)
            case _:
                return self.FAILURE

    @staticmethod
    def case_summary(lawsuit: Lawsuit) -> str:
        fields = {
            "Plaintiff": f"<@{lawsuit.plaintiff}>",
            "Plaintiff's lawyer": (
                f"<@{lawsuit.plaintiff_lawyer}>" if lawsuit.plaintiff_lawyer else "None"
            ),
            "Accused": f"<@{lawsuit.accused}>",
            "Accused's lawyer": (
                f"<@{lawsuit.accused_lawyer}>" if lawsuit.accused_lawyer else "None"
            ),
            "Judge": f"<@{lawsuit.judge}>",
            "Reason": lawsuit.reason,
        }
        header = f"**Case {lawsuit.id}**\n"
        return header + "".join(f"- **{k}:** {v}\n" for k, v in fields.items())

    @staticmethod
    def join_failure_report(guild_id: int, member_id: int, error: Exception) -> str:
        return (
            f"Could not restore the prison role for <@{member_id}> in guild "
            f"{guild_id}: {type(error).__name__}. It will be retried when they "
            "rejoin or are arrested again."
        )

    @staticmethod
    def create_embed(
        title: str,
        description: str = "",
        color: EmbedColor = EmbedColor.INFO,
    ) -> interactions.Embed:
        return interactions.Embed(
            title=title,
            description=description,
            color=int(color.value),
            timestamp=interactions.Timestamp.fromdatetime(datetime.now(timezone.utc)),
        )

    async def send_reply(
        self, ctx: interactions.InteractionContext, text: str, ok: bool
    ) -> None:
        await ctx.send(
            embed=self.create_embed(
                "Success" if ok else "Error",
                text,
                EmbedColor.INFO if ok else EmbedColor.ERROR,
            ),
            allowed_mentions=interactions.AllowedMentions.none(),
        )
