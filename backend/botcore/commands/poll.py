"""Poll command: !sondage "Question" "Choix 1" "Choix 2" ..."""

from __future__ import annotations

from typing import TYPE_CHECKING

from botcore.errors import UsageError
from botcore.models.command import Command
from botcore.models.invocation import Reply

if TYPE_CHECKING:
    from botcore.dispatcher import CommandContext

MAX_OPTIONS = 10
NUMBER_EMOJIS = ["1️⃣", "2️⃣", "3️⃣", "4️⃣", "5️⃣", "6️⃣", "7️⃣", "8️⃣", "9️⃣", "🔟"]

USAGE = 'sondage "Question" "Choix 1" "Choix 2" ...'


class PollCommands:
    def commands(self) -> list[Command]:
        return [
            Command(
                name="sondage",
                handler=self.sondage,
                description="Lance un sondage (question et au moins deux choix entre guillemets).",
                usage=USAGE,
                cooldown_seconds=30,
                aliases=("poll",),
            ),
        ]

    async def sondage(self, ctx: CommandContext) -> Reply:
        segments = [s.strip() for s in ctx.quoted_args()]
        if len(segments) < 3 or not all(segments):
            raise ctx.usage_error(USAGE)

        question, options = segments[0], segments[1:]
        if len(options) > MAX_OPTIONS:
            raise UsageError(f"Un sondage accepte au maximum {MAX_OPTIONS} choix.")

        return Reply(
            embed={
                "title": f"📊 {question}",
                "description": "\n".join(
                    f"{NUMBER_EMOJIS[i]} {option}" for i, option in enumerate(options)
                ),
                "footer": {"text": f"Sondage lancé par {ctx.author.username}"},
                "color": 0x3498DB,
            }
        )
