"""General user commands: !ping, !aide."""

from __future__ import annotations

from typing import TYPE_CHECKING

from botcore.models.command import Command
from botcore.permissions import authorize

if TYPE_CHECKING:
    from botcore.dispatcher import CommandContext


class GeneralCommands:
    def commands(self) -> list[Command]:
        return [
            Command(
                name="ping",
                handler=self.ping,
                description="Vérifie que le bot répond.",
                usage="ping",
                cooldown_seconds=0,
            ),
            Command(
                name="aide",
                handler=self.aide,
                description="Liste les commandes disponibles.",
                usage="aide [commande]",
                aliases=("help", "commandes"),
            ),
        ]

    async def ping(self, ctx: CommandContext) -> str:
        return "Pong!"

    async def aide(self, ctx: CommandContext) -> str:
        """Show available commands, or details for one.

        Usage: !aide, !aide points
        """
        prefix = ctx.policy.prefix
        if ctx.args:
            name = ctx.args[0].removeprefix(prefix).lower()
            command = ctx.registry.get_static(name)
            if command is not None:
                return f"{command.syntax(prefix)} - {command.description}"
            custom = await ctx.registry.get_custom(ctx.channel_id, name)
            if custom is not None:
                return f"{prefix}{custom.name} - commande personnalisée (par {custom.created_by.username})"
            return f"Commande inconnue : {prefix}{name}"

        builtin = [
            f"{prefix}{c.name}"
            for c in ctx.registry.static_commands
            if authorize(ctx.invocation, c.permission)
        ]
        reply = "Commandes : " + ", ".join(builtin)
        custom = await ctx.registry.list_custom(ctx.channel_id)
        if custom:
            reply += " | Perso : " + ", ".join(f"{prefix}{c.name}" for c in custom)
        return reply
