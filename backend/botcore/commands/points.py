"""Points and level commands: !points, !donner, !classement, !niveau, mod tools."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from botcore.errors import UsageError
from botcore.models.command import Command, Permission
from botcore.models.invocation import Reply, UserRef
from botcore.models.points import TransferResult, level_for_xp, xp_for_level

if TYPE_CHECKING:
    from botcore.dispatcher import CommandContext

LOGGER = logging.getLogger("PointsCommands")

LEADERBOARD_SIZE = 10

GIVE_USAGE = "donner @pseudo montant"
ADD_USAGE = "ajouterpoints @pseudo montant"
REMOVE_USAGE = "retirerpoints @pseudo montant"


def _parse_amount(ctx: CommandContext, token: str, syntax: str) -> int:
    try:
        return int(token)
    except ValueError:
        raise ctx.usage_error(syntax) from None


class PointsCommands:
    def commands(self) -> list[Command]:
        return [
            Command(
                name="points",
                handler=self.points,
                description="Affiche ton solde de points (ou celui d'un autre).",
                usage="points [@pseudo]",
            ),
            Command(
                name="donner",
                handler=self.donner,
                description="Donne des points à un autre membre.",
                usage=GIVE_USAGE,
                aliases=("give",),
            ),
            Command(
                name="classement",
                handler=self.classement,
                description="Top 10 des points de la chaîne.",
                usage="classement",
                cooldown_seconds=30,
                aliases=("leaderboard", "top"),
            ),
            Command(
                name="niveau",
                handler=self.niveau,
                description="Affiche ton niveau et ton XP.",
                usage="niveau [@pseudo]",
                aliases=("rank",),
            ),
            Command(
                name="ajouterpoints",
                handler=self.ajouter_points,
                description="Ajoute des points à un membre.",
                usage=ADD_USAGE,
                permission=Permission.MODERATOR,
                cooldown_seconds=0,
            ),
            Command(
                name="retirerpoints",
                handler=self.retirer_points,
                description="Retire des points à un membre.",
                usage=REMOVE_USAGE,
                permission=Permission.MODERATOR,
                cooldown_seconds=0,
            ),
        ]

    async def _target_or_self(self, ctx: CommandContext) -> UserRef | None:
        if not ctx.args:
            return ctx.author
        return await ctx.resolve_target(ctx.args[0])

    async def points(self, ctx: CommandContext) -> str:
        target = await self._target_or_self(ctx)
        if target is None:
            return f"@{ctx.author.username}, utilisateur introuvable : {ctx.args[0]}"

        balance = await ctx.gateway.get_balance(ctx.channel_id, target.user_id)
        if target.user_id == ctx.author.user_id:
            return f"@{ctx.author.username}, tu as {balance} points."
        return f"{target.username} a {balance} points."

    async def donner(self, ctx: CommandContext) -> str:
        if len(ctx.args) < 2:
            raise ctx.usage_error(GIVE_USAGE)

        amount = _parse_amount(ctx, ctx.args[1], GIVE_USAGE)
        me = ctx.author
        target = await ctx.resolve_target(ctx.args[0])
        if target is None:
            return f"@{me.username}, utilisateur introuvable : {ctx.args[0]}"

        result = await ctx.gateway.transfer(
            ctx.channel_id,
            me.user_id,
            target.user_id,
            amount,
            from_username=me.username,
            to_username=target.username,
        )

        if result is TransferResult.OK:
            LOGGER.info(f"{me.username} -> {target.username}: {amount} points in {ctx.channel_id}")
            return f"@{me.username} a donné {amount} points à {target.username}."
        if result is TransferResult.SAME_USER:
            return f"@{me.username}, tu ne peux pas te donner des points à toi-même."
        if result is TransferResult.INVALID_AMOUNT:
            return f"@{me.username}, le montant doit être un entier positif."

        balance = await ctx.gateway.get_balance(ctx.channel_id, me.user_id)
        return f"@{me.username}, solde insuffisant ({balance} points)."

    async def classement(self, ctx: CommandContext) -> Reply | str:
        entries = await ctx.gateway.get_leaderboard(ctx.channel_id, LEADERBOARD_SIZE)
        if not entries:
            return "Personne n'a encore de points."

        lines = [f"{i}. {e.username} ({e.balance})" for i, e in enumerate(entries, start=1)]
        return Reply(
            embed={
                "title": "Classement des points",
                "description": "\n".join(lines),
                "color": 0xF1C40F,
            }
        )

    async def niveau(self, ctx: CommandContext) -> str:
        target = await self._target_or_self(ctx)
        if target is None:
            return f"@{ctx.author.username}, utilisateur introuvable : {ctx.args[0]}"

        xp = await ctx.gateway.get_xp(ctx.channel_id, target.user_id)
        level = level_for_xp(xp)
        return (
            f"{target.username} est niveau {level} ({xp} XP, "
            f"niveau suivant à {xp_for_level(level + 1)} XP)."
        )

    async def _moderate(self, ctx: CommandContext, syntax: str) -> tuple[UserRef, int]:
        if len(ctx.args) < 2:
            raise ctx.usage_error(syntax)
        amount = _parse_amount(ctx, ctx.args[1], syntax)
        if amount <= 0:
            raise ctx.usage_error(syntax)
        target = await ctx.resolve_target(ctx.args[0])
        if target is None:
            raise UsageError(f"Utilisateur introuvable : {ctx.args[0]}")
        return target, amount

    async def ajouter_points(self, ctx: CommandContext) -> str:
        target, amount = await self._moderate(ctx, ADD_USAGE)
        balance = await ctx.gateway.add_points(
            ctx.channel_id, target.user_id, amount, username=target.username
        )
        LOGGER.info(f"{ctx.author.username} added {amount} points to {target.username}")
        return f"{target.username} reçoit {amount} points (solde : {balance})."

    async def retirer_points(self, ctx: CommandContext) -> str:
        target, amount = await self._moderate(ctx, REMOVE_USAGE)
        removed = await ctx.gateway.remove_points(
            ctx.channel_id, target.user_id, amount, username=target.username
        )
        balance = await ctx.gateway.get_balance(ctx.channel_id, target.user_id)
        LOGGER.info(f"{ctx.author.username} removed {removed} points from {target.username}")
        return f"{target.username} perd {removed} points (solde : {balance})."
