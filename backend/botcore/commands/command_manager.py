"""Chat-based custom command management: !cmd a/e/d/l.

Syntax:
    !cmd a !nom [options] réponse      add a custom command
    !cmd e !nom [options] [réponse]    edit one (only given fields change)
    !cmd d !nom                        delete one
    !cmd l                             list the channel's custom commands

Options:
    -cd=N          Cooldown in seconds
    -role=X        Min role: everyone/mod/owner

Examples:
    !cmd a !salut Salut {username} !
    !cmd a !dé -cd=10 {username} lance un dé : {random[6]}
    !cmd e !salut -role=mod
    !cmd d !salut
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from botcore.errors import InvalidCommandName, ReservedName, UsageError
from botcore.models.command import Command, Permission
from botcore.permissions import parse_permission

if TYPE_CHECKING:
    from botcore.dispatcher import CommandContext

LOGGER = logging.getLogger("CommandManager")

USAGE = "cmd a/e/d {p}nom [-cd=N] [-role=mod] réponse | {p}cmd l"

# Pattern to match option flags like -cd=30, -role=mod
_OPT_PATTERN = re.compile(r"-(\w+)=(\S+)")


def _parse_args(raw: str) -> tuple[dict[str, str], str]:
    """Split leading option flags from the response text.

    Only flags before the first ordinary word count, so a response such as
    ``"score -x=1"`` keeps its text intact.
    Returns (options_dict, remaining_text).
    """
    options: dict[str, str] = {}
    rest = raw.strip()
    while rest:
        head, _, tail = rest.partition(" ")
        match = _OPT_PATTERN.fullmatch(head)
        if not match:
            break
        options[match.group(1).lower()] = match.group(2)
        rest = tail.lstrip()
    return options, rest


def _preview(text: str, limit: int = 30) -> str:
    return text[:limit] + ("…" if len(text) > limit else "")


class CommandManager:
    def commands(self) -> list[Command]:
        return [
            Command(
                name="cmd",
                handler=self.cmd,
                description="Gère les commandes personnalisées (a/e/d/l).",
                usage=USAGE,
                permission=Permission.MODERATOR,
                cooldown_seconds=0,
            ),
        ]

    async def cmd(self, ctx: CommandContext) -> str:
        """Command management group. Moderator+ only."""
        if not ctx.args:
            raise ctx.usage_error(USAGE)

        sub = ctx.args[0].lower()
        rest = ctx.invocation.arg_text.strip()[len(ctx.args[0]) :].strip()

        if sub in ("a", "add"):
            return await self._add(ctx, rest)
        if sub in ("e", "edit"):
            return await self._edit(ctx, rest)
        if sub in ("d", "del", "delete"):
            return await self._delete(ctx, rest)
        if sub in ("l", "list"):
            return await self._list(ctx)
        raise ctx.usage_error(USAGE)

    def _parse_options(self, options: dict[str, str]) -> dict:
        kwargs: dict = {}
        if "cd" in options:
            try:
                cooldown = int(options["cd"])
            except ValueError:
                raise UsageError("Valeur -cd invalide, utilise un nombre de secondes.") from None
            if cooldown < 0:
                raise UsageError("Valeur -cd invalide, utilise un nombre de secondes.")
            kwargs["cooldown_seconds"] = cooldown
        if "role" in options:
            permission = parse_permission(options["role"])
            if permission is None:
                raise UsageError("Valeur -role invalide, utilise everyone/mod/owner.")
            kwargs["permission"] = permission
        return kwargs

    async def _add(self, ctx: CommandContext, args: str) -> str:
        prefix = ctx.policy.prefix
        parts = args.split(maxsplit=1)
        if not parts:
            raise ctx.usage_error("cmd a {p}nom réponse")

        name = parts[0]
        options, response_text = _parse_args(parts[1] if len(parts) > 1 else "")
        if not response_text:
            return "Il manque le texte de la réponse."
        kwargs = self._parse_options(options)

        try:
            existing = await ctx.registry.get_custom(ctx.channel_id, name.removeprefix(prefix))
            if existing is not None:
                return f"{prefix}{existing.name} existe déjà, utilise {prefix}cmd e pour la modifier."
            stored = await ctx.registry.upsert_custom(
                ctx.channel_id, name, response_text, ctx.author, **kwargs
            )
        except ReservedName as e:
            return f"{prefix}{e.name} est une commande intégrée et ne peut pas être remplacée."
        except InvalidCommandName as e:
            return f"Nom de commande invalide : {e.name}"

        LOGGER.info(f"Command added: !{stored.name} by {ctx.author.username}")
        return f"Commande {prefix}{stored.name} ajoutée : {_preview(stored.response_template)}"

    async def _edit(self, ctx: CommandContext, args: str) -> str:
        prefix = ctx.policy.prefix
        parts = args.split(maxsplit=1)
        if not parts:
            raise ctx.usage_error("cmd e {p}nom [options] [réponse]")

        name = parts[0].removeprefix(prefix).lower()
        existing = await ctx.registry.get_custom(ctx.channel_id, name)
        if existing is None:
            return f"Commande personnalisée {prefix}{name} introuvable."

        options, response_text = _parse_args(parts[1] if len(parts) > 1 else "")
        kwargs = self._parse_options(options)
        if not kwargs and not response_text:
            return "Rien à modifier : donne -cd=N, -role=X ou un nouveau texte."

        stored = await ctx.registry.upsert_custom(
            ctx.channel_id,
            existing.name,
            response_text or existing.response_template,
            existing.created_by,
            cooldown_seconds=kwargs.get("cooldown_seconds", existing.cooldown_seconds),
            permission=kwargs.get("permission", existing.permission),
        )

        changes = []
        if response_text:
            changes.append(f"réponse : {_preview(response_text, 25)}")
        if "cooldown_seconds" in kwargs:
            changes.append(f"recharge : {stored.cooldown_seconds}s")
        if "permission" in kwargs:
            changes.append(f"rôle : {stored.permission.value}")

        LOGGER.info(f"Command edited: !{stored.name} by {ctx.author.username}")
        return f"Commande {prefix}{stored.name} modifiée ({', '.join(changes)})."

    async def _delete(self, ctx: CommandContext, args: str) -> str:
        prefix = ctx.policy.prefix
        target = args.split(maxsplit=1)[0] if args else ""
        if not target:
            raise ctx.usage_error("cmd d {p}nom")

        name = target.removeprefix(prefix).lower()
        if ctx.registry.is_reserved(name):
            return f"{prefix}{name} est une commande intégrée et ne peut pas être supprimée."

        if await ctx.registry.remove_custom(ctx.channel_id, target):
            LOGGER.info(f"Command deleted: !{name} by {ctx.author.username}")
            return f"Commande {prefix}{name} supprimée."
        return f"Commande personnalisée {prefix}{name} introuvable."

    async def _list(self, ctx: CommandContext) -> str:
        prefix = ctx.policy.prefix
        custom = await ctx.registry.list_custom(ctx.channel_id)
        if not custom:
            return "Aucune commande personnalisée sur cette chaîne."
        return "Commandes perso : " + ", ".join(f"{prefix}{c.name}" for c in custom)
