"""Permission checks for command invocations."""

from __future__ import annotations

from botcore.models.command import Permission
from botcore.models.invocation import Invocation

# Short names accepted in chat (e.g. ``!cmd a !salut -role=mod ...``)
PERMISSION_ALIASES: dict[str, Permission] = {
    "everyone": Permission.EVERYONE,
    "all": Permission.EVERYONE,
    "tous": Permission.EVERYONE,
    "mod": Permission.MODERATOR,
    "moderator": Permission.MODERATOR,
    "modo": Permission.MODERATOR,
    "owner": Permission.OWNER,
    "broadcaster": Permission.OWNER,
    "admin": Permission.OWNER,
}


def authorize(invocation: Invocation, required: Permission) -> bool:
    """Check if the invoking user meets *required*."""
    if required is Permission.EVERYONE:
        return True
    if required is Permission.MODERATOR:
        return invocation.is_moderator or invocation.is_owner
    if required is Permission.OWNER:
        return invocation.is_owner
    return False


def parse_permission(value: str) -> Permission | None:
    """Parse a role name. Returns None if unrecognised."""
    return PERMISSION_ALIASES.get(value.strip().lower())


def denial_message(required: Permission) -> str:
    if required is Permission.OWNER:
        return "Cette commande est réservée au propriétaire de la chaîne."
    return "Cette commande est réservée aux modérateurs."
