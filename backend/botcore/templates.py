"""Variable substitution for custom command responses."""

from __future__ import annotations

import random
import re

from botcore.models.invocation import Invocation

DEFAULT_RANDOM_MAX = 100

# One pass over the template so substituted values are never re-expanded
_VARIABLE_PATTERN = re.compile(
    r"\{(?:(?P<name>username|channel|query)"
    r"|random(?:\[(?P<max>\d*)\])?"
    r"|pick\[(?P<items>[^\]]*)\])\}"
)


def render(
    template: str,
    invocation: Invocation,
    *,
    rng: random.Random | None = None,
) -> str:
    """Replace response variables in custom command text.

    Supported variables:
        {username}      Invoking user's name
        {channel}       Channel name (falls back to channel id)
        {query}         Text typed after the command
        {random}        Random integer in [1, 100]
        {random[N]}     Random integer in [1, N]
        {pick[a,b,c]}   Random pick from comma-separated items

    Unknown placeholders are left as-is.
    """
    source = rng or random
    values = {
        "username": invocation.username,
        "channel": invocation.channel_name or invocation.channel_id,
        "query": invocation.arg_text,
    }

    def _replace(m: re.Match) -> str:
        if m.group("name"):
            return values[m.group("name")]
        if m.group("items") is not None:
            items = [i.strip() for i in m.group("items").split(",") if i.strip()]
            return source.choice(items) if items else ""
        upper = int(m.group("max")) if m.group("max") else DEFAULT_RANDOM_MAX
        return str(source.randint(1, max(upper, 1)))

    return _VARIABLE_PATTERN.sub(_replace, template)
