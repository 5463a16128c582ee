"""Turn raw chat lines into command invocations.

Parsing is whitespace-split only. Handlers that need quoted segments
(``!sondage "Question" "A" "B"``) call :func:`extract_quoted` on
``arg_text`` themselves so normal commands keep plain split semantics.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_QUOTED_PATTERN = re.compile(r'"([^"]*)"')


@dataclass(frozen=True)
class ParsedInvocation:
    command_name: str
    args: tuple[str, ...]
    arg_text: str
    raw: str


def parse(raw_text: str, prefix: str) -> ParsedInvocation | None:
    """Parse *raw_text* as a command, or return None if it is not one.

    ``!Ping  a   b`` -> ``command_name="ping", args=("a", "b")``
    """
    if not raw_text or not prefix or not raw_text.startswith(prefix):
        return None

    remainder = raw_text[len(prefix) :]
    # "! ping" is not a command: the name must follow the prefix directly
    if not remainder or remainder[0].isspace():
        return None

    parts = remainder.split(maxsplit=1)
    command_name = parts[0].lower()
    arg_text = parts[1].strip() if len(parts) > 1 else ""

    return ParsedInvocation(
        command_name=command_name,
        args=tuple(arg_text.split()),
        arg_text=arg_text,
        raw=raw_text,
    )


def extract_quoted(text: str) -> list[str]:
    """Return every ``"..."`` span of *text*, in order, without the quotes."""
    return _QUOTED_PATTERN.findall(text)
