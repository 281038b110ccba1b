"""Quote-aware tokenizer for free-form terminal commands."""

from __future__ import annotations

from enum import Enum, auto

from droidcast.shared.exceptions import CommandParseError

_QUOTES = {'"', "'"}


class _State(Enum):
    BETWEEN = auto()  # skipping whitespace between tokens
    TOKEN = auto()  # inside an unquoted run
    QUOTED = auto()  # inside a quoted run


def split_command(line: str) -> list[str]:
    """Split ``line`` into arguments.

    Whitespace separates tokens except inside matching ``"`` or ``'`` quotes.
    Quotes may start mid-token (``--record="My Videos/a.mkv"``) and an empty
    pair (``""``) yields an empty argument.

    Raises:
        CommandParseError: If a quote is left open.
    """
    tokens: list[str] = []
    current: list[str] = []
    state = _State.BETWEEN
    quote = ""

    for char in line:
        if state is _State.QUOTED:
            if char == quote:
                state = _State.TOKEN
            else:
                current.append(char)
        elif char in _QUOTES:
            quote = char
            state = _State.QUOTED
        elif char.isspace():
            if state is _State.TOKEN:
                tokens.append("".join(current))
                current.clear()
            state = _State.BETWEEN
        else:
            current.append(char)
            state = _State.TOKEN

    if state is _State.QUOTED:
        raise CommandParseError(f"unclosed {quote} quote in command: {line}")
    if state is _State.TOKEN:
        tokens.append("".join(current))
    return tokens
