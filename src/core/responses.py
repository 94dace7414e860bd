"""Reply composition — pure template filling.

No I/O: this module only transforms data.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.core.bot_text import BotText
    from src.core.errors import OkiruError

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


def compose(template: str, **values: object) -> str:
    """Fill ``{name}`` placeholders in a single pass.

    Substituted values are never re-scanned, so a value that itself contains
    ``{other}`` is emitted literally. Placeholders without a value are left
    untouched.
    """

    def _substitute(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in values:
            return match.group(0)
        return str(values[name])

    return _PLACEHOLDER.sub(_substitute, template)


def format_minutes(minute: int) -> str:
    """Zero-pad minutes for HH:MM style displays (7 -> "07")."""
    return f"{minute:02d}"


def compose_error(bot_text: BotText, error: OkiruError) -> str:
    """Render a user-correctable error through its template."""
    return compose(
        bot_text.template(error.code),
        deadline_hour=getattr(error, "deadline_hour", ""),
        weekly_limit=getattr(error, "limit", ""),
    )
