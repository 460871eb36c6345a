"""Content type classification for archived messages."""

import re

# Evaluated top to bottom; the first matching pattern decides the type.
CONTENT_TYPE_RULES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"```"), "code"),
    (re.compile(r"`[^`\n]+`"), "code"),
    (re.compile(r"\$\s+\w+"), "command"),
    (re.compile(r"\b(?:npm|yarn|pnpm|git|python|node)\s+\w+", re.IGNORECASE), "command"),
    (re.compile(r"--\w+"), "command"),
    (re.compile(r"^\s*>\s+", re.MULTILINE), "command"),
)

DEFAULT_CONTENT_TYPE = "text"


def classify_content(content: str) -> str:
    """Classify message content as code, command, or text.

    Args:
        content: Raw message text

    Returns:
        "code" when a fenced block or inline backtick span is present,
        "command" when the text has a command shape, otherwise "text"
    """
    if not content:
        return DEFAULT_CONTENT_TYPE

    for pattern, content_type in CONTENT_TYPE_RULES:
        if pattern.search(content):
            return content_type
    return DEFAULT_CONTENT_TYPE
