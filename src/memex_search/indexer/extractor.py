"""Heuristic command extraction from message content.

Two independent passes run over every message and their results are
concatenated without deduplication:

- backtick spans that look like a shell or tool invocation
- lines carrying a ``$`` prompt

The extractor is best-effort. It never raises; text that does not look like a
command simply yields fewer candidates.
"""

import re

from memex_search.models import Command

EXTRACTION_CONFIDENCE = 0.9

BACKTICK_SPAN = re.compile(r"`([^`\n]+)`")
PROMPT_LINE = re.compile(r"\$\s*(.+)")

# Backtick spans must be strictly longer than MIN and shorter than MAX.
SPAN_MIN_LENGTH = 3
SPAN_MAX_LENGTH = 150

COMMAND_MIN_LENGTH = 3
COMMAND_MAX_LENGTH = 200

CALL_SYNTAX_CHARS = frozenset("{}()")
PLAIN_ARGUMENT_CHARS = re.compile(r"^[\w\s\-=./]+$")

COMMAND_INDICATORS: tuple[tuple[str, re.Pattern[str]], ...] = (
    (
        "tool",
        re.compile(
            r"^(?:npm|yarn|pnpm|git|python|py|node|tsx|docker|curl|wget|cd|ls|mkdir|cp|mv|rm"
            r"|firebase|memex)\s",
            re.IGNORECASE,
        ),
    ),
    ("flag", re.compile(r"^\w+\s+--?\w+")),
    ("prompt", re.compile(r"^\$\s+")),
    ("sudo", re.compile(r"^sudo\s+", re.IGNORECASE)),
    ("script", re.compile(r"\.(?:sh|py|js|ts)$")),
    (
        "verb",
        re.compile(
            r"^[a-zA-Z0-9_-]+\s+(?:install|build|start|deploy|login|init|create|run|test)\b",
            re.IGNORECASE,
        ),
    ),
)

# Evaluated top to bottom; anything unmatched is "code".
COMMAND_TYPE_RULES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"^(?:npm|yarn|git|python|node|docker|curl|firebase|memex)"), "cli"),
    (re.compile(r"--?\w+"), "config"),
)

DEFAULT_COMMAND_TYPE = "code"


def context_around(lines: list[str], index: int, window: int = 1) -> str:
    """Return the trimmed text of ``window`` lines on each side of ``index``."""
    start = max(0, index - window)
    end = min(len(lines), index + window + 1)
    return "\n".join(lines[start:end]).strip()


def looks_like_command(text: str) -> bool:
    """Check whether a backtick span has the shape of a command invocation."""
    trimmed = text.strip()
    if len(trimmed) > COMMAND_MAX_LENGTH or len(trimmed) < COMMAND_MIN_LENGTH:
        return False

    if CALL_SYNTAX_CHARS.intersection(trimmed) and not PLAIN_ARGUMENT_CHARS.match(trimmed):
        return False

    return any(pattern.search(trimmed) for _, pattern in COMMAND_INDICATORS)


def classify_command(command: str) -> str:
    """Classify an accepted command string as cli, config, or code."""
    for pattern, command_type in COMMAND_TYPE_RULES:
        if pattern.search(command):
            return command_type
    return DEFAULT_COMMAND_TYPE


def _span_context(lines: list[str], command: str) -> str:
    for index, line in enumerate(lines):
        if command in line:
            return context_around(lines, index, 1)
    return ""


def extract_backtick_commands(content: str) -> list[tuple[str, str, str]]:
    """Extract (command, command_type, context) triples from backtick spans."""
    lines = content.split("\n")
    found = []
    for match in BACKTICK_SPAN.finditer(content):
        command = match.group(1).strip()
        if not SPAN_MIN_LENGTH < len(command) < SPAN_MAX_LENGTH:
            continue
        if not looks_like_command(command):
            continue
        found.append((command, classify_command(command), _span_context(lines, command)))
    return found


def extract_prompt_commands(content: str) -> list[tuple[str, str, str]]:
    """Extract (command, command_type, context) triples from ``$`` prompt lines."""
    lines = content.split("\n")
    found = []
    for index, line in enumerate(lines):
        match = PROMPT_LINE.search(line)
        if match is None:
            continue
        command = match.group(1).strip()
        if not command:
            continue
        found.append((command, "cli", context_around(lines, index, 1)))
    return found


def extract_commands(content: str, conversation_id: str, message_index: int) -> list[Command]:
    """Extract candidate commands from one message.

    Args:
        content: Message text
        conversation_id: External id of the conversation the message belongs to
        message_index: Position of the message in its conversation

    Returns:
        Commands from the backtick pass followed by the prompt-line pass
    """
    if not content:
        return []

    candidates = extract_backtick_commands(content) + extract_prompt_commands(content)
    return [
        Command(
            conversation_id=conversation_id,
            message_index=message_index,
            command=command,
            command_type=command_type,
            context=context,
            confidence=EXTRACTION_CONFIDENCE,
            ordinal=ordinal,
        )
        for ordinal, (command, command_type, context) in enumerate(candidates)
    ]
