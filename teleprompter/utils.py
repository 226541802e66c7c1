"""
Utility functions for teleprompter.
"""
import os
import re
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .constants import PRIVATE_FILE_MODE


def truncate_string(text: str, max_length: int = 50, suffix: str = "...") -> str:
    """
    Truncate a string to a maximum length.

    Args:
        text: The string to truncate
        max_length: Maximum length of the output string
        suffix: Suffix to append when truncating

    Returns:
        Truncated string
    """
    if len(text) <= max_length:
        return text
    return text[:max_length - len(suffix)] + suffix


def generate_run_id() -> str:
    """Generate a unique run ID."""
    return str(uuid.uuid4())


def utc_timestamp(moment: Optional[datetime] = None) -> str:
    """
    Format a moment as an ISO-8601 UTC timestamp.

    Args:
        moment: Time to format (uses the current time if None)

    Returns:
        Timestamp such as ``2024-05-01T09:30:00.123Z``
    """
    moment = moment or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def format_timestamp(timestamp: str, fmt: str = "%b %d, %H:%M") -> str:
    """
    Format an ISO-8601 timestamp for display in local time.

    Args:
        timestamp: ISO-8601 timestamp
        fmt: strftime format string

    Returns:
        Formatted timestamp, or the input unchanged if it cannot be parsed
    """
    try:
        moment = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
    except ValueError:
        return timestamp
    return moment.astimezone().strftime(fmt)


def prompt_filename(prompt_id: str) -> str:
    """
    Convert a prompt ID into a snake_case file stem.

    Colons become underscores and every capital letter gets an underscore
    in front of it before lowercasing, so ``chat:SystemPrompt`` becomes
    ``chat__system_prompt``.
    """
    stem = prompt_id.replace(":", "_")
    stem = re.sub(r"([A-Z])", r"_\1", stem)
    return stem.lower()


def wildcard_to_regex(pattern: str) -> re.Pattern:
    """
    Compile a ``*`` wildcard pattern into an anchored regular expression.

    Only ``*`` is special; every other character matches itself.
    """
    parts = [re.escape(part) for part in pattern.split("*")]
    return re.compile("^" + ".*".join(parts) + "$")


def expand_path(path: str) -> Path:
    """
    Expand a path string, resolving ~ and environment variables.

    Args:
        path: Path string to expand

    Returns:
        Expanded Path object
    """
    return Path(os.path.expandvars(path)).expanduser().resolve()


def write_private_file(path: Path, content: str) -> None:
    """
    Write a text file readable only by its owner.

    Creates parent directories as needed. Permissions are reset on every
    write, so files created earlier with a wider mode are tightened too.

    Args:
        path: File to write
        content: Text content
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, PRIVATE_FILE_MODE)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(content)
    os.chmod(path, PRIVATE_FILE_MODE)
