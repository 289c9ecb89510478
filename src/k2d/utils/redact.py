"""Secrets redaction for captured conversation text.

Masks credential-shaped substrings (API keys, passwords, connection
strings, tokens, private keys) before anything is written to SQLite.

The built-in table is ordered: earlier patterns run first, so a specific
marker such as ``[REDACTED_JWT]`` wins over the generic ones. Projects can
add patterns in the secrets-patterns-db YAML layout; only ``high``
confidence entries are kept.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

REDACTED_PLACEHOLDER = "[REDACTED]"


@dataclass(frozen=True)
class SensitivePattern:
    """A named redaction rule."""

    name: str
    pattern: re.Pattern[str]
    replacement: str = REDACTED_PLACEHOLDER


# (name, regex, replacement)
_BUILTIN_PATTERNS: list[tuple[str, str, str]] = [
    # API keys
    ("SK API Key", r"sk-[a-zA-Z0-9]{20,}", "[REDACTED_API_KEY]"),
    ("API Key Assignment", r"""(?i)api[_-]?key["\s:=]+["']?[\w-]{20,}["']?""", "[REDACTED_API_KEY]"),
    ("OpenAI Key Env", r"""(?i)OPENAI_API_KEY["\s:=]+["']?[^\s"',]+["']?""", "OPENAI_API_KEY=[REDACTED]"),
    (
        "Anthropic Key Env",
        r"""(?i)ANTHROPIC_API_KEY["\s:=]+["']?[^\s"',]+["']?""",
        "ANTHROPIC_API_KEY=[REDACTED]",
    ),
    # Passwords
    ("Password", r"""(?i)password["\s:=]+["']?[^\s"',]{8,}["']?""", "password: [REDACTED]"),
    ("Passwd", r"""(?i)passwd["\s:=]+["']?[^\s"',]{8,}["']?""", "passwd: [REDACTED]"),
    ("Pwd", r"""(?i)pwd["\s:=]+["']?[^\s"',]{8,}["']?""", "pwd: [REDACTED]"),
    # Connection strings
    ("Connection String", r"(?i)(?:postgres|mysql|mongodb|redis)://\S+", "[REDACTED_CONNECTION_STRING]"),
    # JWT
    ("JSON Web Token", r"eyJ[a-zA-Z0-9_-]+\.eyJ[a-zA-Z0-9_-]+\.[a-zA-Z0-9_-]+", "[REDACTED_JWT]"),
    # Env-style assignments in any case: FOO_KEY=..., app_secret: ...
    (
        "Secret Env Assignment",
        r"""(?i)[A-Z_]+(?:KEY|SECRET|TOKEN|PASSWORD|CREDENTIAL)["\s:=]+["']?[^\s"',]+["']?""",
        "[REDACTED_ENV]",
    ),
    # AWS
    ("AWS Access Key ID", r"AKIA[0-9A-Z]{16}", "[REDACTED_AWS_ACCESS_KEY]"),
    (
        "AWS Secret Access Key",
        r"""(?i)aws_secret_access_key["\s:=]+["']?[^\s"',]+["']?""",
        "aws_secret_access_key=[REDACTED]",
    ),
    # Private keys
    (
        "PEM Private Key",
        r"-----BEGIN (?:RSA |EC |DSA |OPENSSH )?PRIVATE KEY-----[\s\S]*?"
        r"-----END (?:RSA |EC |DSA |OPENSSH )?PRIVATE KEY-----",
        "[REDACTED_PRIVATE_KEY]",
    ),
    # Bearer tokens
    (
        "Bearer JWT",
        r"Bearer\s+[a-zA-Z0-9_-]+\.[a-zA-Z0-9_-]+\.[a-zA-Z0-9_-]+",
        "Bearer [REDACTED_TOKEN]",
    ),
    (
        "Authorization Header",
        r"""(?i)Authorization["\s:=]+["']?Bearer\s+[^\s"',]+["']?""",
        "Authorization: Bearer [REDACTED]",
    ),
]


def _compile_patterns(
    raw_patterns: list[tuple[str, str, str]],
) -> list[SensitivePattern]:
    """Compile regex patterns, skipping invalid ones.

    Returns:
        List of compiled SensitivePattern entries.
    """
    compiled: list[SensitivePattern] = []
    for name, regex_str, replacement in raw_patterns:
        try:
            compiled.append(SensitivePattern(name, re.compile(regex_str), replacement))
        except re.error as e:
            logger.debug(f"Skipping invalid redaction pattern {name!r}: {e}")
    return compiled


def _parse_yaml_patterns(path: Path) -> list[tuple[str, str, str]]:
    """Parse a secrets-patterns-db style YAML file, keeping high-confidence rules.

    Returns:
        List of (name, regex_str, replacement) triples.
    """
    import yaml

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Failed to parse redaction patterns YAML {path}: {e}")
        return []

    if not isinstance(data, dict):
        return []

    patterns: list[tuple[str, str, str]] = []
    for entry in data.get("patterns", []) or []:
        if not isinstance(entry, dict):
            continue
        pattern_info = entry.get("pattern", {})
        if not isinstance(pattern_info, dict):
            continue

        confidence = str(pattern_info.get("confidence", "")).lower()
        if confidence != "high":
            continue

        name = pattern_info.get("name", "unknown")
        regex_str = pattern_info.get("regex", "")
        if regex_str:
            patterns.append((name, regex_str, REDACTED_PLACEHOLDER))

    return patterns


def load_patterns(extra_patterns_file: Path | None = None) -> list[SensitivePattern]:
    """Build the ordered pattern list: built-ins first, then project extras."""
    raw = list(_BUILTIN_PATTERNS)
    if extra_patterns_file is not None and extra_patterns_file.is_file():
        extras = _parse_yaml_patterns(extra_patterns_file)
        if extras:
            logger.info(f"Loaded {len(extras)} extra redaction patterns from {extra_patterns_file}")
        raw.extend(extras)
    return _compile_patterns(raw)


# Module-level compiled patterns; replaced once by initialize()
_compiled_patterns: list[SensitivePattern] = _compile_patterns(_BUILTIN_PATTERNS)


def redact_secrets(text: str, extra_patterns: list[SensitivePattern] | None = None) -> str:
    """Redact known secret patterns from text.

    Args:
        text: Text to redact.
        extra_patterns: Optional additional patterns to apply after the loaded ones.

    Returns:
        Text with secrets replaced by ``[REDACTED...]`` markers. Text without
        any match is returned unchanged.
    """
    if not text:
        return text

    patterns = _compiled_patterns
    if extra_patterns:
        patterns = patterns + extra_patterns

    for entry in patterns:
        text = entry.pattern.sub(entry.replacement, text)

    return text


def contains_secrets(text: str) -> bool:
    """Check whether any loaded pattern matches the text."""
    if not text:
        return False
    return any(entry.pattern.search(text) for entry in _compiled_patterns)


def redact_secrets_in_dict(d: dict[str, Any]) -> dict[str, Any]:
    """Recursively redact string values in a dict.

    Args:
        d: Dictionary to redact (not mutated; returns a new dict).

    Returns:
        New dictionary with string values redacted.
    """
    result: dict[str, Any] = {}
    for key, value in d.items():
        if isinstance(value, str):
            result[key] = redact_secrets(value)
        elif isinstance(value, dict):
            result[key] = redact_secrets_in_dict(value)
        elif isinstance(value, list):
            result[key] = [
                redact_secrets(item)
                if isinstance(item, str)
                else redact_secrets_in_dict(item)
                if isinstance(item, dict)
                else item
                for item in value
            ]
        else:
            result[key] = value
    return result


def get_sensitive_patterns() -> list[SensitivePattern]:
    """Return a copy of the active pattern list."""
    return list(_compiled_patterns)


def initialize(extra_patterns_file: Path | None = None) -> None:
    """Called once per run to load project-specific patterns.

    Args:
        extra_patterns_file: Optional YAML file with additional patterns.
    """
    global _compiled_patterns  # noqa: PLW0603
    _compiled_patterns = load_patterns(extra_patterns_file)
    logger.debug(f"Loaded {len(_compiled_patterns)} redaction patterns")
