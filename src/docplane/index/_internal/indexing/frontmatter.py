"""Per-file extraction: document type, content fingerprint, frontmatter.

All three are pure functions; file I/O lives in the document indexer.
"""

from __future__ import annotations

import datetime as dt
import hashlib
import math
from dataclasses import dataclass, field
from typing import Any

import structlog
import yaml

from docplane.index.models import DocumentType, FrontmatterValue

logger = structlog.get_logger()

FRONTMATTER_DELIMITER = "---"

# Keys that can redefine structural attributes of an object model once the
# metadata is handed to other runtimes (JS consumers of the JSON payload).
# Any dunder key is rejected as well.
FORBIDDEN_KEYS = frozenset({"__proto__", "prototype", "constructor"})

# Path segment patterns. The longest matching pattern wins, so
# "ai/skills/x/tasks/y.md" is a skill, not a task.
TYPE_PATTERNS: tuple[tuple[str, DocumentType], ...] = (
    ("ai/rules/", DocumentType.RULE),
    ("rules/", DocumentType.RULE),
    ("ai/commands/", DocumentType.COMMAND),
    ("commands/", DocumentType.COMMAND),
    ("ai/skills/", DocumentType.SKILL),
    ("skills/", DocumentType.SKILL),
    ("tasks/", DocumentType.TASK),
    ("plan/story-map/", DocumentType.STORY_MAP),
    ("story-map/", DocumentType.STORY_MAP),
)


@dataclass
class ParsedDocument:
    """Frontmatter split from body text."""

    frontmatter: dict[str, FrontmatterValue] = field(default_factory=dict)
    content: str = ""


def _matches_segment(path: str, pattern: str) -> bool:
    return path.startswith(pattern) or f"/{pattern}" in path


def detect_document_type(path: str) -> DocumentType:
    """Classify a repo-relative path. Defaults to OTHER."""
    normalized = path.replace("\\", "/")
    best: DocumentType = DocumentType.OTHER
    best_len = 0
    for pattern, doc_type in TYPE_PATTERNS:
        if len(pattern) > best_len and _matches_segment(normalized, pattern):
            best, best_len = doc_type, len(pattern)
    return best


def compute_file_hash(data: bytes | str) -> str:
    """SHA3-256 hex digest of the raw file bytes."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha3_256(data).hexdigest()


def _is_forbidden_key(key: str) -> bool:
    return key in FORBIDDEN_KEYS or (key.startswith("__") and key.endswith("__"))


def sanitize_value(value: Any) -> FrontmatterValue:
    """Coerce a YAML value into the JSON-safe frontmatter value union."""
    if value is None or isinstance(value, (bool, int, str)):
        return value  # type: ignore[no-any-return]
    if isinstance(value, float):
        return value if math.isfinite(value) else str(value)
    if isinstance(value, (dt.date, dt.datetime)):
        return value.isoformat()
    if isinstance(value, dict):
        clean: dict[str, FrontmatterValue] = {}
        for raw_key, item in value.items():
            key = str(raw_key)
            if _is_forbidden_key(key):
                logger.debug("frontmatter_key_rejected", key=key)
                continue
            clean[key] = sanitize_value(item)
        return clean
    if isinstance(value, (list, tuple, set)):
        return [sanitize_value(item) for item in value]
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _split_block(text: str) -> tuple[str, str] | None:
    """Return (block, body) when text opens with a closed delimited block."""
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].rstrip() != FRONTMATTER_DELIMITER:
        return None
    for i in range(1, len(lines)):
        if lines[i].rstrip() == FRONTMATTER_DELIMITER:
            return "".join(lines[1:i]), "".join(lines[i + 1 :])
    return None


def parse_frontmatter(raw_text: str) -> ParsedDocument:
    """Split a leading ``---`` YAML block from the body.

    Never raises on ordinary text. Missing, unterminated, unparseable or
    non-mapping blocks yield empty metadata and the full text as body.
    """
    text = raw_text.lstrip("\ufeff")
    split = _split_block(text)
    if split is None:
        return ParsedDocument(content=text.strip())

    block, body = split
    try:
        data = yaml.safe_load(block)
        if data is None:
            data = {}
        if not isinstance(data, dict):
            return ParsedDocument(content=text.strip())
        frontmatter = sanitize_value(data)
    except (yaml.YAMLError, ValueError, RecursionError) as e:
        # Self-referencing aliases and very deep nesting end up here.
        logger.debug("frontmatter_parse_failed", error=str(e) or type(e).__name__)
        return ParsedDocument(content=text.strip())

    assert isinstance(frontmatter, dict)
    return ParsedDocument(frontmatter=frontmatter, content=body.strip())
