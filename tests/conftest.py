"""Shared fixtures for docplane tests."""

from __future__ import annotations

import json
import tempfile
import time
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest

from docplane.index._internal.db import Database, initialize_schema
from docplane.index.models import Dependency, Document

InsertDocument = Callable[..., None]
InsertEdge = Callable[..., None]

AUTH_RULE = """\
---
description: Authentication rules
tags: [security, auth]
alwaysApply: true
---
# Authentication

Handle user login and JWT tokens.

Related: [login command](../commands/login.md)
"""

LOGIN_COMMAND = """\
---
description: Log a user in
tags: [auth]
---
# Login

Run the login flow. Follows [auth rules](../rules/auth.md)
and [deploy](../skills/deploy/SKILL.md).
"""

DEPLOY_SKILL = """\
---
description: Ship it
---
# Deploy

import config from './config.js'
"""

README = """\
# Project

See [rules](ai/rules/auth.md).
"""


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory(ignore_cleanup_errors=True) as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def temp_db(temp_dir: Path) -> Generator[Database, None, None]:
    """Create a temporary file database with schema."""
    db = Database(temp_dir / "test.db")
    initialize_schema(db)
    yield db
    db.close()


@pytest.fixture
def insert_document() -> InsertDocument:
    """Return a helper that upserts one document row."""

    def _insert(
        db: Database,
        path: str,
        content: str = "",
        *,
        document_type: str = "other",
        frontmatter: dict[str, Any] | None = None,
    ) -> None:
        record = {
            "path": path,
            "document_type": document_type,
            "frontmatter": json.dumps(frontmatter or {}),
            "content": content,
            "content_hash": f"hash-{path}-{len(content)}",
            "file_size": len(content),
            "modified_at": time.time(),
            "indexed_at": time.time(),
        }
        with db.bulk_writer() as writer:
            writer.upsert_many(
                Document,
                [record],
                conflict_columns=["path"],
                update_columns=[k for k in record if k != "path"],
            )

    return _insert


@pytest.fixture
def insert_edge() -> InsertEdge:
    """Return a helper that inserts one dependency edge."""

    def _insert(db: Database, from_path: str, to_path: str, import_kind: str = "import") -> None:
        with db.bulk_writer() as writer:
            writer.insert_many(
                Dependency,
                [
                    {
                        "from_path": from_path,
                        "to_path": to_path,
                        "import_kind": import_kind,
                        "line_number": 1,
                        "raw_text": f"import '{to_path}'",
                    }
                ],
            )

    return _insert


@pytest.fixture
def seeded_db(temp_db: Database, insert_document: InsertDocument) -> Database:
    """Database seeded with one document of each common type."""
    insert_document(
        temp_db,
        "ai/rules/auth.md",
        "# Authentication\n\nHandle user login and JWT tokens.",
        document_type="rule",
        frontmatter={
            "description": "Auth rules",
            "tags": ["security", "auth"],
            "alwaysApply": True,
            "priority": 1,
        },
    )
    insert_document(
        temp_db,
        "ai/commands/login.md",
        "# Login\n\nRun the authentication flow for the user.",
        document_type="command",
        frontmatter={
            "description": "Login command",
            "tags": ["auth"],
            "alwaysApply": False,
            "priority": 2,
        },
    )
    insert_document(
        temp_db,
        "ai/skills/deploy/SKILL.md",
        "# Deploy\n\nShip the build to production.",
        document_type="skill",
        frontmatter={"description": "Deploy", "tags": ["ops"]},
    )
    insert_document(temp_db, "README.md", "# Project\n\nOverview of the repository.")
    return temp_db


@pytest.fixture
def doc_tree(temp_dir: Path) -> Path:
    """Create a small documentation tree.

    Indexable: README.md, ai/rules/auth.md, ai/commands/login.md,
    ai/skills/deploy/SKILL.md. Everything else must be skipped.
    """
    root = temp_dir / "docs"
    files = {
        "ai/rules/auth.md": AUTH_RULE,
        "ai/commands/login.md": LOGIN_COMMAND,
        "ai/skills/deploy/SKILL.md": DEPLOY_SKILL,
        "README.md": README,
        # Skipped
        "ai/index.md": "# Generated index\n",
        "node_modules/pkg/README.md": "# Vendored\n",
        ".hidden/secret.md": "# Hidden\n",
        "notes.txt": "not a document\n",
    }
    for rel_path, content in files.items():
        path = root / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return root
