"""Metadata search: conjunctive filters over document type and frontmatter.

Filter keys:
    ``type``                    document type, or a list of types
    ``frontmatter.<dotted>``    a frontmatter field

Frontmatter values:
    scalar                      equality
    bool                        equality against the JSON boolean
    None                        field absent or null
    ``{"contains": value}``     the field is an array holding value

Every key is validated against ``[A-Za-z0-9_.]`` before any SQL is built.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from docplane.core.errors import ValidationError
from docplane.index.models import SearchResult

if TYPE_CHECKING:
    from docplane.index._internal.db import Database

FIELD_PATH_PATTERN = re.compile(r"[A-Za-z0-9_.]+")
FRONTMATTER_PREFIX = "frontmatter."
TYPE_KEY = "type"


def validate_field_path(path: str) -> str:
    """Return path unchanged if it is a safe dotted JSON path.

    Raises:
        ValidationError: path has characters outside [A-Za-z0-9_.] or
            empty segments.
    """
    if not FIELD_PATH_PATTERN.fullmatch(path) or "" in path.split("."):
        raise ValidationError.invalid_field_path(path)
    return path


def _json_path(field: str) -> str:
    return f"$.{field}"


def _scalar(name: str, value: Any) -> Any:
    if isinstance(value, bool):
        return 1 if value else 0
    if value is None or isinstance(value, (int, float, str)):
        return value
    raise ValidationError.invalid_value(name, value, "expected a string, number or boolean")


def build_filter_clause(filters: Mapping[str, Any]) -> tuple[list[str], dict[str, Any]]:
    """Translate filters into SQL conditions and bound parameters.

    Every key is checked before any condition is built, so a bad key
    anywhere in the mapping fails the whole call.
    """
    for key in filters:
        validate_field_path(key)

    conditions: list[str] = []
    params: dict[str, Any] = {}
    for i, (key, value) in enumerate(filters.items()):
        if key == TYPE_KEY:
            if isinstance(value, (list, tuple, set)):
                names = [f"type_{i}_{j}" for j in range(len(value))]
                if not names:
                    conditions.append("0")
                    continue
                conditions.append(f"document_type IN ({', '.join(':' + n for n in names)})")
                params.update(zip(names, (str(v) for v in value), strict=True))
            else:
                conditions.append(f"document_type = :type_{i}")
                params[f"type_{i}"] = str(value)
            continue

        if not key.startswith(FRONTMATTER_PREFIX) or key == FRONTMATTER_PREFIX:
            raise ValidationError.unsupported_filter(key)
        field = key[len(FRONTMATTER_PREFIX) :]
        params[f"path_{i}"] = _json_path(field)

        if isinstance(value, Mapping):
            if set(value) != {"contains"}:
                raise ValidationError.invalid_value(
                    key, value, "the only supported predicate is 'contains'"
                )
            conditions.append(
                f"EXISTS (SELECT 1 FROM json_each(frontmatter, :path_{i}) "
                f"WHERE json_each.value = :value_{i})"
            )
            params[f"value_{i}"] = _scalar(key, value["contains"])
        elif value is None:
            conditions.append(f"json_extract(frontmatter, :path_{i}) IS NULL")
        else:
            conditions.append(f"json_extract(frontmatter, :path_{i}) = :value_{i}")
            params[f"value_{i}"] = _scalar(key, value)

    return conditions, params


def search_metadata(
    db: Database,
    filters: Mapping[str, Any] | None = None,
    *,
    limit: int = 20,
    offset: int = 0,
) -> list[SearchResult]:
    """Documents matching all filters, ordered by path.

    No filters matches every document. Metadata matches are unranked, so
    every result scores 0.0.

    Raises:
        ValidationError: an invalid or unsupported key, or an unusable value.
    """
    conditions, params = build_filter_clause(filters or {})
    if limit < 0 or offset < 0:
        raise ValidationError.invalid_value("limit/offset", (limit, offset), "must be >= 0")

    sql = "SELECT path, document_type, frontmatter FROM documents"
    if conditions:
        sql += " WHERE " + " AND ".join(conditions)
    sql += " ORDER BY path LIMIT :limit OFFSET :offset"
    params.update(limit=limit, offset=offset)

    return [
        SearchResult(
            path=row.path,
            document_type=row.document_type,
            frontmatter=json.loads(row.frontmatter or "{}"),
        )
        for row in db.execute_raw(sql, params)
    ]


def get_field_values(db: Database, field: str) -> list[Any]:
    """Distinct non-null values of a frontmatter field, sorted.

    ``field`` may be given with or without the ``frontmatter.`` prefix.
    Array values are returned as their JSON text.
    """
    validate_field_path(field)
    if field.startswith(FRONTMATTER_PREFIX):
        field = validate_field_path(field[len(FRONTMATTER_PREFIX) :])
    rows = db.execute_raw(
        """
        SELECT DISTINCT json_extract(frontmatter, :path) AS value
        FROM documents
        WHERE json_extract(frontmatter, :path) IS NOT NULL
        ORDER BY value
        """,
        {"path": _json_path(field)},
    )
    return [row.value for row in rows]


def get_document_types(db: Database) -> list[str]:
    """Distinct document types present in the index."""
    rows = db.execute_raw("SELECT DISTINCT document_type FROM documents ORDER BY document_type")
    return [row.document_type for row in rows]
