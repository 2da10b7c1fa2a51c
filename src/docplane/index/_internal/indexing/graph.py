"""Dependency graph traversal over stored reference edges."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable
from typing import TYPE_CHECKING

from sqlmodel import col, select

from docplane.core.errors import ValidationError
from docplane.index.models import Dependency, Direction, Document, RelatedFile

if TYPE_CHECKING:
    from sqlmodel import Session

    from docplane.index._internal.db.database import Database

DEFAULT_MAX_DEPTH = 3


class DependencyGraph:
    """
    Reachability queries over the dependencies table.

    Traversals expand one level at a time with a visited set seeded with
    the start path, so cycles terminate and every file is reported once at
    the minimum depth it was reached. Results are ordered by (depth, path).

    An unknown start path is not an error: it yields no results.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def is_document(self, path: str) -> bool:
        return self._session.get(Document, path) is not None

    def get_forward_deps(
        self,
        path: str,
        max_depth: int = DEFAULT_MAX_DEPTH,
        *,
        include_external: bool = False,
    ) -> list[RelatedFile]:
        """Files reachable from path by following fromPath -> toPath edges."""
        return self._walk(
            path,
            max_depth,
            lambda level: self._targets(level, include_external),
            Direction.FORWARD,
        )

    def get_reverse_deps(self, path: str, max_depth: int = DEFAULT_MAX_DEPTH) -> list[RelatedFile]:
        """Files that reach path, following edges backward."""
        return self._walk(path, max_depth, self._sources, Direction.REVERSE)

    def find_related(
        self,
        path: str,
        direction: Direction | str = Direction.BOTH,
        max_depth: int = DEFAULT_MAX_DEPTH,
        *,
        include_external: bool = False,
    ) -> list[RelatedFile]:
        """Forward and/or reverse results, each tagged with its direction.

        With ``both`` a file may appear twice, once per direction, at
        different depths.
        """
        direction = Direction(direction)
        related: list[RelatedFile] = []
        if direction in (Direction.FORWARD, Direction.BOTH):
            related.extend(
                self.get_forward_deps(path, max_depth, include_external=include_external)
            )
        if direction in (Direction.REVERSE, Direction.BOTH):
            related.extend(self.get_reverse_deps(path, max_depth))
        return related

    def find_entry_points(self) -> list[str]:
        """Documents nothing references."""
        referenced = select(Dependency.to_path).distinct()
        stmt = (
            select(Document.path)
            .where(col(Document.path).not_in(referenced))
            .order_by(Document.path)
        )
        return list(self._session.exec(stmt).all())

    def find_leaf_nodes(self) -> list[str]:
        """Documents that reference no indexed document."""
        referencing = (
            select(Dependency.from_path)
            .join(Document, col(Document.path) == col(Dependency.to_path))
            .distinct()
        )
        stmt = (
            select(Document.path)
            .where(col(Document.path).not_in(referencing))
            .order_by(Document.path)
        )
        return list(self._session.exec(stmt).all())

    def get_dependency_graph(self, *, include_external: bool = True) -> dict[str, list[str]]:
        """Adjacency projection: every document mapped to its sorted targets."""
        graph: dict[str, list[str]] = {
            path: [] for path in self._session.exec(select(Document.path)).all()
        }
        stmt = select(Dependency.from_path, Dependency.to_path)
        if not include_external:
            stmt = stmt.join(Document, col(Document.path) == col(Dependency.to_path))
        for from_path, to_path in self._session.exec(stmt).all():
            graph.setdefault(from_path, []).append(to_path)
        for targets in graph.values():
            targets.sort()
        return graph

    def _walk(
        self,
        start: str,
        max_depth: int,
        expand: Callable[[set[str]], dict[str, set[str]]],
        direction: Direction,
    ) -> list[RelatedFile]:
        _check_depth(max_depth)
        if max_depth == 0 or not self.is_document(start):
            return []

        seen: set[str] = {start}
        current_level: set[str] = {start}
        found: list[RelatedFile] = []

        for depth in range(1, max_depth + 1):
            next_level: set[str] = set()
            for neighbors in expand(current_level).values():
                for neighbor in neighbors:
                    if neighbor not in seen:
                        seen.add(neighbor)
                        next_level.add(neighbor)
            if not next_level:
                break
            found.extend(
                RelatedFile(path=p, depth=depth, direction=direction) for p in sorted(next_level)
            )
            current_level = next_level

        return found

    def _targets(self, level: set[str], include_external: bool) -> dict[str, set[str]]:
        stmt = select(Dependency.from_path, Dependency.to_path).where(
            col(Dependency.from_path).in_(level)
        )
        if not include_external:
            stmt = stmt.join(Document, col(Document.path) == col(Dependency.to_path))
        edges: dict[str, set[str]] = defaultdict(set)
        for from_path, to_path in self._session.exec(stmt).all():
            edges[from_path].add(to_path)
        return edges

    def _sources(self, level: set[str]) -> dict[str, set[str]]:
        stmt = select(Dependency.to_path, Dependency.from_path).where(
            col(Dependency.to_path).in_(level)
        )
        edges: dict[str, set[str]] = defaultdict(set)
        for to_path, from_path in self._session.exec(stmt).all():
            edges[to_path].add(from_path)
        return edges


def _check_depth(max_depth: int) -> None:
    if max_depth < 0:
        raise ValidationError.invalid_value("max_depth", max_depth, "must be >= 0")

def get_forward_deps(
    db: Database,
    path: str,
    max_depth: int = DEFAULT_MAX_DEPTH,
    *,
    include_external: bool = False,
) -> list[RelatedFile]:
    _check_depth(max_depth)
    with db.session() as session:
        return DependencyGraph(session).get_forward_deps(
            path, max_depth, include_external=include_external
        )


def get_reverse_deps(
    db: Database, path: str, max_depth: int = DEFAULT_MAX_DEPTH
) -> list[RelatedFile]:
    _check_depth(max_depth)
    with db.session() as session:
        return DependencyGraph(session).get_reverse_deps(path, max_depth)


def find_related(
    db: Database,
    path: str,
    direction: Direction | str = Direction.BOTH,
    max_depth: int = DEFAULT_MAX_DEPTH,
    *,
    include_external: bool = False,
) -> list[RelatedFile]:
    _check_depth(max_depth)
    with db.session() as session:
        return DependencyGraph(session).find_related(
            path, direction, max_depth, include_external=include_external
        )


def find_entry_points(db: Database) -> list[str]:
    with db.session() as session:
        return DependencyGraph(session).find_entry_points()


def find_leaf_nodes(db: Database) -> list[str]:
    with db.session() as session:
        return DependencyGraph(session).find_leaf_nodes()


def get_dependency_graph(db: Database, *, include_external: bool = True) -> dict[str, list[str]]:
    with db.session() as session:
        return DependencyGraph(session).get_dependency_graph(include_external=include_external)
