"""Document discovery."""

from docplane.index._internal.discovery.scanner import find_documents, relative_posix

__all__ = ["find_documents", "relative_posix"]
