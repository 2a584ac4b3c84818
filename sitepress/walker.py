from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterable

from .document import HtmlDocument

logger = logging.getLogger(__name__)

GOOGLE_VERIFY_RE = re.compile(r"^google[0-9a-f]+\.html$", re.IGNORECASE)


def is_noindex(path: Path) -> bool:
    try:
        return HtmlDocument.from_file(path).noindex
    except (OSError, UnicodeDecodeError):
        return False


def path_to_url_path(rel: str) -> str:
    if rel.startswith("./"):
        rel = rel[2:]
    if rel == "index.html":
        return "/"
    if rel.endswith("/index.html"):
        return "/" + rel[: -len("index.html")]
    return "/" + rel


def walk_site(root: Path, exclude_dirs: Iterable[str] = (), exclude_files: Iterable[str] = ()) -> list[str]:
    """List indexable HTML pages under ``root`` as sorted POSIX relative paths."""
    exclude_dirs = set(exclude_dirs)
    exclude_files = set(exclude_files)
    found: list[str] = []

    def visit(directory: Path) -> None:
        for entry in sorted(directory.iterdir(), key=lambda p: p.name):
            rel = entry.relative_to(root)
            if rel.parts[0] in exclude_dirs:
                continue
            if entry.is_dir():
                visit(entry)
                continue
            if not entry.is_file() or entry.suffix.lower() != ".html":
                continue
            if entry.name in exclude_files:
                continue
            if len(rel.parts) == 1 and GOOGLE_VERIFY_RE.match(entry.name):
                continue
            if is_noindex(entry):
                logger.debug("Skipping noindex page %s", rel.as_posix())
                continue
            found.append(rel.as_posix())

    visit(root)
    return sorted(found)
