from __future__ import annotations

import logging
from pathlib import Path

from .config import SiteConfig
from .document import HtmlDocument

logger = logging.getLogger(__name__)


def read_partial(partials_dir: Path, name: str) -> str:
    path = partials_dir / f"{name}.html"
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return ""
    except OSError as exc:
        logger.warning("Could not read partial %s: %s", path, exc)
        return ""


def _has_head_meta(doc: HtmlDocument) -> bool:
    return bool(doc.meta(name="robots") or doc.meta(prop="og:title"))


def inject_partials(html_text: str, header: str = "", footer: str = "", head: str = "") -> str:
    doc = HtmlDocument(html_text)
    if head and doc.head is not None:
        if doc.has_region("HEAD_ARTICLE") or doc.has_marker("HEAD_ARTICLE"):
            doc.set_region("HEAD_ARTICLE", head, at_end=True)
        elif doc.has_region("HEAD") or doc.has_marker("HEAD"):
            doc.set_region("HEAD", head, at_end=True)
        elif not _has_head_meta(doc):
            doc.set_region("HEAD_ARTICLE", head, at_end=True)
    if header:
        doc.set_region("HEADER", header, fallback_tag="header")
    if footer:
        doc.set_region("FOOTER", footer, fallback_tag="footer", at_end=True)
    return str(doc)


def iter_html_files(directory: Path):
    for path in sorted(directory.rglob("*.html"), key=lambda p: p.as_posix()):
        if path.is_file():
            yield path


def inject_partials_tree(config: SiteConfig) -> int:
    partials_dir = config.root / config.partials_dir
    head = read_partial(partials_dir, "head-article")
    header = read_partial(partials_dir, "header")
    footer = read_partial(partials_dir, "footer")
    if not (head or header or footer):
        logger.info("No partials found in %s", partials_dir)
        return 0

    changed = 0
    for target in config.partial_targets:
        base = config.root / target
        if not base.is_dir():
            continue
        for path in iter_html_files(base):
            original = path.read_text(encoding="utf-8")
            updated = inject_partials(original, header=header, footer=footer, head=head)
            if updated != original:
                path.write_text(updated, encoding="utf-8")
                changed += 1
    logger.info("Injected partials into %d page(s)", changed)
    return changed
