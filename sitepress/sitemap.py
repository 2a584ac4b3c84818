from __future__ import annotations

import datetime as dt
import html
import logging
import posixpath
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Mapping, Optional
from urllib.parse import urljoin, urlsplit, urlunsplit

from .config import Collection, SiteConfig
from .content import ContentRecord
from .document import HtmlDocument
from .manifest import load_manifest, write_manifest
from .render import write_text
from .utils import iso_day, mtime_of
from .walker import path_to_url_path, walk_site

logger = logging.getLogger(__name__)

CHANGEFREQS = ("always", "hourly", "daily", "weekly", "monthly", "yearly", "never")
AGE_TABLE = (
    (7, "daily", 0.7),
    (30, "weekly", 0.6),
    (180, "monthly", 0.5),
)
STALE_FREQUENCY = ("yearly", 0.3)
FIXED_FREQUENCY = {
    "home": ("daily", 1.0),
    "section": ("daily", 0.8),
}
ROBOTS_RULES = (
    "User-agent: *",
    "Allow: /",
    "Disallow: /admin/",
    "Disallow: /partials/",
)
SITEMAP_LINE_RE = re.compile(r"^sitemap:", re.IGNORECASE)


@dataclass
class PageEntry:
    """One walked page before its lastmod has been reconciled with the manifest."""

    path: str
    loc: str
    kind: str
    mtime: str
    frontmatter: Optional[str] = None


def classify(loc: str, collections: Iterable[Collection]) -> str:
    path = urlsplit(loc).path or "/"
    if path == "/":
        return "home"
    for collection in collections:
        index = f"/{collection.index.strip('/')}/"
        output = f"/{collection.output.strip('/')}/"
        if path in (index, output):
            return "section"
        if path.startswith(output):
            rest = path[len(output) :]
            if re.fullmatch(r"[^/]+/|[^/]+\.html", rest):
                return "article"
    return "page"


def age_in_days(lastmod: str, now: dt.datetime) -> int:
    try:
        day = dt.date.fromisoformat(lastmod[:10])
    except ValueError:
        return 0
    return max(0, (now.date() - day).days)


def change_frequency(kind: str, age_days: int) -> tuple[str, float]:
    if kind in FIXED_FREQUENCY:
        return FIXED_FREQUENCY[kind]
    for limit, changefreq, priority in AGE_TABLE:
        if age_days <= limit:
            return changefreq, priority
    return STALE_FREQUENCY


def canonical_loc(href: str, base_url: str) -> Optional[str]:
    if not href:
        return None
    try:
        parts = urlsplit(urljoin(base_url + "/", href.strip()))
    except ValueError:
        return None
    if parts.scheme not in ("http", "https") or not parts.netloc:
        return None
    path = parts.path or "/"
    if not posixpath.splitext(path)[1] and not path.endswith("/"):
        path += "/"
    path = re.sub(r"/+$", "/", path)
    return urlunsplit((parts.scheme, parts.netloc, path, parts.query, ""))


def resolve_lastmod(
    frontmatter: Optional[str], previous: Optional[Mapping], freeze: bool, mtime: str
) -> tuple[str, str]:
    """Front matter wins, then a frozen manifest value, then the file mtime."""
    if frontmatter:
        return frontmatter, "frontmatter"
    if freeze and previous and previous.get("lastmod"):
        return str(previous["lastmod"]), "manifest"
    return mtime, "mtime"


def next_manifest(
    current_run: Iterable[PageEntry], previous: Mapping[str, Mapping], freeze: bool, now: dt.datetime
) -> dict[str, dict]:
    manifest: dict[str, dict] = {}
    for entry in current_run:
        lastmod, source = resolve_lastmod(entry.frontmatter, previous.get(entry.loc), freeze, entry.mtime)
        existing = manifest.get(entry.loc)
        if existing and existing["lastmod"] >= lastmod:
            continue
        changefreq, priority = change_frequency(entry.kind, age_in_days(lastmod, now))
        manifest[entry.loc] = {
            "path": entry.path,
            "lastmod": lastmod,
            "changefreq": changefreq,
            "priority": min(1.0, max(0.0, priority)),
            "source": source,
        }
    return manifest


def collect_pages(config: SiteConfig, records: Mapping[str, ContentRecord]) -> list[PageEntry]:
    entries = []
    for rel in walk_site(config.root, config.exclude_dirs, config.exclude_files):
        path = config.root / rel
        doc = HtmlDocument.from_file(path)
        loc = canonical_loc(doc.canonical, config.base_url) or config.base_url + path_to_url_path(rel)
        record = records.get(rel)
        frontmatter = None
        mtime_source: Path = path
        if record is not None:
            if record.modified:
                frontmatter = iso_day(record.modified)
            mtime_source = record.source
        entries.append(
            PageEntry(
                path=rel,
                loc=loc,
                kind=classify(loc, config.collections),
                mtime=iso_day(mtime_of(mtime_source)),
                frontmatter=frontmatter,
            )
        )
    return entries


def render_sitemap(manifest: Mapping[str, Mapping], base_url: str) -> str:
    home = base_url.rstrip("/") + "/"
    locs = sorted(manifest, key=lambda loc: (loc != home, loc))
    items = []
    for loc in locs:
        entry = manifest[loc]
        items.append(
            "\n".join(
                [
                    "  <url>",
                    f"    <loc>{html.escape(loc)}</loc>",
                    f"    <lastmod>{entry['lastmod']}</lastmod>",
                    f"    <changefreq>{entry['changefreq']}</changefreq>",
                    f"    <priority>{float(entry['priority']):.1f}</priority>",
                    "  </url>",
                ]
            )
        )
    return "\n".join(
        [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
            *items,
            "</urlset>",
            "",
        ]
    )


def merge_robots(existing: str, base_url: str) -> str:
    merged: dict[str, str] = {}
    for line in [*ROBOTS_RULES, *existing.strip().splitlines()]:
        line = line.strip()
        if line:
            merged.setdefault(line.lower(), line)
    lines = list(merged.values())
    sitemap_line = f"Sitemap: {base_url.rstrip('/')}/sitemap.xml"
    sitemap_index = [i for i, line in enumerate(lines) if SITEMAP_LINE_RE.match(line)]
    if sitemap_index:
        lines[sitemap_index[0]] = sitemap_line
        lines = [line for i, line in enumerate(lines) if i not in sitemap_index[1:]]
    else:
        lines.append(sitemap_line)
    return "\n".join(lines) + "\n"


def write_robots(config: SiteConfig) -> None:
    path = config.root / "robots.txt"
    existing = path.read_text(encoding="utf-8") if path.exists() else "User-agent: *\nAllow: /\n"
    write_text(path, merge_robots(existing, config.base_url))


def generate_sitemap(
    config: SiteConfig, records: Mapping[str, ContentRecord], now: Optional[dt.datetime] = None
) -> dict[str, dict]:
    now = now or dt.datetime.now(dt.timezone.utc)
    manifest_path = config.manifest_path()
    previous = load_manifest(manifest_path)
    manifest = next_manifest(collect_pages(config, records), previous, config.freeze_lastmod, now)
    write_text(config.root / "sitemap.xml", render_sitemap(manifest, config.base_url))
    write_manifest(manifest_path, manifest, now)
    write_robots(config)
    logger.info("Generated sitemap with %d canonical URLs", len(manifest))
    return manifest
