from __future__ import annotations

import datetime as dt
import html
import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Mapping, Optional

from .config import Collection, SiteConfig
from .content import ContentRecord, parse_date, title_from_slug
from .document import HtmlDocument
from .pages import og_image_for
from .render import render_markdown, summarize, write_text
from .sitemap import canonical_loc
from .utils import iso_date, mtime_of, rfc822_date

logger = logging.getLogger(__name__)

JSON_FEED_VERSION = "https://jsonfeed.org/version/1.1"
SUMMARY_LIMIT = 220
FEED_EXTRA_FIELDS = ("amount", "game", "member_mask")


@dataclass
class FeedItem:
    url: str
    title: str
    summary: str
    date_published: dt.datetime
    date_modified: dt.datetime
    image: str = ""
    tags: tuple[str, ...] = ()
    extra: dict = field(default_factory=dict)

    def to_json(self) -> dict:
        data = {
            "id": self.url,
            "url": self.url,
            "title": self.title,
            "summary": self.summary,
            "description": self.summary,
            "date_published": iso_date(self.date_published),
            "date_modified": iso_date(self.date_modified),
        }
        if self.image:
            data["image"] = [self.image]
        if self.tags:
            data["tags"] = list(self.tags)
        data.update(self.extra)
        return data


def feed_item_for(
    record: ContentRecord,
    collection: Collection,
    config: SiteConfig,
    manifest_entry: Optional[Mapping] = None,
) -> FeedItem:
    url = collection.page_url(config.base_url, record.slug)
    published = record.date or mtime_of(record.source)
    modified = record.modified
    if modified is None and manifest_entry and manifest_entry.get("lastmod"):
        modified = parse_date(manifest_entry["lastmod"])
    summary = record.description or summarize(render_markdown(record.body), SUMMARY_LIMIT)
    extra = {}
    for key in FEED_EXTRA_FIELDS:
        if record.extra.get(key) not in (None, ""):
            extra[key] = record.extra[key]
    return FeedItem(
        url=url,
        title=record.title,
        summary=summary[:SUMMARY_LIMIT],
        date_published=published,
        date_modified=modified or published,
        image=og_image_for(record, config),
        tags=record.tags,
        extra=extra,
    )


def article_files(collection: Collection, root: Path) -> list[Path]:
    base = collection.output_dir(root)
    if not base.is_dir():
        return []
    return sorted((p for p in base.rglob("*.html") if p.is_file()), key=lambda p: p.as_posix())


def slug_from_path(path: Path, base: Path) -> str:
    rel = path.relative_to(base).as_posix()
    rel = re.sub(r"/index\.html$", "", rel, flags=re.IGNORECASE)
    return re.sub(r"\.html$", "", rel, flags=re.IGNORECASE)


def page_feed_item(
    path: Path, collection: Collection, config: SiteConfig, manifest: Optional[Mapping[str, Mapping]] = None
) -> FeedItem:
    """Build a feed item from a published page that has no markdown source."""
    doc = HtmlDocument.from_file(path)
    slug = slug_from_path(path, collection.output_dir(config.root))
    url = canonical_loc(doc.canonical, config.base_url) or collection.page_url(config.base_url, slug)
    entry = (manifest or {}).get(url)
    article = doc.find_ld_node(["Article"])
    stamp = mtime_of(path)
    published = (
        parse_date(doc.meta(prop="article:published_time")) or parse_date(article.get("datePublished")) or stamp
    )
    modified = parse_date(doc.meta(prop="article:modified_time")) or parse_date(article.get("dateModified"))
    if modified is None and entry and entry.get("lastmod"):
        modified = parse_date(entry["lastmod"])
    return FeedItem(
        url=url,
        title=doc.title or title_from_slug(slug),
        summary=doc.meta(name="description")[:SUMMARY_LIMIT],
        date_published=published,
        date_modified=modified or stamp,
        image=doc.meta(prop="og:image") or config.absolute(config.default_og_image),
    )


def scan_feed_items(
    collection: Collection,
    config: SiteConfig,
    manifest: Optional[Mapping[str, Mapping]] = None,
    skip_urls: Iterable[str] = (),
) -> list[FeedItem]:
    skip = set(skip_urls)
    base = collection.output_dir(config.root)
    items = []
    for path in article_files(collection, config.root):
        if "/" in slug_from_path(path, base):
            continue
        item = page_feed_item(path, collection, config, manifest)
        if item.url not in skip:
            items.append(item)
    return items


def build_feed_items(
    records: Iterable[ContentRecord],
    collection: Collection,
    config: SiteConfig,
    manifest: Optional[Mapping[str, Mapping]] = None,
) -> list[FeedItem]:
    """Feed items for one collection: markdown records plus pages without a source file."""
    manifest = manifest or {}
    by_url: dict[str, FeedItem] = {}
    known: set[str] = set()
    for record in records:
        if record.collection != collection.name:
            continue
        url = collection.page_url(config.base_url, record.slug)
        known.add(url)
        if record.draft:
            continue
        by_url[url] = feed_item_for(record, collection, config, manifest.get(url))
    for item in scan_feed_items(collection, config, manifest, skip_urls=known):
        by_url.setdefault(item.url, item)
    items = list(by_url.values())
    items.sort(key=lambda item: item.date_published, reverse=True)
    return items


def render_json_feed(items: list[FeedItem], title: str, home_url: str, feed_url: str, config: SiteConfig) -> str:
    feed = {
        "version": JSON_FEED_VERSION,
        "title": title,
        "home_page_url": home_url,
        "feed_url": feed_url,
        "language": config.language,
        "items": [item.to_json() for item in items],
    }
    return json.dumps(feed, indent=2, ensure_ascii=False, default=str) + "\n"


def render_rss(
    items: list[FeedItem], title: str, description: str, home_url: str, feed_url: str, config: SiteConfig
) -> str:
    entries = []
    for item in items:
        entries.append(
            "\n".join(
                [
                    "<item>",
                    f"<title>{html.escape(item.title)}</title>",
                    f"<link>{html.escape(item.url)}</link>",
                    f'<guid isPermaLink="true">{html.escape(item.url)}</guid>',
                    f"<pubDate>{rfc822_date(item.date_published)}</pubDate>",
                    f"<description>{html.escape(item.summary)}</description>",
                    *[f"<category>{html.escape(tag)}</category>" for tag in item.tags],
                    "</item>",
                ]
            )
        )
    last_build = max((item.date_modified for item in items), default=dt.datetime.now(dt.timezone.utc))
    return "\n".join(
        [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<rss version="2.0" xmlns:atom="http://www.w3.org/2005/Atom">',
            "<channel>",
            f"<title>{html.escape(title)}</title>",
            f"<link>{html.escape(home_url)}</link>",
            f"<description>{html.escape(description)}</description>",
            f"<language>{html.escape(config.language)}</language>",
            f'<atom:link href="{html.escape(feed_url)}" rel="self" type="application/rss+xml" />',
            f"<lastBuildDate>{rfc822_date(last_build)}</lastBuildDate>",
            *entries,
            "</channel>",
            "</rss>",
            "",
        ]
    )


def write_feed_pair(
    config: SiteConfig, directory: str, items: list[FeedItem], title: str, description: str, home_url: str
) -> None:
    prefix = f"{directory.strip('/')}/" if directory.strip("/") else ""
    json_url = f"{config.base_url}/{prefix}feed.json"
    xml_url = f"{config.base_url}/{prefix}feed.xml"
    write_text(config.root / f"{prefix}feed.json", render_json_feed(items, title, home_url, json_url, config))
    write_text(
        config.root / f"{prefix}feed.xml", render_rss(items, title, description, home_url, xml_url, config)
    )


def generate_feeds(
    config: SiteConfig,
    records: Iterable[ContentRecord],
    manifest: Optional[Mapping[str, Mapping]] = None,
) -> dict[str, list[FeedItem]]:
    records = list(records)
    feeds: dict[str, list[FeedItem]] = {}
    for collection in config.collections:
        items = build_feed_items(records, collection, config, manifest)[: config.feed_limit]
        feeds[collection.name] = items
        write_feed_pair(
            config,
            collection.index,
            items,
            collection.index_name or f"{collection.label} {config.site_name}",
            collection.index_description or config.site_name,
            collection.index_url(config.base_url),
        )
        logger.info("Generated %s feed with %d item(s)", collection.name, len(items))
    if config.combined_feed:
        combined = sorted(
            (item for items in feeds.values() for item in items),
            key=lambda item: item.date_published,
            reverse=True,
        )[: config.feed_limit]
        write_feed_pair(config, "", combined, config.site_name, config.site_name, f"{config.base_url}/")
        logger.info("Generated combined feed with %d item(s)", len(combined))
    return feeds


def load_feed_items(path: Path) -> list[dict]:
    if not path.exists():
        return []
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError:
        return []
    items = data.get("items") if isinstance(data, dict) else None
    return [item for item in items if isinstance(item, dict)] if isinstance(items, list) else []
