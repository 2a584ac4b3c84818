from __future__ import annotations

import logging
from pathlib import Path
from typing import Mapping, Optional

from .config import Collection, SiteConfig
from .content import title_from_slug
from .document import HtmlDocument
from .feeds import FeedItem, article_files, load_feed_items, scan_feed_items, slug_from_path
from .pages import article_ld, breadcrumb_ld
from .sitemap import canonical_loc
from .utils import iso_date, mtime_of

logger = logging.getLogger(__name__)

INDEX_TYPES = ("BreadcrumbList", "CollectionPage", "ItemList")
ARTICLE_TYPES = ("Article", "BreadcrumbList")
ITEM_LIST_LIMIT = 50


def section_graph(config: SiteConfig, collection: Collection, items: list[dict]) -> dict:
    url = collection.index_url(config.base_url)
    collection_page = {
        "@type": "CollectionPage",
        "name": collection.index_name or f"{collection.label} {config.site_name}",
        "description": collection.index_description,
        "url": url,
        "inLanguage": "id-ID",
    }
    item_list = {
        "@type": "ItemList",
        "itemListElement": [
            {"@type": "ListItem", "position": i + 1, "url": item.get("url"), "name": item.get("title")}
            for i, item in enumerate(items[:ITEM_LIST_LIMIT])
        ],
    }
    return {
        "@context": "https://schema.org",
        "@graph": [breadcrumb_ld(config, collection), collection_page, item_list],
    }


def article_graph(
    config: SiteConfig,
    collection: Collection,
    title: str,
    url: str,
    description: str,
    published: str,
    modified: str,
    image: str,
) -> dict:
    return {
        "@context": "https://schema.org",
        "@graph": [
            breadcrumb_ld(config, collection, title, url),
            article_ld(config, title, url, description, published, modified, image),
        ],
    }


def resolve_items(
    config: SiteConfig, collection: Collection, feed_items: Optional[list[FeedItem]] = None
) -> list[dict]:
    if feed_items is not None:
        return [item.to_json() for item in feed_items]
    items = load_feed_items(config.root / collection.feed_path("json"))
    if items:
        return items
    scanned = sorted(scan_feed_items(collection, config), key=lambda item: item.date_published, reverse=True)
    return [item.to_json() for item in scanned]


def write_if_changed(path: Path, original: str, updated: str) -> bool:
    if updated == original:
        return False
    path.write_text(updated, encoding="utf-8")
    return True


def inject_section_index(config: SiteConfig, collection: Collection, items: list[dict]) -> bool:
    path = config.root / collection.index / "index.html"
    if not path.exists():
        logger.info("Section index %s not found; skipping", path.relative_to(config.root).as_posix())
        return False
    original = path.read_text(encoding="utf-8")
    doc = HtmlDocument(original)
    doc.replace_structured_data(INDEX_TYPES, [section_graph(config, collection, items)])
    return write_if_changed(path, original, str(doc))


def inject_articles(config: SiteConfig, collection: Collection, items: list[dict]) -> int:
    base = collection.output_dir(config.root)
    by_url = {str(item.get("url", "")).rstrip("/") + "/": item for item in items if item.get("url")}
    updated = 0
    for path in article_files(collection, config.root):
        original = path.read_text(encoding="utf-8")
        doc = HtmlDocument(original)
        slug = slug_from_path(path, base)
        url = canonical_loc(doc.canonical, config.base_url) or collection.page_url(config.base_url, slug)
        item: Mapping = by_url.get(url.rstrip("/") + "/", {})
        existing = doc.find_ld_node(["Article"])
        stamp = iso_date(mtime_of(path))
        image = item.get("image") or [config.absolute(config.default_og_image)]
        published = item.get("date_published") or existing.get("datePublished") or stamp
        modified = item.get("date_modified") or existing.get("dateModified") or stamp
        graph = article_graph(
            config,
            collection,
            title=doc.title or title_from_slug(slug),
            url=url,
            description=doc.meta(name="description"),
            published=published,
            modified=modified,
            image=image[0] if isinstance(image, list) else str(image),
        )
        doc.replace_structured_data(ARTICLE_TYPES, [graph])
        doc.set_meta(modified, prop="article:modified_time")
        if write_if_changed(path, original, str(doc)):
            updated += 1
    return updated


def inject_structured_data(
    config: SiteConfig, feeds: Optional[Mapping[str, list[FeedItem]]] = None
) -> dict[str, int]:
    feeds = feeds or {}
    report = {}
    for collection in config.collections:
        items = resolve_items(config, collection, feeds.get(collection.name))
        index_done = inject_section_index(config, collection, items)
        updated = inject_articles(config, collection, items)
        report[collection.name] = updated
        logger.info(
            "LD injected for /%s/: index %s (items:%d), articles updated: %d",
            collection.index.strip("/"),
            "updated" if index_done else "unchanged",
            len(items),
            updated,
        )
    return report
