from __future__ import annotations

import argparse
import datetime as dt
import logging
import sys
import time
from pathlib import Path
from typing import Optional

from .config import (
    DEFAULT_EXCLUDE_DIRS,
    DEFAULT_EXCLUDE_FILES,
    MANIFEST_NAME,
    SiteConfig,
    config_from_args,
    load_config,
)
from .content import ContentRecord, load_records
from .feeds import generate_feeds
from .pages import build_articles
from .partials import inject_partials_tree
from .ping import ping_search_engines, write_indexnow_key
from .render import load_template
from .sitemap import generate_sitemap
from .structured import inject_structured_data
from .utils import parse_bool, parse_int

logger = logging.getLogger("sitepress")

FEED_LIMIT = 50


def build_site(config: SiteConfig, now: Optional[dt.datetime] = None) -> dict:
    """Run read -> render -> template -> write -> partials -> index -> feed."""
    now = now or dt.datetime.now(dt.timezone.utc)
    if not config.root.is_dir():
        print(f"Site root not found: {config.root}", file=sys.stderr)
        sys.exit(1)

    template = load_template(config.root, "article.html")
    all_records: list[ContentRecord] = []
    pages: dict[str, ContentRecord] = {}
    for collection in config.collections:
        records = load_records(collection.source_dir(config.root), collection.name)
        all_records.extend(records)
        pages.update(build_articles(template, records, collection, config))

    report = {"articles": len(pages), "partials": 0, "sitemap": 0, "feeds": {}, "structured": {}, "ping": {}}
    if config.inject_partials:
        report["partials"] = inject_partials_tree(config)

    manifest: dict[str, dict] = {}
    if config.sitemap:
        manifest = generate_sitemap(config, pages, now)
        report["sitemap"] = len(manifest)

    feeds = None
    if config.feeds:
        feeds = generate_feeds(config, all_records, manifest)
        report["feeds"] = {name: len(items) for name, items in feeds.items()}

    if config.structured_data:
        report["structured"] = inject_structured_data(config, feeds)

    write_indexnow_key(config)
    if config.ping:
        if manifest:
            report["ping"] = ping_search_engines(config, manifest.keys())
        else:
            logger.warning("Ping requested but no sitemap was generated")
    return report


def main(argv: Optional[list[str]] = None) -> None:
    pre_parser = argparse.ArgumentParser(add_help=False)
    pre_parser.add_argument(
        "--config",
        default="site.toml",
        help="Path to site config file (TOML/YAML/JSON).",
    )
    pre_args, _ = pre_parser.parse_known_args(argv)
    config = load_config(Path(pre_args.config))

    def cfg_value(key: str, default: object) -> object:
        value = config.get(key)
        return default if value is None else value

    def cfg_str(key: str, default: str) -> str:
        value = cfg_value(key, default)
        return default if value is None else str(value)

    def cfg_bool(key: str, default: bool) -> bool:
        value = cfg_value(key, default)
        return parse_bool(value) if value is not None else default

    def cfg_int(key: str, default: int) -> int:
        value = cfg_value(key, default)
        return parse_int(value, default)

    def cfg_list(key: str, default: tuple[str, ...]) -> list[str]:
        value = cfg_value(key, default)
        if isinstance(value, str):
            value = [item.strip() for item in value.split(",")]
        return [str(item) for item in value if str(item).strip()]

    parser = argparse.ArgumentParser(description="Build the promo site: articles, partials, sitemap and feeds.")
    parser.add_argument("--config", default=pre_args.config, help="Path to site config file (TOML/YAML/JSON).")
    parser.add_argument("--root", default=cfg_str("root", "."), help="Project root holding content and pages.")
    parser.add_argument(
        "--site-url",
        default=cfg_str("site_url", ""),
        help="Public site URL (SITE_URL, URL and DEPLOY_PRIME_URL take precedence).",
    )
    parser.add_argument("--site-name", default=cfg_str("site_name", "Original4D"), help="Site and publisher name.")
    parser.add_argument("--language", default=cfg_str("language", "id"), help="Content language code.")
    parser.add_argument("--partials", default=cfg_str("partials", "partials"), help="Directory with shared partials.")
    parser.add_argument(
        "--manifest",
        default=cfg_str("manifest", MANIFEST_NAME),
        help="Path to the sitemap manifest JSON.",
    )
    parser.add_argument(
        "--exclude-dir",
        dest="exclude_dirs",
        action="append",
        default=None,
        help="Extra top-level directory to leave out of the sitemap, added to the configured list (repeatable).",
    )
    parser.add_argument(
        "--exclude-file",
        dest="exclude_files",
        action="append",
        default=None,
        help="Extra file name to leave out of the sitemap, added to the configured list (repeatable).",
    )
    parser.add_argument(
        "--feed-limit",
        default=cfg_int("feed_limit", FEED_LIMIT),
        type=int,
        help="Maximum number of items per feed.",
    )
    parser.add_argument(
        "--freeze-lastmod",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("freeze_lastmod", False),
        help="Keep lastmod values from the previous manifest when front matter has none.",
    )
    parser.add_argument(
        "--ping",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("ping", False),
        help="Ping search engines after the build.",
    )
    parser.add_argument(
        "--combined-feed",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("combined_feed", False),
        help="Also write feed.json/feed.xml with every collection at the site root.",
    )
    parser.add_argument(
        "--inject-partials",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("inject_partials", True),
        help="Inject header/footer partials into generated pages.",
    )
    parser.add_argument(
        "--structured-data",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("structured_data", True),
        help="Refresh JSON-LD blocks on section indexes and articles.",
    )
    parser.add_argument(
        "--enable-sitemap",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("enable_sitemap", True),
        help="Generate sitemap.xml, the manifest and robots.txt.",
    )
    parser.add_argument(
        "--enable-feeds",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("enable_feeds", True),
        help="Generate feed.json and feed.xml per collection.",
    )
    parser.add_argument(
        "--log-level",
        default=cfg_str("log_level", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity.",
    )
    args = parser.parse_args(argv)
    args.exclude_dirs = list(
        dict.fromkeys([*cfg_list("exclude_dirs", DEFAULT_EXCLUDE_DIRS), *(args.exclude_dirs or [])])
    )
    args.exclude_files = list(
        dict.fromkeys([*cfg_list("exclude_files", DEFAULT_EXCLUDE_FILES), *(args.exclude_files or [])])
    )
    args.collections = config.get("collections")

    logging.basicConfig(level=args.log_level, format="[%(name)s] %(levelname)s %(message)s")
    start = time.perf_counter()
    try:
        report = build_site(config_from_args(args))
    except Exception:
        logger.exception("Build failed")
        sys.exit(1)
    elapsed = time.perf_counter() - start
    print(f"Build completed in {elapsed:.2f}s.")
    print(f"Rendered {report['articles']} article(s); sitemap has {report['sitemap']} URL(s).")
