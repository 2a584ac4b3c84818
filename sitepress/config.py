from __future__ import annotations

import json
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

try:
    import tomllib as toml
except ImportError:
    import tomli as toml

import yaml

from .utils import parse_bool, parse_int

DEFAULT_SITE_URL = "https://original4d.store"
DEFAULT_EXCLUDE_DIRS = ("node_modules", ".git", ".netlify", "assets", "admin", "partials", "templates")
DEFAULT_EXCLUDE_FILES = ("404.html", "amp.index.html")
MANIFEST_NAME = ".sitemap-manifest.json"


def load_config(path: Path) -> dict:
    if not path.exists():
        return {}
    suffix = path.suffix.lower()
    text = path.read_text(encoding="utf-8")
    if suffix == ".toml":
        try:
            data = toml.loads(text)
        except toml.TOMLDecodeError as exc:
            print(f"Invalid TOML in config file {path}: {exc}", file=sys.stderr)
            sys.exit(1)
        return data
    if suffix in {".yml", ".yaml"}:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            print(f"Invalid YAML in config file {path}: {exc}", file=sys.stderr)
            sys.exit(1)
        if data is None:
            return {}
        if not isinstance(data, dict):
            print(f"YAML config must be a mapping: {path}", file=sys.stderr)
            sys.exit(1)
        return data
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        print(f"Invalid JSON in config file {path}: {exc}", file=sys.stderr)
        sys.exit(1)
    if not isinstance(data, dict):
        print(f"JSON config must be an object: {path}", file=sys.stderr)
        sys.exit(1)
    return data


@dataclass(frozen=True)
class Collection:
    """A content folder rendered into one section of the site."""

    name: str
    source: str
    output: str
    index: str
    label: str
    index_name: str = ""
    index_description: str = ""

    def source_dir(self, root: Path) -> Path:
        return root / self.source

    def output_dir(self, root: Path) -> Path:
        return root / self.output

    def page_path(self, slug: str) -> str:
        return f"{self.output.strip('/')}/{slug}/index.html"

    def page_url(self, base_url: str, slug: str) -> str:
        return f"{base_url}/{self.output.strip('/')}/{slug}/"

    def index_url(self, base_url: str) -> str:
        return f"{base_url}/{self.index.strip('/')}/"

    def feed_path(self, suffix: str) -> str:
        return f"{self.index.strip('/')}/feed.{suffix}"


DEFAULT_COLLECTIONS = (
    Collection(
        name="news",
        source="content/news",
        output="blog/news",
        index="blog",
        label="Blog",
        index_name="Blog Original4D",
        index_description="Kumpulan artikel terbaru dan info resmi Original4D.",
    ),
    Collection(
        name="wins",
        source="content/wins",
        output="bukti/wins",
        index="bukti",
        label="bukti",
        index_name="Bukti Kemenangan Original4D",
        index_description="Kumpulan bukti kemenangan member Original4D.",
    ),
)


def collections_from_config(value: object) -> tuple[Collection, ...]:
    if not value:
        return DEFAULT_COLLECTIONS
    items = value.values() if isinstance(value, dict) else value
    collections = []
    for item in items:
        if not isinstance(item, dict):
            continue
        name = str(item.get("name") or "").strip()
        if not name:
            continue
        index = str(item.get("index") or name).strip("/")
        collections.append(
            Collection(
                name=name,
                source=str(item.get("source") or f"content/{name}").strip("/"),
                output=str(item.get("output") or f"{index}/{name}").strip("/"),
                index=index,
                label=str(item.get("label") or index),
                index_name=str(item.get("index_name") or ""),
                index_description=str(item.get("index_description") or ""),
            )
        )
    return tuple(collections) or DEFAULT_COLLECTIONS


def resolve_base_url(env: Mapping[str, str], configured: str = "") -> str:
    site_url = (env.get("SITE_URL") or "").strip()
    if site_url:
        return site_url.rstrip("/")
    if env.get("CONTEXT", "") == "production" and env.get("URL"):
        return env["URL"].rstrip("/")
    if env.get("DEPLOY_PRIME_URL"):
        return env["DEPLOY_PRIME_URL"].rstrip("/")
    if configured.strip():
        return configured.strip().rstrip("/")
    return DEFAULT_SITE_URL


@dataclass
class SiteConfig:
    root: Path
    base_url: str = DEFAULT_SITE_URL
    site_name: str = "Original4D"
    language: str = "id"
    locale: str = "id_ID"
    default_og_image: str = "/assets/img/hero.webp"
    logo: str = "/assets/img/logo.png"
    favicon: str = "/assets/img/favicon.png"
    stylesheet: str = "/assets/css/blog.css"
    collections: tuple[Collection, ...] = DEFAULT_COLLECTIONS
    exclude_dirs: tuple[str, ...] = DEFAULT_EXCLUDE_DIRS
    exclude_files: tuple[str, ...] = DEFAULT_EXCLUDE_FILES
    partials_dir: str = "partials"
    manifest: str = MANIFEST_NAME
    feed_limit: int = 50
    freeze_lastmod: bool = False
    ping: bool = False
    combined_feed: bool = False
    inject_partials: bool = True
    structured_data: bool = True
    sitemap: bool = True
    feeds: bool = True
    indexnow_key: str = ""
    context: str = ""

    @property
    def partial_targets(self) -> tuple[str, ...]:
        return tuple(dict.fromkeys(c.index.strip("/") for c in self.collections))

    @property
    def production(self) -> bool:
        return self.context == "production"

    def absolute(self, value: str) -> str:
        if value.startswith(("http://", "https://")):
            return value
        return f"{self.base_url}/{value.lstrip('/')}"

    def manifest_path(self) -> Path:
        path = Path(self.manifest)
        return path if path.is_absolute() else self.root / path


def config_from_args(args: object, env: Optional[Mapping[str, str]] = None) -> SiteConfig:
    """Build the explicit configuration object from parsed CLI args and the environment."""
    env = os.environ if env is None else env
    root = Path(getattr(args, "root", ".") or ".").resolve()
    freeze = parse_bool(getattr(args, "freeze_lastmod", False))
    if env.get("SITEMAP_FREEZE_EXISTING"):
        freeze = parse_bool(env["SITEMAP_FREEZE_EXISTING"])
    ping = parse_bool(getattr(args, "ping", False))
    if env.get("SITEMAP_PING"):
        ping = parse_bool(env["SITEMAP_PING"])
    return SiteConfig(
        root=root,
        base_url=resolve_base_url(env, getattr(args, "site_url", "") or ""),
        site_name=getattr(args, "site_name", "Original4D"),
        language=getattr(args, "language", "id"),
        collections=collections_from_config(getattr(args, "collections", None)),
        exclude_dirs=tuple(getattr(args, "exclude_dirs", None) or DEFAULT_EXCLUDE_DIRS),
        exclude_files=tuple(getattr(args, "exclude_files", None) or DEFAULT_EXCLUDE_FILES),
        partials_dir=getattr(args, "partials", "partials"),
        manifest=getattr(args, "manifest", MANIFEST_NAME),
        feed_limit=max(1, parse_int(getattr(args, "feed_limit", 50), 50)),
        freeze_lastmod=freeze,
        ping=ping,
        combined_feed=parse_bool(getattr(args, "combined_feed", False)),
        inject_partials=parse_bool(getattr(args, "inject_partials", True)),
        structured_data=parse_bool(getattr(args, "structured_data", True)),
        sitemap=parse_bool(getattr(args, "enable_sitemap", True)),
        feeds=parse_bool(getattr(args, "enable_feeds", True)),
        indexnow_key=(env.get("INDEXNOW_KEY") or "").strip(),
        context=env.get("CONTEXT", ""),
    )
