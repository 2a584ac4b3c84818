from __future__ import annotations

import datetime as dt
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from .utils import parse_bool

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Tanpa Judul"
SLUG_DROP_RE = re.compile(r"[^a-z0-9\- _]")
SLUG_SPACE_RE = re.compile(r"\s+")
SLUG_DASH_RE = re.compile(r"-+")
KNOWN_FIELDS = {
    "title",
    "description",
    "slug",
    "date",
    "updated",
    "lastmod",
    "draft",
    "ogimage",
    "ogimagealt",
    "ogimagewidth",
    "ogimageheight",
    "section",
    "tags",
}


def slugify(text: object) -> str:
    text = str(text or "").strip().lower()
    text = SLUG_DROP_RE.sub("", text)
    text = SLUG_SPACE_RE.sub("-", text)
    return SLUG_DASH_RE.sub("-", text)


def title_from_slug(slug: str) -> str:
    words = [word for word in re.split(r"[-_]+", slug) if word]
    if not words:
        return DEFAULT_TITLE
    return " ".join(word.capitalize() for word in words)


def parse_list(value: object) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if str(item).strip()]
    value = str(value).strip()
    if value.startswith("[") and value.endswith("]"):
        inner = value[1:-1]
        items = [item.strip().strip("'\"") for item in inner.split(",")]
    else:
        items = [item.strip() for item in value.split(",")]
    return [item for item in items if item]


def parse_front_matter(text: str) -> tuple[dict, str]:
    clean_text = text.lstrip("\ufeff")
    lines = clean_text.splitlines()
    if not lines or lines[0].strip() != "---":
        return {}, clean_text

    end = None
    for i in range(1, len(lines)):
        if lines[i].strip() in {"---", "..."}:
            end = i
            break
    if end is None:
        return {}, clean_text

    body = "\n".join(lines[end + 1 :])
    try:
        meta = yaml.safe_load("\n".join(lines[1:end]))
    except yaml.YAMLError as exc:
        logger.debug("Ignoring malformed front matter: %s", exc)
        return {}, body
    if not isinstance(meta, dict):
        return {}, body
    return {str(key): value for key, value in meta.items()}, body


def parse_date(value: object) -> Optional[dt.datetime]:
    """Coerce a front-matter date value into an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, dt.datetime):
        parsed = value
    elif isinstance(value, dt.date):
        parsed = dt.datetime.combine(value, dt.time())
    else:
        text = str(value).strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = dt.datetime.fromisoformat(text)
        except ValueError:
            try:
                parsed = dt.datetime.strptime(text, "%Y-%m-%d %H:%M")
            except ValueError:
                return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=dt.timezone.utc)
    return parsed.astimezone(dt.timezone.utc)


def _lookup(meta: dict, key: str) -> object:
    for name, value in meta.items():
        if name.lower() == key:
            return value
    return None


@dataclass(frozen=True)
class ContentRecord:
    collection: str
    source: Path
    slug: str
    title: str
    description: str = ""
    date: Optional[dt.datetime] = None
    updated: Optional[dt.datetime] = None
    lastmod: Optional[dt.datetime] = None
    draft: bool = False
    og_image: str = ""
    og_image_alt: str = ""
    og_image_width: str = ""
    og_image_height: str = ""
    section: str = ""
    tags: tuple[str, ...] = ()
    extra: dict = field(default_factory=dict)
    body: str = ""

    @property
    def modified(self) -> Optional[dt.datetime]:
        return self.lastmod or self.updated or self.date


def record_from_text(text: str, source: Path, collection: str) -> ContentRecord:
    meta, body = parse_front_matter(text)
    explicit_slug = slugify(_lookup(meta, "slug"))
    slug = explicit_slug or slugify(source.stem) or "post"

    def text_value(key: str) -> str:
        value = _lookup(meta, key)
        return "" if value is None else str(value).strip()

    extra = {key: value for key, value in meta.items() if key.lower() not in KNOWN_FIELDS}
    return ContentRecord(
        collection=collection,
        source=source,
        slug=slug,
        title=text_value("title") or DEFAULT_TITLE,
        description=text_value("description"),
        date=parse_date(_lookup(meta, "date")),
        updated=parse_date(_lookup(meta, "updated")),
        lastmod=parse_date(_lookup(meta, "lastmod")),
        draft=parse_bool(_lookup(meta, "draft")),
        og_image=text_value("ogimage"),
        og_image_alt=text_value("ogimagealt"),
        og_image_width=text_value("ogimagewidth"),
        og_image_height=text_value("ogimageheight"),
        section=text_value("section"),
        tags=tuple(parse_list(_lookup(meta, "tags"))),
        extra=extra,
        body=body,
    )


def read_record(path: Path, collection: str) -> ContentRecord:
    return record_from_text(path.read_text(encoding="utf-8"), path, collection)


def load_records(source_dir: Path, collection: str) -> list[ContentRecord]:
    if not source_dir.exists():
        source_dir.mkdir(parents=True, exist_ok=True)
        return []
    records = []
    for md_file in sorted(source_dir.glob("*.md"), key=lambda p: p.as_posix()):
        records.append(read_record(md_file, collection))
    return records
