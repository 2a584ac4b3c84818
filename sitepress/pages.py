from __future__ import annotations

import datetime as dt
import logging
from typing import Optional

from .config import Collection, SiteConfig
from .content import ContentRecord
from .render import escape_html, ld_script, render_markdown, render_template, write_text
from .utils import ensure_within, iso_date

logger = logging.getLogger(__name__)

MONTHS_ID = (
    "Januari",
    "Februari",
    "Maret",
    "April",
    "Mei",
    "Juni",
    "Juli",
    "Agustus",
    "September",
    "Oktober",
    "November",
    "Desember",
)


def format_date_id(value: dt.datetime) -> str:
    return f"{value.day} {MONTHS_ID[value.month - 1]} {value.year}"


def og_image_for(record: ContentRecord, config: SiteConfig) -> str:
    return config.absolute(record.og_image or config.default_og_image)


def breadcrumb_ld(config: SiteConfig, collection: Collection, title: str = "", url: str = "") -> dict:
    items = [
        {"@type": "ListItem", "position": 1, "name": "Beranda", "item": f"{config.base_url}/"},
        {
            "@type": "ListItem",
            "position": 2,
            "name": collection.label,
            "item": collection.index_url(config.base_url),
        },
    ]
    if title:
        items.append({"@type": "ListItem", "position": 3, "name": title, "item": url})
    return {"@type": "BreadcrumbList", "itemListElement": items}


def article_ld(
    config: SiteConfig,
    title: str,
    url: str,
    description: str = "",
    published: str = "",
    modified: str = "",
    image: str = "",
) -> dict:
    return {
        "@type": "Article",
        "mainEntityOfPage": {"@type": "WebPage", "@id": url},
        "headline": title,
        "description": description,
        "datePublished": published,
        "dateModified": modified or published,
        "inLanguage": "id-ID",
        "author": {"@type": "Organization", "name": config.site_name},
        "publisher": {
            "@type": "Organization",
            "name": config.site_name,
            "logo": {"@type": "ImageObject", "url": config.absolute(config.logo)},
        },
        "image": [image] if image else [],
    }


def _with_context(data: dict) -> dict:
    return {"@context": "https://schema.org", **data}


def build_post_meta(published: Optional[dt.datetime], modified: Optional[dt.datetime]) -> str:
    parts = []
    if published:
        parts.append(f'<time datetime="{iso_date(published)}">Terbit: {format_date_id(published)}</time>')
    if modified:
        parts.append(f'<time datetime="{iso_date(modified)}">Update: {format_date_id(modified)}</time>')
    return " • ".join(parts)


def build_og_extra(record: ContentRecord, config: SiteConfig) -> str:
    image = og_image_for(record, config)
    tags = [f'<meta property="og:image" content="{escape_html(image)}">']
    tags.append(f'<meta property="og:image:alt" content="{escape_html(record.og_image_alt or record.title)}">')
    if record.og_image_width:
        tags.append(f'<meta property="og:image:width" content="{escape_html(record.og_image_width)}">')
    if record.og_image_height:
        tags.append(f'<meta property="og:image:height" content="{escape_html(record.og_image_height)}">')
    if record.date:
        tags.append(f'<meta property="article:published_time" content="{iso_date(record.date)}">')
    modified = record.modified
    if modified:
        tags.append(f'<meta property="article:modified_time" content="{iso_date(modified)}">')
    if record.section:
        tags.append(f'<meta property="article:section" content="{escape_html(record.section)}">')
    for tag in record.tags:
        tags.append(f'<meta property="article:tag" content="{escape_html(tag)}">')
    return "\n  ".join(tags)


def render_article(template: str, record: ContentRecord, collection: Collection, config: SiteConfig) -> str:
    canonical = collection.page_url(config.base_url, record.slug)
    image = og_image_for(record, config)
    published = iso_date(record.date) if record.date else ""
    modified = iso_date(record.modified) if record.modified else published
    json_ld = "\n  ".join(
        [
            ld_script(_with_context(breadcrumb_ld(config, collection, record.title, canonical))),
            ld_script(
                _with_context(
                    article_ld(config, record.title, canonical, record.description, published, modified, image)
                )
            ),
        ]
    )
    return render_template(
        template,
        lang=config.language,
        locale=config.locale,
        title=escape_html(record.title),
        description=escape_html(record.description),
        canonical=escape_html(canonical),
        site_name=escape_html(config.site_name),
        stylesheet=config.stylesheet,
        favicon=config.absolute(config.favicon),
        feed_json=f"/{collection.feed_path('json')}",
        feed_xml=f"/{collection.feed_path('xml')}",
        og_image=escape_html(image),
        og_extra=build_og_extra(record, config),
        json_ld=json_ld,
        section_url=f"/{collection.index.strip('/')}/",
        section_label=escape_html(collection.label),
        post_meta=build_post_meta(record.date, record.lastmod or record.updated),
        content=render_markdown(record.body),
    )


def build_articles(
    template: str, records: list[ContentRecord], collection: Collection, config: SiteConfig
) -> dict[str, ContentRecord]:
    """Render every non-draft record; returns the written pages keyed by relative path."""
    written: dict[str, ContentRecord] = {}
    for record in records:
        if record.draft:
            logger.debug("Skipping draft %s", record.source)
            continue
        rel = collection.page_path(record.slug)
        if rel in written:
            logger.warning(
                "Duplicate slug %r in %s; %s overwrites %s",
                record.slug,
                collection.source,
                record.source,
                written[rel].source,
            )
        path = ensure_within(config.root / rel, config.root)
        write_text(path, render_article(template, record, collection, config))
        written[rel] = record
    logger.info("Rendered %d article(s) from %s", len(written), collection.source)
    return written
