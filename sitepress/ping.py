"""Search-engine notification: IndexNow key file and best-effort pings."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterable, Optional
from urllib.parse import quote, urlsplit

import httpx

from .config import SiteConfig
from .errors import BuildError
from .render import write_text
from .utils import ensure_within

logger = logging.getLogger(__name__)

GOOGLE_PING_URL = "https://www.google.com/ping?sitemap={sitemap}"
INDEXNOW_ENDPOINT = "https://api.indexnow.org/indexnow"
INDEXNOW_KEY_RE = re.compile(r"^[A-Za-z0-9-]{8,128}$")
PING_TIMEOUT = 10.0
INDEXNOW_URL_LIMIT = 10000


def write_indexnow_key(config: SiteConfig) -> Optional[Path]:
    key = config.indexnow_key
    if not (config.production and key):
        logger.info("[IndexNow] skip writing key (non-prod or empty key).")
        return None
    if not INDEXNOW_KEY_RE.match(key):
        raise BuildError("INDEXNOW_KEY must be 8-128 characters of letters, digits or '-'")
    path = ensure_within(config.root / f"{key}.txt", config.root)
    write_text(path, key)
    logger.info("[IndexNow] key file written")
    return path


def ping_google(client: httpx.Client, sitemap_url: str) -> bool:
    url = GOOGLE_PING_URL.format(sitemap=quote(sitemap_url, safe=""))
    try:
        response = client.get(url)
        response.raise_for_status()
    except httpx.HTTPError as exc:
        logger.warning("Sitemap ping failed: %s", exc)
        return False
    return True


def ping_indexnow(client: httpx.Client, config: SiteConfig, urls: list[str]) -> bool:
    if not config.indexnow_key:
        logger.info("IndexNow skipped: no key configured")
        return False
    if not urls:
        return False
    host = urlsplit(config.base_url).netloc
    payload = {
        "host": host,
        "key": config.indexnow_key,
        "keyLocation": f"{config.base_url}/{config.indexnow_key}.txt",
        "urlList": urls[:INDEXNOW_URL_LIMIT],
    }
    try:
        response = client.post(INDEXNOW_ENDPOINT, json=payload)
        response.raise_for_status()
    except httpx.HTTPError as exc:
        logger.warning("IndexNow submission failed: %s", exc)
        return False
    logger.info("IndexNow accepted %d URL(s) (status %d)", len(payload["urlList"]), response.status_code)
    return True


def ping_search_engines(
    config: SiteConfig, urls: Iterable[str], client: Optional[httpx.Client] = None
) -> dict[str, bool]:
    """Notify search engines about the sitemap; never raises on network errors."""
    owns_client = client is None
    client = client or httpx.Client(timeout=PING_TIMEOUT, follow_redirects=True)
    try:
        results = {
            "google": ping_google(client, f"{config.base_url}/sitemap.xml"),
            "indexnow": ping_indexnow(client, config, sorted(urls)),
        }
    finally:
        if owns_client:
            client.close()
    return results
