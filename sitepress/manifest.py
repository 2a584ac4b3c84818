from __future__ import annotations

import datetime as dt
import json
import logging
from pathlib import Path

from .utils import iso_date

logger = logging.getLogger(__name__)

MANIFEST_VERSION = 1


def load_manifest(path: Path) -> dict[str, dict]:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError:
        logger.warning("Ignoring unreadable sitemap manifest %s", path)
        return {}
    if not isinstance(data, dict) or data.get("version") != MANIFEST_VERSION:
        return {}
    urls = data.get("urls")
    if not isinstance(urls, dict):
        return {}
    return {str(loc): entry for loc, entry in urls.items() if isinstance(entry, dict)}


def write_manifest(path: Path, entries: dict[str, dict], now: dt.datetime) -> None:
    data = {
        "version": MANIFEST_VERSION,
        "generated_at": iso_date(now),
        "urls": dict(sorted(entries.items())),
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2, ensure_ascii=True) + "\n", encoding="utf-8")
