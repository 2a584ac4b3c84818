from __future__ import annotations

import html
import json
import re
from pathlib import Path

import markdown

TAG_RE = re.compile(r"<[^>]+>")
SPACE_RE = re.compile(r"\s+")
PLACEHOLDER_RE = re.compile(r"\{\{(\w+)\}\}")
LD_ESCAPES = {"<": "\\u003c", ">": "\\u003e", "&": "\\u0026"}
TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"


def escape_html(value: object) -> str:
    return html.escape("" if value is None else str(value), quote=True)


def render_markdown(text: str) -> str:
    md = markdown.Markdown(extensions=["fenced_code", "tables", "toc"])
    return md.convert(text or "")


def strip_tags(html_text: str) -> str:
    return TAG_RE.sub("", html_text)


def summarize(html_text: str, limit: int = 200) -> str:
    text = SPACE_RE.sub(" ", html.unescape(strip_tags(html_text))).strip()
    return text[:limit] + ("..." if len(text) > limit else "")


def compact(value: object) -> object:
    """Drop empty values from nested JSON-LD data."""
    if isinstance(value, dict):
        result = {}
        for key, item in value.items():
            item = compact(item)
            if item in (None, "", [], {}):
                continue
            result[key] = item
        return result
    if isinstance(value, list):
        return [compact(item) for item in value if item not in (None, "")]
    return value


def dumps_ld(data: object) -> str:
    text = json.dumps(compact(data), ensure_ascii=False, separators=(",", ":"))
    for char, escaped in LD_ESCAPES.items():
        text = text.replace(char, escaped)
    return text


def ld_script(data: object) -> str:
    return f'<script type="application/ld+json">{dumps_ld(data)}</script>'


def render_template(template: str, **context: str) -> str:
    return PLACEHOLDER_RE.sub(lambda match: context.get(match.group(1), match.group(0)), template)


def read_template(path: Path) -> str:
    return path.read_text(encoding="utf-8")


def load_template(root: Path, name: str) -> str:
    override = root / "templates" / name
    if override.exists():
        return read_template(override)
    return read_template(TEMPLATES_DIR / name)


def write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
