"""Structured access to generated HTML pages.

Every post-processing stage (partials, sitemap, structured data) goes through
:class:`HtmlDocument` instead of matching tags with regular expressions.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Iterable, Iterator, Optional

from bs4 import BeautifulSoup, Comment, Tag

from .render import dumps_ld

LD_TYPE_RE = re.compile(r"application/ld\+json", re.IGNORECASE)


def flatten_ld_nodes(data: object) -> list[dict]:
    nodes: list[dict] = []

    def push(node: object) -> None:
        if isinstance(node, list):
            for item in node:
                push(item)
            return
        if not isinstance(node, dict):
            return
        if "@graph" in node:
            push(node["@graph"])
        nodes.append(node)

    push(data)
    return nodes


def node_types(node: dict) -> list[str]:
    value = node.get("@type")
    if isinstance(value, list):
        return [str(item) for item in value]
    return [str(value)] if value else []


def has_ld_type(data: object, types: Iterable[str]) -> bool:
    wanted = set(types)
    return any(wanted.intersection(node_types(node)) for node in flatten_ld_nodes(data))


def _marker(name: str, suffix: str = "") -> str:
    label = f"PARTIAL:{name.upper()}"
    return f"{label}:{suffix}" if suffix else label


class HtmlDocument:
    def __init__(self, text: str) -> None:
        self.soup = BeautifulSoup(text, "html.parser")

    @classmethod
    def from_file(cls, path: Path) -> "HtmlDocument":
        return cls(path.read_text(encoding="utf-8"))

    def __str__(self) -> str:
        return str(self.soup)

    @property
    def head(self) -> Optional[Tag]:
        return self.soup.find("head")

    @property
    def body(self) -> Optional[Tag]:
        return self.soup.find("body")

    @property
    def title(self) -> str:
        tag = self.soup.find("title")
        return tag.get_text().strip() if tag else ""

    def _find_meta(self, name: str = "", prop: str = "") -> Optional[Tag]:
        for tag in self.soup.find_all("meta"):
            if name and str(tag.get("name", "")).lower() == name.lower():
                return tag
            if prop and str(tag.get("property", "")).lower() == prop.lower():
                return tag
        return None

    def meta(self, name: str = "", prop: str = "") -> str:
        tag = self._find_meta(name, prop)
        return str(tag.get("content", "")).strip() if tag else ""

    def set_meta(self, content: str, name: str = "", prop: str = "") -> None:
        tag = self._find_meta(name, prop)
        if tag is None:
            attrs = {"name": name} if name else {"property": prop}
            tag = self.soup.new_tag("meta", attrs=attrs)
            self._append_to_head(tag)
        tag["content"] = content

    @property
    def canonical(self) -> str:
        for tag in self.soup.find_all("link"):
            rel = tag.get("rel") or []
            if isinstance(rel, str):
                rel = rel.split()
            if "canonical" in [value.lower() for value in rel] and tag.get("href"):
                return str(tag["href"]).strip()
        return ""

    @property
    def noindex(self) -> bool:
        return "noindex" in self.meta(name="robots").lower()

    def jsonld_blocks(self) -> Iterator[tuple[Tag, object]]:
        """Yield ``(script tag, parsed JSON)``; JSON is ``None`` when the block does not parse."""
        for script in self.soup.find_all("script", attrs={"type": LD_TYPE_RE}):
            try:
                data = json.loads(script.string or "")
            except ValueError:
                data = None
            yield script, data

    def structured_data(self) -> list[object]:
        return [data for _, data in self.jsonld_blocks() if data is not None]

    def find_ld_node(self, types: Iterable[str]) -> dict:
        """First JSON-LD node (``@graph`` members included) carrying one of ``types``."""
        wanted = set(types)
        for data in self.structured_data():
            for node in flatten_ld_nodes(data):
                if wanted.intersection(node_types(node)):
                    return node
        return {}

    def remove_structured_data(self, types: Iterable[str]) -> int:
        types = list(types)
        removed = 0
        for script, data in list(self.jsonld_blocks()):
            if data is not None and has_ld_type(data, types):
                script.decompose()
                removed += 1
        return removed

    def append_structured_data(self, data: object) -> None:
        script = self.soup.new_tag("script", attrs={"type": "application/ld+json"})
        script.string = dumps_ld(data)
        self._append_to_head(script)

    def replace_structured_data(self, types: Iterable[str], blocks: Iterable[object]) -> None:
        self.remove_structured_data(types)
        for data in blocks:
            self.append_structured_data(data)

    def _append_to_head(self, node: Tag) -> None:
        head = self.head
        if head is not None:
            head.append(node)
        else:
            self.soup.insert(0, node)

    def _find_comment(self, text: str) -> Optional[Comment]:
        return self.soup.find(string=lambda value: isinstance(value, Comment) and value.strip() == text)

    def set_region(self, name: str, fragment: str, fallback_tag: str = "", at_end: bool = False) -> bool:
        """Put ``fragment`` into the named region, wrapped in BEGIN/END markers.

        Lookup order: previously injected region, ``<!-- PARTIAL:NAME -->``,
        first ``fallback_tag`` element, then start (or end) of ``<body>``.
        """
        begin = self._find_comment(_marker(name, "BEGIN"))
        end = self._find_comment(_marker(name, "END"))
        if begin is not None and end is not None:
            node = begin.next_sibling
            while node is not None and node is not end:
                following = node.next_sibling
                node.extract()
                node = following
            self._insert_fragment(end, fragment)
            return True

        anchor = self._find_comment(_marker(name))
        if anchor is None and fallback_tag:
            anchor = self.soup.find(fallback_tag)
        if anchor is not None:
            end = Comment(_marker(name, "END"))
            anchor.replace_with(end)
            end.insert_before(Comment(_marker(name, "BEGIN")))
            self._insert_fragment(end, fragment)
            return True

        container = self.head if name.upper().startswith("HEAD") else self.body
        if container is None:
            return False
        end = Comment(_marker(name, "END"))
        if at_end:
            container.append(end)
        else:
            container.insert(0, end)
        end.insert_before(Comment(_marker(name, "BEGIN")))
        self._insert_fragment(end, fragment)
        return True

    def has_region(self, name: str) -> bool:
        return self._find_comment(_marker(name, "BEGIN")) is not None

    def has_marker(self, name: str) -> bool:
        return self._find_comment(_marker(name)) is not None

    def _insert_fragment(self, end: Comment, fragment: str) -> None:
        parsed = BeautifulSoup(fragment, "html.parser")
        end.insert_before("\n")
        for node in list(parsed.contents):
            end.insert_before(node.extract())
        end.insert_before("\n")
