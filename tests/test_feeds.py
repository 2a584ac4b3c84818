"""Tests for JSON Feed and RSS generation."""

import json
import xml.etree.ElementTree as ET
from pathlib import Path

from sitepress.config import DEFAULT_COLLECTIONS
from sitepress.content import load_records, read_record, record_from_text
from sitepress.feeds import build_feed_items, generate_feeds, load_feed_items, render_rss

NEWS, WINS = DEFAULT_COLLECTIONS


def all_records(site):
    return load_records(site / "content/news", "news") + load_records(site / "content/wins", "wins")


class TestFeedItems:
    def test_drafts_excluded_and_sorted_newest_first(self, config, site):
        items = build_feed_items(all_records(site), NEWS, config)
        assert [item.title for item in items] == ["Promo Baru", "Cara Daftar"]

    def test_item_fields(self, config, site):
        items = build_feed_items(all_records(site), NEWS, config)
        data = items[1].to_json()
        assert data["id"] == data["url"] == "https://example.test/blog/news/cara-daftar/"
        assert data["summary"] == data["description"] == "Panduan singkat pendaftaran."
        assert data["date_published"] == "2024-01-01T00:00:00Z"
        assert data["date_modified"] == "2024-01-01T00:00:00Z"
        assert data["image"] == ["https://example.test/assets/img/hero.webp"]
        assert data["tags"] == ["daftar", "panduan"]

    def test_updated_sets_date_modified(self, config, site):
        data = build_feed_items(all_records(site), NEWS, config)[0].to_json()
        assert data["date_modified"] == "2024-02-25T00:00:00Z"

    def test_summary_falls_back_to_body(self, config, site):
        data = build_feed_items(all_records(site), NEWS, config)[0].to_json()
        assert data["summary"] == "Promo baru minggu ini."

    def test_manifest_lastmod_used_without_front_matter_dates(self, config, tmp_path):
        source = tmp_path / "a.md"
        source.write_text("---\ntitle: A\n---\n", encoding="utf-8")
        record = read_record(source, "news")
        manifest = {"https://example.test/blog/news/a/": {"lastmod": "2024-01-09"}}
        item = build_feed_items([record], NEWS, config, manifest)[0]
        assert item.to_json()["date_modified"] == "2024-01-09T00:00:00Z"

    def test_front_matter_dates_win_over_manifest(self, config):
        text = "---\ntitle: A\ndate: 2024-01-01\nupdated: 2024-01-10\nlastmod: 2024-02-15\n---\n"
        record = record_from_text(text, Path("a.md"), "news")
        manifest = {"https://example.test/blog/news/a/": {"lastmod": "2024-03-01"}}
        data = build_feed_items([record], NEWS, config, manifest)[0].to_json()
        assert data["date_published"] == "2024-01-01T00:00:00Z"
        assert data["date_modified"] == "2024-02-15T00:00:00Z"

    def test_pages_without_source_are_included(self, config, site):
        legacy = site / "blog/news/lama.html"
        legacy.parent.mkdir(parents=True)
        legacy.write_text(
            '<html><head><title>Artikel Lama</title><link rel="canonical" href="/blog/news/lama/">'
            '<meta name="description" content="Arsip">'
            '<meta property="article:published_time" content="2023-06-01T00:00:00Z"></head><body></body></html>',
            encoding="utf-8",
        )
        items = build_feed_items(all_records(site), NEWS, config)
        assert [item.url for item in items][-1] == "https://example.test/blog/news/lama/"
        data = items[-1].to_json()
        assert data["title"] == "Artikel Lama"
        assert data["summary"] == "Arsip"
        assert data["date_published"] == "2023-06-01T00:00:00Z"

    def test_generated_and_draft_pages_are_not_scanned_twice(self, config, site):
        stale = site / "blog/news/rahasia/index.html"
        stale.parent.mkdir(parents=True)
        stale.write_text("<html><head><title>Rahasia</title></head><body></body></html>", encoding="utf-8")
        copy = site / "blog/news/cara-daftar/index.html"
        copy.parent.mkdir(parents=True)
        copy.write_text("<html><head><title>Lama</title></head><body></body></html>", encoding="utf-8")
        titles = [item.title for item in build_feed_items(all_records(site), NEWS, config)]
        assert titles == ["Promo Baru", "Cara Daftar"]

    def test_wins_carry_extra_fields(self, config, site):
        data = build_feed_items(all_records(site), WINS, config)[0].to_json()
        assert data["url"] == "https://example.test/bukti/wins/jp-besar/"
        assert data["amount"] == 1500000
        assert data["game"] == "Slot"
        assert data["member_mask"] == "ab***cd"

    def test_duplicate_slugs_collapse(self, config):
        records = [
            record_from_text("---\ntitle: A\nslug: x\ndate: 2024-01-01\n---\n", Path("a.md"), "news"),
            record_from_text("---\ntitle: B\nslug: x\ndate: 2024-01-02\n---\n", Path("b.md"), "news"),
        ]
        items = build_feed_items(records, NEWS, config)
        assert [item.title for item in items] == ["B"]


class TestGenerateFeeds:
    def test_writes_both_formats_per_collection(self, config, site):
        feeds = generate_feeds(config, all_records(site))
        assert set(feeds) == {"news", "wins"}
        feed = json.loads((site / "blog/feed.json").read_text(encoding="utf-8"))
        assert feed["version"] == "https://jsonfeed.org/version/1.1"
        assert feed["feed_url"] == "https://example.test/blog/feed.json"
        assert feed["home_page_url"] == "https://example.test/blog/"
        assert len(feed["items"]) == 2
        assert (site / "bukti/feed.json").exists()
        assert not (site / "feed.json").exists()

    def test_rss_is_well_formed(self, config, site):
        generate_feeds(config, all_records(site))
        root = ET.fromstring((site / "blog/feed.xml").read_text(encoding="utf-8"))
        channel = root.find("channel")
        assert channel.findtext("title") == "Blog Original4D"
        links = [item.findtext("link") for item in channel.findall("item")]
        assert links == [
            "https://example.test/blog/news/promo-baru/",
            "https://example.test/blog/news/cara-daftar/",
        ]

    def test_feed_limit(self, config, site):
        config.feed_limit = 1
        feeds = generate_feeds(config, all_records(site))
        assert len(feeds["news"]) == 1

    def test_combined_feed(self, config, site):
        config.combined_feed = True
        generate_feeds(config, all_records(site))
        items = load_feed_items(site / "feed.json")
        assert [item["title"] for item in items] == ["JP Besar", "Promo Baru", "Cara Daftar"]


def test_rss_escapes_titles(config, site):
    record = record_from_text("---\ntitle: Tom & <Jerry>\ndate: 2024-01-01\n---\n", Path("t.md"), "news")
    items = build_feed_items([record], NEWS, config)
    xml = render_rss(items, "T", "D", "https://example.test/", "https://example.test/feed.xml", config)
    assert ET.fromstring(xml).find("channel/item/title").text == "Tom & <Jerry>"


def test_load_feed_items_tolerates_garbage(tmp_path):
    path = tmp_path / "feed.json"
    assert load_feed_items(path) == []
    path.write_text("not json", encoding="utf-8")
    assert load_feed_items(path) == []
    path.write_text(json.dumps({"items": [{"url": "u"}, 3]}), encoding="utf-8")
    assert load_feed_items(path) == [{"url": "u"}]
