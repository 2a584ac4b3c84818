"""End-to-end build tests."""

import datetime as dt
import json
import os
import xml.etree.ElementTree as ET

import pytest

from sitepress.cli import build_site, main
from sitepress.document import HtmlDocument

NS = {"sm": "http://www.sitemaps.org/schemas/sitemap/0.9"}
ENV_VARS = ("SITE_URL", "URL", "DEPLOY_PRIME_URL", "CONTEXT", "SITEMAP_FREEZE_EXISTING", "SITEMAP_PING", "INDEXNOW_KEY")


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def sitemap_locs(site):
    root = ET.fromstring((site / "sitemap.xml").read_text(encoding="utf-8"))
    return {el.findtext("sm:loc", namespaces=NS): el.findtext("sm:lastmod", namespaces=NS) for el in root}


class TestBuildSite:
    def test_full_build(self, config, site, now):
        report = build_site(config, now)
        assert report["articles"] == 3
        assert report["feeds"] == {"news": 2, "wins": 1}

        page = site / "blog/news/cara-daftar/index.html"
        html = page.read_text(encoding="utf-8")
        assert "<title>Cara Daftar</title>" in html
        assert "site-header" in html and "site-footer" in html
        assert not (site / "blog/news/rahasia").exists()

        feed = json.loads((site / "blog/feed.json").read_text(encoding="utf-8"))
        assert any(item["url"].endswith("/blog/news/cara-daftar/") for item in feed["items"])

        locs = sitemap_locs(site)
        assert "https://example.test/blog/news/cara-daftar/" in locs
        assert "https://example.test/bukti/wins/jp-besar/" in locs
        assert "https://example.test/private.html" not in locs

    def test_feed_titles_match_pages(self, config, site, now):
        build_site(config, now)
        for index in ("blog", "bukti"):
            feed = json.loads((site / index / "feed.json").read_text(encoding="utf-8"))
            for item in feed["items"]:
                rel = item["url"].replace("https://example.test/", "") + "index.html"
                assert HtmlDocument.from_file(site / rel).title == item["title"]

    def test_article_lastmod_comes_from_front_matter(self, config, site, now):
        build_site(config, now)
        locs = sitemap_locs(site)
        assert locs["https://example.test/blog/news/cara-daftar/"] == "2024-01-01"
        assert locs["https://example.test/blog/news/promo-baru/"] == "2024-02-25"

    def test_frozen_rebuild_is_stable(self, config, site, now):
        config.freeze_lastmod = True
        build_site(config, now)
        first = sitemap_locs(site)
        build_site(config, now + dt.timedelta(days=3))
        assert sitemap_locs(site) == first

    def test_rebuild_does_not_duplicate_partials_or_ld(self, config, site, now):
        build_site(config, now)
        build_site(config, now)
        html = (site / "blog/news/cara-daftar/index.html").read_text(encoding="utf-8")
        assert html.count("site-header") == 1
        doc = HtmlDocument(html)
        assert len(doc.structured_data()) == 1
        blog = HtmlDocument.from_file(site / "blog/index.html")
        assert len(blog.structured_data()) == 2

    def test_section_index_lastmod_survives_rebuild(self, config, site, now):
        build_site(config, now)
        old = dt.datetime(2020, 1, 1, tzinfo=dt.timezone.utc).timestamp()
        os.utime(site / "blog/index.html", (old, old))
        build_site(config, now)
        build_site(config, now)
        assert sitemap_locs(site)["https://example.test/blog/"] == "2020-01-01"

    def test_pages_without_source_reach_feed_and_item_list(self, config, site, now):
        legacy = site / "blog/news/lama.html"
        legacy.parent.mkdir(parents=True)
        legacy.write_text(
            '<html><head><title>Artikel Lama</title><link rel="canonical" href="/blog/news/lama/"></head>'
            "<body></body></html>",
            encoding="utf-8",
        )
        build_site(config, now)
        feed = json.loads((site / "blog/feed.json").read_text(encoding="utf-8"))
        assert "https://example.test/blog/news/lama/" in [item["url"] for item in feed["items"]]
        assert "https://example.test/blog/news/lama/" in sitemap_locs(site)
        item_list = HtmlDocument.from_file(site / "blog/index.html").find_ld_node(["ItemList"])
        assert "Artikel Lama" in [el["name"] for el in item_list["itemListElement"]]

    def test_stages_can_be_disabled(self, config, site, now):
        config.sitemap = False
        config.feeds = False
        report = build_site(config, now)
        assert report["sitemap"] == 0
        assert not (site / "sitemap.xml").exists()
        assert not (site / "blog/feed.json").exists()

    def test_missing_root_exits(self, config, tmp_path):
        config.root = tmp_path / "missing"
        with pytest.raises(SystemExit):
            build_site(config)


class TestMain:
    def test_runs_with_root_flag(self, site, clean_env, capsys):
        main(["--config", str(site / "none.toml"), "--root", str(site), "--site-url", "https://cli.test"])
        out = capsys.readouterr().out
        assert "Build completed" in out
        assert "Rendered 3 article(s)" in out
        robots = (site / "robots.txt").read_text(encoding="utf-8")
        assert "Sitemap: https://cli.test/sitemap.xml" in robots

    def test_config_file_defaults(self, site, clean_env):
        cfg = site / "site.toml"
        cfg.write_text('site_url = "https://toml.test"\ncombined_feed = true\n', encoding="utf-8")
        main(["--config", str(cfg), "--root", str(site), "--no-ping"])
        feed = json.loads((site / "feed.json").read_text(encoding="utf-8"))
        assert feed["feed_url"] == "https://toml.test/feed.json"

    def test_exclude_flags_extend_defaults(self, site, clean_env):
        (site / "tentang").mkdir()
        (site / "tentang/index.html").write_text("<html><head></head><body></body></html>", encoding="utf-8")
        main(["--config", str(site / "none.toml"), "--root", str(site), "--exclude-dir", "tentang"])
        sitemap = (site / "sitemap.xml").read_text(encoding="utf-8")
        assert "/tentang/" not in sitemap
        assert "/admin/" not in sitemap
        assert "/partials/" not in sitemap

    def test_env_url_overrides_flag(self, site, clean_env, monkeypatch):
        monkeypatch.setenv("SITE_URL", "https://env.test")
        main(["--config", str(site / "none.toml"), "--root", str(site), "--site-url", "https://cli.test"])
        assert "https://env.test/" in (site / "sitemap.xml").read_text(encoding="utf-8")
