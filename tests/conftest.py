import datetime as dt
import textwrap
from pathlib import Path

import pytest

from sitepress.config import SiteConfig

BASE_URL = "https://example.test"


def write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(text).lstrip("\n"), encoding="utf-8")
    return path


@pytest.fixture
def now():
    return dt.datetime(2024, 3, 1, 12, 0, tzinfo=dt.timezone.utc)


@pytest.fixture
def site(tmp_path):
    """A minimal project tree with two news posts, one draft and one win."""
    write(
        tmp_path / "content/news/cara-daftar.md",
        """
        ---
        title: "Cara Daftar"
        description: Panduan singkat pendaftaran.
        date: 2024-01-01
        slug: cara-daftar
        tags: [daftar, panduan]
        ---
        ## Langkah

        Isi formulir lalu kirim.
        """,
    )
    write(
        tmp_path / "content/news/Promo Baru.md",
        """
        ---
        title: Promo Baru
        date: 2024-02-20
        updated: 2024-02-25
        ---
        Promo **baru** minggu ini.
        """,
    )
    write(
        tmp_path / "content/news/rahasia.md",
        """
        ---
        title: Rahasia
        draft: true
        ---
        Belum terbit.
        """,
    )
    write(
        tmp_path / "content/wins/jp-besar.md",
        """
        ---
        title: JP Besar
        date: 2024-02-28
        amount: 1500000
        game: Slot
        member_mask: ab***cd
        ---
        Selamat!
        """,
    )
    write(
        tmp_path / "index.html",
        """
        <!doctype html>
        <html><head><title>Beranda</title></head><body><h1>Home</h1></body></html>
        """,
    )
    write(
        tmp_path / "blog/index.html",
        """
        <!doctype html>
        <html><head><title>Blog</title>
        <script type="application/ld+json">{"@context":"https://schema.org","@type":"Organization","name":"Original4D"}</script>
        <script type="application/ld+json">{"@type":"ItemList","itemListElement":[]}</script>
        </head><body><!-- PARTIAL:HEADER --><main></main><!-- PARTIAL:FOOTER --></body></html>
        """,
    )
    write(
        tmp_path / "bukti/index.html",
        """
        <!doctype html>
        <html><head><title>Bukti</title></head><body><main></main></body></html>
        """,
    )
    write(
        tmp_path / "admin/index.html",
        "<html><head><title>Admin</title></head><body></body></html>",
    )
    write(
        tmp_path / "private.html",
        """
        <html><head><meta name="ROBOTS" content="NOINDEX, nofollow"><title>Private</title></head>
        <body></body></html>
        """,
    )
    write(tmp_path / "partials/header.html", '<header class="site-header"><a href="/">Original4D</a></header>')
    write(tmp_path / "partials/footer.html", '<footer class="site-footer">&copy; Original4D</footer>')
    return tmp_path


@pytest.fixture
def config(site):
    return SiteConfig(root=site, base_url=BASE_URL)
