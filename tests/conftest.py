from typing import Dict, List, Optional, Tuple

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from krawler.output import ResultSink

HTML = "text/html; charset=utf-8"


class FakeResponse:
    def __init__(self, url: str, content_type: Optional[str], text: str) -> None:
        self.url = url
        self.status_code = 200
        self.headers = CaseInsensitiveDict()
        if content_type is not None:
            self.headers["Content-Type"] = content_type
        self.text = text


class FakeSession:
    """
    Serves pages from a dict instead of the network.

    Keys are URLs without a trailing slash; ``http://example.com/a`` and
    ``http://example.com/a/`` hit the same page, like most real servers.
    Unknown URLs raise ``requests.ConnectionError``.
    """

    def __init__(self, pages: Dict[str, Tuple[Optional[str], str]]) -> None:
        self.pages = {url.rstrip("/"): page for url, page in pages.items()}
        self.calls: List[Tuple[str, str]] = []
        self.closed = False

    def _serve(self, method: str, url: str) -> FakeResponse:
        self.calls.append((method, url))
        page = self.pages.get(url.rstrip("/"))
        if page is None:
            raise requests.ConnectionError(f"Failed to establish a new connection: {url}")
        content_type, body = page
        return FakeResponse(url, content_type, body if method == "GET" else "")

    def head(self, url, **kwargs):
        return self._serve("HEAD", url)

    def get(self, url, **kwargs):
        return self._serve("GET", url)

    def requested(self, method: str) -> List[str]:
        return [url for m, url in self.calls if m == method]

    def close(self) -> None:
        self.closed = True


class ListSink(ResultSink):
    """Keeps records and announced links in memory."""

    def __init__(self) -> None:
        super().__init__(stream=None)
        self.records = []
        self.links: List[str] = []

    def record(self, entry) -> None:
        self.records.append(entry)

    def link_found(self, url: str) -> None:
        self.links.append(url)

    def close(self) -> None:
        pass


@pytest.fixture()
def sink() -> ListSink:
    return ListSink()


@pytest.fixture()
def make_session():
    """Return a factory building a FakeSession from ``{url: (content_type, body)}``."""
    return FakeSession


@pytest.fixture()
def small_site() -> Dict[str, Tuple[Optional[str], str]]:
    """
    Root links to itself, two pages, an external site, a subdomain and a PDF.
    /about links back to the root and on to /team.
    """
    return {
        "http://example.com": (
            HTML,
            '<html><head><title>Home</title><script>var x = 1;</script></head>'
            '<body><h1>Welcome</h1>'
            '<a href="/">Home</a>'
            '<a href="/about">About</a>'
            '<a href="http://other.com/page">Elsewhere</a>'
            '<a href="http://blog.example.com/">Blog</a>'
            '<a href="/files/report.pdf">Report</a>'
            '<a href="/blog#comments">Blog</a>'
            '</body></html>',
        ),
        "http://example.com/about": (
            HTML,
            '<p>About us</p><a href="/">Home</a><a href="team">Team</a>',
        ),
        "http://example.com/about/team": (HTML, "<p>The team</p>"),
        "http://example.com/blog": (HTML, "<p>Posts</p><style>p { color: red }</style>"),
        "http://example.com/files/report.pdf": ("application/pdf", "%PDF-1.4"),
        "http://other.com/page": (HTML, "<p>Other</p>"),
        "http://blog.example.com": (HTML, "<p>Blog subdomain</p>"),
    }
