"""
Core crawling logic and data structures.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

import requests
import urllib3
from bs4 import BeautifulSoup, SoupStrainer

from krawler.errors import InvalidURLError, TransportError, UnsupportedContentTypeError
from krawler.output import ResultSink
from krawler.text import extract_text
from krawler.urls import CrawlScope, canonicalize, ensure_trailing_slash, in_scope, scope_for

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "krawler/1.0"
HTML_CONTENT_TYPE = "text/html"
# Parent link reported for the root page
ROOT_PARENT = "--"

# SoupStrainer to parse only <a> tags (faster link extraction)
LINK_STRAINER = SoupStrainer("a", href=True)


@dataclass(frozen=True, slots=True)
class PageRecord:
    """One visited page."""
    url: str
    parent_url: str
    content_type: str
    depth: int
    content: str


@dataclass(frozen=True, slots=True)
class CrawlTask:
    """A discovered link waiting to be visited."""
    url: str
    parent_url: str
    depth: int


@dataclass(frozen=True, slots=True)
class CrawlOptions:
    """Settings for one crawl. ``max_depth == 0`` means no depth limit."""
    max_depth: int = 3
    timeout: float = 3.0
    insecure: bool = False
    include_mime: bool = False
    user_agent: str = DEFAULT_USER_AGENT

    def __post_init__(self) -> None:
        if self.max_depth < 0:
            raise ValueError(f"max_depth must be >= 0, got {self.max_depth}")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {self.timeout}")


@dataclass(slots=True)
class CrawlStats:
    """Statistics collected during crawl for summary output."""
    pages_recorded: int = 0
    links_found: int = 0
    skipped: Dict[str, int] = field(default_factory=lambda: defaultdict(int))

    def record_skip(self, reason: str) -> None:
        """Count a branch that ended without being expanded."""
        self.skipped[reason] += 1


class VisitedRegistry:
    """Canonical URLs already claimed by the crawl. Only ever grows."""

    def __init__(self) -> None:
        self._seen: Set[str] = set()

    def mark_if_new(self, url: str) -> bool:
        """Return True and remember *url* if it has not been seen, else False."""
        if url in self._seen:
            return False
        self._seen.add(url)
        return True

    def __contains__(self, url: object) -> bool:
        return url in self._seen

    def __len__(self) -> int:
        return len(self._seen)


def build_session(insecure: bool = False, user_agent: str = DEFAULT_USER_AGENT) -> requests.Session:
    """HTTP session with the crawler's User-Agent; certificate checks are off in insecure mode."""
    session = requests.Session()
    session.headers["User-Agent"] = user_agent
    if insecure:
        session.verify = False
        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
    return session


def primary_content_type(resp: requests.Response) -> str:
    """Content-Type without parameters, e.g. ``text/html`` for ``text/html; charset=utf-8``."""
    return (resp.headers.get("Content-Type") or "").split(";", 1)[0].strip()


def extract_links(html: str) -> List[str]:
    """Extract all href values from <a> tags, in document order."""
    soup = BeautifulSoup(html, "lxml", parse_only=LINK_STRAINER)
    return [a["href"] for a in soup.find_all("a", href=True)]


class Crawler:
    """
    Depth-first, single-threaded crawl of one site.

    All crawl state (visited URLs, scope, statistics) lives on the instance,
    so every crawl needs a fresh ``Crawler``.
    """

    def __init__(
        self,
        session: requests.Session,
        sink: ResultSink,
        options: Optional[CrawlOptions] = None,
    ) -> None:
        self.session = session
        self.sink = sink
        self.options = options or CrawlOptions()
        self.visited = VisitedRegistry()
        self.scope: Optional[CrawlScope] = None
        self.stats = CrawlStats()

    def run(self, url: str) -> CrawlStats:
        """
        Check the root URL and crawl from it using the instance options.

        Raises:
            InvalidURLError: the root URL cannot be parsed.
            TransportError: the root URL cannot be reached.
            UnsupportedContentTypeError: the root URL is not an HTML page.
        """
        root = self.check_root(url)
        logger.debug("Starting crawl from %s (max depth %d)", root, self.options.max_depth)
        self.crawl(root, ROOT_PARENT, self.options.max_depth, 1, self.options.include_mime)
        return self.stats

    def check_root(self, url: str) -> str:
        """Canonicalize the root, fix the crawl scope, and make sure the root is HTML."""
        root = canonicalize(url)
        self.scope = scope_for(root)
        try:
            resp = self._head(root)
        except requests.RequestException as exc:
            raise TransportError(f"Error performing HEAD request on {root}: {exc}") from exc
        content_type = primary_content_type(resp)
        if content_type.lower() != HTML_CONTENT_TYPE:
            raise UnsupportedContentTypeError(root, content_type)
        return root

    def crawl(
        self,
        page_url: str,
        parent_url: str,
        max_depth: int,
        current_depth: int,
        include_mime: bool,
    ) -> None:
        """
        Visit *page_url* and everything in scope reachable from it.

        Pages are visited in pre-order, children in the order their links
        appear on the page. Failures on a single URL prune that branch only.
        """
        if self.scope is None:
            try:
                self.scope = scope_for(canonicalize(page_url))
            except InvalidURLError as exc:
                logger.warning("Error parsing current page URL %s: %s", page_url, exc)
                return

        stack = [CrawlTask(page_url, parent_url, current_depth)]
        while stack:
            task = stack.pop()
            children = self.visit(task, max_depth, include_mime)
            stack.extend(reversed(children))

    def visit(self, task: CrawlTask, max_depth: int, include_mime: bool) -> List[CrawlTask]:
        """Process a single URL and return the links to follow from it."""
        try:
            page_url = canonicalize(task.url)
        except InvalidURLError as exc:
            logger.warning("Error parsing current page URL %s: %s", task.url, exc)
            self.stats.record_skip("invalid_url")
            return []

        slashed = ensure_trailing_slash(page_url)
        if slashed in self.visited or not self.visited.mark_if_new(page_url):
            self.stats.record_skip("duplicate")
            return []

        try:
            resp = self._head(page_url)
        except requests.RequestException as exc:
            logger.warning("Error performing HEAD request on %s: %s", page_url, exc)
            self.stats.record_skip("transport")
            return []

        content_type = primary_content_type(resp)
        if content_type.lower() != HTML_CONTENT_TYPE:
            logger.debug("Skipping %s (content type %r)", page_url, content_type)
            self.stats.record_skip("not_html")
            return []

        # Trailing slash so relative links resolve below this page
        if slashed != page_url and not self.visited.mark_if_new(slashed):
            self.stats.record_skip("duplicate")
            return []
        page_url = slashed

        try:
            html = self._get(page_url).text
        except requests.RequestException as exc:
            logger.warning("Error fetching %s: %s", page_url, exc)
            self.stats.record_skip("transport")
            return []

        self.sink.record(PageRecord(
            url=page_url,
            parent_url=task.parent_url,
            content_type=content_type if include_mime else "",
            depth=task.depth,
            content=extract_text(html).rstrip("\n"),
        ))
        self.stats.pages_recorded += 1

        if max_depth != 0 and task.depth >= max_depth:
            self.stats.record_skip("depth_limit")
            return []

        links = self.discover_links(page_url, html)
        logger.debug("Visited %s at depth %d (+%d links)", page_url, task.depth, len(links))
        return [CrawlTask(link, page_url, task.depth + 1) for link in links]

    def discover_links(self, page_url: str, html: str) -> List[str]:
        """In-scope links on the page, resolved against it, excluding the page itself."""
        links: List[str] = []
        for href in extract_links(html):
            try:
                target = canonicalize(href, base=page_url)
            except InvalidURLError as exc:
                logger.warning("Error parsing found URL %s: %s", href, exc)
                continue
            if target == page_url or not in_scope(target, self.scope):
                continue
            self.sink.link_found(target)
            self.stats.links_found += 1
            links.append(target)
        return links

    def _head(self, url: str) -> requests.Response:
        return self.session.head(url, timeout=self.options.timeout, allow_redirects=True)

    def _get(self, url: str) -> requests.Response:
        return self.session.get(url, timeout=self.options.timeout, allow_redirects=True)
