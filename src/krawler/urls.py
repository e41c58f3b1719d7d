"""
URL canonicalization and crawl scope.

Canonical URLs are the dedup and scope key: absolute, with query and fragment
dropped. The comparison is lexical, so ``page?a=1`` and ``page?b=2`` are the
same page.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urljoin, urlsplit, urlunsplit

import tldextract

from krawler.errors import InvalidURLError

DEFAULT_SCHEME = "http://"
FOLLOWABLE_SCHEMES: frozenset[str] = frozenset(("http", "https"))

_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")

# Bundled public suffix snapshot only, never fetched over the network
_extract = tldextract.TLDExtract(suffix_list_urls=())


@dataclass(frozen=True, slots=True)
class CrawlScope:
    """Registrable domain and subdomain every followed link must share."""
    registrable_domain: str
    subdomain: str


def strip_www(url: str) -> str:
    """
    Remove the first literal ``www.`` from the string.

    This is a plain text replace, not host aware: if the first occurrence is
    in the path, that is the one removed.
    """
    return url.replace("www.", "", 1)


def canonicalize(raw: str, base: Optional[str] = None) -> str:
    """
    Turn a raw URL or link target into its canonical form.

    - Prepends ``http://`` when there is no scheme and no base
    - Strips ``www.`` (see :func:`strip_www`)
    - Resolves relative references against *base*
    - Drops query and fragment

    Raises:
        InvalidURLError: if the string cannot be parsed as a URL.
    """
    url = raw.strip()
    if base is None and not _SCHEME_RE.match(url):
        url = DEFAULT_SCHEME + url
    url = strip_www(url)

    try:
        if base is not None:
            url = urljoin(base, url)
        parts = urlsplit(url)
        parts.port  # raises ValueError for a malformed port
    except ValueError as exc:
        raise InvalidURLError(raw, str(exc)) from exc

    if not parts.scheme:
        raise InvalidURLError(raw, "missing scheme")
    if parts.scheme in FOLLOWABLE_SCHEMES and not parts.hostname:
        raise InvalidURLError(raw, "missing host")

    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


def ensure_trailing_slash(url: str) -> str:
    """Append ``/`` so relative links on the page resolve below it."""
    return url if url.endswith("/") else url + "/"


def scope_for(url: str) -> CrawlScope:
    """Compute the (registrable domain, subdomain) pair of a URL."""
    ext = _extract(url)
    domain = ".".join(part for part in (ext.domain, ext.suffix) if part)
    return CrawlScope(registrable_domain=domain, subdomain=ext.subdomain)


def in_scope(candidate: str, scope: CrawlScope) -> bool:
    """Check if an http(s) URL has exactly the registrable domain and subdomain of *scope*."""
    if urlsplit(candidate).scheme not in FOLLOWABLE_SCHEMES:
        return False
    return scope_for(candidate) == scope
