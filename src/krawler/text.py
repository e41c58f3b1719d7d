"""
Visible text extraction from an HTML token stream.

The suppression rule is shallow: text is dropped while the most recent start
tag is one of ``script``, ``noscript`` or ``style``. There is no tracking of
nesting, so text after a suppressed element but before the next start tag is
dropped as well.
"""
from __future__ import annotations

import html
from enum import Enum
from html.parser import HTMLParser
from typing import Iterable, Iterator, List, NamedTuple

SUPPRESSED_TAGS: frozenset[str] = frozenset(("script", "noscript", "style"))
# Elements whose body is read as a single run of text, not as markup
RAW_TEXT_TAGS: frozenset[str] = frozenset((
    "script", "style", "noscript", "title", "textarea", "xmp", "iframe", "noembed", "noframes",
))


class TokenType(Enum):
    START_TAG = "start_tag"
    TEXT = "text"
    ERROR = "error"


class Token(NamedTuple):
    kind: TokenType
    data: str = ""


class _Tokenizer(HTMLParser):
    """Collects start tags and raw (still escaped) text runs in document order."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=False)
        self.tokens: List[Token] = []
        self._text: List[str] = []

    def _flush_text(self) -> None:
        if self._text:
            self.tokens.append(Token(TokenType.TEXT, "".join(self._text)))
            self._text.clear()

    def handle_starttag(self, tag, attrs):
        self._flush_text()
        self.tokens.append(Token(TokenType.START_TAG, tag))
        if tag in RAW_TEXT_TAGS:
            self.set_cdata_mode(tag)

    def handle_startendtag(self, tag, attrs):
        # <br/> and friends are not start tags
        self._flush_text()

    def handle_endtag(self, tag):
        self._flush_text()

    def handle_comment(self, data):
        self._flush_text()

    def handle_decl(self, decl):
        self._flush_text()

    def handle_pi(self, data):
        self._flush_text()

    def unknown_decl(self, data):
        self._flush_text()

    def handle_data(self, data):
        self._text.append(data)

    def handle_entityref(self, name):
        self._text.append(f"&{name};")

    def handle_charref(self, name):
        self._text.append(f"&#{name};")

    def close(self) -> None:
        super().close()
        self._flush_text()


def tokenize(markup: str) -> Iterator[Token]:
    """Yield the page's tokens, ending with a single ERROR token for end of stream."""
    parser = _Tokenizer()
    parser.feed(markup)
    parser.close()
    yield from parser.tokens
    yield Token(TokenType.ERROR)


def extract(tokens: Iterable[Token]) -> str:
    """
    Build the visible text of a page from its tokens.

    Each non-empty text run is unescaped, trimmed and followed by a newline.
    Processing stops at the first ERROR token.
    """
    last_tag = ""
    lines: List[str] = []
    for token in tokens:
        if token.kind is TokenType.ERROR:
            break
        if token.kind is TokenType.START_TAG:
            last_tag = token.data
        elif token.kind is TokenType.TEXT:
            if last_tag in SUPPRESSED_TAGS:
                continue
            text = html.unescape(token.data).strip()
            if text:
                lines.append(text + "\n")
    return "".join(lines)


def extract_text(markup: str) -> str:
    return extract(tokenize(markup))
