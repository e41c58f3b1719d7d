"""
Result sinks: where page records go.

The plain trace is written as the crawl runs. JSON and YAML are buffered and
serialized once, when the sink is closed.
"""
from __future__ import annotations

import json
from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, TextIO

import yaml

from krawler.errors import SerializationError

if TYPE_CHECKING:
    from krawler.core import PageRecord

SEPARATOR = "-" * 26


class OutputFormat(str, Enum):
    TEXT = "text"
    JSON = "json"
    YAML = "yaml"


def record_to_dict(entry: PageRecord) -> Dict[str, Any]:
    """Structured form of a record; ``contentType`` is left out when empty."""
    link: Dict[str, Any] = {"link": entry.url, "parentLink": entry.parent_url}
    if entry.content_type:
        link["contentType"] = entry.content_type
    link["content"] = entry.content
    return {"depth": entry.depth, "newLink": link}


class ResultSink(ABC):
    """Base sink. Subclasses decide whether records are streamed or buffered."""

    def __init__(self, stream: TextIO) -> None:
        self.stream = stream

    @abstractmethod
    def record(self, entry: PageRecord) -> None:
        """Take one visited page."""

    def link_found(self, url: str) -> None:
        """Called for every in-scope link discovered on a page."""

    def finalize(self) -> bytes:
        return b""

    def close(self) -> None:
        """Write whatever :meth:`finalize` produces to the stream."""
        data = self.finalize()
        if data:
            self.stream.write(data.decode("utf-8"))
        self.stream.flush()


class TraceSink(ResultSink):
    """Human-readable trace, one block per page, written immediately."""

    def record(self, entry: PageRecord) -> None:
        write = self.stream.write
        write(f"{SEPARATOR}\nURL: {entry.url}\n")
        write(f"Parent Link: {entry.parent_url}\n")
        if entry.content_type:
            write(f"Content-Type: {entry.content_type}\n")
        write(f"Depth: {entry.depth}\n")
        write(f"{SEPARATOR}\n")
        write(f"{entry.content}\n{SEPARATOR}\n")
        self.stream.flush()

    def link_found(self, url: str) -> None:
        self.stream.write(f"> Found new link: {url}\n")


class StructuredSink(ResultSink):
    """Buffers records in visit order and serializes them as one JSON or YAML document."""

    def __init__(self, stream: TextIO, fmt: OutputFormat, pretty: bool = False) -> None:
        if fmt is OutputFormat.TEXT:
            raise ValueError("StructuredSink needs a structured format (json or yaml)")
        super().__init__(stream)
        self.fmt = fmt
        self.pretty = pretty
        self.records: List[PageRecord] = []

    def record(self, entry: PageRecord) -> None:
        self.records.append(entry)

    def finalize(self) -> bytes:
        payload = [record_to_dict(r) for r in self.records]
        try:
            if self.fmt is OutputFormat.JSON:
                text = json.dumps(payload, ensure_ascii=False, indent=2 if self.pretty else None) + "\n"
            else:
                text = yaml.safe_dump(payload, sort_keys=True, allow_unicode=True)
        except (TypeError, ValueError, yaml.YAMLError) as exc:
            raise SerializationError(f"Error marshaling {self.fmt.value}: {exc}") from exc
        return text.encode("utf-8")


def make_sink(fmt: OutputFormat, stream: TextIO, pretty: bool = False) -> ResultSink:
    """Pick the sink for an output format."""
    if fmt is OutputFormat.TEXT:
        return TraceSink(stream)
    return StructuredSink(stream, fmt, pretty=pretty)
