"""
Command-line interface for the crawler.
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, TextIO

from krawler.core import DEFAULT_USER_AGENT, Crawler, CrawlOptions, CrawlStats, build_session
from krawler.errors import KrawlerError, SerializationError
from krawler.output import OutputFormat, make_sink

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(filename)s:%(lineno)d: %(message)s"


def print_summary(stats: CrawlStats) -> None:
    """Print crawl summary to stderr."""
    sys.stderr.write("=" * 50 + "\n")
    sys.stderr.write("CRAWL SUMMARY\n")
    sys.stderr.write("=" * 50 + "\n\n")

    sys.stderr.write(f"Pages recorded:         {stats.pages_recorded}\n")
    sys.stderr.write(f"In-scope links found:   {stats.links_found}\n\n")

    if stats.skipped:
        sys.stderr.write("Branches not expanded:\n")
        for reason, count in sorted(stats.skipped.items()):
            sys.stderr.write(f"  {reason.replace('_', ' ')}: {count}\n")

    sys.stderr.write("\n")


def confirm_overwrite(path: Path) -> bool:
    """Ask before truncating an existing output file. EOF counts as no."""
    try:
        answer = input(f'File "{path}" exists. Overwrite it? (y/N): ')
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="krawler",
        description="Crawl a site from a root page and print the visible text of every page found.",
    )
    parser.add_argument("-u", "--url", required=True, help="URL to crawl")
    parser.add_argument(
        "-d", "--depth", type=int, default=3,
        help="Depth level to crawl to. 0 = full crawl, 1 = root level ( / ) crawl (default: 3)",
    )
    parser.add_argument(
        "-f", "--format", type=str.lower, default=OutputFormat.TEXT.value,
        choices=[f.value for f in OutputFormat],
        help="Output format (default: text)",
    )
    parser.add_argument(
        "-i", "--insecure", action="store_true",
        help="Crawl sites with problematic SSL certificates (self-signed, unknown, expired, etc)",
    )
    parser.add_argument("-m", "--mime", action="store_true", help="Include MIME type information with page scrape")
    parser.add_argument("-o", "--output", help="Output data to a file (default: stderr)")
    parser.add_argument(
        "-t", "--timeout", type=float, default=3.0,
        help="Seconds to wait for a link to resolve and return content before failing and moving on (default: 3)",
    )
    parser.add_argument("--user-agent", default=DEFAULT_USER_AGENT, help="User-Agent header")
    parser.add_argument("-y", "--yes", action="store_true", help="Overwrite the output file without asking")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging and a summary at the end")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the crawler CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format=LOG_FORMAT,
        stream=sys.stderr,
    )

    try:
        options = CrawlOptions(
            max_depth=args.depth,
            timeout=args.timeout,
            insecure=args.insecure,
            include_mime=args.mime,
            user_agent=args.user_agent,
        )
    except ValueError as exc:
        parser.error(str(exc))

    output_path = Path(args.output) if args.output else None
    if output_path is not None and output_path.exists() and not args.yes:
        if not confirm_overwrite(output_path):
            sys.stderr.write(f'File "{output_path}" will not be overwritten. Exiting\n')
            return 1

    stream: TextIO
    if output_path is not None:
        try:
            stream = output_path.open("w", encoding="utf-8")
        except OSError as exc:
            logger.error("Error opening output file %s: %s", output_path, exc)
            return 1
    else:
        stream = sys.stderr

    fmt = OutputFormat(args.format)
    sink = make_sink(fmt, stream, pretty=output_path is None)
    session = build_session(insecure=options.insecure, user_agent=options.user_agent)
    crawler = Crawler(session, sink, options)

    try:
        try:
            stats = crawler.run(args.url)
        except KrawlerError as exc:
            logger.error("Error with given URL (%s): %s", args.url, exc)
            return 1

        try:
            sink.close()
        except SerializationError as exc:
            logger.error("%s", exc)
            return 1
    finally:
        session.close()
        if stream is not sys.stderr:
            stream.close()

    if args.verbose:
        print_summary(stats)

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
