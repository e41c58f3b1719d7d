"""
Web crawler that performs a depth-first traversal of same-site links from a root page.
Outputs the visible text of every page as a plain trace, JSON or YAML.
"""
from krawler.core import Crawler, CrawlOptions, CrawlStats, PageRecord, build_session

__version__ = "1.0.0"
__all__ = ["Crawler", "CrawlOptions", "CrawlStats", "PageRecord", "build_session"]
