"""
Web search and crawl package

Components used to collect competitor pages for a keyword:
- WebCrawler: Runs the search query and crawls the result pages concurrently
- ContentAnalyzer: Extracts title, meta description, headings and body text from a page
"""

from .web_crawler import WebCrawler, SearchError
from .content_analyzer import ContentAnalyzer

__all__ = ['WebCrawler', 'SearchError', 'ContentAnalyzer']
