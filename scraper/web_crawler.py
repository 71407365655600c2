import logging
from concurrent.futures import ThreadPoolExecutor
from urllib.parse import urljoin, urlparse, parse_qs

import requests
from bs4 import BeautifulSoup

from .content_analyzer import ContentAnalyzer

logger = logging.getLogger(__name__)

SEARCH_URL = 'https://html.duckduckgo.com/html/'
USER_AGENT = (
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36'
)


class SearchError(Exception):
    """The search engine answered with a non-success status."""


class WebCrawler:
    def __init__(self, results_count=5, timeout=10, content_analyzer=None):
        self.headers = {
            'User-Agent': USER_AGENT
        }
        self.results_count = results_count
        self.timeout = timeout
        self.content_analyzer = content_analyzer or ContentAnalyzer()

    def search_web(self, keyword):
        """Query DuckDuckGo and return the top results as {title, url, snippet} dicts"""
        logger.info(f"Searching the web for '{keyword}'")
        response = requests.post(
            SEARCH_URL,
            data={'q': keyword},
            headers=self.headers,
            timeout=self.timeout,
        )
        if not response.ok:
            raise SearchError(f"Search failed: {response.status_code}")

        soup = BeautifulSoup(response.text, 'html.parser')
        results = []

        for element in soup.select('.result'):
            if len(results) >= self.results_count:
                break

            anchor = element.select_one('a.result__a')
            if anchor is None:
                continue

            title = anchor.get_text(strip=True)
            url = self._resolve_redirect(anchor.get('href', ''))
            snippet_tag = element.select_one('.result__snippet')
            snippet = snippet_tag.get_text(strip=True) if snippet_tag else ''

            if title and self.is_valid_url(url):
                results.append({'title': title, 'url': url, 'snippet': snippet})

        logger.info(f"Search for '{keyword}' returned {len(results)} results")
        return results

    def crawl_page(self, url):
        """Fetch a page and extract its title, meta description, headings and body text"""
        logger.info(f"Crawling: {url}")
        response = requests.get(url, headers=self.headers, timeout=self.timeout)
        response.raise_for_status()
        return self.content_analyzer.extract_page(response.text, url)

    def search_and_crawl(self, keyword, progress_callback=None):
        """Search for the keyword and crawl every result concurrently.

        Pages that fail to crawl are left out; the rest keep their search ranking.
        """
        search_results = self.search_web(keyword)

        if progress_callback:
            progress_callback('crawling')

        if not search_results:
            return {'keyword': keyword, 'results': []}

        with ThreadPoolExecutor(max_workers=len(search_results)) as executor:
            crawled = list(executor.map(self._crawl_or_none, [r['url'] for r in search_results]))

        results = [page for page in crawled if page is not None]
        logger.info(f"Crawled {len(results)}/{len(search_results)} pages for '{keyword}'")
        return {'keyword': keyword, 'results': results}

    def _crawl_or_none(self, url):
        try:
            return self.crawl_page(url)
        except Exception as e:
            logger.warning(f"Failed to crawl {url}: {str(e)}")
            return None

    def _resolve_redirect(self, href):
        """DuckDuckGo wraps result links in a redirect carrying the target in `uddg`"""
        if not href:
            return ''
        absolute = urljoin('https://duckduckgo.com', href)
        target = parse_qs(urlparse(absolute).query).get('uddg')
        return target[0] if target else href

    def is_valid_url(self, url):
        """Check if URL is valid and has proper scheme"""
        try:
            result = urlparse(url)
            return all([result.scheme in ['http', 'https'], result.netloc])
        except ValueError as e:
            logger.error(f"URL validation failed: {str(e)}")
            return False
