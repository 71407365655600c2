import re
import logging

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

NON_CONTENT_TAGS = ['script', 'style', 'nav', 'footer', 'aside', 'header', 'iframe', 'noscript']
HEADING_TAGS = ['h1', 'h2', 'h3']


class ContentAnalyzer:
    """Turns a fetched HTML page into the fields used for competitor analysis."""

    def __init__(self, max_body_chars=3000):
        self.max_body_chars = max_body_chars

    def extract_page(self, html_content, url):
        soup = BeautifulSoup(html_content, 'html.parser')

        for element in soup(NON_CONTENT_TAGS):
            element.decompose()

        return {
            'url': url,
            'title': self._extract_title(soup),
            'meta_description': self._extract_meta_description(soup),
            'headings': self._extract_headings(soup),
            'body_text': self._extract_body_text(soup),
        }

    def _extract_title(self, soup):
        tag = soup.find('title')
        return tag.get_text(strip=True) if tag else ''

    def _extract_meta_description(self, soup):
        tag = soup.find('meta', attrs={'name': 'description'})
        if tag and tag.get('content'):
            return tag['content'].strip()
        return ''

    def _extract_headings(self, soup):
        headings = []
        for element in soup.find_all(HEADING_TAGS):
            text = self._clean_text(element.get_text(' '))
            if text:
                headings.append(f"{element.name.upper()}: {text}")
        return headings

    def _extract_body_text(self, soup):
        # Prefer the most specific content container available
        container = soup.find('article') or soup.find('main') or soup.body or soup
        text = self._clean_text(container.get_text(' '))

        if len(text) > self.max_body_chars:
            text = text[:self.max_body_chars] + '...'
        return text

    @staticmethod
    def _clean_text(text):
        return re.sub(r'\s+', ' ', text).strip()
