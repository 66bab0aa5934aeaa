"""Field extraction over rendered HTML.

Each ``extract_*`` method is one independent sub-task of the scraping
pipeline. They read a shared BeautifulSoup tree, except ``extract_content``
which strips boilerplate and therefore parses its own copy.
"""

import math
import re
import logging
from typing import Dict, Any, List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

logger = logging.getLogger(__name__)

UNTITLED = "Untitled"

BOILERPLATE_SELECTORS = [
    'script', 'style', 'nav', 'header', 'footer', 'aside',
    '.advertisement', '.ads', '.sidebar', '.menu', '.navigation',
    '.social-share', '.comments', '.related-posts', '.newsletter',
    '.cookie-banner', '.popup', '.modal', '.overlay', '.banner',
    '.promo', '.sponsor', '.affiliate', '.tracking', '.analytics'
]

CONTENT_SELECTORS = {
    'blog': [
        'article', '.post', '.entry', '.blog-post', '.article-content',
        'main', '.content', '.post-content', '.entry-content'
    ],
    'news': [
        'article', '.story', '.news-content', '.article-body',
        'main', '.content', '.story-content', '.news-article'
    ],
    'documentation': [
        'main', '.content', '.documentation', '.docs-content',
        'article', '.doc-content', '.guide-content', '.manual'
    ],
    'tutorial': [
        'article', '.tutorial', '.guide', '.how-to', '.lesson',
        'main', '.content', '.tutorial-content', '.guide-content'
    ],
}
DEFAULT_CONTENT_SELECTORS = [
    'main', 'article', '.content', '.main-content',
    '.page-content', '.post-content', 'body'
]

BLOCK_TAGS = ['h1', 'h2', 'h3', 'h4', 'h5', 'h6', 'p', 'ul', 'ol', 'pre', 'blockquote']
CONTAINER_TAGS = {'ul', 'ol', 'pre', 'blockquote'}
MIN_PARAGRAPH_LENGTH = 10

STANDARD_META = ['description', 'keywords', 'author', 'robots', 'viewport', 'generator', 'theme-color']
OG_META = ['og:title', 'og:description', 'og:image', 'og:url', 'og:type', 'og:site_name', 'og:locale']
TWITTER_META = ['twitter:card', 'twitter:title', 'twitter:description', 'twitter:image', 'twitter:site', 'twitter:creator']
ARTICLE_META = ['article:published_time', 'article:modified_time', 'article:author', 'article:section', 'article:tag']

MAX_IMAGES = 10
MAX_LINKS = 20
MAX_VIDEO_LINKS = 10
WORDS_PER_MINUTE = 200

VIDEO_EMBED_HOSTS = ('youtube.com', 'youtu.be', 'vimeo.com', 'dailymotion.com', 'twitch.tv', 'player.vimeo.com')
VIDEO_LINK_PATTERNS = (
    'youtube.com/watch', 'youtu.be/', 'vimeo.com/', 'dailymotion.com/video',
    'twitch.tv/videos', '.mp4', '.webm', '.mov', '.avi'
)
VIDEO_DATA_ATTRIBUTES = ('data-video', 'data-src', 'data-video-url')


def _dedupe(values: List[str]) -> List[str]:
    return list(dict.fromkeys(values))


def _meta_content(soup: BeautifulSoup, attr: str, key: str) -> Optional[str]:
    element = soup.find('meta', attrs={attr: key})
    if element is None:
        return None
    return (element.get('content') or '').strip()


class ContentExtractor:

    def parse(self, html: str) -> BeautifulSoup:
        return BeautifulSoup(html, 'html.parser')

    def extract_title(self, soup: BeautifulSoup) -> str:
        """Social-preview title, then document title, then the first h1/h2"""
        for attr, key in (('property', 'og:title'), ('name', 'twitter:title')):
            value = _meta_content(soup, attr, key)
            if value:
                return value

        if soup.title and soup.title.get_text(strip=True):
            return soup.title.get_text(strip=True)

        for heading in ('h1', 'h2'):
            element = soup.find(heading)
            if element and element.get_text(strip=True):
                return element.get_text(" ", strip=True)

        return UNTITLED

    def extract_content(self, html: str, kind: str) -> str:
        """Main content as markdown-ish text with boilerplate removed"""
        soup = self.parse(html)
        for selector in BOILERPLATE_SELECTORS:
            for element in soup.select(selector):
                element.decompose()

        root: Optional[Tag] = None
        for selector in CONTENT_SELECTORS.get(kind, DEFAULT_CONTENT_SELECTORS):
            candidate = soup.select_one(selector)
            if candidate is not None and candidate.get_text(strip=True):
                root = candidate
                break
        if root is None:
            root = soup.body or soup

        return self._structured_content(root)

    def _structured_content(self, root: Tag) -> str:
        parts: List[str] = []
        for element in root.find_all(BLOCK_TAGS):
            if self._inside_container(element, root):
                continue

            name = element.name
            if name in ('h1', 'h2', 'h3', 'h4', 'h5', 'h6'):
                text = element.get_text(" ", strip=True)
                if text:
                    parts.append(f"{'#' * int(name[1])} {text}\n\n")
            elif name == 'p':
                text = element.get_text(" ", strip=True)
                if len(text) > MIN_PARAGRAPH_LENGTH:
                    parts.append(f"{text}\n\n")
            elif name in ('ul', 'ol'):
                items = [li.get_text(" ", strip=True) for li in element.find_all('li')]
                items = [item for item in items if item]
                if items:
                    parts.append(''.join(f"- {item}\n" for item in items) + "\n")
            elif name == 'pre':
                text = element.get_text().strip()
                if text:
                    parts.append(f"```\n{text}\n```\n\n")
            elif name == 'blockquote':
                text = element.get_text(" ", strip=True)
                if text:
                    parts.append(f"> {text}\n\n")

        content = ''.join(parts)
        if not content.strip():
            content = root.get_text(" ")
        return content

    @staticmethod
    def _inside_container(element: Tag, root: Tag) -> bool:
        for parent in element.parents:
            if parent is root:
                return False
            if parent.name in CONTAINER_TAGS:
                return True
        return False

    def extract_metadata(self, soup: BeautifulSoup) -> Dict[str, Any]:
        meta: Dict[str, Any] = {}

        for name in STANDARD_META:
            value = _meta_content(soup, 'name', name)
            if value is not None:
                meta[name] = value

        for prop in OG_META:
            value = _meta_content(soup, 'property', prop)
            if value is not None:
                meta[prop.replace('og:', 'og_')] = value

        for name in TWITTER_META:
            value = _meta_content(soup, 'name', name)
            if value is not None:
                meta[name.replace('twitter:', 'twitter_')] = value

        for prop in ARTICLE_META:
            value = _meta_content(soup, 'property', prop)
            if value is not None:
                meta[prop.replace('article:', 'article_')] = value

        html_tag = soup.find('html')
        meta['language'] = (html_tag.get('lang') or '') if html_tag else ''
        return meta

    def extract_images(self, soup: BeautifulSoup, base_url: str) -> List[str]:
        images = []
        for img in soup.find_all('img'):
            src = img.get('src') or img.get('data-src') or img.get('data-lazy')
            if not src or src.startswith('data:'):
                continue
            if 'pixel' in src or 'tracking' in src:
                continue
            images.append(urljoin(base_url, src))
        return _dedupe(images)[:MAX_IMAGES]

    def extract_links(self, soup: BeautifulSoup) -> List[str]:
        """Absolute http(s) links only; relative hrefs are left out"""
        links = []
        for anchor in soup.find_all('a', href=True):
            href = anchor['href'].strip()
            if href.startswith(('http://', 'https://')) and 'javascript:' not in href:
                links.append(href)
        return _dedupe(links)[:MAX_LINKS]

    def extract_video_links(self, soup: BeautifulSoup) -> List[str]:
        videos = []

        for video in soup.find_all('video'):
            if video.get('src'):
                videos.append(video['src'])
            for source in video.find_all('source'):
                if source.get('src'):
                    videos.append(source['src'])

        for iframe in soup.find_all('iframe'):
            src = iframe.get('src')
            if src and any(host in src for host in VIDEO_EMBED_HOSTS):
                videos.append(src)

        for anchor in soup.find_all('a', href=True):
            href = anchor['href']
            if any(pattern in href for pattern in VIDEO_LINK_PATTERNS):
                videos.append(href)

        for element in soup.find_all(lambda tag: tag.name != 'img' and any(tag.has_attr(a) for a in VIDEO_DATA_ATTRIBUTES)):
            value = next((element.get(a) for a in VIDEO_DATA_ATTRIBUTES if element.get(a)), None)
            if value and value.startswith('http'):
                videos.append(value)

        return _dedupe(videos)[:MAX_VIDEO_LINKS]

    @staticmethod
    def clean_text(text: str) -> str:
        text = text.replace('\r\n', '\n').replace('\r', '\n')
        text = re.sub(r'\n{3,}', '\n\n', text)
        text = re.sub(r'[ \t]+', ' ', text)
        text = text.replace('\n ', '\n').replace(' \n', '\n')
        return text.strip()

    @staticmethod
    def count_words(text: str) -> int:
        return len(text.split())

    @staticmethod
    def reading_time(word_count: int) -> int:
        return math.ceil(word_count / WORDS_PER_MINUTE)
