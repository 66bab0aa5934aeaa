"""Deterministic link classification.

Scores candidate URLs from their path, their domain and the text of the page
they were found on. No learned model is involved: the same input always yields
the same content type and confidence.
"""

import math
import logging
from typing import Optional
from urllib.parse import urlparse

import validators

from linkengine.models.link import ContentType
from linkengine.schemas.scrape_result import LinkDiscoveryResult

logger = logging.getLogger(__name__)

# (path fragments, content type, base confidence); first match wins
URL_PATTERNS = [
    (("/blog/", "/post/", "/article/"), ContentType.BLOG, 0.8),
    (("/news/", "/breaking/", "/story/"), ContentType.NEWS, 0.8),
    (("/docs/", "/documentation/", "/guide/"), ContentType.DOCUMENTATION, 0.9),
    (("/api/", "/reference/"), ContentType.API, 0.9),
    (("/tutorial/", "/how-to/"), ContentType.TUTORIAL, 0.8),
    (("/wiki/", "/encyclopedia/"), ContentType.WIKI, 0.7),
]

DEFAULT_CONFIDENCE = 0.5
INVALID_CONFIDENCE = 0.1
INVALID_CONTEXT = "Invalid URL or analysis failed"

TRUSTED_DOMAINS = [
    'github.com', 'stackoverflow.com', 'developer.mozilla.org', 'docs.python.org',
    'nodejs.org', 'reactjs.org', 'vuejs.org', 'angular.io', 'typescriptlang.org',
    'medium.com', 'dev.to', 'hashnode.com', 'freecodecamp.org', 'w3schools.com'
]
TRUSTED_DOMAIN_BOOST = 0.2

RELEVANCE_KEYWORDS = [
    'tutorial', 'guide', 'documentation', 'api', 'reference', 'example',
    'blog', 'article', 'news', 'update', 'release', 'feature'
]
KEYWORD_BOOST = 0.1

CONTEXT_SNIPPET_LENGTH = 200

SCRAPE_INTERVALS = {
    ContentType.NEWS.value: 3600,             # 1 hour
    ContentType.BLOG.value: 86400,            # 24 hours
    ContentType.DOCUMENTATION.value: 604800,  # 1 week
    ContentType.API.value: 604800,            # 1 week
    ContentType.TUTORIAL.value: 2592000,      # 30 days
    ContentType.WIKI.value: 2592000,          # 30 days
    ContentType.UNKNOWN.value: 86400,         # 24 hours
}

NEWS_DOMAINS = ('news.', 'reuters.com', 'bbc.com', 'cnn.com')


def get_scrape_interval(content_type: Optional[str]) -> int:
    """Seconds between scrapes for a content type, defaulting to the unknown interval."""
    return SCRAPE_INTERVALS.get(content_type or "", SCRAPE_INTERVALS[ContentType.UNKNOWN.value])


def priority_from_confidence(confidence: float) -> int:
    """Map a 0-1 confidence onto the 0-10 priority scale."""
    # round() guards against 0.7999999 style float sums flooring one step low
    return max(0, min(10, math.floor(round(confidence * 10, 6))))


def extract_domain(url: str) -> str:
    return (urlparse(url).hostname or "").lower()


def is_http_url(url: str) -> bool:
    """True for any http(s) URL with a host, including localhost and underscored hosts."""
    try:
        parsed = urlparse(url)
        parsed.port  # raises ValueError on a non-numeric or out-of-range port
    except ValueError:
        return False
    if parsed.scheme not in ("http", "https"):
        return False
    if validators.url(url, simple_host=True):
        return True
    host = parsed.hostname or ""
    return bool(host) and not any(c.isspace() for c in host)


class LinkClassifier:
    """Heuristic content-type and confidence scoring for discovered URLs."""

    def analyze_link(self, url: str, context: Optional[str]) -> LinkDiscoveryResult:
        """Classify one candidate URL using the text it was found in."""
        try:
            if not is_http_url(url):
                raise ValueError(f"Malformed URL: {url}")

            domain = extract_domain(url)
            url_lower = url.lower()

            content_type = ContentType.UNKNOWN
            confidence = DEFAULT_CONFIDENCE
            for fragments, pattern_type, base_confidence in URL_PATTERNS:
                if any(fragment in url_lower for fragment in fragments):
                    content_type = pattern_type
                    confidence = base_confidence
                    break

            if any(trusted in domain for trusted in TRUSTED_DOMAINS):
                confidence = min(confidence + TRUSTED_DOMAIN_BOOST, 1.0)

            context = context or ""
            context_lower = context.lower()
            keyword_matches = sum(1 for keyword in RELEVANCE_KEYWORDS if keyword in context_lower)
            confidence = min(confidence + keyword_matches * KEYWORD_BOOST, 1.0)

            return LinkDiscoveryResult(
                url=url,
                content_type=content_type.value,
                confidence=round(confidence, 2),
                context=context[:CONTEXT_SNIPPET_LENGTH] + '...',
            )
        except Exception as e:
            logger.debug(f"Link analysis failed for {url}: {e}")
            return LinkDiscoveryResult(
                url=url,
                confidence=INVALID_CONFIDENCE,
                context=INVALID_CONTEXT,
            )

    def detect_content_type(self, url: str, domain: Optional[str] = None, title: Optional[str] = None) -> str:
        """Fallback classification from domain and title for links whose path says nothing."""
        url_lower = url.lower()
        domain_lower = (domain or extract_domain(url)).lower()
        title_lower = (title or "").lower()

        if 'github.com' in domain_lower:
            if '/wiki/' in url_lower:
                return ContentType.DOCUMENTATION.value
            if '/issues/' in url_lower or '/pull/' in url_lower:
                return ContentType.FORUM.value
            return ContentType.GITHUB.value

        if 'stackoverflow.com' in domain_lower:
            return ContentType.STACKOVERFLOW.value

        if ('docs.' in domain_lower or 'documentation' in domain_lower
                or '/docs/' in url_lower or '/documentation/' in url_lower):
            return ContentType.DOCUMENTATION.value

        if ('/api/' in url_lower or '/reference/' in url_lower
                or 'api reference' in title_lower or 'api documentation' in title_lower):
            return ContentType.API.value

        if ('blog.' in domain_lower or 'medium.com' in domain_lower or 'dev.to' in domain_lower
                or '/blog/' in url_lower or 'blog' in title_lower):
            return ContentType.BLOG.value

        if any(news in domain_lower for news in NEWS_DOMAINS) or 'news' in title_lower:
            return ContentType.NEWS.value

        if ('/tutorial/' in url_lower or '/guide/' in url_lower or '/how-to/' in url_lower
                or 'tutorial' in title_lower or 'guide' in title_lower or 'how to' in title_lower):
            return ContentType.TUTORIAL.value

        if ('forum.' in domain_lower or 'discourse.' in domain_lower or '/forum/' in url_lower
                or '/discussion/' in url_lower or 'discussion' in title_lower):
            return ContentType.FORUM.value

        return ContentType.UNKNOWN.value
