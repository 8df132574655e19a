import re
import logging
from dataclasses import dataclass
from typing import Dict
from urllib.parse import urlparse

import requests
from bs4 import BeautifulSoup, Comment

logger = logging.getLogger(__name__)

REQUEST_HEADERS = {
    'User-Agent': 'Mozilla/5.0 (compatible; FraudShield/1.0)',
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
    'Accept-Language': 'en-US,en;q=0.5',
    'DNT': '1',
    'Upgrade-Insecure-Requests': '1',
}

_WHITESPACE = re.compile(r'\s+')


class UrlExtractionError(Exception):
    """Raised when a page cannot be fetched or is not usable"""


@dataclass(frozen=True)
class UrlExtraction:
    url: str
    text: str
    title: str
    description: str
    status_code: int
    content_length: int
    html_length: int

    def meta(self) -> Dict:
        return {
            'url': self.url,
            'title': self.title,
            'description': self.description,
            'status_code': self.status_code,
            'content_length': self.content_length,
            'html_length': self.html_length,
        }


def is_http_url(url: str) -> bool:
    parsed = urlparse(url or '')
    return parsed.scheme in ('http', 'https') and bool(parsed.netloc)


def extract_from_url(url: str, timeout: int = 15, max_redirects: int = 5) -> UrlExtraction:
    """
    Fetch a page and return its visible text plus title/description

    Raises:
        UrlExtractionError: invalid URL, network failure or non-2xx response
    """
    if not is_http_url(url):
        raise UrlExtractionError("Invalid URL format")

    session = requests.Session()
    session.max_redirects = max_redirects
    session.headers.update(REQUEST_HEADERS)

    try:
        response = session.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.Timeout as e:
        raise UrlExtractionError("Request timed out - website took too long to respond") from e
    except requests.TooManyRedirects as e:
        raise UrlExtractionError("Too many redirects") from e
    except requests.ConnectionError as e:
        raise UrlExtractionError("Website not found or network error") from e
    except requests.HTTPError as e:
        status = e.response.status_code if e.response is not None else 'error'
        reason = e.response.reason if e.response is not None else str(e)
        raise UrlExtractionError(f"HTTP {status}: {reason}") from e
    except requests.RequestException as e:
        raise UrlExtractionError(str(e)) from e
    finally:
        session.close()

    html = response.text or ''
    soup = BeautifulSoup(html, 'lxml')

    for tag in soup(['script', 'style', 'noscript']):
        tag.decompose()
    for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
        comment.extract()

    title = soup.title.get_text(strip=True) if soup.title else ''
    description_tag = soup.find('meta', attrs={'name': re.compile(r'^description$', re.I)})
    description = (description_tag.get('content') or '').strip() if description_tag else ''

    text = _WHITESPACE.sub(' ', soup.get_text(separator=' ')).strip()
    if len(text) < 50:
        logger.warning("Very little text extracted from %s, page may be dynamic", url)

    result = UrlExtraction(
        url=url,
        text=text,
        title=title or 'Untitled',
        description=description,
        status_code=response.status_code,
        content_length=len(text),
        html_length=len(html),
    )
    logger.info(f"URL extraction successful: \"{result.title}\" ({result.content_length} chars)")
    return result
