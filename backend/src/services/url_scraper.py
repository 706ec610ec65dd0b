"""
Metadata fetcher for pre-filling new bookmarks.

Fetches a page once and extracts a title, description, and favicon, falling back
through Open Graph, Twitter card, and plain HTML tags. Failures never reach the
caller: they resolve to a degraded result carrying a warning.
"""
import asyncio
import ipaddress
import logging
import socket
from dataclasses import dataclass
from urllib.parse import urljoin, urlparse

import httpx
from bs4 import BeautifulSoup

from core.config import Settings, get_settings

logger = logging.getLogger(__name__)

USER_AGENT = 'Mozilla/5.0 (compatible; LinkShelf/1.0; +https://linkshelf.app)'
ACCEPT = 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8'

TITLE_MAX_LENGTH = 500
DESCRIPTION_MAX_LENGTH = 1000
FETCH_FAILED_WARNING = 'Could not fetch metadata'

# Checked in order; each is an exact match on the full rel attribute.
FAVICON_RELS = ('icon', 'shortcut icon', 'apple-touch-icon')


class SSRFBlockedError(Exception):
    """Raised when a URL targets a private/internal network address."""

    pass


class FetchError(Exception):
    """Raised when a page could not be fetched as HTML."""

    pass


def is_private_ip(ip_str: str) -> bool:
    """
    Check if an IP address is private, loopback, or otherwise internal.

    Args:
        ip_str: IP address string (IPv4 or IPv6).

    Returns:
        True if the IP is private/internal, False if public.
    """
    try:
        ip = ipaddress.ip_address(ip_str)
        return (
            ip.is_private
            or ip.is_loopback
            or ip.is_link_local
            or ip.is_multicast
            or ip.is_reserved
            or ip.is_unspecified
        )
    except ValueError:
        # Unparseable addresses are treated as internal
        return True


async def validate_url_not_private(url: str) -> None:
    """
    Validate that a URL does not target a private/internal network.

    Resolves the hostname (without blocking the event loop) and checks every
    returned address, so a public name pointing at an internal IP is refused too.

    Raises:
        SSRFBlockedError: If the URL targets a private network.
        ValueError: If the URL has no hostname or the hostname does not resolve.
    """
    hostname = urlparse(url).hostname
    if not hostname:
        raise ValueError(f'Invalid URL (no hostname): {url}')

    if hostname.lower() in ('localhost', 'localhost.localdomain'):
        raise SSRFBlockedError(f'Blocked request to localhost: {url}')

    loop = asyncio.get_running_loop()
    try:
        addrinfo = await loop.getaddrinfo(hostname, None, type=socket.SOCK_STREAM)
    except socket.gaierror as e:
        raise ValueError(f'Could not resolve hostname: {hostname}') from e

    for _, _, _, _, sockaddr in addrinfo:
        ip_str = sockaddr[0]
        if is_private_ip(ip_str):
            raise SSRFBlockedError(
                f'Blocked request to private/internal address: {url} resolves to {ip_str}',
            )


@dataclass
class FetchResult:
    """Raw HTML of a fetched page."""

    content: bytes
    final_url: str
    status_code: int
    content_type: str | None


@dataclass
class ExtractedMetadata:
    """Metadata found in a page; None where the page had nothing."""

    title: str | None
    description: str | None
    favicon_href: str | None


@dataclass
class ScrapedMetadata:
    """Best-effort metadata for a URL. `warning` is set when the fetch failed."""

    url: str
    title: str
    description: str
    favicon: str
    warning: str | None = None


async def fetch_html(url: str, settings: Settings) -> FetchResult:
    """
    GET a page and return its body.

    Follows at most `scraper_max_redirects` redirects and reads at most
    `scraper_max_bytes` bytes. Any status below 400 counts as success. A response
    that declares a non-HTML content type is refused.

    Raises:
        FetchError: On any HTTP status, size, or content-type failure.
        SSRFBlockedError: If the URL or its redirect target is internal.
        httpx.RequestError: On network failures.
    """
    if settings.scraper_block_private_networks:
        await validate_url_not_private(url)

    async with httpx.AsyncClient(
        follow_redirects=True,
        max_redirects=settings.scraper_max_redirects,
        timeout=settings.scraper_timeout,
        headers={'User-Agent': USER_AGENT, 'Accept': ACCEPT},
    ) as client, client.stream('GET', url) as response:
        final_url = str(response.url)
        if settings.scraper_block_private_networks and final_url != url:
            await validate_url_not_private(final_url)

        if response.status_code >= 400:
            raise FetchError(f'HTTP {response.status_code}')

        content_type = response.headers.get('content-type')
        if content_type and 'html' not in content_type.lower():
            raise FetchError(f'Unsupported content type: {content_type}')

        declared_length = response.headers.get('content-length')
        if declared_length and declared_length.isdigit() \
                and int(declared_length) > settings.scraper_max_bytes:
            raise FetchError(f'Response too large: {declared_length} bytes')

        chunks = []
        received = 0
        async for chunk in response.aiter_bytes():
            received += len(chunk)
            if received > settings.scraper_max_bytes:
                raise FetchError(f'Response exceeded {settings.scraper_max_bytes} bytes')
            chunks.append(chunk)

        return FetchResult(
            content=b''.join(chunks),
            final_url=final_url,
            status_code=response.status_code,
            content_type=content_type,
        )


def _meta_content(soup: BeautifulSoup, **attrs: str) -> str | None:
    tag = soup.find('meta', attrs=attrs)
    if tag is None:
        return None
    content = tag.get('content')
    if isinstance(content, str) and content.strip():
        return content.strip()
    return None


def _link_href(soup: BeautifulSoup, rel: str) -> str | None:
    for link in soup.find_all('link', href=True):
        link_rel = link.get('rel')
        if isinstance(link_rel, list):
            link_rel = ' '.join(link_rel)
        if link_rel and link_rel.strip().lower() == rel and link['href'].strip():
            return link['href'].strip()
    return None


def extract_html_metadata(html: str | bytes) -> ExtractedMetadata:
    """
    Extract title, description, and favicon href from HTML.

    Pure function with no I/O.

    Title priority: og:title, twitter:title, then <title>.
    Description priority: og:description, twitter:description, then meta description.
    Favicon priority: rel="icon", rel="shortcut icon", then rel="apple-touch-icon".
    """
    soup = BeautifulSoup(html, 'lxml')

    title = _meta_content(soup, property='og:title') \
        or _meta_content(soup, name='twitter:title')
    if not title:
        title_tag = soup.find('title')
        if title_tag:
            title = title_tag.get_text().strip() or None

    description = _meta_content(soup, property='og:description') \
        or _meta_content(soup, name='twitter:description') \
        or _meta_content(soup, name='description')

    favicon_href = None
    for rel in FAVICON_RELS:
        favicon_href = _link_href(soup, rel)
        if favicon_href:
            break

    return ExtractedMetadata(title=title, description=description, favicon_href=favicon_href)


def resolve_favicon_url(href: str, page_url: str) -> str | None:
    """
    Turn a favicon href into an absolute URL.

    Protocol-relative hrefs take the page's scheme, root-relative hrefs the page's
    origin, and anything else is joined to the page URL. Returns None when the
    page URL cannot be parsed.
    """
    if href.startswith(('http://', 'https://')):
        return href
    parsed = urlparse(page_url)
    if not parsed.scheme or not parsed.netloc:
        return None
    if href.startswith('//'):
        return f'{parsed.scheme}:{href}'
    if href.startswith('/'):
        return f'{parsed.scheme}://{parsed.netloc}{href}'
    return urljoin(page_url, href)


def favicon_service_url(url: str, template: str) -> str:
    """Third-party favicon lookup for the URL's host, or '' without a host."""
    hostname = urlparse(url).hostname
    if not hostname:
        return ''
    return template.format(hostname=hostname)


def fallback_title(url: str) -> str:
    """The URL's hostname without a leading 'www.', or the URL itself."""
    try:
        hostname = urlparse(url).hostname
    except ValueError:
        hostname = None
    if not hostname:
        return url
    return hostname.removeprefix('www.')


async def scrape_metadata(url: str, settings: Settings | None = None) -> ScrapedMetadata:
    """
    Fetch a URL and extract metadata for a new bookmark.

    Never raises. Timeouts (the whole fetch is bounded by `scraper_timeout`),
    network errors, blocked hosts, non-HTML responses, and parse errors all
    produce a degraded result whose title is derived from the hostname and whose
    `warning` is set.

    Args:
        url: The page to fetch.
        settings: Overrides the cached application settings.

    Returns:
        ScrapedMetadata for the URL as requested (not the redirect target).
    """
    settings = settings or get_settings()
    try:
        async with asyncio.timeout(settings.scraper_timeout):
            page = await fetch_html(url, settings)
        metadata = extract_html_metadata(page.content)
    except TimeoutError:
        logger.warning('Metadata fetch timed out for %s', url)
        return _degraded(url)
    except Exception as e:
        logger.warning('Metadata fetch failed for %s: %s', url, e)
        return _degraded(url)

    favicon = None
    if metadata.favicon_href:
        favicon = resolve_favicon_url(metadata.favicon_href, page.final_url)
    if not favicon:
        favicon = favicon_service_url(url, settings.favicon_service_url)

    return ScrapedMetadata(
        url=url,
        title=(metadata.title or url)[:TITLE_MAX_LENGTH],
        description=(metadata.description or '')[:DESCRIPTION_MAX_LENGTH],
        favicon=favicon,
    )


def _degraded(url: str) -> ScrapedMetadata:
    return ScrapedMetadata(
        url=url,
        title=fallback_title(url),
        description='',
        favicon='',
        warning=FETCH_FAILED_WARNING,
    )
