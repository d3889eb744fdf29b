"""Best-effort page title lookup for URLs being bookmarked."""
import ipaddress
import logging
import socket
from dataclasses import dataclass
from urllib.parse import urlparse

import httpx
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

USER_AGENT = 'Mozilla/5.0 (compatible; BookmarksCatalog/1.0)'
DEFAULT_TIMEOUT = 5.0


class SSRFBlockedError(Exception):
    """Raised when a URL targets a private/internal network address."""


def is_private_ip(ip_str: str) -> bool:
    """True if the address is private, loopback, link-local or otherwise internal."""
    try:
        ip = ipaddress.ip_address(ip_str)
    except ValueError:
        # Unparseable addresses are treated as internal
        return True
    return (
        ip.is_private
        or ip.is_loopback
        or ip.is_link_local
        or ip.is_multicast
        or ip.is_reserved
        or ip.is_unspecified
    )


def validate_url_not_private(url: str) -> None:
    """
    Reject URLs whose host is, or resolves to, an internal address.

    Raises:
        SSRFBlockedError: If the URL targets a private network.
        ValueError: If the URL is malformed or the host cannot be resolved.
    """
    parsed = urlparse(url)
    if parsed.scheme not in ('http', 'https'):
        raise ValueError(f"Unsupported URL scheme: {url}")
    hostname = parsed.hostname
    if not hostname:
        raise ValueError(f"Invalid URL (no hostname): {url}")

    if hostname.lower() in ('localhost', 'localhost.localdomain'):
        raise SSRFBlockedError(f"Blocked request to localhost: {url}")

    try:
        addrinfo = socket.getaddrinfo(hostname, None, socket.AF_UNSPEC, socket.SOCK_STREAM)
    except socket.gaierror as e:
        raise ValueError(f"Could not resolve hostname: {hostname}") from e
    for _, _, _, _, sockaddr in addrinfo:
        ip_str = sockaddr[0]
        if is_private_ip(ip_str):
            raise SSRFBlockedError(
                f"Blocked request to private/internal address: {url} resolves to {ip_str}",
            )


@dataclass
class FetchResult:
    """Result of fetching a URL."""

    html: str | None
    final_url: str
    status_code: int | None
    error: str | None


@dataclass
class PageTitle:
    """Title of a fetched page; error is set when no title could be obtained."""

    url: str
    final_url: str
    title: str | None
    error: str | None


async def fetch_url(url: str, timeout: float = DEFAULT_TIMEOUT) -> FetchResult:  # noqa: ASYNC109
    """
    Fetch raw HTML from a URL.

    Returns error info on failure rather than raising. Redirects are followed
    and the final URL is checked against the SSRF guard as well.
    """
    try:
        validate_url_not_private(url)
    except (SSRFBlockedError, ValueError) as e:
        return FetchResult(html=None, final_url=url, status_code=None, error=str(e))

    try:
        async with httpx.AsyncClient(
            follow_redirects=True,
            timeout=timeout,
            headers={'User-Agent': USER_AGENT},
            http2=True,
        ) as client:
            response = await client.get(url)
    except httpx.TimeoutException:
        return FetchResult(html=None, final_url=url, status_code=None, error="Request timed out")
    except httpx.RequestError as e:
        return FetchResult(html=None, final_url=url, status_code=None, error=f"Request failed: {e}")

    final_url = str(response.url)
    try:
        validate_url_not_private(final_url)
    except (SSRFBlockedError, ValueError) as e:
        return FetchResult(
            html=None,
            final_url=final_url,
            status_code=response.status_code,
            error=f"Redirect blocked: {e}",
        )

    if not response.is_success:
        return FetchResult(
            html=None,
            final_url=final_url,
            status_code=response.status_code,
            error=f"HTTP {response.status_code}",
        )

    content_type = response.headers.get('content-type', '')
    if 'text/html' not in content_type.lower():
        return FetchResult(
            html=None,
            final_url=final_url,
            status_code=response.status_code,
            error=f"Non-HTML content type: {content_type}",
        )

    return FetchResult(
        html=response.text,
        final_url=final_url,
        status_code=response.status_code,
        error=None,
    )


def extract_title(html: str) -> str | None:
    """
    Extract the page title from HTML.

    Pure function. Tries <title>, then og:title, then twitter:title. Entities
    are decoded and runs of whitespace collapsed to single spaces.
    """
    soup = BeautifulSoup(html, 'lxml')

    candidates = []
    title_tag = soup.find('title')
    if title_tag:
        candidates.append(title_tag.get_text())
    og_title = soup.find('meta', property='og:title')
    if og_title:
        candidates.append(og_title.get('content') or '')
    twitter_title = soup.find('meta', attrs={'name': 'twitter:title'})
    if twitter_title:
        candidates.append(twitter_title.get('content') or '')

    for candidate in candidates:
        title = ' '.join(candidate.split())
        if title:
            return title
    return None


async def fetch_page_title(url: str, timeout: float = DEFAULT_TIMEOUT) -> PageTitle:  # noqa: ASYNC109
    """Fetch `url` and extract its title. Never raises."""
    result = await fetch_url(url, timeout=timeout)
    if result.html is None:
        logger.info("page_title_fetch_failed", extra={"url": url, "error": result.error})
        return PageTitle(url=url, final_url=result.final_url, title=None, error=result.error)

    title = extract_title(result.html)
    return PageTitle(
        url=url,
        final_url=result.final_url,
        title=title,
        error=None if title else "No title found",
    )
