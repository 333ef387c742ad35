"""
Web Capability

``browse_url``: fetch a public page with httpx and reduce it to readable
text with BeautifulSoup. Private and loopback hosts are refused.
"""

import ipaddress
import logging
from typing import Any
from urllib.parse import urlparse

import httpx
from bs4 import BeautifulSoup

from rin.core.tools.base import ToolContext, ToolHandler

logger = logging.getLogger(__name__)

HTTP_TIMEOUT = 15.0
MAX_CONTENT_CHARS = 4000
MAX_RESPONSE_BYTES = 2 * 1024 * 1024
USER_AGENT = "Mozilla/5.0 (compatible; Rin-Bot/1.0)"

_STRIP_TAGS = ["script", "style", "nav", "footer", "header", "aside", "iframe", "noscript"]


class BrowseError(Exception):
    """A page could not be fetched or rendered to text."""


def is_private_host(url: str) -> bool:
    """True for URLs that point at localhost, private or link-local addresses."""
    try:
        host = (urlparse(url).hostname or "").strip("[]").lower()
    except ValueError:
        return True
    if not host or host == "localhost" or host.endswith(".localhost"):
        return True
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        return False
    return (
        address.is_private
        or address.is_loopback
        or address.is_link_local
        or address.is_unspecified
        or address.is_reserved
    )


def extract_readable_text(html: str) -> tuple[str, str]:
    """Return ``(title, text)`` for an HTML document."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(_STRIP_TAGS):
        tag.decompose()
    for tag in soup.select("[hidden]"):
        tag.decompose()

    title = soup.title.get_text(strip=True) if soup.title else ""
    main = soup.select_one("main, article, [role=main]")
    root = main if main is not None and main.get_text(strip=True) else (soup.body or soup)
    text = " ".join(root.get_text(" ").split())
    return title, text


async def browse_url(
    url: str,
    client: httpx.AsyncClient | None = None,
) -> tuple[str, str]:
    """
    Fetch ``url`` and return ``(title, text)``.

    Raises:
        BrowseError: For private hosts, HTTP errors and non-text content
    """
    if not url.lower().startswith(("http://", "https://")):
        raise BrowseError("Only http(s) URLs are supported.")
    if is_private_host(url):
        raise BrowseError("Access to private/local addresses is not allowed.")

    owns_client = client is None
    http = client or httpx.AsyncClient(
        timeout=HTTP_TIMEOUT,
        follow_redirects=True,
        headers={"User-Agent": USER_AGENT},
    )
    try:
        response = await http.get(url)
    except httpx.HTTPError as e:
        raise BrowseError(f"Request failed: {type(e).__name__}") from e
    finally:
        if owns_client:
            await http.aclose()

    if response.status_code >= 400:
        raise BrowseError(f"HTTP {response.status_code}")

    content_type = response.headers.get("content-type", "").lower()
    if "html" not in content_type and "text" not in content_type:
        raise BrowseError(f"Unsupported content type: {content_type or 'unknown'}")

    body = response.content[:MAX_RESPONSE_BYTES].decode(response.encoding or "utf-8", "replace")
    if "html" in content_type:
        title, text = extract_readable_text(body)
    else:
        title, text = "", " ".join(body.split())

    if len(text) > MAX_CONTENT_CHARS:
        extra = len(text) - MAX_CONTENT_CHARS
        text = text[:MAX_CONTENT_CHARS] + f"\n... [truncated, {extra} more chars]"
    return title, text


async def browse_url_tool(args: dict[str, Any], context: ToolContext) -> str:
    try:
        title, text = await browse_url(str(args["url"]))
    except BrowseError as e:
        return f"Error: {e}"
    return f"Title: {title}\n\n{text}"


HANDLERS: dict[str, ToolHandler] = {
    "browse_url": browse_url_tool,
}
