"""Bounded-timeout page fetching for company websites."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple
from urllib.parse import urljoin

import httpx
from selectolax.parser import HTMLParser

from zerpha.config import get_settings
from zerpha.services.errors import PageFetchError, PageFetchTimeoutError

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (compatible; ZerphaBot/1.0; +https://zerpha.app/market-intel)"

PRODUCT_KEYWORDS = ("product", "solution", "platform", "features")
PRICING_KEYWORDS = ("pricing", "price", "plans", "plan", "how-it-works")

_WS_RE = re.compile(r"\s+")


@dataclass
class ScrapedPage:
    page_type: str  # home, product, pricing
    url: str
    text: str
    links: List[Tuple[str, str]] = field(default_factory=list)


@dataclass
class ScrapeResult:
    pages: List[ScrapedPage] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def combined_text(self, max_chars: int = 20000) -> str:
        blocks = [f"[{page.page_type.upper()}]\n{page.text}" for page in self.pages if page.text]
        return "\n\n".join(blocks)[:max_chars]


def html_to_text(html: str, max_chars: Optional[int] = None) -> str:
    tree = HTMLParser(html or "")
    for tag in ("script", "style", "noscript", "template", "svg"):
        for node in tree.css(tag):
            node.decompose()
    root = tree.body or tree.root
    if root is None:
        return ""
    text = _WS_RE.sub(" ", root.text(separator=" ") or "").strip()
    limit = get_settings().page_text_max_chars if max_chars is None else max_chars
    return text[: max(0, int(limit))]


def extract_links(html: str, base_url: str) -> List[Tuple[str, str]]:
    links: List[Tuple[str, str]] = []
    tree = HTMLParser(html or "")
    for anchor in tree.css("a[href]"):
        href = str(anchor.attributes.get("href") or "").strip()
        if not href or href.startswith("#") or href.lower().startswith(("javascript:", "mailto:", "tel:")):
            continue
        absolute = urljoin(base_url, href)
        if not absolute.startswith(("http://", "https://")):
            continue
        label = _WS_RE.sub(" ", anchor.text(separator=" ") or "").strip().lower()
        links.append((absolute, label))
    return links


def find_link_by_keywords(links: Sequence[Tuple[str, str]], keywords: Sequence[str]) -> Optional[str]:
    for keyword in keywords:
        for href, label in links:
            if keyword in href.lower() or keyword in label:
                return href
    return None


def _new_client(timeout_seconds: float) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=timeout_seconds,
        follow_redirects=True,
        headers={
            "User-Agent": USER_AGENT,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
        },
    )


async def fetch_html(client: httpx.AsyncClient, url: str) -> str:
    try:
        response = await client.get(url)
        response.raise_for_status()
    except httpx.TimeoutException as exc:
        raise PageFetchTimeoutError(f"Request timed out: {url}", url=url) from exc
    except httpx.HTTPStatusError as exc:
        raise PageFetchError(f"Request failed with status {exc.response.status_code}: {url}", url=url) from exc
    except httpx.HTTPError as exc:
        raise PageFetchError(f"Request failed: {url}: {exc}", url=url) from exc
    return response.text


async def fetch_page_text(
    url: str,
    timeout_seconds: Optional[float] = None,
    client: Optional[httpx.AsyncClient] = None,
    page_type: str = "home",
) -> ScrapedPage:
    """Fetch one page as visible text plus the links found on it.

    Uses ``client`` when given, otherwise a short-lived client with the
    configured timeout.
    """
    if client is not None:
        html = await fetch_html(client, url)
    else:
        timeout = float(timeout_seconds or get_settings().page_fetch_timeout_seconds)
        async with _new_client(timeout) as own_client:
            html = await fetch_html(own_client, url)
    return ScrapedPage(page_type=page_type, url=url, text=html_to_text(html), links=extract_links(html, url))


async def scrape_company_site(
    base_url: str,
    timeout_seconds: Optional[float] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> ScrapeResult:
    """Fetch the home page plus product and pricing pages linked from it.

    Sub-page failures are recorded in ``errors``; a home page failure leaves
    ``pages`` empty.
    """
    timeout = float(timeout_seconds or get_settings().page_fetch_timeout_seconds)
    result = ScrapeResult()
    owns_client = client is None
    http = client or _new_client(timeout)
    try:
        try:
            home = await fetch_page_text(base_url, client=http, page_type="home")
        except PageFetchError as exc:
            result.errors.append(f"Homepage fetch failed ({base_url}): {exc}")
            return result
        result.pages.append(home)

        for page_type, keywords in (("product", PRODUCT_KEYWORDS), ("pricing", PRICING_KEYWORDS)):
            target = find_link_by_keywords(home.links, keywords)
            if not target:
                continue
            try:
                page = await fetch_page_text(target, client=http, page_type=page_type)
            except PageFetchError as exc:
                result.errors.append(f"{page_type.title()} page failed ({target}): {exc}")
                continue
            result.pages.append(page)
    finally:
        if owns_client:
            await http.aclose()

    if result.errors:
        logger.info("Scrape of %s finished with %d error(s): %s", base_url, len(result.errors), result.errors)
    return result
