import httpx
import pytest

from zerpha.services.errors import PageFetchError, PageFetchTimeoutError
from zerpha.services.retrieval.page_fetcher import (
    ScrapedPage,
    ScrapeResult,
    extract_links,
    fetch_html,
    fetch_page_text,
    find_link_by_keywords,
    html_to_text,
    scrape_company_site,
)

HOME = """
<html><head><style>body{color:red}</style><script>var x = 1;</script></head>
<body>
  <h1>Acme</h1><p>Scheduling   for dentists.</p>
  <a href="/platform">Our Platform</a>
  <a href="https://acme.com/plans">See plans</a>
  <a href="mailto:hi@acme.com">Mail</a>
  <a href="#top">Top</a>
</body></html>
"""


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)


def test_html_to_text_drops_scripts_and_collapses_whitespace():
    text = html_to_text(HOME)
    assert "Scheduling for dentists." in text
    assert "var x" not in text
    assert "color:red" not in text
    assert html_to_text(HOME, max_chars=4) == "Acme"


def test_extract_links_resolves_and_filters():
    links = extract_links(HOME, "https://acme.com/")
    hrefs = [href for href, _ in links]
    assert hrefs == ["https://acme.com/platform", "https://acme.com/plans"]
    assert find_link_by_keywords(links, ("product", "platform")) == "https://acme.com/platform"
    assert find_link_by_keywords(links, ("pricing", "plans")) == "https://acme.com/plans"
    assert find_link_by_keywords(links, ("careers",)) is None


def test_combined_text_labels_pages_and_truncates():
    result = ScrapeResult(
        pages=[
            ScrapedPage(page_type="home", url="https://acme.com", text="Home text"),
            ScrapedPage(page_type="pricing", url="https://acme.com/plans", text="Pricing text"),
            ScrapedPage(page_type="product", url="https://acme.com/x", text=""),
        ]
    )
    assert result.combined_text() == "[HOME]\nHome text\n\n[PRICING]\nPricing text"
    assert result.combined_text(max_chars=6) == "[HOME]"


@pytest.mark.asyncio
async def test_scrape_company_site_fetches_home_product_and_pricing():
    def handler(request: httpx.Request) -> httpx.Response:
        pages = {
            "/": HOME,
            "/platform": "<html><body><p>Online booking and reminders.</p></body></html>",
            "/plans": "<html><body><p>From $99 per month.</p></body></html>",
        }
        body = pages.get(request.url.path)
        if body is None:
            return httpx.Response(404)
        return httpx.Response(200, text=body)

    async with _client(handler) as client:
        result = await scrape_company_site("https://acme.com/", client=client)

    assert [page.page_type for page in result.pages] == ["home", "product", "pricing"]
    assert result.errors == []
    combined = result.combined_text()
    assert "[PRODUCT]\nOnline booking and reminders." in combined
    assert "[PRICING]\nFrom $99 per month." in combined


@pytest.mark.asyncio
async def test_scrape_company_site_records_subpage_failures():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/":
            return httpx.Response(200, text=HOME)
        return httpx.Response(500)

    async with _client(handler) as client:
        result = await scrape_company_site("https://acme.com/", client=client)

    assert [page.page_type for page in result.pages] == ["home"]
    assert len(result.errors) == 2


@pytest.mark.asyncio
async def test_scrape_company_site_home_failure_leaves_no_pages():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    async with _client(handler) as client:
        result = await scrape_company_site("https://acme.com/", client=client)

    assert result.pages == []
    assert result.errors and "Homepage fetch failed" in result.errors[0]


@pytest.mark.asyncio
async def test_fetch_html_maps_timeouts():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    async with _client(handler) as client:
        with pytest.raises(PageFetchTimeoutError):
            await fetch_html(client, "https://slow.example")


@pytest.mark.asyncio
async def test_fetch_html_maps_status_errors():
    async with _client(lambda request: httpx.Response(403)) as client:
        with pytest.raises(PageFetchError) as excinfo:
            await fetch_html(client, "https://blocked.example")
    assert "403" in str(excinfo.value)
    assert excinfo.value.url == "https://blocked.example"


@pytest.mark.asyncio
async def test_fetch_page_text_returns_text_and_links():
    async with _client(lambda request: httpx.Response(200, text=HOME)) as client:
        page = await fetch_page_text("https://acme.com/", client=client, page_type="pricing")

    assert page.page_type == "pricing"
    assert page.url == "https://acme.com/"
    assert "Scheduling for dentists." in page.text
    assert [href for href, _ in page.links] == ["https://acme.com/platform", "https://acme.com/plans"]
