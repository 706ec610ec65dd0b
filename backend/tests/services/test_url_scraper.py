"""
Tests for the metadata fetcher.

Outbound HTTP is intercepted with respx; no test touches the network.
"""
from collections.abc import Generator

import httpx
import pytest
import respx

from core.config import Settings
from services.url_scraper import (
    DESCRIPTION_MAX_LENGTH,
    FETCH_FAILED_WARNING,
    TITLE_MAX_LENGTH,
    USER_AGENT,
    SSRFBlockedError,
    extract_html_metadata,
    fallback_title,
    favicon_service_url,
    is_private_ip,
    resolve_favicon_url,
    scrape_metadata,
    validate_url_not_private,
)


@pytest.fixture
def mock_web() -> Generator[respx.MockRouter]:
    """Route every httpx request through respx; unmatched requests fail."""
    with respx.mock(assert_all_called=False) as router:
        yield router


@pytest.fixture
def scraper_settings() -> Settings:
    """Settings that let mocked hostnames through the private-network check."""
    return Settings(storage_backend="memory", scraper_block_private_networks=False)


class TestExtractHtmlMetadata:
    """Pure HTML extraction."""

    def test__extract_html_metadata__og_title_wins(self) -> None:
        html = """
            <html><head>
              <title>Plain</title>
              <meta name="twitter:title" content="Twitter">
              <meta property="og:title" content="Open Graph">
            </head></html>
        """
        assert extract_html_metadata(html).title == "Open Graph"

    def test__extract_html_metadata__twitter_before_title_tag(self) -> None:
        html = '<title>Plain</title><meta name="twitter:title" content="Twitter">'
        assert extract_html_metadata(html).title == "Twitter"

    def test__extract_html_metadata__title_tag_fallback(self) -> None:
        assert extract_html_metadata("<title>  Plain  </title>").title == "Plain"

    def test__extract_html_metadata__description_fallbacks(self) -> None:
        html = """
            <meta name="description" content="Meta">
            <meta name="twitter:description" content="Twitter">
        """
        assert extract_html_metadata(html).description == "Twitter"
        assert extract_html_metadata(
            '<meta name="description" content="Meta">',
        ).description == "Meta"

    def test__extract_html_metadata__empty_page(self) -> None:
        metadata = extract_html_metadata("<html></html>")

        assert metadata.title is None
        assert metadata.description is None
        assert metadata.favicon_href is None

    def test__extract_html_metadata__favicon_rel_priority(self) -> None:
        html = """
            <link rel="apple-touch-icon" href="/apple.png">
            <link rel="shortcut icon" href="/shortcut.ico">
            <link rel="icon" href="/icon.png">
        """
        assert extract_html_metadata(html).favicon_href == "/icon.png"

    def test__extract_html_metadata__shortcut_icon(self) -> None:
        html = """
            <link rel="apple-touch-icon" href="/apple.png">
            <link rel="shortcut icon" href="/shortcut.ico">
        """
        assert extract_html_metadata(html).favicon_href == "/shortcut.ico"


class TestUrlHelpers:
    """Favicon resolution and title fallback."""

    @pytest.mark.parametrize(
        ("href", "expected"),
        [
            ("//cdn.example.com/icon.png", "https://cdn.example.com/icon.png"),
            ("/favicon.ico", "https://example.com/favicon.ico"),
            ("icon.png", "https://example.com/docs/icon.png"),
            ("http://other.example.org/i.png", "http://other.example.org/i.png"),
        ],
    )
    def test__resolve_favicon_url(self, href: str, expected: str) -> None:
        assert resolve_favicon_url(href, "https://example.com/docs/page") == expected

    def test__resolve_favicon_url__unparseable_page(self) -> None:
        assert resolve_favicon_url("/favicon.ico", "not a url") is None

    def test__favicon_service_url(self) -> None:
        template = "https://icons.example.net/?domain={hostname}"
        assert favicon_service_url("https://www.python.org/doc", template) == (
            "https://icons.example.net/?domain=www.python.org"
        )

    def test__fallback_title(self) -> None:
        assert fallback_title("https://www.example.com/path") == "example.com"
        assert fallback_title("https://docs.example.com") == "docs.example.com"
        assert fallback_title("not a url") == "not a url"


class TestPrivateNetworkChecks:
    """SSRF protection."""

    @pytest.mark.parametrize(
        ("ip", "expected"),
        [
            ("10.0.0.1", True),
            ("192.168.1.10", True),
            ("127.0.0.1", True),
            ("169.254.169.254", True),
            ("::1", True),
            ("8.8.8.8", False),
            ("garbage", True),
        ],
    )
    def test__is_private_ip(self, ip: str, expected: bool) -> None:
        assert is_private_ip(ip) is expected

    async def test__validate_url_not_private__localhost(self) -> None:
        with pytest.raises(SSRFBlockedError):
            await validate_url_not_private("http://localhost:8000/admin")

    async def test__validate_url_not_private__loopback_literal(self) -> None:
        with pytest.raises(SSRFBlockedError):
            await validate_url_not_private("http://127.0.0.1/")

    async def test__validate_url_not_private__no_hostname(self) -> None:
        with pytest.raises(ValueError, match="no hostname"):
            await validate_url_not_private("https:///path")

    async def test__scrape_metadata__blocked_host_degrades(self) -> None:
        settings = Settings(storage_backend="memory")

        result = await scrape_metadata("http://localhost:8000/admin", settings)

        assert result.warning == FETCH_FAILED_WARNING
        assert result.title == "localhost"


class TestScrapeMetadata:
    """End-to-end scraping against routes mocked with respx."""

    async def test__scrape_metadata__success(
        self, mock_web: respx.MockRouter, scraper_settings: Settings,
    ) -> None:
        route = mock_web.get("https://example.com/article").respond(200, html="""
            <html><head>
              <meta property="og:title" content="Example Article">
              <meta property="og:description" content="All about examples.">
              <link rel="icon" href="//cdn.example.com/icon.png">
            </head></html>
        """)

        result = await scrape_metadata("https://example.com/article", scraper_settings)

        assert result.url == "https://example.com/article"
        assert result.title == "Example Article"
        assert result.description == "All about examples."
        assert result.favicon == "https://cdn.example.com/icon.png"
        assert result.warning is None
        assert route.calls.last.request.headers["user-agent"] == USER_AGENT

    async def test__scrape_metadata__favicon_resolves_against_redirect_target(
        self, mock_web: respx.MockRouter, scraper_settings: Settings,
    ) -> None:
        mock_web.get("https://old.example.com/").respond(
            301, headers={"Location": "https://new.example.com/page"},
        )
        mock_web.get("https://new.example.com/page").respond(
            200, html='<title>Moved</title><link rel="icon" href="/fav.ico">',
        )

        result = await scrape_metadata("https://old.example.com/", scraper_settings)

        assert result.url == "https://old.example.com/"
        assert result.title == "Moved"
        assert result.favicon == "https://new.example.com/fav.ico"

    async def test__scrape_metadata__too_many_redirects_degrades(
        self, mock_web: respx.MockRouter, scraper_settings: Settings,
    ) -> None:
        for i in range(5):
            mock_web.get(f"https://hop.example.com/{i}").respond(
                302, headers={"Location": f"https://hop.example.com/{i + 1}"},
            )

        result = await scrape_metadata("https://hop.example.com/0", scraper_settings)

        assert result.warning == FETCH_FAILED_WARNING

    async def test__scrape_metadata__no_favicon_uses_service(
        self, mock_web: respx.MockRouter, scraper_settings: Settings,
    ) -> None:
        mock_web.get("https://plain.example.com/").respond(200, html="<title>No icon</title>")

        result = await scrape_metadata("https://plain.example.com/", scraper_settings)

        assert result.favicon == scraper_settings.favicon_service_url.format(
            hostname="plain.example.com",
        )

    async def test__scrape_metadata__missing_title_uses_url(
        self, mock_web: respx.MockRouter, scraper_settings: Settings,
    ) -> None:
        mock_web.get("https://example.com/x").respond(200, html="<html><body>hi</body></html>")

        result = await scrape_metadata("https://example.com/x", scraper_settings)

        assert result.title == "https://example.com/x"
        assert result.description == ""

    async def test__scrape_metadata__truncates_long_values(
        self, mock_web: respx.MockRouter, scraper_settings: Settings,
    ) -> None:
        title = "t" * 600
        description = "d" * 1500
        mock_web.get("https://example.com/").respond(200, html=f"""
            <meta property="og:title" content="{title}">
            <meta property="og:description" content="{description}">
        """)

        result = await scrape_metadata("https://example.com/", scraper_settings)

        assert len(result.title) == TITLE_MAX_LENGTH
        assert len(result.description) == DESCRIPTION_MAX_LENGTH

    async def test__scrape_metadata__http_error_degrades(
        self, mock_web: respx.MockRouter, scraper_settings: Settings,
    ) -> None:
        mock_web.get("https://www.example.com/gone").respond(
            404, html="<title>Not Found</title>",
        )

        result = await scrape_metadata("https://www.example.com/gone", scraper_settings)

        assert result.title == "example.com"
        assert result.description == ""
        assert result.favicon == ""
        assert result.warning == FETCH_FAILED_WARNING

    async def test__scrape_metadata__non_html_degrades(
        self, mock_web: respx.MockRouter, scraper_settings: Settings,
    ) -> None:
        mock_web.get("https://example.com/file.pdf").respond(
            200, content=b"%PDF-1.7", headers={"Content-Type": "application/pdf"},
        )

        result = await scrape_metadata("https://example.com/file.pdf", scraper_settings)

        assert result.warning == FETCH_FAILED_WARNING

    async def test__scrape_metadata__unreachable_host_degrades(
        self, mock_web: respx.MockRouter, scraper_settings: Settings,
    ) -> None:
        mock_web.get("https://does-not-exist.invalid/").mock(side_effect=httpx.ConnectError)

        result = await scrape_metadata("https://does-not-exist.invalid/", scraper_settings)

        assert result.title == "does-not-exist.invalid"
        assert result.warning == FETCH_FAILED_WARNING

    async def test__scrape_metadata__timeout_degrades(
        self, mock_web: respx.MockRouter, scraper_settings: Settings,
    ) -> None:
        mock_web.get("https://slow.example.com/").mock(side_effect=httpx.ReadTimeout)

        result = await scrape_metadata("https://slow.example.com/", scraper_settings)

        assert result.warning == FETCH_FAILED_WARNING

    async def test__scrape_metadata__oversized_body_degrades(
        self, mock_web: respx.MockRouter,
    ) -> None:
        settings = Settings(
            storage_backend="memory",
            scraper_block_private_networks=False,
            scraper_max_bytes=100,
        )
        mock_web.get("https://big.example.com/").respond(
            200, html="<title>Big</title>" + "x" * 1000,
        )

        result = await scrape_metadata("https://big.example.com/", settings)

        assert result.warning == FETCH_FAILED_WARNING
