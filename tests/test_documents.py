"""Unit tests for fact sheet retrieval. Browser and HTTP are mocked."""
from contextlib import asynccontextmanager

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

PDF_BYTES = b"%PDF-1.4\n%fake\n"
PARAMS = {"origin": "OM", "id_portfolio": "1234", "id_product": "FPV", "period": "202510"}


def _mock_client(handler):
    real_client = httpx.AsyncClient

    def factory(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    return patch("tools.documents.httpx.AsyncClient", side_effect=factory)


def _fake_session(page):
    @asynccontextmanager
    async def session(block_resources=False):
        yield page
    return session


def _portal_page(params=PARAMS):
    page = MagicMock()
    page.evaluate = AsyncMock(return_value=params)
    page.context.cookies = AsyncMock(return_value=[
        {"name": "ASP.NET_SessionId", "value": "abc"},
        {"name": "token", "value": "xyz"},
    ])
    return page


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("content,ctype,expected", [
    (b"%PDF-1.7 ...", "application/octet-stream", True),
    (b"\x00\x01binary", "application/pdf", True),
    (b"<html>error</html>", "application/PDF; charset=binary", True),
    (b"<html>error</html>", "text/html; charset=utf-8", False),
    (b"", None, False),
])
def test_looks_like_pdf(content, ctype, expected):
    from tools.documents import looks_like_pdf
    assert looks_like_pdf(content, ctype) is expected


def test_session_reports_every_missing_param():
    from tools.documents import DocumentRetrievalSession

    s = DocumentRetrievalSession(fund_name="X", origin="OM", period="")
    assert s.missing_params() == ["idPortfolio", "idProduct", "period"]
    with pytest.raises(ValueError):
        s.build_url()
    assert s.url is None


def test_session_builds_encoded_url():
    from tools.documents import DocumentRetrievalSession

    s = DocumentRetrievalSession(
        fund_name="X", origin="OM", id_portfolio="12 34", id_product="P&1", period="202510",
    )
    url = s.build_url()
    assert "Origen=OM" in url
    assert "Period=202510" in url
    assert "IdVariable=12%2034" in url
    assert "Product=P%261" in url
    assert s.url == url


def test_cookie_header():
    from tools.documents import cookie_header
    cookies = [{"name": "a", "value": "1"}, {"name": "b", "value": "2"}]
    assert cookie_header(cookies) == "a=1; b=2"
    assert cookie_header([]) == ""


# ---------------------------------------------------------------------------
# Download + validation
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_download_replays_cookies():
    from tools.documents import download_fact_sheet, FactSheet

    seen = {}

    def handler(request):
        seen["cookie"] = request.headers.get("cookie")
        return httpx.Response(200, content=PDF_BYTES, headers={"content-type": "application/octet-stream"})

    with _mock_client(handler):
        result = await download_fact_sheet("https://portal.example/doc", "a=1; b=2")

    assert isinstance(result, FactSheet)
    assert result.content == PDF_BYTES
    assert result.source_url == "https://portal.example/doc"
    assert seen["cookie"] == "a=1; b=2"


@pytest.mark.asyncio
async def test_download_rejects_html_error_page():
    from tools.documents import download_fact_sheet, RetrievalFailed

    def handler(request):
        return httpx.Response(200, content=b"<html>Sesion expirada</html>", headers={"content-type": "text/html"})

    with _mock_client(handler):
        result = await download_fact_sheet("https://portal.example/doc", "")

    assert isinstance(result, RetrievalFailed)
    assert result.reason == "invalid-content"


@pytest.mark.asyncio
async def test_download_http_error_status():
    from tools.documents import download_fact_sheet, RetrievalFailed

    def handler(request):
        return httpx.Response(403, content=b"forbidden")

    with _mock_client(handler):
        result = await download_fact_sheet("https://portal.example/doc", "")

    assert result == RetrievalFailed("http-status", "HTTP 403")


@pytest.mark.asyncio
async def test_download_follows_redirects():
    from tools.documents import download_fact_sheet, FactSheet

    def handler(request):
        if request.url.path == "/doc":
            return httpx.Response(302, headers={"location": "https://portal.example/final.pdf"})
        return httpx.Response(200, content=PDF_BYTES)

    with _mock_client(handler):
        result = await download_fact_sheet("https://portal.example/doc", "")

    assert isinstance(result, FactSheet)


# ---------------------------------------------------------------------------
# Full retrieval flow
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_retrieve_not_found():
    from tools.documents import retrieve_fact_sheet
    from tools.errors import NotFound

    page = _portal_page()
    with patch("tools.browser.browser_session", _fake_session(page)), \
         patch("tools.documents.run_recipe", new=AsyncMock()), \
         patch("tools.documents.resolve_fund_row", new=AsyncMock(return_value=None)), \
         patch("tools.documents.open_document_dropdown", new=AsyncMock()) as dropdown, \
         patch("tools.documents.download_fact_sheet", new=AsyncMock()) as download:
        result = await retrieve_fact_sheet("Fondo Inexistente")

    assert result == NotFound("Fondo Inexistente")
    dropdown.assert_not_called()
    download.assert_not_called()


@pytest.mark.asyncio
async def test_retrieve_missing_params_is_hard_failure():
    from tools.documents import retrieve_fact_sheet
    from tools.errors import RetrievalFailed

    page = _portal_page({**PARAMS, "id_product": ""})
    with patch("tools.browser.browser_session", _fake_session(page)), \
         patch("tools.documents.run_recipe", new=AsyncMock()), \
         patch("tools.documents.resolve_fund_row", new=AsyncMock(return_value="numberOfRow1")), \
         patch("tools.documents.open_document_dropdown", new=AsyncMock(return_value="202510")), \
         patch("tools.documents.download_fact_sheet", new=AsyncMock()) as download:
        result = await retrieve_fact_sheet("FPV Acciones Global")

    assert isinstance(result, RetrievalFailed)
    assert result.reason == "missing-params"
    assert "idProduct" in result.detail
    download.assert_not_called()


@pytest.mark.asyncio
async def test_retrieve_success_passes_url_and_cookies():
    from tools.documents import retrieve_fact_sheet, FactSheet

    page = _portal_page()
    fake_download = AsyncMock(side_effect=lambda url, cookies: FactSheet(PDF_BYTES, url))
    with patch("tools.browser.browser_session", _fake_session(page)), \
         patch("tools.documents.run_recipe", new=AsyncMock()), \
         patch("tools.documents.resolve_fund_row", new=AsyncMock(return_value="numberOfRow1")), \
         patch("tools.documents.open_document_dropdown", new=AsyncMock(return_value="202510")), \
         patch("tools.documents.download_fact_sheet", new=fake_download):
        result = await retrieve_fact_sheet("FPV Acciones Global")

    assert isinstance(result, FactSheet)
    assert result.content == PDF_BYTES
    assert "Origen=OM" in result.source_url and "IdVariable=1234" in result.source_url
    fake_download.assert_awaited_once()
    assert fake_download.await_args.args[1] == "ASP.NET_SessionId=abc; token=xyz"


@pytest.mark.asyncio
async def test_retrieve_converts_step_timeout():
    from tools.documents import retrieve_fact_sheet
    from tools.errors import RetrievalFailed, StepTimeout

    page = _portal_page()
    with patch("tools.browser.browser_session", _fake_session(page)), \
         patch("tools.documents.run_recipe", new=AsyncMock()), \
         patch("tools.documents.resolve_fund_row", new=AsyncMock(return_value="numberOfRow1")), \
         patch("tools.documents.open_document_dropdown",
               new=AsyncMock(side_effect=StepTimeout(1, "#customDate"))):
        result = await retrieve_fact_sheet("FPV Acciones Global")

    assert isinstance(result, RetrievalFailed)
    assert result.reason == "error"
    assert "#customDate" in result.detail
