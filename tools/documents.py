"""Fact sheet (PDF) retrieval for a single fund.

The portal only hands out fact sheets through a UI action that opens a new tab
on a session-authenticated endpoint. Instead of chasing that tab we read the
hidden form parameters the action would have used, build the endpoint URL
ourselves and replay the browser's cookies into a direct httpx request.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from urllib.parse import quote

import httpx
from playwright.async_api import Page

from config import BROWSER_USER_AGENT, DOCUMENT_FETCH_TIMEOUT, FACT_SHEET_URL_TEMPLATE, PORTAL_URL
from tools.browser import site_slot, with_session
from tools.errors import NotFound, RetrievalFailed
from tools.recipes import ElementLocator, Navigate, open_document_dropdown, resolve_fund_row, run_recipe

logger = logging.getLogger(__name__)

PDF_SIGNATURE = b"%PDF"

_HIDDEN_PARAMS_JS = """() => {
    const val = (sel) => (document.querySelector(sel)?.value || '').trim();
    return {
        origin: val('#origin'),
        id_portfolio: val('#idPortfolio'),
        id_product: val('#idProduct'),
        period: val('#customDate'),
    };
}"""


@dataclass
class DocumentRetrievalSession:
    """Working state of one fact sheet fetch. Never shared between retrievals."""
    fund_name: str
    row_id: str | None = None
    period: str = ""
    origin: str = ""
    id_portfolio: str = ""
    id_product: str = ""
    cookie_header: str = ""
    url: str | None = None

    def missing_params(self) -> list[str]:
        params = {
            "origin": self.origin,
            "idPortfolio": self.id_portfolio,
            "idProduct": self.id_product,
            "period": self.period,
        }
        return [k for k, v in params.items() if not v]

    def build_url(self) -> str:
        missing = self.missing_params()
        if missing:
            raise ValueError(f"Cannot build fact sheet URL, missing: {', '.join(missing)}")
        self.url = FACT_SHEET_URL_TEMPLATE.format(
            origin=quote(self.origin, safe=""),
            period=quote(self.period, safe=""),
            id_portfolio=quote(self.id_portfolio, safe=""),
            id_product=quote(self.id_product, safe=""),
        )
        return self.url


@dataclass(frozen=True)
class FactSheet:
    content: bytes
    source_url: str


def cookie_header(cookies: list[dict]) -> str:
    return "; ".join(f"{c['name']}={c['value']}" for c in cookies if c.get("name"))


def looks_like_pdf(content: bytes, content_type: str | None) -> bool:
    if content.startswith(PDF_SIGNATURE):
        return True
    return "application/pdf" in (content_type or "").lower()


async def download_fact_sheet(url: str, cookies: str) -> FactSheet | RetrievalFailed:
    """GET the fact sheet with the browser's cookies and validate the payload."""
    headers = {"User-Agent": BROWSER_USER_AGENT, "Referer": PORTAL_URL}
    if cookies:
        headers["Cookie"] = cookies
    async with httpx.AsyncClient(follow_redirects=True, timeout=DOCUMENT_FETCH_TIMEOUT) as client:
        resp = await client.get(url, headers=headers)

    if not resp.is_success:
        logger.warning(f"Fact sheet request returned HTTP {resp.status_code}: {url}")
        return RetrievalFailed("http-status", f"HTTP {resp.status_code}")

    content = resp.content
    content_type = resp.headers.get("content-type")
    if not looks_like_pdf(content, content_type):
        logger.warning(f"Fact sheet response is not a PDF (content-type={content_type!r}, {len(content)} bytes)")
        return RetrievalFailed("invalid-content", f"content-type {content_type!r}")

    logger.info(f"Fact sheet downloaded: {len(content):,} bytes from {url}")
    return FactSheet(content=content, source_url=url)


async def _prepare_session(
    page: Page,
    session: DocumentRetrievalSession,
    locator: ElementLocator | None,
) -> NotFound | RetrievalFailed | None:
    await run_recipe(page, [Navigate(PORTAL_URL)], name="open_portal")

    session.row_id = await resolve_fund_row(page, session.fund_name, locator)
    if session.row_id is None:
        return NotFound(session.fund_name)

    logger.info(f"Found row {session.row_id} for '{session.fund_name}', expanding")
    await open_document_dropdown(page, session.row_id)

    params = await page.evaluate(_HIDDEN_PARAMS_JS)
    session.origin = params.get("origin", "")
    session.id_portfolio = params.get("id_portfolio", "")
    session.id_product = params.get("id_product", "")
    session.period = params.get("period", "")
    missing = session.missing_params()
    if missing:
        logger.error(f"Missing fact sheet parameters for '{session.fund_name}': {missing}")
        return RetrievalFailed("missing-params", ", ".join(missing))

    session.cookie_header = cookie_header(await page.context.cookies())
    return None


async def retrieve_fact_sheet(
    fund_name: str,
    locator: ElementLocator | None = None,
) -> FactSheet | NotFound | RetrievalFailed:
    """Locate the fund's row on the portal and download its latest fact sheet.

    Never raises: browser and network failures come back as RetrievalFailed.
    """
    session = DocumentRetrievalSession(fund_name=fund_name)
    try:
        async with site_slot(PORTAL_URL):
            outcome = await with_session(lambda page: _prepare_session(page, session, locator))
            if outcome is not None:
                return outcome
            url = session.build_url()
            logger.info(f"Fetching fact sheet for '{fund_name}': {url}")
            return await download_fact_sheet(url, session.cookie_header)
    except Exception as e:
        logger.error(f"Fact sheet retrieval failed for '{fund_name}': {e}")
        return RetrievalFailed("error", str(e))
