"""Fund table scraping for the Skandia returns portal.

The portal renders three category containers (#tableData1..3), each holding
one div per fund. parse_fund_table() reads a DOM snapshot; it never waits and
never raises on a missing cell.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Literal

from bs4 import BeautifulSoup, Tag
from playwright.async_api import Page
from pydantic import BaseModel, ConfigDict, Field

from config import PORTAL_DATE_FORMAT, PORTAL_URL, TABLE_TIMEOUT_MS
from tools.browser import site_slot, with_session
from tools.recipes import ROW_SELECTOR, WaitFor, load_results, run_recipe

logger = logging.getLogger(__name__)

CATEGORIES = [
    ("tableData1", "Portafolios Abiertos"),
    ("tableData2", "Portafolios a la Medida"),
    ("tableData3", "Portafolios Especiales"),
]

Category = Literal["Portafolios Abiertos", "Portafolios a la Medida", "Portafolios Especiales"]
Risk = Literal["Conservative", "Moderate", "Aggressive", "Unknown"]

# Risk icon file-name fragment -> risk profile
RISK_ICONS: dict[str, Risk] = {
    "pRiesgo1": "Conservative",
    "pRiesgo2": "Moderate",
    "pRiesgo3": "Aggressive",
}

RETURN_PLACEHOLDER = "0%"
VALUE_PLACEHOLDER = "0"


class Returns(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    daily: str = RETURN_PLACEHOLDER
    monthly: str = RETURN_PLACEHOLDER
    six_months: str = Field(RETURN_PLACEHOLDER, alias="sixMonths")
    yearly: str = RETURN_PLACEHOLDER


class FundRecord(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    category: Category
    name: str = ""
    type: str = ""
    value: str = VALUE_PLACEHOLDER
    risk: Risk = "Unknown"
    returns: Returns = Field(default_factory=Returns)


def risk_from_icon(src: str) -> Risk:
    risk: Risk = "Unknown"
    for fragment, label in RISK_ICONS.items():
        if fragment in src:
            risk = label
    return risk


def _cell_text(row: Tag, selector: str, default: str = "") -> str:
    el = row.select_one(selector)
    if el is None:
        return default
    return el.get_text(strip=True) or default


def _parse_row(row: Tag, category: str) -> FundRecord:
    img = row.select_one(".perfilRiesgo img")
    src = img.get("src", "") if img is not None else ""

    days = [d.get_text(strip=True) for d in row.select(".days")]
    days += [""] * (4 - len(days))
    daily, monthly, six_months, yearly = (d or RETURN_PLACEHOLDER for d in days[:4])

    return FundRecord(
        id=row.get("id", ""),
        category=category,
        name=_cell_text(row, ".nombreLargo"),
        type=_cell_text(row, ".tipoInversion"),
        value=_cell_text(row, ".valorFondo", VALUE_PLACEHOLDER),
        risk=risk_from_icon(src),
        returns=Returns(daily=daily, monthly=monthly, six_months=six_months, yearly=yearly),
    )


def parse_fund_table(html: str) -> list[FundRecord]:
    """Read every fund row from a rendered results page."""
    soup = BeautifulSoup(html, "html.parser")
    funds: list[FundRecord] = []
    for container_id, category in CATEGORIES:
        container = soup.find(id=container_id)
        if container is None:
            logger.info(f"Category container #{container_id} ({category}) not present")
            continue
        rows = container.select(ROW_SELECTOR)
        funds.extend(_parse_row(row, category) for row in rows)
        logger.info(f"{category}: {len(rows)} funds")
    return funds


async def scrape_funds(page: Page) -> list[FundRecord]:
    """Extract funds from a page already in the "results loaded" state.

    Raises StepTimeout if the first category container never appears: that means
    the page did not reach the expected state. The other two are optional.
    """
    await run_recipe(page, [WaitFor("#tableData1", timeout=TABLE_TIMEOUT_MS)], name="scrape_funds")
    return parse_fund_table(await page.content())


async def fetch_funds(date_from: date, date_to: date) -> list[FundRecord]:
    """Drive the portal for the given range and return every fund row."""
    start = date_from.strftime(PORTAL_DATE_FORMAT)
    end = date_to.strftime(PORTAL_DATE_FORMAT)
    logger.info(f"Scraping fund table {start} -> {end}")

    async def _load_and_scrape(page: Page) -> list[FundRecord]:
        await load_results(page, start, end)
        return await scrape_funds(page)

    async with site_slot(PORTAL_URL):
        funds = await with_session(_load_and_scrape)
    logger.info(f"Scraped {len(funds)} funds")
    return funds
