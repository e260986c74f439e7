"""Headless browser sessions.

Every public scraping operation gets its own Chromium process: nothing is
shared between scrapes, so one scrape's DOM state can never leak into another.
The price is paying browser start-up on every call.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Awaitable, Callable, TypeVar
from urllib.parse import urlparse

from playwright.async_api import Page, Route, async_playwright

from config import BROWSER_USER_AGENT, BROWSER_VIEWPORT, SCRAPE_CONCURRENCY_PER_SITE

logger = logging.getLogger(__name__)

T = TypeVar("T")

LAUNCH_ARGS = ["--no-sandbox", "--disable-setuid-sandbox", "--disable-dev-shm-usage"]
_BLOCKED_RESOURCE_TYPES = {"image", "stylesheet", "font", "media"}

# host -> semaphore
_site_slots: dict[str, asyncio.Semaphore] = {}


async def _block_heavy_resources(route: Route):
    if route.request.resource_type in _BLOCKED_RESOURCE_TYPES:
        await route.abort()
    else:
        await route.continue_()


@asynccontextmanager
async def browser_session(block_resources: bool = False):
    """Launch an isolated headless browser and yield a fresh page.

    The browser is closed on every exit path, including errors and cancellation.
    """
    async with async_playwright() as p:
        browser = await p.chromium.launch(headless=True, args=LAUNCH_ARGS)
        logger.info("Browser launched")
        try:
            context = await browser.new_context(
                viewport=BROWSER_VIEWPORT,
                user_agent=BROWSER_USER_AGENT,
            )
            page = await context.new_page()
            if block_resources:
                await page.route("**/*", _block_heavy_resources)
            yield page
        finally:
            await browser.close()
            logger.info("Browser closed")


async def with_session(fn: Callable[[Page], Awaitable[T]], block_resources: bool = False) -> T:
    async with browser_session(block_resources=block_resources) as page:
        return await fn(page)


def _host(url: str) -> str:
    return urlparse(url).netloc.lower() or url


@asynccontextmanager
async def site_slot(url: str):
    """Hold one of the per-host scrape slots for the duration of the block."""
    host = _host(url)
    sem = _site_slots.get(host)
    if sem is None:
        sem = _site_slots[host] = asyncio.Semaphore(SCRAPE_CONCURRENCY_PER_SITE)
    if sem.locked():
        logger.info(f"Waiting for a free scrape slot on {host}")
    async with sem:
        yield
