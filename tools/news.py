import logging
from urllib.parse import quote_plus

from bs4 import BeautifulSoup
from playwright.async_api import Page, TimeoutError as PlaywrightTimeoutError

from config import MAX_NEWS_ITEMS, NAVIGATION_TIMEOUT_MS
from tools.browser import site_slot, with_session

logger = logging.getLogger(__name__)

# past-year news, Colombian Spanish results
GOOGLE_NEWS_URL = "https://www.google.com/search?q={query}&tbm=nws&hl=es&gl=CO&tbs=qdr:y"

NEWS_UNAVAILABLE = "No se pudieron obtener noticias en tiempo real debido a un error técnico."


def build_news_query(fund_name: str, holdings: list[str], max_terms: int = 5) -> str:
    """Quote the top holdings and OR them together; fall back to the fund name."""
    if holdings:
        return " OR ".join(f'"{h}"' for h in holdings[:max_terms])
    return fund_name


def parse_news_results(html: str, limit: int = MAX_NEWS_ITEMS) -> list[str]:
    """Turn a Google News results page into markdown bullet lines."""
    soup = BeautifulSoup(html, "html.parser")
    items = []
    for article in soup.select("div.SoaBEf, div.MjjYud")[:limit]:
        title_el = article.select_one('div[role="heading"], h3')
        title = title_el.get_text(strip=True) if title_el else ""
        if not title:
            continue
        snippet_el = article.select_one(".GI74Re, .OSrXXb")
        time_el = article.select_one(".OSrXXb span, .LfVVr")
        source_el = article.select_one(".NUnG9d span, .MgUUmf span")
        snippet = snippet_el.get_text(strip=True) if snippet_el else ""
        when = time_el.get_text(strip=True) if time_el else ""
        source = source_el.get_text(strip=True) if source_el else ""
        items.append(f"- **{title}** ({source}, {when}): {snippet}")
    return items


async def _load_results_page(page: Page, url: str) -> str:
    await page.goto(url, wait_until="domcontentloaded", timeout=NAVIGATION_TIMEOUT_MS)
    return await page.content()


async def search_news(query: str) -> str:
    url = GOOGLE_NEWS_URL.format(query=quote_plus(query))
    logger.info(f"News search: {query[:120]}")
    try:
        async with site_slot(url):
            html = await with_session(lambda page: _load_results_page(page, url))
    except PlaywrightTimeoutError:
        logger.warning(f"News search timed out for '{query[:60]}'")
        return NEWS_UNAVAILABLE
    except Exception as e:
        logger.warning(f"News search failed for '{query[:60]}': {e}")
        return NEWS_UNAVAILABLE

    items = parse_news_results(html)
    logger.info(f"News search found {len(items)} articles")
    return "\n".join(items)
