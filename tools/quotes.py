"""Yahoo Finance quote pages: price line plus summaries of recent news."""

import logging

from bs4 import BeautifulSoup
from playwright.async_api import Page, TimeoutError as PlaywrightTimeoutError

from config import MAX_NEWS_ITEMS, NAVIGATION_TIMEOUT_MS
from tools.browser import site_slot, with_session

logger = logging.getLogger(__name__)

QUOTE_URL = "https://finance.yahoo.com/quote/{symbol}/"
PRICE_SELECTOR = 'fin-streamer[data-field="regularMarketPrice"]'
ARTICLE_TIMEOUT_MS = 20000


def _streamer(soup: BeautifulSoup, field: str) -> str:
    el = soup.select_one(f'fin-streamer[data-field="{field}"]')
    return el.get_text(strip=True) if el else "N/A"


def parse_quote(html: str) -> dict:
    soup = BeautifulSoup(html, "html.parser")
    return {
        "price": _streamer(soup, "regularMarketPrice"),
        "change": _streamer(soup, "regularMarketChange"),
        "change_pct": _streamer(soup, "regularMarketChangePercent"),
    }


def parse_news_links(html: str, limit: int = MAX_NEWS_ITEMS) -> list[dict]:
    soup = BeautifulSoup(html, "html.parser")
    links = []
    for item in soup.select('[data-testid="storyitem"]'):
        title_el, link_el = item.select_one("h3"), item.select_one("a[href]")
        if not title_el or not link_el:
            continue
        title = title_el.get_text(strip=True)
        url = link_el["href"]
        if len(title) > 10 and "Ad" not in title and "google" not in url:
            links.append({"title": title, "url": url})
        if len(links) >= limit:
            return links

    if not links:
        section = soup.select_one('[data-testid="recent-news"]')
        for h3 in section.select("h3") if section else []:
            a = h3.find_parent("a") or h3.find("a", href=True)
            if a and a.get("href"):
                links.append({"title": a.get_text(strip=True), "url": a["href"]})
            if len(links) >= limit:
                break
    return links


def parse_article_summary(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    body = soup.select_one(".caas-body")
    if body:
        paragraphs = [p.get_text(strip=True) for p in body.select("p")]
        return "\n\n".join([p for p in paragraphs if len(p) > 50][:5])
    paragraphs = [p.get_text(strip=True) for p in soup.select("article p, .body p")]
    return "\n\n".join(paragraphs[:4])


def _is_news_article(url: str) -> bool:
    return "finance.yahoo.com/news" in url or "finance.yahoo.com/m/" in url


async def _article_summary(page: Page, url: str) -> str:
    try:
        await page.goto(url, wait_until="domcontentloaded", timeout=ARTICLE_TIMEOUT_MS)
        summary = parse_article_summary(await page.content())
    except Exception as e:
        logger.warning(f"Could not load article {url}: {e}")
        return "(Error cargando artículo)\n"
    if summary:
        return "Resumen:\n> " + summary.replace("\n", "\n> ") + "\n"
    return "(Sin contenido extraíble)\n"


async def _research_page(page: Page, symbol: str, url: str) -> tuple[str, int]:
    await page.goto(url, wait_until="domcontentloaded", timeout=NAVIGATION_TIMEOUT_MS)
    try:
        await page.wait_for_selector(PRICE_SELECTOR, timeout=15000)
    except PlaywrightTimeoutError:
        logger.info(f"Price element not found for {symbol}, continuing")
    html = await page.content()
    quote = parse_quote(html)
    news = parse_news_links(html)

    out = "\n--- INFORMACIÓN YAHOO FINANCE ---\n"
    out += f"PRECIO ACTUAL: {quote['price']}\n"
    out += f"CAMBIO: {quote['change']} ({quote['change_pct']})\n\n"
    out += f"URL Principal: [{url}]({url})\n"
    out += "NOTICIAS RECIENTES (Con detalle):\n"
    for item in news:
        if not _is_news_article(item["url"]):
            continue
        out += f"\n### [{item['title']}]({item['url']})\n"
        out += await _article_summary(page, item["url"])
    if not news:
        out += "No se encontraron noticias recientes automáticamente.\n"
    return out, len(news)


async def fetch_quote_research(symbol: str) -> str:
    """Price, change and recent news (with article excerpts) for one symbol as markdown."""
    url = QUOTE_URL.format(symbol=symbol)
    logger.info(f"Yahoo Finance research for {symbol}")
    try:
        async with site_slot(url):
            out, news_count = await with_session(
                lambda page: _research_page(page, symbol, url), block_resources=True,
            )
    except Exception as e:
        logger.error(f"Yahoo Finance scrape failed for {symbol}: {e}")
        return f"Error recuperando información para {symbol}: {e}"

    logger.info(f"Yahoo Finance: {news_count} news items for {symbol}")
    return out
