import os
from dotenv import load_dotenv

load_dotenv()


def _csv(name: str, default: str) -> list[str]:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


WEB_PORT = int(os.getenv("WEB_PORT", "8000"))
CORS_ORIGINS = _csv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000")

# ── Portal ────────────────────────────────────────────────────────────────────
PORTAL_URL = os.getenv(
    "PORTAL_URL", "https://portal.skandia.com.co/om.rentabilidades.pl/oldmutual",
)
FACT_SHEET_URL_TEMPLATE = os.getenv(
    "FACT_SHEET_URL_TEMPLATE",
    "https://portal.skandia.com.co/SkCo.Communications.Web/SkCo/Communications/Web/Security.aspx"
    "?Origen={origin}&Period={period}&IdVariable={id_portfolio}&Product={id_product}",
)

BROWSER_USER_AGENT = os.getenv(
    "BROWSER_USER_AGENT",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36",
)
BROWSER_VIEWPORT = {"width": 1280, "height": 800}

# Timeouts in milliseconds, matching Playwright's convention
NAVIGATION_TIMEOUT_MS = int(os.getenv("NAVIGATION_TIMEOUT_MS", "60000"))
ELEMENT_TIMEOUT_MS = int(os.getenv("ELEMENT_TIMEOUT_MS", "5000"))
TABLE_TIMEOUT_MS = int(os.getenv("TABLE_TIMEOUT_MS", "10000"))
DROPDOWN_TIMEOUT_MS = int(os.getenv("DROPDOWN_TIMEOUT_MS", "10000"))
SETTLE_TIMEOUT_MS = int(os.getenv("SETTLE_TIMEOUT_MS", "15000"))

# Last-resort wait when the results table gives no observable change
PORTAL_SETTLE_FALLBACK_SECONDS = float(os.getenv("PORTAL_SETTLE_FALLBACK_SECONDS", "3"))

# strftime format written into the portal's date pickers
PORTAL_DATE_FORMAT = os.getenv("PORTAL_DATE_FORMAT", "%Y-%m-%d")

DOCUMENT_FETCH_TIMEOUT = int(os.getenv("DOCUMENT_FETCH_TIMEOUT", "60"))

# Concurrent browser scrapes allowed per target host
SCRAPE_CONCURRENCY_PER_SITE = int(os.getenv("SCRAPE_CONCURRENCY_PER_SITE", "1"))

FUNDS_CACHE_TTL = int(os.getenv("FUNDS_CACHE_TTL", "600"))

# ── Language model ────────────────────────────────────────────────────────────
GEMINI_BASE_URL = os.getenv(
    "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta/openai/",
)
# Native endpoint; the OpenAI-compatible one does not report supported methods
GEMINI_MODELS_URL = os.getenv(
    "GEMINI_MODELS_URL", "https://generativelanguage.googleapis.com/v1beta/models",
)
GEMINI_MODELS = _csv(
    "GEMINI_MODELS",
    "gemini-2.5-flash,gemini-2.0-flash,gemini-2.5-pro,gemini-2.0-pro-exp,gemini-flash-latest",
)
ALLOWED_MODELS = _csv(
    "ALLOWED_MODELS",
    "gemini-pro-latest,gemini-flash-lite-latest,gemini-flash-latest,gemini-2.5-pro,"
    "gemini-2.5-flash-lite,gemini-2.5-flash,gemini-2.0-flash",
)
DEFAULT_MODEL = os.getenv("DEFAULT_MODEL", "gemini-2.5-flash-lite")
REPORT_MAX_PDF_CHARS = int(os.getenv("REPORT_MAX_PDF_CHARS", "30000"))

# ── External research ─────────────────────────────────────────────────────────
MAX_NEWS_ITEMS = int(os.getenv("MAX_NEWS_ITEMS", "5"))

# Fund name -> Yahoo Finance symbols. Funds listed here get quote pages
# instead of a generic news search.
QUOTE_SYMBOLS: dict[str, list[str]] = {
    "FPV Acciones Nuevas Tecnología": ["%5EIXIC", "BST", "IXN"],
    "FPV Acciones Grupo Cibest": ["CIB"],
}
