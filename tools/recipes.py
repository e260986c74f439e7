"""Scripted interaction recipes for the fund portal.

A recipe is an ordered list of steps. Each step runs within its own timeout;
the first step that times out aborts the recipe with StepTimeout, unless the
step is marked optional, in which case the failure is logged and the recipe
moves on. Steps are never retried here; retry policy belongs to the caller.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Protocol

from playwright.async_api import Page, TimeoutError as PlaywrightTimeoutError

from config import (
    DROPDOWN_TIMEOUT_MS,
    ELEMENT_TIMEOUT_MS,
    NAVIGATION_TIMEOUT_MS,
    PORTAL_SETTLE_FALLBACK_SECONDS,
    PORTAL_URL,
    SETTLE_TIMEOUT_MS,
    TABLE_TIMEOUT_MS,
)
from tools.errors import StepTimeout

logger = logging.getLogger(__name__)

FIRST_AVAILABLE = "__first_available__"

ROW_SELECTOR = 'div[id^="numberOfRow"]'
PERIOD_SELECT = "#customDate"

# Cheap fingerprint of the results table; changes when the portal re-renders it.
_ROWS_SIGNATURE_JS = """() => {
    const rows = document.querySelectorAll('div[id^="numberOfRow"]');
    const first = rows[0];
    return rows.length + '|' + (first ? first.textContent.trim() : '');
}"""

_HAS_REAL_OPTION_JS = """(sel) => {
    const s = document.querySelector(sel);
    return !!s && Array.from(s.options).some(o => o.value.trim() !== '');
}"""

_FIRST_REAL_OPTION_JS = """(sel) => {
    const s = document.querySelector(sel);
    if (!s) return null;
    const opt = Array.from(s.options).find(o => o.value.trim() !== '');
    return opt ? opt.value : null;
}"""

_SET_VALUES_JS = """(values) => {
    for (const [sel, v] of Object.entries(values)) {
        document.querySelector(sel).value = v;
    }
}"""

_LIST_ROWS_JS = """() => Array.from(document.querySelectorAll('div[id^="numberOfRow"]')).map(row => ({
    id: row.id,
    name: (row.querySelector('.nombreLargo')?.textContent || '').trim(),
}))"""


async def wait_until(
    check: Callable[[], Awaitable[bool]],
    timeout: float,
    initial_interval: float = 0.25,
    max_interval: float = 2.0,
) -> bool:
    """Poll check() with exponential backoff until it returns True or timeout (seconds) elapses."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    interval = initial_interval
    while True:
        if await check():
            return True
        remaining = deadline - loop.time()
        if remaining <= 0:
            return False
        await asyncio.sleep(min(interval, remaining))
        interval = min(interval * 2, max_interval)


# ── Steps ─────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Navigate:
    url: str
    timeout: int = NAVIGATION_TIMEOUT_MS
    wait_until: str = "networkidle"
    optional: bool = False

    @property
    def selector(self) -> str | None:
        return None

    async def run(self, page: Page):
        await page.goto(self.url, wait_until=self.wait_until, timeout=self.timeout)


@dataclass(frozen=True)
class WaitFor:
    selector: str
    visible: bool = False
    timeout: int = ELEMENT_TIMEOUT_MS
    optional: bool = False

    async def run(self, page: Page):
        state = "visible" if self.visible else "attached"
        await page.wait_for_selector(self.selector, state=state, timeout=self.timeout)


@dataclass(frozen=True)
class Click:
    selector: str
    timeout: int = ELEMENT_TIMEOUT_MS
    optional: bool = False

    async def run(self, page: Page):
        await page.click(self.selector, timeout=self.timeout)


@dataclass(frozen=True)
class SelectOption:
    """Select value in a <select>. FIRST_AVAILABLE picks the first non-blank option
    once the (asynchronously populated) list has one. Returns the selected value."""
    selector: str
    value: str = FIRST_AVAILABLE
    timeout: int = ELEMENT_TIMEOUT_MS
    optional: bool = False

    async def run(self, page: Page) -> str:
        value = self.value
        if value == FIRST_AVAILABLE:
            await page.wait_for_function(
                _HAS_REAL_OPTION_JS, arg=self.selector, polling=250, timeout=self.timeout,
            )
            value = await page.evaluate(_FIRST_REAL_OPTION_JS, self.selector)
        await page.select_option(self.selector, value=value, timeout=self.timeout)
        return value


@dataclass(frozen=True)
class FillValues:
    """Write values straight into inputs. The portal's date pickers ignore typed keys."""
    values: dict[str, str] = field(default_factory=dict)
    timeout: int = ELEMENT_TIMEOUT_MS
    optional: bool = False

    @property
    def selector(self) -> str:
        return ", ".join(self.values)

    async def run(self, page: Page):
        for sel in self.values:
            await page.wait_for_selector(sel, state="attached", timeout=self.timeout)
        await page.evaluate(_SET_VALUES_JS, self.values)


def _signature_has_rows(signature) -> bool:
    count = str(signature).split("|", 1)[0]
    return count not in ("", "0")


@dataclass(frozen=True)
class ClickAndSettle:
    """Click, then wait for the asynchronous re-render that the click triggers.

    The portal exposes no completion signal. Settled means the probe moved off
    its pre-click value to a non-empty table. It must also read the same on two
    consecutive polls, since the portal clears the table mid-recalculation. If
    that never happens within the bound (e.g. the new results happen to match
    the old), fall back to a fixed delay rather than failing.
    """
    selector: str
    probe: str = _ROWS_SIGNATURE_JS
    timeout: int = ELEMENT_TIMEOUT_MS
    settle_timeout: int = SETTLE_TIMEOUT_MS
    fallback_delay: float = PORTAL_SETTLE_FALLBACK_SECONDS
    optional: bool = False

    async def run(self, page: Page):
        await page.wait_for_selector(self.selector, state="attached", timeout=self.timeout)
        before = await page.evaluate(self.probe)
        await page.click(self.selector, timeout=self.timeout)

        last = before

        async def settled() -> bool:
            nonlocal last
            current = await page.evaluate(self.probe)
            stable = current == last
            last = current
            return stable and current != before and _signature_has_rows(current)

        if not await wait_until(settled, self.settle_timeout / 1000):
            logger.warning(
                f"Results did not settle after clicking {self.selector}; "
                f"falling back to a {self.fallback_delay}s settle delay"
            )
            await asyncio.sleep(self.fallback_delay)


Step = Navigate | WaitFor | Click | SelectOption | FillValues | ClickAndSettle


async def run_recipe(page: Page, steps: list[Step], name: str = "recipe") -> list:
    """Run steps in order and return each step's result (None for most kinds)."""
    results = []
    for i, step in enumerate(steps):
        logger.info(f"[{name}] step {i}: {type(step).__name__} {step.selector or getattr(step, 'url', '')}")
        try:
            results.append(await step.run(page))
        except PlaywrightTimeoutError as e:
            if step.optional:
                logger.warning(f"[{name}] optional step {i} ({step.selector}) skipped: {e}")
                results.append(None)
                continue
            raise StepTimeout(i, step.selector, str(e).splitlines()[0] if str(e) else "") from e
    return results


# ── Element lookup ────────────────────────────────────────────────────────────

class ElementLocator(Protocol):
    def matches(self, candidate: str, wanted: str) -> bool: ...


class ExactNameLocator:
    """Exact display-name match. A rename on the portal breaks the lookup; that is
    surfaced as NotFound rather than papered over with fuzzy matching."""

    def matches(self, candidate: str, wanted: str) -> bool:
        return candidate == wanted


def find_row_id(rows: list[dict], name: str, locator: ElementLocator) -> str | None:
    for row in rows:
        if locator.matches(row.get("name", ""), name):
            return row.get("id") or None
    return None


# ── Recipes ───────────────────────────────────────────────────────────────────

def load_results_recipe(date_from: str, date_to: str) -> list[Step]:
    return [
        Navigate(PORTAL_URL),
        # "Variación Unidad" display mode; the default view is usable without it
        ClickAndSettle("#variacionCb", optional=True),
        FillValues({"#datepickerFrom": date_from, "#datepickerTo": date_to}),
        ClickAndSettle(".calcularButton"),
    ]


async def load_results(page: Page, date_from: str, date_to: str):
    await run_recipe(page, load_results_recipe(date_from, date_to), name="load_results")


async def resolve_fund_row(
    page: Page,
    fund_name: str,
    locator: ElementLocator | None = None,
) -> str | None:
    """Return the element id of the row whose display name matches, or None."""
    await run_recipe(page, [WaitFor(ROW_SELECTOR, timeout=TABLE_TIMEOUT_MS)], name="resolve_fund_row")
    rows = await page.evaluate(_LIST_ROWS_JS)
    row_id = find_row_id(rows, fund_name, locator or ExactNameLocator())
    if row_id is None:
        logger.warning(f"Fund '{fund_name}' not found among {len(rows)} rows")
    return row_id


def open_document_dropdown_recipe(row_id: str) -> list[Step]:
    return [
        Click(f'[id="{row_id}"]'),
        WaitFor(PERIOD_SELECT, visible=True, timeout=DROPDOWN_TIMEOUT_MS),
        SelectOption(PERIOD_SELECT, FIRST_AVAILABLE),
    ]


async def open_document_dropdown(page: Page, row_id: str) -> str:
    """Expand the row and select its most recent period. Returns the period value."""
    results = await run_recipe(page, open_document_dropdown_recipe(row_id), name="open_document_dropdown")
    return results[-1]
