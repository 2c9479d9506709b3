"""
Playwright browser driver.

`browser_session` owns Chromium for the length of one job. `BrowserDriver`
wraps the page with bounded, logged primitives the workflow composes.
"""
from __future__ import annotations

import asyncio
import base64
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Iterable, Optional, Sequence

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from worker import selectors as sel
from worker.errors import LoginFailed, NavigationFailed
from worker.locators import LocatorStrategy, find_first

log = logging.getLogger("worker.browser")

LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
    "--no-zygote",
]
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
VIEWPORT = {"width": 1280, "height": 720}

# Picks, per label, the first select whose option text matches case-insensitively.
_SELECT_BY_TEXT_JS = """
({ selector, labels }) => {
  const selects = Array.from(document.querySelectorAll(selector));
  const used = new Set();
  const result = {};
  for (const label of labels) {
    const wanted = label.trim().toLowerCase();
    result[label] = false;
    for (let i = 0; i < selects.length; i++) {
      if (used.has(i)) continue;
      const sel = selects[i];
      const opt = Array.from(sel.options).find(o => o.text.trim().toLowerCase() === wanted);
      if (!opt) continue;
      sel.value = opt.value;
      sel.dispatchEvent(new Event('change', { bubbles: true }));
      used.add(i);
      result[label] = true;
      break;
    }
  }
  return result;
}
"""


class BrowserDriver:
    def __init__(self, page, *, locator_timeout_ms: int = 7000, navigation_timeout_ms: int = 60000):
        self.page = page
        self.locator_timeout_ms = locator_timeout_ms
        self.navigation_timeout_ms = navigation_timeout_ms

    # -------- Navigation --------
    @property
    def url(self) -> str:
        return self.page.url

    async def goto(self, url: str, wait_until: str = "domcontentloaded") -> None:
        try:
            await self.page.goto(url, wait_until=wait_until, timeout=self.navigation_timeout_ms)
        except PlaywrightError as exc:
            raise NavigationFailed(f"Could not load {url}: {exc}") from exc
        log.info("Navigated", extra={"url": url})

    async def wait_for_load(self, state: str = "networkidle", timeout_ms: Optional[int] = None) -> bool:
        """Wait for a load state; a timeout is tolerated and reported as False."""
        try:
            await self.page.wait_for_load_state(state, timeout=timeout_ms or self.navigation_timeout_ms)
            return True
        except PlaywrightError:
            log.debug("Load state not reached", extra={"state": state, "url": self.page.url})
            return False

    # -------- Lookup --------
    async def is_visible(self, selector: str, timeout_ms: int = 2000) -> bool:
        try:
            await self.page.locator(selector).first.wait_for(state="visible", timeout=timeout_ms)
            return True
        except PlaywrightError:
            return False

    async def click(
        self,
        target: str,
        strategies: Sequence[LocatorStrategy],
        timeout_ms: Optional[int] = None,
    ) -> str:
        """Click the first element any strategy finds. Returns the winning strategy name."""
        locator, winner = await find_first(
            self.page,
            strategies,
            target=target,
            timeout_ms=timeout_ms or self.locator_timeout_ms,
        )
        try:
            await locator.scroll_into_view_if_needed()
        except PlaywrightError:
            pass
        try:
            await locator.click(force=True)
        except PlaywrightError as exc:
            raise NavigationFailed(f"Click on {target} failed: {exc}") from exc
        return winner

    async def try_click(self, selectors: Iterable[str], timeout_ms: int = 2000) -> Optional[str]:
        """Click the first visible selector; None when nothing is visible."""
        for selector in selectors:
            if not await self.is_visible(selector, timeout_ms):
                continue
            try:
                await self.page.locator(selector).first.click(force=True)
            except PlaywrightError as exc:
                log.debug("Click failed", extra={"selector": selector, "error": str(exc)})
                continue
            log.info("Clicked", extra={"selector": selector})
            return selector
        return None

    # -------- Forms --------
    async def fill(self, field: str, candidates: Sequence[str], value: Optional[str]) -> Optional[str]:
        """
        Fill the first candidate selector present on the page.

        Empty values are skipped. Returns the selector used, or None.
        """
        if not value:
            log.info("Skipped empty field", extra={"field": field})
            return None
        for selector in candidates:
            locator = self.page.locator(selector).first
            try:
                if await locator.count() == 0:
                    continue
                await locator.fill(value)
            except PlaywrightError as exc:
                log.debug("Fill failed", extra={"field": field, "selector": selector, "error": str(exc)})
                continue
            log.info("Filled field", extra={"field": field, "selector": selector})
            return selector
        log.warning("No selector matched field", extra={"field": field, "candidates": list(candidates)})
        return None

    async def select_option(self, selector: str, *, label: Optional[str] = None, value: Optional[str] = None) -> bool:
        kwargs = {"label": label} if label is not None else {"value": value}
        try:
            await self.page.select_option(selector, timeout=self.locator_timeout_ms, **kwargs)
        except PlaywrightError as exc:
            log.info("Select failed", extra={"selector": selector, "option": label or value, "error": str(exc)})
            return False
        log.info("Selected option", extra={"selector": selector, "option": label or value})
        return True

    async def check(self, selector: str) -> bool:
        locator = self.page.locator(selector).first
        try:
            if await locator.count() == 0:
                return False
            await locator.check(force=True, timeout=self.locator_timeout_ms)
        except PlaywrightError as exc:
            log.debug("Check failed", extra={"selector": selector, "error": str(exc)})
            return False
        return True

    async def input_value(self, selector: str) -> str:
        locator = self.page.locator(selector).first
        try:
            if await locator.count() == 0:
                return ""
            return await locator.input_value(timeout=self.locator_timeout_ms) or ""
        except PlaywrightError:
            return ""

    async def input_values(self, fields: Dict[str, str]) -> Dict[str, str]:
        """Re-read the current value of each named field."""
        return {name: await self.input_value(selector) for name, selector in fields.items()}

    async def select_by_option_text(self, selector: str, labels: Sequence[str]) -> Dict[str, bool]:
        """Assign each label to a distinct select among `selector` whose option text matches."""
        try:
            result = await self.page.evaluate(_SELECT_BY_TEXT_JS, {"selector": selector, "labels": list(labels)})
        except PlaywrightError as exc:
            log.warning("Option-text selection failed", extra={"selector": selector, "error": str(exc)})
            return {label: False for label in labels}
        return {label: bool(result.get(label)) for label in labels}

    # -------- Reading --------
    async def text_of(self, selector: str, timeout_ms: int = 2000) -> Optional[str]:
        if not await self.is_visible(selector, timeout_ms):
            return None
        try:
            return (await self.page.locator(selector).first.inner_text()).strip()
        except PlaywrightError:
            return None

    async def attribute_of(self, selector: str, name: str) -> Optional[str]:
        locator = self.page.locator(selector).first
        try:
            if await locator.count() == 0:
                return None
            return await locator.get_attribute(name, timeout=self.locator_timeout_ms)
        except PlaywrightError:
            return None

    async def screenshot_b64(self) -> Optional[str]:
        try:
            data = await self.page.screenshot(full_page=True)
        except PlaywrightError as exc:
            log.warning("Screenshot failed", extra={"error": str(exc)})
            return None
        return base64.b64encode(data).decode("ascii")

    # -------- Page hygiene --------
    async def dismiss_overlays(self, consent_selectors: Sequence[str] = sel.CONSENT_BUTTONS) -> None:
        """Click the first consent control, then strip fixed cookie/consent banners."""
        await self.try_click(consent_selectors, timeout_ms=1000)
        try:
            removed = await self.page.evaluate(sel.REMOVE_FIXED_BANNERS_JS)
        except PlaywrightError:
            return
        if removed:
            log.info("Removed overlay banners", extra={"count": removed})

    # -------- Session --------
    async def ensure_logged_in(self, email: str, password: str, login_url: str) -> None:
        """
        Make sure the site session is authenticated.

        A visible user-only header element means we are already in. Otherwise
        submit the login form and wait for either a navigation or the
        post-login header, whichever comes first.
        """
        if await self.is_visible(sel.LOGGED_IN_MARKER, 2000):
            log.info("Already logged in")
            return

        log.info("Logging in", extra={"url": login_url})
        try:
            await self.page.goto(login_url, wait_until="domcontentloaded", timeout=self.navigation_timeout_ms)
            await self.page.wait_for_selector(sel.LOGIN_FORM, timeout=10000)
            await self.page.fill(sel.LOGIN_EMAIL, email)
            await self.page.fill(sel.LOGIN_PASSWORD, password)
            await self.page.locator(sel.LOGIN_SUBMIT).first.click(force=True)
        except PlaywrightError as exc:
            raise LoginFailed(f"Login form unavailable: {exc}") from exc

        await _first_of(
            self.page.wait_for_event("framenavigated", timeout=15000),
            self.page.locator(sel.POST_LOGIN_MARKER).first.wait_for(timeout=15000),
        )

        if not await self.is_visible(sel.POST_LOGIN_MARKER, 2000):
            raise LoginFailed("Login did not complete")
        log.info("Login successful")


async def _first_of(*aws) -> None:
    """Wait until any awaitable finishes; errors from the race are ignored."""
    tasks = [asyncio.ensure_future(a) for a in aws]
    try:
        await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()
    for task in tasks:
        if task.done() and not task.cancelled():
            # Retrieve the exception so asyncio does not warn about it.
            task.exception()


async def _close_quietly(resource, what: str) -> None:
    try:
        await resource.close()
    except PlaywrightError as exc:
        log.warning("Failed to close %s", what, extra={"error": str(exc)})


@asynccontextmanager
async def browser_session(
    headless: bool = True,
    timeout_ms: int = 30000,
    *,
    navigation_timeout_ms: int = 60000,
    locator_timeout_ms: int = 7000,
) -> AsyncIterator[BrowserDriver]:
    """Launch Chromium with an isolated context and yield a driver; always closes everything."""
    async with async_playwright() as p:
        browser = await p.chromium.launch(headless=headless, args=LAUNCH_ARGS)
        try:
            context = await browser.new_context(
                user_agent=USER_AGENT,
                viewport=VIEWPORT,
                ignore_https_errors=True,
                extra_http_headers={"Accept-Language": "en-US,en;q=0.9"},
            )
            try:
                page = await context.new_page()
                try:
                    page.set_default_timeout(timeout_ms)
                    page.set_default_navigation_timeout(navigation_timeout_ms)
                    log.info("Browser session opened", extra={"headless": headless})
                    yield BrowserDriver(
                        page,
                        locator_timeout_ms=locator_timeout_ms,
                        navigation_timeout_ms=navigation_timeout_ms,
                    )
                finally:
                    await _close_quietly(page, "page")
            finally:
                await _close_quietly(context, "context")
        finally:
            await _close_quietly(browser, "browser")
            log.info("Browser session closed")


__all__ = [
    "LAUNCH_ARGS",
    "USER_AGENT",
    "BrowserDriver",
    "browser_session",
]
