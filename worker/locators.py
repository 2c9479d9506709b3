"""
Locator cascade: try several ways of finding one element, first hit wins.
"""
from __future__ import annotations

import logging
import re
import uuid
from typing import Optional, Sequence, Tuple

from playwright.async_api import Error as PlaywrightError

from worker.errors import ElementNotFound

log = logging.getLogger("worker.browser")

PICK_ATTRIBUTE = "data-bravapress-pick"

# Marks a clickable element whose text matches one of the patterns, preferring
# one with an ancestor (up to 8 levels) mentioning the keyword.
_DOM_SCAN_JS = """
({ patterns, keyword, attribute, token }) => {
  const regexes = patterns.map(p => new RegExp(p, 'i'));
  const candidates = Array.from(document.querySelectorAll('a, button'))
    .filter(el => regexes.some(rx => rx.test(el.textContent || '')));
  const keywordRx = keyword ? new RegExp('\\\\b' + keyword + '\\\\b', 'i') : null;
  const hasAncestor = (el) => {
    let node = el.parentElement;
    for (let i = 0; i < 8 && node; i++) {
      if (keywordRx.test(node.textContent || '')) return true;
      node = node.parentElement;
    }
    return false;
  };
  let target = keywordRx ? candidates.find(hasAncestor) : null;
  if (!target) target = candidates[0];
  if (!target) return false;
  target.setAttribute(attribute, token);
  return true;
}
"""


class LocatorStrategy:
    """One way of finding an element. Subclasses implement `candidate`."""

    name = "strategy"

    async def candidate(self, page):
        raise NotImplementedError

    async def resolve(self, page, timeout_ms: int):
        """Return a visible Locator or raise playwright's Error/TimeoutError."""
        locator = await self.candidate(page)
        if locator is None:
            raise PlaywrightError(f"{self.name}: no candidate")
        await locator.wait_for(state="visible", timeout=timeout_ms)
        return locator

    def __repr__(self) -> str:
        return self.name


class SelectorStrategy(LocatorStrategy):
    def __init__(self, selector: str, nth: Optional[int] = None, name: Optional[str] = None):
        self.selector = selector
        self.nth = nth
        self.name = name or f"selector:{selector}"

    async def candidate(self, page):
        locator = page.locator(self.selector)
        return locator.nth(self.nth) if self.nth is not None else locator.first


class NearTextStrategy(LocatorStrategy):
    """An element inside the first container matching `container` (e.g. a pricing tile)."""

    def __init__(self, container: str, inner: str, name: Optional[str] = None):
        self.container = container
        self.inner = inner
        self.name = name or f"near:{container} >> {inner}"

    async def candidate(self, page):
        return page.locator(self.container).first.locator(self.inner).first


class TextCandidatesStrategy(LocatorStrategy):
    """Buttons or links whose text matches any of `texts`, picking the `index`th."""

    def __init__(self, texts: Sequence[str], index: Optional[int] = 0, name: Optional[str] = None):
        self.texts = tuple(texts)
        self.index = index
        label = "first" if index is None else f"#{index}"
        self.name = name or f"cta-text:{label}"

    @property
    def selector(self) -> str:
        return ", ".join(f'button:has-text("{t}"), a:has-text("{t}")' for t in self.texts)

    async def candidate(self, page):
        locator = page.locator(self.selector)
        return locator.first if self.index is None else locator.nth(self.index)


class DomScanStrategy(LocatorStrategy):
    """Last resort: scan the DOM in-page and tag the best match for a Locator."""

    def __init__(self, patterns: Sequence[str], keyword: Optional[str] = None, name: Optional[str] = None):
        self.patterns = tuple(re.escape(p) for p in patterns)
        self.keyword = keyword
        self.name = name or f"dom-scan:{keyword or 'any'}"

    async def candidate(self, page):
        token = uuid.uuid4().hex
        found = await page.evaluate(
            _DOM_SCAN_JS,
            {
                "patterns": list(self.patterns),
                "keyword": self.keyword or "",
                "attribute": PICK_ATTRIBUTE,
                "token": token,
            },
        )
        if not found:
            return None
        return page.locator(f'[{PICK_ATTRIBUTE}="{token}"]').first


async def find_first(
    page,
    strategies: Sequence[LocatorStrategy],
    *,
    target: str,
    timeout_ms: int,
) -> Tuple[object, str]:
    """
    Try each strategy in order with a bounded wait.

    Returns (locator, strategy name). Raises ElementNotFound naming every
    strategy tried when none succeeds.
    """
    tried = []
    for strategy in strategies:
        tried.append(strategy.name)
        try:
            locator = await strategy.resolve(page, timeout_ms)
        except PlaywrightError as exc:
            log.debug("Locator strategy missed", extra={"target": target, "strategy": strategy.name, "error": str(exc)})
            continue
        log.info("Located %s", target, extra={"target": target, "strategy": strategy.name})
        return locator, strategy.name
    raise ElementNotFound(target, tried)


__all__ = [
    "PICK_ATTRIBUTE",
    "LocatorStrategy",
    "SelectorStrategy",
    "NearTextStrategy",
    "TextCandidatesStrategy",
    "DomScanStrategy",
    "find_first",
]
