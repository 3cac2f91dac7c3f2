# src/a11y_auditor/services/browser_session_service.py
import logging
from typing import Any, Awaitable, Callable, List, Optional

from pydantic import BaseModel, ConfigDict

from a11y_extraction.model import ExtractionOptions

logger = logging.getLogger(__name__)


class BrowserSession:
    """
    One launched browser shared across a batch. Each target gets its own
    page, which the caller closes after use; `close()` shuts the browser.
    """

    def __init__(self, browser: Any, driver: Any, options: ExtractionOptions):
        self._browser = browser
        self._driver = driver
        self.options = options

    async def new_page(self, url: str) -> Any:
        page = await self._browser.new_page(
            viewport={"width": self.options.viewport_width, "height": self.options.viewport_height},
        )
        try:
            await page.goto(url, wait_until="networkidle", timeout=self.options.timeout_ms)
        except Exception:
            await page.close()
            raise
        return page

    async def close_page(self, page: Any) -> None:
        await page.close()

    async def close(self) -> None:
        try:
            await self._browser.close()
        finally:
            await self._driver.stop()


class BrowserAvailability(BaseModel):
    """Result of trying one way of starting a browser."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    available: bool
    session: Optional[BrowserSession] = None
    reason: str = ""


SessionConstructor = Callable[[ExtractionOptions], Awaitable[BrowserAvailability]]


async def launch_playwright_chromium(options: ExtractionOptions) -> BrowserAvailability:
    try:
        from playwright.async_api import async_playwright
    except ImportError:
        return BrowserAvailability(name="playwright", available=False, reason="playwright is not installed")

    driver = await async_playwright().start()
    try:
        browser = await driver.chromium.launch()
    except Exception as e:
        await driver.stop()
        return BrowserAvailability(name="playwright", available=False, reason=str(e))

    return BrowserAvailability(name="playwright", available=True, session=BrowserSession(browser, driver, options))


DEFAULT_CONSTRUCTORS: List[SessionConstructor] = [launch_playwright_chromium]


async def open_shared_session(
        options: ExtractionOptions,
        constructors: Optional[List[SessionConstructor]] = None,
) -> Optional[BrowserSession]:
    """
    Tries each constructor in order and returns the first available session.
    `browser="none"` skips the attempt. Failure is never fatal: callers fall
    back to per-target extraction when this returns None.
    """
    if options.browser == "none":
        return None

    for construct in constructors if constructors is not None else DEFAULT_CONSTRUCTORS:
        try:
            availability = await construct(options)
        except Exception as e:
            logger.debug("Browser constructor %s failed: %s", getattr(construct, "__name__", construct), e)
            continue
        if availability.available and availability.session is not None:
            logger.info("Using shared %s browser session.", availability.name)
            return availability.session
        logger.debug("Browser %s unavailable: %s", availability.name, availability.reason)

    return None
