"""Browser session ownership for extraction campaigns.

A campaign shares one Chromium process and one isolated browsing context
across all of its tasks. SessionManager is the only code allowed to create
or destroy them:

- `acquire()` launches the process and returns a fresh context. If a
  process from an earlier acquire is still alive it is force-closed first
  and a ResourceLeakWarning is emitted; reacquire never fails because of
  leaked state.
- `close()` tears down context, browser and Playwright in reverse order
  and tolerates being called more than once.

The manager is passed by handle into the task pool instead of living in a
module global, so tests can substitute a mocked Playwright chain.
"""

import warnings
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Self

from playwright.async_api import (
    Browser,
    BrowserContext,
    Page,
    Playwright,
    async_playwright,
)
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from config.settings import GlobalConfig, get_config
from src.exceptions import (
    BrowserInitializationError,
    NavigationError,
    ResourceLeakWarning,
)
from src.logger import get_logger

log = get_logger(__name__)

LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-extensions",
    "--disable-gpu",
    "--no-zygote",
]


class SessionManager:
    """Owns the single shared browser process and its browsing context.

    Attributes:
        config: GlobalConfig instance for runtime configuration.
        _playwright: Playwright driver (started on first acquire).
        _browser: The one live Chromium process, if any.
        _context: Isolated browsing context shared by all tasks.

    Example:
        async with SessionManager.create(config) as session:
            page = await session.new_page()
            await session.navigate(page, url)
    """

    def __init__(self, config: GlobalConfig | None = None) -> None:
        self.config = config or get_config()
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None

    @classmethod
    @asynccontextmanager
    async def create(
        cls, config: GlobalConfig | None = None
    ) -> AsyncGenerator[Self, None]:
        """Acquire a session on entry and close it on exit.

        Raises:
            BrowserInitializationError: If browser launch fails.
        """
        instance = cls(config)
        try:
            await instance.acquire()
            yield instance
        finally:
            await instance.close()

    async def acquire(self) -> BrowserContext:
        """Launch the browser process and return a fresh isolated context.

        Returns:
            The new BrowserContext.

        Raises:
            BrowserInitializationError: If Playwright, the browser or the
                context cannot be started.
        """
        if self._browser is not None or self._context is not None:
            message = "Stale browser process found at acquire; force-closing it"
            warnings.warn(ResourceLeakWarning(message), stacklevel=2)
            log.warning(message, error_type=ResourceLeakWarning.__name__)
            await self._discard_browser()

        executable_path = self.config.executable_path
        log.info(
            "Launching browser",
            headless=self.config.headless,
            executable_path=executable_path or "bundled",
        )

        try:
            if self._playwright is None:
                self._playwright = await async_playwright().start()

            self._browser = await self._playwright.chromium.launch(
                headless=self.config.headless,
                executable_path=executable_path,
                args=LAUNCH_ARGS,
            )
            self._context = await self._browser.new_context(ignore_https_errors=True)

        except Exception as exc:
            await self.close()
            raise BrowserInitializationError(
                reason=str(exc), browser_type="chromium"
            ) from exc

        log.info("Browser session acquired")
        return self._context

    async def _discard_browser(self) -> None:
        """Close context and browser, logging instead of raising."""
        if self._context is not None:
            try:
                await self._context.close()
            except Exception as exc:
                log.warning("Error closing context", error=str(exc))
            self._context = None

        if self._browser is not None:
            try:
                await self._browser.close()
            except Exception as exc:
                log.warning("Error closing browser", error=str(exc))
            self._browser = None

    async def new_page(self) -> Page:
        """Open a new page in the shared context.

        Raises:
            BrowserInitializationError: If the session is not acquired.
        """
        if self._context is None:
            raise BrowserInitializationError(
                reason="Browser context not initialized", browser_type="chromium"
            )

        page = await self._context.new_page()
        page.set_default_timeout(self.config.request_timeout_ms)
        page.set_default_navigation_timeout(self.config.request_timeout_ms)
        return page

    async def navigate(
        self,
        page: Page,
        url: str,
        wait_until: str = "domcontentloaded",
    ) -> None:
        """Navigate and wait only for the initial document parse.

        Raises:
            NavigationError: If navigation fails, times out or returns >= 400.
        """
        log.debug("Navigating to URL", url=url, wait_until=wait_until)

        try:
            response = await page.goto(url, wait_until=wait_until)
        except (PlaywrightTimeoutError, TimeoutError) as exc:
            raise NavigationError(
                url=url,
                reason=f"Navigation timeout after {self.config.request_timeout_ms}ms",
            ) from exc
        except Exception as exc:
            raise NavigationError(url=url, reason=str(exc)) from exc

        if response is None:
            raise NavigationError(url=url, reason="No response received")

        if response.status >= 400:
            raise NavigationError(
                url=url,
                reason=f"HTTP {response.status}",
                status_code=response.status,
            )

    async def close(self) -> None:
        """Release all browser resources. Safe to call repeatedly."""
        if self.is_closed:
            log.debug("Session already closed")
            return

        await self._discard_browser()

        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as exc:
                log.warning("Error stopping playwright", error=str(exc))
            self._playwright = None

        log.info("Browser resources cleaned up")

    @property
    def context(self) -> BrowserContext | None:
        return self._context

    @property
    def is_initialized(self) -> bool:
        """Check if browser is fully initialized and ready."""
        return all([
            self._playwright is not None,
            self._browser is not None,
            self._context is not None,
        ])

    @property
    def is_closed(self) -> bool:
        return self._playwright is None and self._browser is None and self._context is None
