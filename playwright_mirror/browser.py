"""Browser lifecycle for followers."""

from dataclasses import dataclass
from typing import Any, Optional

import structlog

logger = structlog.get_logger()


@dataclass
class BrowserSessionConfig:
    """Configuration for a follower's browser."""

    headless: bool = False
    browser_ws_endpoint: Optional[str] = None  # connect instead of launching
    storage_state: Optional[str] = None
    start_url: Optional[str] = None
    trace_output: Optional[str] = None
    timeout_ms: int = 30000


class BrowserSession:
    """
    Owns the Playwright browser, context and first page of a follower.

    Connects to a remote browser when an endpoint is configured, otherwise
    launches Chromium locally. Tracing, when enabled, is saved on stop.
    """

    def __init__(self, config: Optional[BrowserSessionConfig] = None):
        self.config = config or BrowserSessionConfig()
        self._playwright = None
        self._browser = None
        self._context = None
        self._page = None
        self.log = logger.bind(component="browser")

    @property
    def context(self) -> Any:
        return self._context

    @property
    def page(self) -> Any:
        return self._page

    async def start(self) -> None:
        """Start the browser and open the first page."""
        from playwright.async_api import async_playwright

        self._playwright = await async_playwright().start()

        if self.config.browser_ws_endpoint:
            self.log.info("Connecting to browser", endpoint=self.config.browser_ws_endpoint)
            self._browser = await self._playwright.chromium.connect(
                self.config.browser_ws_endpoint
            )
        else:
            self.log.info("Launching browser", headless=self.config.headless)
            self._browser = await self._playwright.chromium.launch(
                headless=self.config.headless,
            )

        self._context = await self._browser.new_context(
            storage_state=self.config.storage_state,
        )
        self._context.set_default_timeout(self.config.timeout_ms)

        if self.config.trace_output:
            await self._context.tracing.start(screenshots=True, snapshots=True)

        self._page = await self._context.new_page()
        if self.config.start_url:
            await self._page.goto(self.config.start_url)

        self.log.info("Browser started")

    async def stop(self) -> None:
        """Save the trace (if any) and close everything."""
        if self._context:
            if self.config.trace_output:
                await self._context.tracing.stop(path=self.config.trace_output)
                self.log.info("Trace saved", path=self.config.trace_output)
            await self._context.close()
            self._context = None
        if self._browser:
            await self._browser.close()
            self._browser = None
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None
        self.log.info("Browser stopped")

    async def __aenter__(self) -> "BrowserSession":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()
