"""Replays relayed changes in a follower's browser."""

import time
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import structlog

from ..protocol.changes import (
    Change,
    CheckAction,
    ClickAction,
    ClosePageAction,
    FillAction,
    NavigateAction,
    OpenPageAction,
    PressAction,
    SelectAction,
    SetInputFilesAction,
    UncheckAction,
)

logger = structlog.get_logger()

# Recorder modifier bitmask, in Playwright key names
_MODIFIER_BITS = (
    (1, "Alt"),
    (2, "Control"),
    (4, "Meta"),
    (8, "Shift"),
)


def modifier_names(mask: int) -> list[str]:
    """Expand a recorder modifier bitmask into Playwright modifier names."""
    return [name for bit, name in _MODIFIER_BITS if mask & bit]


def key_shortcut(key: str, modifiers: int) -> str:
    """``Control+Shift+a`` style shortcut for ``locator.press``."""
    return "+".join([*modifier_names(modifiers), key])


@dataclass
class ApplyResult:
    """Result of replaying one change."""

    success: bool
    action: str
    duration_ms: int
    error: Optional[str] = None


class ChangeApplier(Protocol):
    """Anything that can replay a change in a browser."""

    async def apply_change(self, change: Change) -> ApplyResult: ...


class PlaywrightChangeApplier:
    """Maps recorded actions onto Playwright async API calls.

    Pages are tracked by the recorder's page alias. The first page is
    registered as ``page``; ``openPage`` actions add new ones.
    """

    def __init__(self, context: Any, page: Any = None, timeout_ms: int = 30000):
        self.context = context
        self.timeout_ms = timeout_ms
        self._pages: dict[str, Any] = {}
        if page is not None:
            self._pages["page"] = page
        self.log = logger.bind(component="applier")

    @property
    def pages(self) -> dict[str, Any]:
        return dict(self._pages)

    def set_page(self, page: Any, alias: str = "page") -> None:
        self._pages[alias] = page

    async def apply_change(self, change: Change) -> ApplyResult:
        start = time.time()
        try:
            await self._perform(change)
            return ApplyResult(
                success=True,
                action=change.name,
                duration_ms=int((time.time() - start) * 1000),
            )
        except Exception as e:
            self.log.warning("Change failed", action=change.name, error=str(e))
            return ApplyResult(
                success=False,
                action=change.name,
                duration_ms=int((time.time() - start) * 1000),
                error=str(e),
            )

    async def _perform(self, change: Change) -> None:
        action = change.action
        alias = change.frame.page_alias

        if isinstance(action, OpenPageAction):
            page = await self.context.new_page()
            self._pages[alias] = page
            if action.url and action.url != "about:blank":
                await page.goto(action.url)
            return

        page = self._page(alias)

        if isinstance(action, ClosePageAction):
            await page.close()
            self._pages.pop(alias, None)
            return

        if isinstance(action, NavigateAction):
            await page.goto(action.url)
            return

        scope = page
        for selector in change.frame.frame_path:
            scope = scope.frame_locator(selector)

        if isinstance(action, FillAction):
            await scope.locator(action.selector).fill(action.text, timeout=self.timeout_ms)
        elif isinstance(action, ClickAction):
            await scope.locator(action.selector).click(
                button=action.button,
                modifiers=modifier_names(action.modifiers),
                click_count=action.click_count,
                timeout=self.timeout_ms,
            )
        elif isinstance(action, PressAction):
            await scope.locator(action.selector).press(
                key_shortcut(action.key, action.modifiers),
                timeout=self.timeout_ms,
            )
        elif isinstance(action, CheckAction):
            await scope.locator(action.selector).check(timeout=self.timeout_ms)
        elif isinstance(action, UncheckAction):
            await scope.locator(action.selector).uncheck(timeout=self.timeout_ms)
        elif isinstance(action, SelectAction):
            await scope.locator(action.selector).select_option(
                action.options, timeout=self.timeout_ms
            )
        elif isinstance(action, SetInputFilesAction):
            await scope.locator(action.selector).set_input_files(
                action.files, timeout=self.timeout_ms
            )
        else:
            raise ValueError(f"Unsupported action: {action.name}")

    def _page(self, alias: str) -> Any:
        try:
            return self._pages[alias]
        except KeyError:
            raise LookupError(f"Unknown page alias: {alias}") from None
