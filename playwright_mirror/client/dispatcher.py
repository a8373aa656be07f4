"""Leader-side change dispatch.

The recorder reports the same interaction many times while it is in
progress and then once more when it is committed. The dispatcher drops a
report that repeats the last transmitted change while that change is still
uncommitted. A commit always ends the interaction, so the next report of
the same interaction goes out again.

A fill that triggered a navigation carries a ``navigation`` signal; the
navigation is sent separately, a short delay after the fill, so followers
replay the two in the same order the leader's browser did.
"""

import asyncio
from typing import Protocol

import structlog

from ..config import SIGNAL_NAVIGATION_DELAY_MS
from ..protocol.changes import Change, FillAction, navigate_change
from ..protocol.messages import WireMessage, change_message

logger = structlog.get_logger()


class ChangeChannel(Protocol):
    """What the dispatcher needs from a connection."""

    @property
    def is_open(self) -> bool: ...

    async def send(self, message: WireMessage) -> bool: ...


class ChangeDispatcher:
    """Decides which recorded changes reach the signaling server."""

    def __init__(
        self,
        channel: ChangeChannel | None,
        navigation_delay: float = SIGNAL_NAVIGATION_DELAY_MS / 1000,
    ):
        """Initialize the dispatcher.

        Args:
            channel: Connection to the signaling server; None disables sending.
            navigation_delay: Seconds between a fill and its navigation.
        """
        self.channel = channel
        self.navigation_delay = navigation_delay
        self.last_sent_change: Change | None = None
        self.sent_uncommitted_change = False
        self._pending: set[asyncio.Task] = set()
        self.log = logger.bind(component="dispatcher")

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def send_change(self, change: Change | None) -> bool:
        """Forward ``change`` unless it repeats an uncommitted one.

        Returns:
            True if the change was written to the channel.
        """
        if self.channel is None or change is None:
            return False

        self._schedule_included_navigation(change)

        should_send = not (self.same_change(change) and self.sent_uncommitted_change)

        # A commit closes the interaction whether or not it goes out
        if change.committed:
            self.sent_uncommitted_change = False

        if not should_send:
            self.log.debug("Suppressed repeated change", action=change.name)
            return False

        if not self.channel.is_open:
            self.log.debug("Channel closed, dropping change", action=change.name)
            return False

        if not await self.channel.send(change_message(change.to_wire())):
            self.log.debug("Send failed, dropping change", action=change.name)
            return False

        self.last_sent_change = change
        self.sent_uncommitted_change = not change.committed
        return True

    def same_change(self, change: Change) -> bool:
        """Whether ``change`` is the same interaction as the last one sent."""
        if self.last_sent_change is None:
            return False
        return change.action.same_interaction(self.last_sent_change.action)

    def _schedule_included_navigation(self, change: Change) -> None:
        # Only fills after something was already sent carry a replayable navigation
        if self.last_sent_change is None:
            return
        if not isinstance(change.action, FillAction):
            return

        signal = change.action.find_signal("navigation")
        if signal is None or not signal.url:
            return

        navigation = navigate_change(change.frame, signal.url)
        task = asyncio.create_task(self._send_deferred(navigation))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _send_deferred(self, change: Change) -> None:
        await asyncio.sleep(self.navigation_delay)
        await self.send_change(change)

    def cancel_pending(self) -> None:
        """Drop deferred navigations that have not been sent yet."""
        for task in list(self._pending):
            task.cancel()
        self._pending.clear()

    async def drain(self) -> None:
        """Wait until every deferred navigation has been sent."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
