"""Where the leader's recorded changes come from."""

import asyncio
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Protocol

import structlog
from pydantic import ValidationError

from ..protocol.changes import Change
from ..protocol.errors import RecordingError

logger = structlog.get_logger()


class ChangeSource(Protocol):
    """A restartable stream of recorded changes."""

    def changes(self) -> AsyncIterator[Change]: ...


class QueueChangeSource:
    """Changes pushed by the host, e.g. a recorder hook.

    ``close()`` ends the current ``changes()`` iteration; iterating again
    resumes with whatever is pushed afterwards.
    """

    def __init__(self):
        self._queue: asyncio.Queue[Change | None] = asyncio.Queue()

    def push(self, change: Change) -> None:
        self._queue.put_nowait(change)

    def close(self) -> None:
        self._queue.put_nowait(None)

    async def changes(self) -> AsyncIterator[Change]:
        while True:
            change = await self._queue.get()
            if change is None:
                return
            yield change


class JsonlChangeSource:
    """A recording stored as JSON lines, one change per line.

    Blank lines and lines starting with ``#`` are skipped. The file is read
    again on every ``changes()`` call.
    """

    def __init__(self, path: str | Path, delay: float = 0.0):
        """Initialize the source.

        Args:
            path: Recording file.
            delay: Seconds to wait between changes, to pace the replay.
        """
        self.path = Path(path)
        self.delay = delay

    async def changes(self) -> AsyncIterator[Change]:
        """Yield the recorded changes in file order.

        Raises:
            RecordingError: The file cannot be opened or a line is not a change.
        """
        try:
            f = self.path.open(encoding="utf-8")
        except OSError as e:
            raise RecordingError(f"cannot read recording {self.path}: {e}") from e

        with f:
            for line_number, line in enumerate(f, start=1):
                line = line.strip()
                if not line or line.startswith("#"):
                    continue
                try:
                    change = Change.model_validate_json(line)
                except ValidationError as e:
                    raise RecordingError(
                        f"{self.path}:{line_number}: invalid change ({e.error_count()} errors)"
                    ) from e
                logger.debug("Read change", line=line_number, action=change.name)
                yield change
                if self.delay:
                    await asyncio.sleep(self.delay)
