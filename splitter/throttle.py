import asyncio
import logging

logger = logging.getLogger("splitter.throttle")


class RateLimitedTrigger:
    """
    Trailing debounce for an async callback.

    Each trigger() restarts the timer and replaces the pending arguments, so a
    burst of calls collapses into a single callback with the last arguments,
    run `interval` seconds after the burst ends. Must be used inside a
    running event loop.

    A call counts as pending until its callback has returned, so cancel()
    also stops a callback that is part-way through.
    """

    def __init__(self, callback, interval: float):
        self._callback = callback
        self.interval = interval
        self._pending: asyncio.Task | None = None
        self._args: tuple = ()

    @property
    def pending(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def trigger(self, *args) -> None:
        self._args = args
        if self.pending:
            self._pending.cancel()
        self._pending = asyncio.ensure_future(self._fire())

    async def _fire(self):
        await asyncio.sleep(self.interval)
        try:
            await self._callback(*self._args)
        except Exception:
            logger.exception("[THROTTLE] debounced callback failed")

    def cancel(self) -> None:
        """Drop a waiting call, or stop one whose callback is still running."""
        if self.pending:
            self._pending.cancel()
        self._pending = None
