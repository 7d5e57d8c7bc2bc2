"""
Debounced category suggestions for a description field being edited.

Each change cancels the pending timer and schedules a new one. When a timer
fires it calls the suggester; the call itself is never cancelled, but its
result is applied only if no newer call was scheduled in the meantime.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional, Set

from .errors import SuggestionUnavailable
from .schemas import CategorySuggestion
from .settings import Settings, get_settings
from .suggestions import CategorySuggester, get_suggester

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
class SuggestionDebouncer:
    """
    Rate-limits suggestion calls for one form.

    Must be driven from a running asyncio event loop.
    """

    def __init__(
        self,
        suggester: CategorySuggester,
        quiet_period: Optional[float] = None,
        min_length: Optional[int] = None,
    ) -> None:
        settings = get_settings()
        self._suggester = suggester
        self.quiet_period = settings.suggestion_quiet_period if quiet_period is None else quiet_period
        self.min_length = settings.suggestion_min_length if min_length is None else min_length
        self.suggestion: Optional[CategorySuggestion] = None
        self._seq = 0
        self._timer: Optional[asyncio.Task] = None
        self._inflight: Set[asyncio.Task] = set()
        self._loading_seq: Optional[int] = None

    @property
    def loading(self) -> bool:
        """True while the call for the latest scheduled text is in flight."""
        return self._loading_seq is not None and self._loading_seq == self._seq

    def _cancel_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    def on_change(self, description: str) -> None:
        """Record a new description value and (re)schedule a suggestion."""
        self._seq += 1
        self._cancel_timer()

        if len((description or "").strip()) < self.min_length:
            self.suggestion = None
            return

        self._timer = asyncio.get_running_loop().create_task(
            self._fire_after_quiet_period(self._seq, description)
        )

    def clear(self) -> None:
        """Drop the current suggestion and supersede anything pending."""
        self._seq += 1
        self._cancel_timer()
        self.suggestion = None

    def consume(self) -> Optional[CategorySuggestion]:
        """Return the current suggestion and clear it."""
        suggestion, self.suggestion = self.suggestion, None
        return suggestion

    async def _fire_after_quiet_period(self, seq: int, description: str) -> None:
        await asyncio.sleep(self.quiet_period)
        # Past this point the timer is spent; the call runs to completion
        call = asyncio.get_running_loop().create_task(self._invoke(seq, description))
        self._inflight.add(call)
        call.add_done_callback(self._inflight.discard)

    async def _invoke(self, seq: int, description: str) -> None:
        self._loading_seq = seq
        try:
            result: Optional[CategorySuggestion] = await self._suggester.suggest(description)
        except SuggestionUnavailable as e:
            logger.warning("No category suggestion available: %s", e)
            result = None
        except Exception:
            logger.exception("Error fetching category suggestion")
            result = None
        finally:
            if self._loading_seq == seq:
                self._loading_seq = None

        if seq != self._seq:
            logger.debug("Discarding stale suggestion for request %d (latest %d)", seq, self._seq)
            return
        self.suggestion = result

    async def wait_idle(self) -> None:
        """Wait until no timer is pending and no call is in flight."""
        while True:
            pending = [t for t in self._inflight if not t.done()]
            if self._timer is not None and not self._timer.done():
                pending.append(self._timer)
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)


# PUBLIC_INTERFACE
def get_debouncer(
    suggester: Optional[CategorySuggester] = None, settings: Optional[Settings] = None
) -> SuggestionDebouncer:
    """Return a SuggestionDebouncer using the configured quiet period and minimum length."""
    settings = settings or get_settings()
    return SuggestionDebouncer(
        suggester or get_suggester(settings),
        quiet_period=settings.suggestion_quiet_period,
        min_length=settings.suggestion_min_length,
    )
