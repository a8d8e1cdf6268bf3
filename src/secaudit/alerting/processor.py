# Security Audit - Alert Processor
#
# Drains the store's alert queue after every logged event and decides
# whether the drained batch is worth dispatching: the batch goes out only
# when enough events at/above the configured severity floor were stored
# inside the sliding time window.
#
# Dispatch is best-effort. Channels are sent to concurrently, each under
# its own timeout; a failing or slow channel never affects the others and
# never raises into the caller. Alerts still pending at shutdown are
# dropped, not retried.

import asyncio
import inspect
import itertools
import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Set

from ..core.config import AlertChannel, AlertingConfig
from ..core.models import EventFilter, SecurityEvent
from ..core.taxonomy import Severity
from ..intel.event_store import AuditEventStore

logger = logging.getLogger(__name__)

_batch_seq = itertools.count(1)

# Threads available to synchronous senders; a hung send keeps its thread
SEND_POOL_SIZE = 8


def _now_ms() -> int:
    return int(time.time() * 1000)


# ── Data structures ──────────────────────────────────────────────────

@dataclass
class AlertBatch:
    """Events drained from the alert queue in one evaluation."""

    events: List[SecurityEvent]
    window_count: int = 0          # events in the threshold window
    created_at: int = field(default_factory=_now_ms)
    batch_id: str = field(default_factory=lambda: f"alert_{next(_batch_seq)}")

    @property
    def critical_count(self) -> int:
        return sum(1 for e in self.events if e.severity == Severity.CRITICAL)

    @property
    def event_types(self) -> List[str]:
        """Distinct event types, in first-seen order."""
        seen: List[str] = []
        for e in self.events:
            if e.type.value not in seen:
                seen.append(e.type.value)
        return seen

    def summary(self) -> Dict[str, Any]:
        return {
            "batch_id": self.batch_id,
            "count": len(self.events),
            "critical": self.critical_count,
            "types": self.event_types,
            "window_count": self.window_count,
        }

    def to_dict(self) -> Dict[str, Any]:
        d = self.summary()
        d["created_at"] = self.created_at
        d["events"] = [e.to_dict() for e in self.events]
        return d


# ── Senders ──────────────────────────────────────────────────────────

class AlertSender:
    """Contract for external alert senders (email, Slack, webhook...).

    ``send`` may be a plain or an ``async`` method. It returns True on
    successful delivery and False otherwise; it should not raise, but an
    exception is treated as a failed delivery.
    """

    def send(self, channel: str, batch: AlertBatch) -> bool:
        raise NotImplementedError


class LoggingAlertSender(AlertSender):
    """Default sender: writes the alert summary to the log."""

    def send(self, channel: str, batch: AlertBatch) -> bool:
        logger.warning(
            "SECURITY ALERT [%s]: %d event(s), %d critical, types=%s",
            channel,
            len(batch.events),
            batch.critical_count,
            ", ".join(batch.event_types),
        )
        return True


# ── AlertProcessor ───────────────────────────────────────────────────

class AlertProcessor:
    """Evaluates the alert threshold and fans batches out to channels.

    Args:
        store: Store whose alert queue is drained.
        config: Alerting settings (channels, thresholds, timeout).
        sender: External sender; defaults to ``LoggingAlertSender``.
        clock: Returns "now" in epoch milliseconds.
    """

    def __init__(
        self,
        store: AuditEventStore,
        config: Optional[AlertingConfig] = None,
        sender: Optional[AlertSender] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        self._store = store
        self._config = config or AlertingConfig()
        self._sender = sender or LoggingAlertSender()
        self._clock = clock or _now_ms

        self._lock = threading.Lock()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._send_pool: Optional[ThreadPoolExecutor] = None
        self._pending: Set[Future] = set()
        self._closed = False

        # Stats
        self._events_drained = 0
        self._events_suppressed = 0
        self._batches_dispatched = 0
        self._channel_failures = 0

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def evaluate(self) -> Optional[AlertBatch]:
        """Drain the alert queue and apply the frequency threshold.

        The queue is drained even when alerting is disabled so it cannot
        grow without bound. Returns the batch to dispatch, or ``None``.
        """
        drained = self._store.get_alert_queue()
        with self._lock:
            self._events_drained += len(drained)

        if not drained or not self._config.enabled:
            return None

        thresholds = self._config.thresholds
        now = self._clock()
        in_window = self._store.get_events(EventFilter(
            severity=thresholds.severity,
            start_time=now - thresholds.time_window_ms,
            end_time=now,
        ))

        if len(in_window) < thresholds.frequency:
            logger.debug(
                "Alert threshold not reached (%d/%d >= %s in %dms); "
                "dropping %d queued event(s)",
                len(in_window), thresholds.frequency,
                thresholds.severity.value, thresholds.time_window_ms,
                len(drained),
            )
            with self._lock:
                self._events_suppressed += len(drained)
            return None

        return AlertBatch(events=drained, window_count=len(in_window), created_at=now)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _get_send_pool(self) -> ThreadPoolExecutor:
        # Not the loop default executor: asyncio.run() joins that one on exit
        with self._lock:
            if self._send_pool is None:
                self._send_pool = ThreadPoolExecutor(
                    max_workers=SEND_POOL_SIZE, thread_name_prefix="secaudit-send"
                )
            return self._send_pool

    async def _send_one(self, channel: AlertChannel, batch: AlertBatch) -> bool:
        send = self._sender.send
        timeout = self._config.channel_timeout_seconds
        try:
            if inspect.iscoroutinefunction(send):
                ok = await asyncio.wait_for(send(channel.value, batch), timeout)
            else:
                loop = asyncio.get_running_loop()
                ok = await asyncio.wait_for(
                    loop.run_in_executor(self._get_send_pool(), send, channel.value, batch),
                    timeout,
                )
        except asyncio.TimeoutError:
            logger.warning(
                "Alert channel %s timed out after %.1fs (batch %s)",
                channel.value, timeout, batch.batch_id,
            )
            ok = False
        except Exception:
            logger.warning(
                "Alert channel %s failed (batch %s)",
                channel.value, batch.batch_id, exc_info=True,
            )
            ok = False

        if not ok:
            with self._lock:
                self._channel_failures += 1
        return bool(ok)

    async def dispatch(self, batch: AlertBatch) -> Dict[str, bool]:
        """Send ``batch`` to every configured channel concurrently.

        Returns a channel → delivered mapping. Never raises.
        """
        channels = list(self._config.channels)
        if not channels:
            return {}

        results = await asyncio.gather(
            *(self._send_one(ch, batch) for ch in channels)
        )
        with self._lock:
            self._batches_dispatched += 1

        outcome = {ch.value: ok for ch, ok in zip(channels, results)}
        logger.info(
            "Alert batch %s dispatched: %d event(s), %d/%d channel(s) ok",
            batch.batch_id, len(batch.events),
            sum(results), len(channels),
        )
        return outcome

    async def evaluate_and_dispatch(self) -> Optional[Dict[str, bool]]:
        """Evaluate and, when the threshold is met, await the dispatch."""
        batch = self.evaluate()
        if batch is None:
            return None
        return await self.dispatch(batch)

    # ------------------------------------------------------------------
    # Background dispatch
    # ------------------------------------------------------------------

    def _run_dispatch(self, batch: AlertBatch) -> Dict[str, bool]:
        return asyncio.run(self.dispatch(batch))

    def schedule(self, batch: AlertBatch) -> Optional[Future]:
        """Dispatch ``batch`` on a background worker without blocking.

        Returns the worker future, or ``None`` once shut down.
        """
        with self._lock:
            if self._closed:
                logger.warning(
                    "Alert processor shut down; dropping batch %s", batch.batch_id
                )
                return None
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=1, thread_name_prefix="secaudit-alerts"
                )
            future = self._executor.submit(self._run_dispatch, batch)
            self._pending.add(future)
        future.add_done_callback(self._forget)
        return future

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Wait for scheduled dispatches. Returns True if all finished."""
        with self._lock:
            pending = list(self._pending)
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def shutdown(self, wait_for_pending: bool = False) -> None:
        """Stop the background worker; undelivered alerts are dropped."""
        with self._lock:
            self._closed = True
            executor = self._executor
            send_pool = self._send_pool
            self._executor = None
            self._send_pool = None
        if executor is not None:
            executor.shutdown(wait=wait_for_pending, cancel_futures=not wait_for_pending)
        if send_pool is not None:
            send_pool.shutdown(wait=False, cancel_futures=True)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    @property
    def config(self) -> AlertingConfig:
        return self._config

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "enabled": self._config.enabled,
                "channels": [c.value for c in self._config.channels],
                "events_drained": self._events_drained,
                "events_suppressed": self._events_suppressed,
                "batches_dispatched": self._batches_dispatched,
                "channel_failures": self._channel_failures,
                "pending_dispatches": len(self._pending),
            }
