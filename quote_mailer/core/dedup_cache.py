"""
dedup_cache.py — Duplicate Suppression + Idempotent Delivery

In-process, in-memory cache keyed by request fingerprint:

    requests    fingerprint -> first-seen timestamp   (in-flight detection)
    processed   fingerprint -> completion timestamp   (retry short-circuit)
    recipients  fingerprint -> set of addresses already mailed

Once an address is in a fingerprint's recipient set, nothing sends to that
(fingerprint, address) pair again. All three maps expire on the same
window and are evicted by one sweep using one timestamp. A recipient set
goes once both records are stale and nothing was mailed inside the window;
a new sighting of an expired fingerprint drops it on the spot instead of
waiting for the sweeper. Sets of a released fingerprint stay for the
window, so a retry does not mail the same address twice.

Single process only. The lock keeps map iteration safe while the sweeper
runs; it does not serialise a whole check-send-mark sequence, so two
near-simultaneous identical requests can still race.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Set

log = logging.getLogger("quotes.dedup")


def normalize_address(address: str) -> str:
    return (address or "").strip().lower()


@dataclass(frozen=True)
class CacheCheck:
    is_duplicate_in_flight: bool
    is_already_processed: bool

    @property
    def is_duplicate(self) -> bool:
        return self.is_duplicate_in_flight or self.is_already_processed


class DedupCache:
    """Fingerprint cache with a rolling window and a background sweeper."""

    def __init__(self, window: float = 15, sweep_interval: float = 60,
                 clock: Callable[[], float] = time.time):
        self.window = window
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._requests: Dict[str, float] = {}
        self._processed: Dict[str, float] = {}
        self._recipients: Dict[str, Set[str]] = {}
        self._touched: Dict[str, float] = {}
        self._hooks: List[Callable[[], object]] = []
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._sweeps = 0

    def _live(self, stamp: Optional[float], now: float) -> bool:
        return stamp is not None and now - stamp <= self.window

    # ── Request lifecycle ─────────────────────────────────────────────────

    def check_and_mark_in_flight(self, fp: str) -> CacheCheck:
        """Flag a repeat of ``fp`` and record this sighting if it is new."""
        now = self._clock()
        with self._lock:
            in_flight = self._live(self._requests.get(fp), now)
            if not in_flight:
                self._requests[fp] = now
            processed = self._live(self._processed.get(fp), now)
            if not (in_flight or processed) and not self._live(self._touched.get(fp), now):
                self._drop_recipients(fp)
        if in_flight or processed:
            log.info("Duplicate request (in_flight=%s processed=%s)",
                     in_flight, processed, extra={"fingerprint": fp[:16]})
        return CacheCheck(in_flight, processed)

    def release(self, fp: str) -> None:
        """Forget the in-flight record so a client retry is not a duplicate."""
        with self._lock:
            self._requests.pop(fp, None)

    def mark_processed(self, fp: str) -> None:
        with self._lock:
            self._processed[fp] = self._clock()

    # ── Recipient tracking ────────────────────────────────────────────────

    def recipients_pending(self, fp: str, candidates: Iterable[str]) -> List[str]:
        """Candidates not yet mailed for ``fp``, in order, without repeats."""
        pending = []
        seen = set()
        with self._lock:
            sent = self._recipients.setdefault(fp, set())
            for address in candidates:
                key = normalize_address(address)
                if not key or key in sent or key in seen:
                    continue
                seen.add(key)
                pending.append(address.strip())
        return pending

    def mark_sent(self, fp: str, address: str) -> None:
        key = normalize_address(address)
        if not key:
            return
        with self._lock:
            self._recipients.setdefault(fp, set()).add(key)
            self._touched[fp] = self._clock()

    def _drop_recipients(self, fp: str) -> None:
        # caller holds the lock
        self._recipients.pop(fp, None)
        self._touched.pop(fp, None)

    # ── Eviction ──────────────────────────────────────────────────────────

    def sweep(self, now: Optional[float] = None) -> dict:
        """Evict expired records. One timestamp for the whole cycle."""
        if now is None:
            now = self._clock()
        with self._lock:
            stale_requests = [fp for fp, ts in self._requests.items()
                              if now - ts > self.window]
            for fp in stale_requests:
                del self._requests[fp]

            stale_processed = [fp for fp, ts in self._processed.items()
                               if now - ts > self.window]
            for fp in stale_processed:
                del self._processed[fp]

            orphaned = [fp for fp in self._recipients
                        if fp not in self._requests and fp not in self._processed
                        and not self._live(self._touched.get(fp), now)]
            for fp in orphaned:
                self._drop_recipients(fp)
            self._sweeps += 1

        evicted = {"requests": len(stale_requests),
                   "processed": len(stale_processed),
                   "recipient_sets": len(orphaned)}
        if any(evicted.values()):
            log.debug("Cache sweep evicted %s", evicted)
        return evicted

    def stats(self) -> dict:
        with self._lock:
            return {
                "requests": len(self._requests),
                "processed": len(self._processed),
                "recipient_sets": len(self._recipients),
                "window": self.window,
                "sweeps": self._sweeps,
                "sweeper_running": self.running,
            }

    # ── Background sweeper ────────────────────────────────────────────────

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the periodic sweep thread."""
        if self.running:
            log.warning("Cache sweeper already running")
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, daemon=True,
                                        name="dedup-sweeper")
        self._thread.start()
        log.info("Cache sweeper started (interval=%ss, window=%ss)",
                 self.sweep_interval, self.window)

    def stop(self) -> None:
        """Stop the sweep thread and wait for it to exit."""
        if self._thread is None:
            return
        self._stop_event.set()
        self._thread.join(timeout=10)
        self._thread = None
        log.info("Cache sweeper stopped (sweeps=%d)", self._sweeps)

    def add_sweep_hook(self, hook: Callable[[], object]) -> None:
        """Run ``hook()`` after every background sweep (e.g. rate-limiter cleanup)."""
        self._hooks.append(hook)

    def tick(self) -> None:
        """One sweeper cycle: evict, then run the registered hooks."""
        try:
            self.sweep()
        except Exception as e:
            log.error("Cache sweep failed: %s", e, exc_info=True)
        for hook in self._hooks:
            try:
                hook()
            except Exception as e:
                log.error("Sweep hook %s failed: %s",
                          getattr(hook, "__qualname__", hook), e, exc_info=True)

    def _run_loop(self) -> None:
        while not self._stop_event.wait(self.sweep_interval):
            self.tick()
