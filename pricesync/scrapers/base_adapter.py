# pricesync/scrapers/base_adapter.py

"""Abstract base class for all competitor adapters."""

import logging
import threading
import time
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any

from curl_cffi import requests as curl_requests

from pricesync.config.settings import Settings
from pricesync.errors import AdapterError, QueryKeyError, RunCancelled
from pricesync.models.offer import RawRecord

# Statuses worth another attempt on the same request
_TRANSIENT_STATUSES: frozenset[int] = frozenset({500, 502, 503, 504})


@dataclass
class AdapterResult:
    """Raw records and per-key errors collected by one adapter call."""

    competitor: str
    records: list[RawRecord] = field(
        default_factory=lambda: list[RawRecord]()
    )
    errors: list[str] = field(
        default_factory=lambda: list[str]()
    )
    keys_processed: int = 0
    keys_succeeded: int = 0


class BaseAdapter(ABC):
    """Abstract base class for all competitor adapters.

    Subclasses implement :meth:`_fetch_key` for one query key.  This
    class supplies the shared request loop (transient retries, fixed
    rate-limit backoff), per-key error containment, bounded key
    parallelism, a cooldown circuit breaker and cooperative
    cancellation at call boundaries.
    """

    def __init__(self, competitor: str) -> None:
        self.competitor = competitor
        self.logger = logging.getLogger(
            f"pricesync.{competitor}"
        )
        self.settings = Settings()
        self.session = curl_requests.Session(
            impersonate=self.settings.IMPERSONATE_BROWSER
        )
        self._request_timeout: int = (
            self.settings.REQUEST_TIMEOUT
        )
        self._consecutive_failures: int = 0
        self._circuit_open: bool = False
        self._circuit_opened_at: float = 0.0
        self._lock = threading.Lock()
        self._cancel_event: threading.Event | None = None

    # ── Request loop ─────────────────────────────────────

    def _headers(self) -> dict[str, str]:
        """Headers sent with every request to this source."""
        return dict(self.settings.DEFAULT_HEADERS)

    def _check_cancelled(self) -> None:
        """Raise if the run was cancelled; called between requests only."""
        if self._cancel_event is not None and self._cancel_event.is_set():
            raise RunCancelled(f"{self.competitor}: run cancelled")

    def _request(
        self,
        key: str,
        url: str,
        params: dict[str, Any] | None = None,
    ) -> curl_requests.Response:
        """GET with transient retries and fixed rate-limit backoff.

        Network errors and 5xx responses are retried up to
        ``MAX_RETRIES`` times with a linearly growing delay.  A 429 waits
        ``RATE_LIMIT_DELAY`` and retries the same request, up to
        ``MAX_RATE_LIMIT_RETRIES`` times.  Any other response is returned
        to the caller, which decides what its status means.

        Raises:
            QueryKeyError: when retries are exhausted.
        """
        attempt = 0
        rate_limited = 0
        while True:
            self._check_cancelled()
            try:
                resp = self.session.get(
                    url,
                    headers=self._headers(),
                    params=params,
                    timeout=self._request_timeout,
                )
            except Exception as exc:
                attempt += 1
                self.logger.warning(
                    "[%s] Request error for %s on attempt %d: %s",
                    self.competitor,
                    key,
                    attempt,
                    exc,
                )
                if attempt >= self.settings.MAX_RETRIES:
                    raise QueryKeyError(
                        key, f"request failed: {exc}"
                    ) from exc
                time.sleep(self.settings.REQUEST_DELAY * attempt)
                continue

            if resp.status_code == 429:
                rate_limited += 1
                if rate_limited > self.settings.MAX_RATE_LIMIT_RETRIES:
                    raise QueryKeyError(
                        key, "rate limited, retries exhausted"
                    )
                self.logger.warning(
                    "[%s] Rate limited on %s, waiting %.1fs",
                    self.competitor,
                    key,
                    self.settings.RATE_LIMIT_DELAY,
                )
                time.sleep(self.settings.RATE_LIMIT_DELAY)
                continue

            if resp.status_code in _TRANSIENT_STATUSES:
                attempt += 1
                self.logger.warning(
                    "[%s] HTTP %d for %s on attempt %d",
                    self.competitor,
                    resp.status_code,
                    key,
                    attempt,
                )
                if attempt >= self.settings.MAX_RETRIES:
                    raise QueryKeyError(
                        key, f"HTTP {resp.status_code}"
                    )
                time.sleep(self.settings.REQUEST_DELAY * attempt)
                continue

            return resp

    # ── Circuit breaker ──────────────────────────────────

    def _wait_for_circuit(self) -> None:
        """Hold the next key until a tripped breaker has cooled down.

        After ``CIRCUIT_BREAKER_COOLDOWN`` seconds the breaker goes
        half-open and lets one key through; another failure re-trips it.
        Keys are delayed, never dropped.
        """
        with self._lock:
            if not self._circuit_open:
                return
            remaining = self.settings.CIRCUIT_BREAKER_COOLDOWN - (
                time.time() - self._circuit_opened_at
            )
        if remaining > 0:
            self.logger.warning(
                "[%s] Circuit breaker open, holding keys for %.0fs",
                self.competitor,
                remaining,
            )
            time.sleep(remaining)
        self._check_cancelled()
        with self._lock:
            if self._circuit_open:
                self._circuit_open = False
                self.logger.info(
                    "[%s] Circuit breaker half-open", self.competitor
                )

    def _record_success(self) -> None:
        """Reset the failure counter after a key succeeds."""
        with self._lock:
            self._consecutive_failures = 0
            self._circuit_open = False

    def _record_failure(self) -> None:
        """Track a failed key and open the breaker at the threshold."""
        with self._lock:
            self._consecutive_failures += 1
            if (
                self._consecutive_failures
                >= self.settings.CIRCUIT_BREAKER_THRESHOLD
                and not self._circuit_open
            ):
                self._circuit_open = True
                self._circuit_opened_at = time.time()
                self.logger.error(
                    "[%s] Circuit breaker opened after %d "
                    "consecutive failures",
                    self.competitor,
                    self._consecutive_failures,
                )

    # ── Key dispatch ─────────────────────────────────────

    def _fetch_one(self, key: str) -> list[RawRecord]:
        """Fetch one key after the politeness delay.

        Runs on a pool thread and feeds the circuit breaker there.  Any
        failure that is not source-wide is reported as a skipped key.
        """
        self._check_cancelled()
        self._wait_for_circuit()
        time.sleep(self.settings.REQUEST_DELAY)
        try:
            records = self._fetch_key(key)
        except QueryKeyError:
            self._record_failure()
            raise
        except AdapterError:
            raise
        except Exception as exc:
            self.logger.error(
                "[%s] Unexpected error on %s: %s",
                self.competitor,
                key,
                exc,
                exc_info=True,
            )
            self._record_failure()
            raise QueryKeyError(
                key, f"unexpected {type(exc).__name__}: {exc}"
            ) from exc
        self._record_success()
        return records

    def fetch_offers(
        self,
        query_keys: list[str],
        cancel_event: threading.Event | None = None,
    ) -> AdapterResult:
        """Fetch raw records for every query key.

        A key that fails is recorded in ``errors`` and skipped.  Results
        keep the order of ``query_keys`` even when keys run in parallel.

        Raises:
            AdapterError: the source is unusable (bad credentials, run
                cancelled); the competitor's sub-run fails.
        """
        self._cancel_event = cancel_event
        result = AdapterResult(competitor=self.competitor)
        if not query_keys:
            self.logger.warning(
                "[%s] No query keys to process", self.competitor
            )
            return result

        self.logger.info(
            "[%s] Fetching %d query keys", self.competitor, len(query_keys)
        )
        workers = max(1, self.settings.KEY_CONCURRENCY)
        with ThreadPoolExecutor(
            max_workers=workers,
            thread_name_prefix=self.competitor,
        ) as pool:
            futures: list[Future[list[RawRecord]]] = [
                pool.submit(self._fetch_one, key) for key in query_keys
            ]
            for key, future in zip(query_keys, futures):
                try:
                    records = future.result()
                except QueryKeyError as exc:
                    result.keys_processed += 1
                    result.errors.append(str(exc))
                    self.logger.error(
                        "[%s] Skipped %s", self.competitor, exc
                    )
                    continue
                except AdapterError:
                    for pending in futures:
                        pending.cancel()
                    raise
                result.keys_processed += 1
                result.keys_succeeded += 1
                result.records.extend(records)
                self.logger.debug(
                    "[%s] %s returned %d records",
                    self.competitor,
                    key,
                    len(records),
                )

        self.logger.info(
            "[%s] %d/%d keys ok, %d records, %d errors",
            self.competitor,
            result.keys_succeeded,
            result.keys_processed,
            len(result.records),
            len(result.errors),
        )
        return result

    @abstractmethod
    def _fetch_key(self, key: str) -> list[RawRecord]:
        """Return every raw record available for one query key."""
        ...

    @abstractmethod
    def probe_url(self) -> str:
        """Return a cheap URL used by the connectivity health check."""
        ...
