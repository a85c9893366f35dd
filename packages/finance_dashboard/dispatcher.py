"""Analysis dispatcher: remote analysis with polling and a local fallback.

Public API:
    - :class:`AnalysisDispatcher`
    - :class:`CancellationToken`

Completion protocol for one :meth:`AnalysisDispatcher.analyze` call:

1. The transactions are POSTed once to ``config.dispatch_url`` as
   ``{"data": [row, ...]}``. There is no automatic retry of this call.
2. ``{"data": {"insights": {...}}}`` completes immediately (direct path).
3. ``{"data": {"correlationId": "..."}}`` switches to polling
   ``config.status_url`` once per interval until the status is
   ``"completed"``. Poll errors are logged and retried on the next tick. There
   is no attempt ceiling: the caller's :class:`CancellationToken` is the only
   way to stop a job that never completes.
4. A transport failure, non-2xx status or malformed payload on the initial
   call falls back to :func:`~finance_dashboard.metrics.compute_locally`.

The dispatcher owns at most one active job. Starting a new ``analyze`` call
or calling :meth:`AnalysisDispatcher.cancel` cancels the previous job's token,
which interrupts its poll interval and stops further status requests.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any

import requests

from .config import DispatcherConfig
from .errors import (
    AnalysisCancelledError,
    MalformedResponseError,
    NoDataError,
    TransportFailureError,
)
from .logging_setup import get_logger
from .metrics import compute_locally
from .models import AnalysisJob, AnalysisResult, Transaction

_logger = get_logger("finance_dashboard.dispatcher")

_JSON_HEADERS = {"Content-Type": "application/json", "Accept": "application/json"}

_STATUS_COMPLETED = "completed"
_STATUS_FAILED = frozenset({"failed", "error"})


class CancellationToken:
    """Cooperative cancellation flag shared by a caller and one analysis job."""

    __slots__ = ("_event",)

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, seconds: float) -> bool:
        """Block up to ``seconds``; return ``True`` early once cancelled."""

        return self._event.wait(seconds)


type Ticker = Callable[[float, CancellationToken], object]
"""Waits one poll interval. Must return promptly once the token is cancelled."""


def wait_on_token(seconds: float, token: CancellationToken) -> bool:
    return token.wait(seconds)


# ---- Response interpretation ------------------------------------------------


def _decode_json(resp: requests.Response) -> Any:
    if not 200 <= resp.status_code < 300:
        raise TransportFailureError(
            f"HTTP error! status: {resp.status_code}", status_code=resp.status_code
        )
    try:
        return resp.json()
    except ValueError as e:
        raise MalformedResponseError("response body is not valid JSON") from e


def _interpret_dispatch_body(body: Any) -> AnalysisResult | str:
    """Return a result (direct path) or a correlation id (polling path)."""

    data = body.get("data") if isinstance(body, Mapping) else None
    if not isinstance(data, Mapping):
        raise MalformedResponseError("response is missing the 'data' object")

    insights = data.get("insights")
    if insights is not None:
        return AnalysisResult.from_payload(insights)

    cid = data.get("correlationId")
    if isinstance(cid, str) and cid.strip():
        return cid.strip()
    if isinstance(cid, int) and not isinstance(cid, bool):
        return str(cid)
    raise MalformedResponseError("response has neither 'insights' nor 'correlationId'")


def _interpret_status_body(body: Any) -> tuple[str, Any]:
    if not isinstance(body, Mapping):
        raise MalformedResponseError("status response must be a JSON object")
    status = str(body.get("status") or "").strip().lower()
    return status, body.get("data")


def _completed_payload(data: Any) -> Any:
    # Accept both the bare result and the dispatch-style {"insights": {...}}.
    if isinstance(data, Mapping) and "insights" in data:
        return data["insights"]
    return data


def _raise_if_cancelled(token: CancellationToken, correlation_id: str | None = None) -> None:
    if token.cancelled:
        raise AnalysisCancelledError(
            "analysis cancelled" + (f" (correlation_id={correlation_id})" if correlation_id else "")
        )


# ---- Dispatcher ---------------------------------------------------------------


class AnalysisDispatcher:
    """Send transactions to the remote analysis service and return a result.

    Parameters
    ----------
    config:
        Endpoints and timing; see :class:`~finance_dashboard.config.DispatcherConfig`.
    session:
        HTTP session used for every request. Defaults to a new
        ``requests.Session``.
    ticker:
        Callable that waits one poll interval. The default waits on the
        cancellation token so cancelling interrupts the wait immediately.
    local_engine:
        Fallback producer; defaults to :func:`compute_locally`.
    """

    def __init__(
        self,
        config: DispatcherConfig,
        *,
        session: requests.Session | None = None,
        ticker: Ticker = wait_on_token,
        local_engine: Callable[[Sequence[Transaction]], AnalysisResult] = compute_locally,
    ) -> None:
        self._config = config
        self._session = session if session is not None else requests.Session()
        self._ticker = ticker
        self._local_engine = local_engine
        self._lock = threading.Lock()
        self._active: tuple[AnalysisJob, CancellationToken] | None = None

    @property
    def active_job(self) -> AnalysisJob | None:
        with self._lock:
            return self._active[0] if self._active is not None else None

    def cancel(self) -> None:
        """Cancel and discard the active job, if any."""

        with self._lock:
            active, self._active = self._active, None
        if active is not None:
            self._discard(*active)

    def analyze(
        self, transactions: Iterable[Transaction], *, cancel_token: CancellationToken
    ) -> AnalysisResult:
        """Analyze ``transactions`` remotely, polling or falling back as needed.

        Raises
        ------
        NoDataError
            When ``transactions`` is empty. No request is sent.
        AnalysisCancelledError
            When ``cancel_token`` is cancelled before the job completes
            (explicitly, via :meth:`cancel`, or by a newer ``analyze`` call).
        """

        txs = tuple(transactions)
        job = AnalysisJob(transactions=txs) if txs else None

        # A new call always ends the previous job first.
        with self._lock:
            prior = self._active
            self._active = (job, cancel_token) if job is not None else None
        if prior is not None:
            self._discard(*prior)

        if job is None:
            _logger.warning("analyze:rejected reason=no_data")
            raise NoDataError()

        try:
            result = self._run(job, cancel_token)
        except Exception as e:
            job.fail(f"{e.__class__.__name__}: {e}")
            raise
        else:
            job.complete(result)
            return result
        finally:
            self._release(job)

    # ---- internals ------------------------------------------------------

    def _discard(self, job: AnalysisJob, token: CancellationToken) -> None:
        token.cancel()
        _logger.info(
            "analyze:cancel_requested correlation_id=%s transactions=%d",
            job.correlation_id,
            len(job.transactions),
        )

    def _release(self, job: AnalysisJob) -> None:
        with self._lock:
            if self._active is not None and self._active[0] is job:
                self._active = None

    def _run(self, job: AnalysisJob, token: CancellationToken) -> AnalysisResult:
        _raise_if_cancelled(token)
        try:
            body = self._dispatch(job.transactions)
            outcome = _interpret_dispatch_body(body)
        except (TransportFailureError, MalformedResponseError) as e:
            _raise_if_cancelled(token)
            return self._fallback(job, e)

        _raise_if_cancelled(token)
        if isinstance(outcome, AnalysisResult):
            _logger.info("analyze:completed path=direct")
            return outcome

        job.correlation_id = outcome
        return self._poll(job, token)

    def _dispatch(self, transactions: Sequence[Transaction]) -> Any:
        payload = {"data": [tx.as_row() for tx in transactions]}
        _logger.info("analyze:dispatch transactions=%d", len(transactions))
        try:
            resp = self._session.post(
                self._config.dispatch_url,
                json=payload,
                headers=_JSON_HEADERS,
                timeout=self._config.request_timeout_s,
            )
        except requests.RequestException as e:
            raise TransportFailureError(f"dispatch request failed: {e}") from e
        return _decode_json(resp)

    def _get_status(self, correlation_id: str) -> Any:
        try:
            resp = self._session.get(
                self._config.status_url,
                params={"correlationId": correlation_id},
                headers=_JSON_HEADERS,
                timeout=self._config.request_timeout_s,
            )
        except requests.RequestException as e:
            raise TransportFailureError(f"status request failed: {e}") from e
        return _decode_json(resp)

    def _poll(self, job: AnalysisJob, token: CancellationToken) -> AnalysisResult:
        cid = job.correlation_id
        assert cid is not None
        _logger.info(
            "analyze:polling correlation_id=%s interval_ms=%d", cid, self._config.poll_interval_ms
        )
        attempt = 0
        while True:
            self._ticker(self._config.poll_interval_s, token)
            _raise_if_cancelled(token, cid)
            attempt += 1
            try:
                status, data = _interpret_status_body(self._get_status(cid))
            except (TransportFailureError, MalformedResponseError) as e:
                _logger.warning(
                    "analyze:poll_retry correlation_id=%s attempt=%d error=%s",
                    cid,
                    attempt,
                    e,
                )
                continue
            _raise_if_cancelled(token, cid)

            if status == _STATUS_COMPLETED:
                try:
                    result = AnalysisResult.from_payload(_completed_payload(data))
                except MalformedResponseError as e:
                    return self._fallback(job, e)
                _logger.info(
                    "analyze:completed path=polling correlation_id=%s attempts=%d", cid, attempt
                )
                return result
            if status in _STATUS_FAILED:
                return self._fallback(
                    job, MalformedResponseError(f"remote job reported status {status!r}")
                )
            _logger.debug(
                "analyze:poll_pending correlation_id=%s attempt=%d status=%s", cid, attempt, status
            )

    def _fallback(self, job: AnalysisJob, reason: Exception) -> AnalysisResult:
        _logger.warning(
            "analyze:fallback reason=%s detail=%s", reason.__class__.__name__, reason
        )
        result = self._local_engine(job.transactions)
        _logger.info("analyze:completed path=local transactions=%d", len(job.transactions))
        return result


__all__ = ["AnalysisDispatcher", "CancellationToken", "Ticker", "wait_on_token"]
