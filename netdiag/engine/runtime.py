from __future__ import annotations

"""Shared runtime for netdiag probers.

This module holds the pieces every prober builds on:
- the `netdiag` logger
- `ProbeOutcome`, the one-result-per-endpoint record
- `run_bounded`, the timeout-bounded concurrent task runner
- `_run_coro_sync`, the bridge used by the CLI and synchronous Python API

Nothing here performs network I/O on its own.
"""

import asyncio
import logging
import sys
import threading
import time
from concurrent.futures import Executor, ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Iterator, List, Optional, Sequence

logger = logging.getLogger("netdiag")
logger.setLevel(logging.INFO)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s", "%H:%M:%S"))
    logger.addHandler(handler)

SUCCESS = "success"
REFUSED = "refused"
TIMEOUT = "timeout"
NETWORK_ERROR = "network_error"
AMBIGUOUS_ERROR = "ambiguous_error"

OUTCOME_KINDS = (SUCCESS, REFUSED, TIMEOUT, NETWORK_ERROR, AMBIGUOUS_ERROR)

MAX_ERROR_LENGTH = 100
DEFAULT_CONCURRENCY = 64

Operation = Callable[[], Awaitable[Any]]


@dataclass(frozen=True)
class Endpoint:
    """One remote party probed in a request: resolver, nameserver or zone."""

    address: str
    label: str
    query: str = ""


@dataclass(frozen=True)
class ProbeOutcome:
    """Result of one probe against one endpoint.

    `value` is set for `success` and may accompany `refused`; `detail` is
    never set for `success`.
    """

    kind: str
    elapsed_ms: float = 0.0
    value: Any = None
    detail: Optional[str] = None
    error: Optional[BaseException] = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        if self.kind not in OUTCOME_KINDS:
            raise ValueError(f"Unknown outcome kind: {self.kind}")
        if self.kind == SUCCESS and self.detail is not None:
            raise ValueError("Success outcome cannot carry an error detail")

    @property
    def ok(self) -> bool:
        return self.kind == SUCCESS

    @classmethod
    def success(cls, value: Any, elapsed_ms: float) -> "ProbeOutcome":
        return cls(SUCCESS, elapsed_ms=elapsed_ms, value=value)

    @classmethod
    def refused(cls, elapsed_ms: float, detail: Optional[str] = None, value: Any = None) -> "ProbeOutcome":
        return cls(REFUSED, elapsed_ms=elapsed_ms, value=value, detail=detail)

    @classmethod
    def timeout(cls, elapsed_ms: float) -> "ProbeOutcome":
        return cls(TIMEOUT, elapsed_ms=elapsed_ms, detail="Timeout")

    @classmethod
    def network_error(cls, detail: str, elapsed_ms: float = 0.0, error: Optional[BaseException] = None) -> "ProbeOutcome":
        return cls(NETWORK_ERROR, elapsed_ms=elapsed_ms, detail=detail, error=error)

    @classmethod
    def ambiguous_error(cls, detail: str, elapsed_ms: float = 0.0) -> "ProbeOutcome":
        return cls(AMBIGUOUS_ERROR, elapsed_ms=elapsed_ms, detail=detail)


def elapsed_ms_since(started: float) -> float:
    return round((time.perf_counter() - started) * 1000.0, 2)


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def error_text(exc: BaseException, limit: int = MAX_ERROR_LENGTH) -> str:
    """Render an exception as a short single-line message."""
    message = str(exc).strip().split("\n", 1)[0]
    text = f"{exc.__class__.__name__}: {message}" if message else exc.__class__.__name__
    return text[:limit]


async def _run_one(operation: Operation, timeout_s: float, limiter: asyncio.Semaphore) -> ProbeOutcome:
    async with limiter:
        started = time.perf_counter()
        try:
            value = await asyncio.wait_for(operation(), timeout=timeout_s)
        except asyncio.TimeoutError:
            return ProbeOutcome.timeout(elapsed_ms_since(started))
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.debug("Probe operation failed: %s", error_text(exc))
            return ProbeOutcome.network_error(error_text(exc), elapsed_ms_since(started), error=exc)
        if isinstance(value, ProbeOutcome):
            # The operation classified its own answer (refused, ambiguous).
            return replace(value, elapsed_ms=elapsed_ms_since(started))
        return ProbeOutcome.success(value, elapsed_ms_since(started))


async def run_bounded(
    operations: Sequence[Operation],
    timeout_ms: float,
    concurrency: int = DEFAULT_CONCURRENCY,
) -> List[ProbeOutcome]:
    """Run independent async operations with a per-operation timeout.

    Every operation yields exactly one `ProbeOutcome`, in input order. A slow
    or failing operation never aborts the batch. Only malformed input raises.
    An operation that returns a `ProbeOutcome` itself keeps its kind; only the
    elapsed time is filled in.
    """
    if not isinstance(operations, (list, tuple)):
        raise TypeError("operations must be a list of zero-argument callables")
    if timeout_ms is None or timeout_ms < 0:
        raise ValueError("timeout_ms must be a non-negative number")
    if concurrency < 1:
        raise ValueError("concurrency must be >= 1")
    if not operations:
        return []

    limiter = asyncio.Semaphore(concurrency)
    timeout_s = float(timeout_ms) / 1000.0
    return list(await asyncio.gather(*(_run_one(op, timeout_s, limiter) for op in operations)))


async def in_executor(func: Callable[..., Any], *args: Any, executor: Optional[Executor] = None) -> Any:
    """Run blocking socket/DNS work on a thread pool."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(executor, func, *args)


@contextmanager
def io_pool(workers: int) -> Iterator[ThreadPoolExecutor]:
    """Per-request thread pool; abandoned probes are not waited for on exit."""
    executor = ThreadPoolExecutor(max_workers=max(4, int(workers)), thread_name_prefix="netdiag-io")
    try:
        yield executor
    finally:
        executor.shutdown(wait=False, cancel_futures=True)


def _run_coro_sync(coro: Any) -> Any:
    """Run async code from sync callers (CLI and public API).

    If already inside an event loop, execute in a helper thread to avoid
    `RuntimeError: asyncio.run() cannot be called from a running event loop`.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)

    outcome: dict = {}

    def target() -> None:
        try:
            outcome["result"] = asyncio.run(coro)
        except Exception as exc:  # pragma: no cover - fallback path
            outcome["error"] = exc

    thread = threading.Thread(target=target, daemon=True)
    thread.start()
    thread.join()

    if "error" in outcome:
        raise outcome["error"]
    return outcome.get("result")
