# ============================================================================
#  Project: SpiralReality / Sparse RPROP
#  Copyright (c) 2025 Ryo ∴ SpiralArchitect and SpiralReality
#
#  This file is part of SpiralReality.
#
#  SpiralReality is free software: you can redistribute it and/or modify
#  it under the terms of the GNU Affero General Public License as published
#  by the Free Software Foundation, either version 3 of the License, or
#  (at your option) any later version.
#
#  SpiralReality is distributed in the hope that it will be useful,
#  but WITHOUT ANY WARRANTY; without even the implied warranty of
#  MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.
#  See the GNU Affero General Public License for more details.
#
#  You should have received a copy of the GNU Affero General Public License
#  along with SpiralReality.  If not, see <https://www.gnu.org/licenses/>.
# ============================================================================

from __future__ import annotations

import itertools
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from time import perf_counter
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

__all__ = [
    "Job",
    "WorkFn",
    "run_parallel",
    "dispatch_diagnostics",
    "reset_dispatch_metrics",
]

_LOG = logging.getLogger(__name__)

_METRICS_LOCK = threading.RLock()
_SEQUENCE = itertools.count(1)


@dataclass(frozen=True)
class Job:
    """Opaque handle passed to every work function of one dispatch."""

    name: str
    seq: int
    n_workers: int


WorkFn = Callable[[Job, int, int, Any], None]


@dataclass
class _DispatchMetrics:
    """Fork/join timings for one work function at one worker count.

    ``busy_s`` sums the time each worker spent in the work function and
    ``slowest_s`` sums, per dispatch, the time of the last worker to finish.
    Their ratio shows how evenly the partition spreads the work.
    """

    name: str
    n_workers: int
    calls: int = 0
    failures: int = 0
    wall_s: float = 0.0
    busy_s: float = 0.0
    slowest_s: float = 0.0
    last_error: Optional[str] = None

    def record(self, wall: float, worker_times: Sequence[float]) -> None:
        self.calls += 1
        self.wall_s += wall
        self.busy_s += sum(worker_times)
        self.slowest_s += max(worker_times, default=0.0)

    def record_failure(self, error: BaseException) -> None:
        self.calls += 1
        self.failures += 1
        self.last_error = f"{type(error).__name__}: {error}"

    @property
    def balance(self) -> Optional[float]:
        if self.slowest_s <= 0.0:
            return None
        return self.busy_s / (self.slowest_s * self.n_workers)


_DISPATCH_METRICS: Dict[Tuple[str, int], _DispatchMetrics] = {}


def _get_metrics(name: str, n_workers: int) -> _DispatchMetrics:
    key = (name, n_workers)
    with _METRICS_LOCK:
        metrics = _DISPATCH_METRICS.get(key)
        if metrics is None:
            metrics = _DispatchMetrics(name=name, n_workers=n_workers)
            _DISPATCH_METRICS[key] = metrics
        return metrics


def _work_name(work_fn: Callable) -> str:
    return getattr(work_fn, "__qualname__", None) or getattr(work_fn, "__name__", None) or repr(work_fn)


def _timed(work_fn: WorkFn, job: Job, worker_id: int, n_workers: int, arg: Any) -> float:
    start = perf_counter()
    work_fn(job, worker_id, n_workers, arg)
    return perf_counter() - start


def run_parallel(work_fn: WorkFn, n_workers: int, per_worker_args: Sequence[Any]) -> None:
    """Run ``work_fn(job, worker_id, n_workers, per_worker_args[worker_id])`` on every worker.

    Blocks until all workers have returned. A single worker runs inline on
    the calling thread; otherwise each worker gets its own thread for the
    duration of the call. The first exception raised by a worker is
    re-raised once every worker has finished.
    """

    if n_workers < 1:
        raise ValueError(f"n_workers must be >= 1, got {n_workers}")
    if len(per_worker_args) != n_workers:
        raise ValueError(
            f"expected {n_workers} per-worker arguments, got {len(per_worker_args)}"
        )
    name = _work_name(work_fn)
    job = Job(name=name, seq=next(_SEQUENCE), n_workers=n_workers)
    metrics = _get_metrics(name, n_workers)
    start = perf_counter()
    try:
        if n_workers == 1:
            worker_times = [_timed(work_fn, job, 0, 1, per_worker_args[0])]
        else:
            with ThreadPoolExecutor(max_workers=n_workers, thread_name_prefix=f"rprop-{job.seq}") as pool:
                futures = [
                    pool.submit(_timed, work_fn, job, wid, n_workers, per_worker_args[wid])
                    for wid in range(n_workers)
                ]
            # The pool's context exit is the join barrier.
            errors: List[BaseException] = [
                exc for exc in (f.exception() for f in futures) if exc is not None
            ]
            if errors:
                raise errors[0]
            worker_times = [f.result() for f in futures]
    except BaseException as exc:
        with _METRICS_LOCK:
            metrics.record_failure(exc)
        raise
    wall = perf_counter() - start
    with _METRICS_LOCK:
        metrics.record(wall, worker_times)
    if _LOG.isEnabledFor(logging.DEBUG):
        _LOG.debug(
            "dispatch %s#%d on %d workers: %.3f ms wall, slowest worker %.3f ms",
            name, job.seq, n_workers, wall * 1e3, max(worker_times) * 1e3,
        )


def dispatch_diagnostics() -> Dict[str, Dict[str, object]]:
    """Return fork/join timings keyed by ``"<work function>[w=<workers>]"``."""

    snapshot: Dict[str, Dict[str, object]] = {}
    with _METRICS_LOCK:
        for (name, n_workers), metrics in _DISPATCH_METRICS.items():
            ok = metrics.calls - metrics.failures
            snapshot[f"{name}[w={n_workers}]"] = {
                "n_workers": n_workers,
                "calls": metrics.calls,
                "failures": metrics.failures,
                "mean_wall_ms": (metrics.wall_s / ok) * 1e3 if ok else None,
                "balance": metrics.balance,
                "last_error": metrics.last_error,
            }
    return snapshot


def reset_dispatch_metrics() -> None:
    with _METRICS_LOCK:
        _DISPATCH_METRICS.clear()
