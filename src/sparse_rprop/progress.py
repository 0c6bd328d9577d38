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

import json
import logging
import os
from collections import deque
from dataclasses import asdict, dataclass
from time import perf_counter
from typing import Callable, Deque, List, Optional

from .cancel import CancellationFlag
from .config import RpropConfig

__all__ = ["IterationRecord", "ProgressReporter"]

_LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class IterationRecord:
    iteration: int
    objective: float
    active: int
    error: Optional[float]
    iter_s: float
    total_s: float


class _TraceWriter:
    def __init__(self, path: str, interval: int = 1):
        self.path = path
        self.interval = max(1, int(interval))

    def _write(self, payload):
        parent = os.path.dirname(self.path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(json.dumps(payload) + "\n")

    def log(self, record: IterationRecord):
        if (record.iteration % self.interval) == 0:
            self._write(asdict(record))


class ProgressReporter:
    """Per-iteration progress log and stopping criterion.

    ``evaluate(model)`` may return an error rate (in percent) to monitor;
    without it the objective value is monitored. When ``config.stop_window``
    is non-zero, training stops once the last ``stop_window`` monitored
    values all lie within ``config.stop_eps`` of each other. A set
    ``cancel`` flag also stops training.
    """

    def __init__(
        self,
        config: Optional[RpropConfig] = None,
        *,
        evaluate: Optional[Callable[[object], float]] = None,
        cancel: Optional[CancellationFlag] = None,
        trace_path: Optional[str] = None,
        trace_interval: int = 1,
    ):
        self.config = config if config is not None else RpropConfig()
        self.evaluate = evaluate
        self.cancel = cancel
        self.history: List[IterationRecord] = []
        self._window: Deque[float] = deque(maxlen=max(1, self.config.stop_window))
        self._trace = _TraceWriter(trace_path, trace_interval) if trace_path else None
        self._t0: Optional[float] = None
        self._last: Optional[float] = None

    def start(self) -> None:
        self._t0 = self._last = perf_counter()

    def _count_active(self, model) -> int:
        counter = getattr(model, "active_features", None)
        return int(counter()) if counter is not None else 0

    def report(self, model, iteration: int, objective: float) -> bool:
        now = perf_counter()
        if self._t0 is None:
            self._t0 = self._last = now
        error = float(self.evaluate(model)) if self.evaluate is not None else None
        record = IterationRecord(
            iteration=int(iteration),
            objective=float(objective),
            active=self._count_active(model),
            error=error,
            iter_s=now - self._last,
            total_s=now - self._t0,
        )
        self._last = now
        self.history.append(record)

        line = f"  [{record.iteration:4d}] obj={record.objective:<10.2f} act={record.active:<8d}"
        if error is not None:
            line += f" err={error:5.2f}%"
        line += f" time={record.iter_s:.2f}s/{record.total_s:.2f}s"
        _LOG.info(line)
        if self._trace is not None:
            self._trace.log(record)

        keep_going = True
        if self.config.stop_window > 0:
            self._window.append(error if error is not None else record.objective)
            if len(self._window) == self.config.stop_window:
                if max(self._window) - min(self._window) < self.config.stop_eps:
                    _LOG.info("stopping criterion reached after %d iterations", record.iteration)
                    keep_going = False
        if self.cancel is not None and self.cancel.is_set():
            _LOG.info("  stop requested, trying to stop")
            keep_going = False
        return keep_going
