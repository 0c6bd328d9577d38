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

import enum
import logging
from time import perf_counter
from typing import Any, Callable, Optional, Protocol, Sequence

from .cancel import CancellationFlag
from .config import RpropConfig
from .dispatch import run_parallel
from .oracle import GradientOracle
from .progress import ProgressReporter
from .state import GradientBuffers, RpropState, allocate_buffers, allocate_state
from .update import UpdateTask, rprop_worker

__all__ = ["RunOutcome", "RpropTrainer", "optimize"]

_LOG = logging.getLogger(__name__)

Dispatcher = Callable[[Callable, int, Sequence[Any]], None]


class Reporter(Protocol):
    def report(self, model, iteration: int, objective: float) -> bool:
        ...


class RunOutcome(str, enum.Enum):
    CONVERGED = "converged"
    CANCELLED = "cancelled"
    MAX_ITER = "max_iter"


class RpropTrainer:
    """Drive RPROP iterations: gradient, cancellation check, update, report.

    The trainer owns the optimizer state for the duration of :meth:`run`
    only; it is allocated on entry and released on every exit path. An
    explicit ``config`` is installed on the model before the first
    iteration so the oracle and the update rule share it.
    """

    def __init__(
        self,
        oracle: GradientOracle,
        config: Optional[RpropConfig] = None,
        *,
        reporter: Optional[Reporter] = None,
        cancel: Optional[CancellationFlag] = None,
        dispatcher: Dispatcher = run_parallel,
    ):
        self.oracle = oracle
        self.config = config
        self.reporter = reporter
        self.cancel = cancel if cancel is not None else CancellationFlag()
        self.dispatcher = dispatcher
        self.iterations = 0
        self.last_objective: Optional[float] = None

    def _config_for(self, model) -> RpropConfig:
        return self.config if self.config is not None else model.config

    def iterate(
        self,
        model,
        state: RpropState,
        buffers: GradientBuffers,
        iteration: int,
        config: Optional[RpropConfig] = None,
    ) -> Optional[RunOutcome]:
        """Run iteration ``iteration`` (0-based); return a terminal outcome or ``None``."""

        config = config if config is not None else self._config_for(model)
        if self.cancel.is_set():
            return RunOutcome.CANCELLED
        fx = float(self.oracle.compute(model, buffers))
        # The gradient may take long; check again before touching weights.
        if self.cancel.is_set():
            return RunOutcome.CANCELLED
        n_workers = len(buffers)
        task = UpdateTask(theta=model.theta, state=state, config=config)
        self.dispatcher(rprop_worker, n_workers, [task] * n_workers)
        self.iterations = iteration + 1
        self.last_objective = fx
        if self.reporter is not None and not self.reporter.report(model, iteration + 1, fx):
            return RunOutcome.CONVERGED
        return None

    def run(self, model) -> RunOutcome:
        config = self._config_for(model)
        # The oracle reads its regularization from the model.
        model.config = config
        self.iterations = 0
        self.last_objective = None
        n_features = int(model.theta.numel())
        _LOG.info(
            "rprop: %d features, %d workers, rho1=%g, max_iter=%d",
            n_features, config.n_workers, config.rho1, config.max_iter,
        )
        start = getattr(self.reporter, "start", None)
        if start is not None:
            start()
        t0 = perf_counter()
        outcome = RunOutcome.MAX_ITER
        with allocate_state(n_features, config.step_init) as state, \
                allocate_buffers(state, config.n_workers) as buffers:
            for k in range(config.max_iter):
                result = self.iterate(model, state, buffers, k, config)
                if result is not None:
                    outcome = result
                    break
        _LOG.info(
            "rprop: %s after %d iterations (%.2fs)",
            outcome.value, self.iterations, perf_counter() - t0,
        )
        return outcome


def optimize(
    model,
    oracle: GradientOracle,
    config: Optional[RpropConfig] = None,
    *,
    reporter: Optional[Reporter] = None,
    cancel: Optional[CancellationFlag] = None,
) -> None:
    """Train ``model.theta`` in place with L1-aware RPROP.

    Uses ``model.config`` unless ``config`` is given, in which case
    ``config`` replaces it on the model. Without an explicit
    reporter a :class:`ProgressReporter` logs each iteration and applies the
    window stopping criterion.
    """

    config = (config if config is not None else model.config).validate()
    cancel = cancel if cancel is not None else CancellationFlag()
    if reporter is None:
        reporter = ProgressReporter(config, cancel=cancel)
    RpropTrainer(oracle, config, reporter=reporter, cancel=cancel).run(model)
