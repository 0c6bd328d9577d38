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

import logging
from dataclasses import dataclass
from typing import List, Protocol, Sequence, Union, runtime_checkable

import numpy as np
import torch
import torch.nn.functional as F

from .dispatch import Job, run_parallel
from .partition import worker_range
from .state import DTYPE

__all__ = ["GradientOracle", "LogisticOracle"]

_LOG = logging.getLogger(__name__)

ArrayLike = Union[torch.Tensor, np.ndarray, Sequence]


@runtime_checkable
class GradientOracle(Protocol):
    """Objective and gradient provider driven by the optimizer.

    ``compute`` receives one buffer per worker, fills them from the model's
    current weights, merges everything into ``buffers[0]`` and returns the
    objective value.
    """

    def compute(self, model, buffers: Sequence[torch.Tensor]) -> float:
        ...


def _as_matrix(values: ArrayLike) -> torch.Tensor:
    if isinstance(values, torch.Tensor):
        return values.detach().to(DTYPE).contiguous()
    return torch.from_numpy(np.ascontiguousarray(values, dtype=np.float64))


@dataclass
class _Shard:
    buffer: torch.Tensor
    theta: torch.Tensor
    loss: float = 0.0


class LogisticOracle:
    """Binary logistic regression with elastic-net objective.

    ``features`` is an ``(N, F)`` matrix and ``labels`` holds ``N`` values
    in ``{0, 1}``. The objective is the summed negative log-likelihood plus
    ``rho1 * |theta|_1 + rho2 / 2 * |theta|^2``. Only the L2 part enters the
    gradient; the L1 part is left to the optimizer's orthant projection.
    Samples are split across the buffers and each worker accumulates its
    shard into its own buffer.
    """

    def __init__(self, features: ArrayLike, labels: ArrayLike):
        self.features = _as_matrix(features)
        if self.features.dim() != 2:
            raise ValueError(f"features must be a 2-D matrix, got shape {tuple(self.features.shape)}")
        self.labels = _as_matrix(labels).reshape(-1)
        if self.labels.numel() != self.features.shape[0]:
            raise ValueError(
                f"got {self.labels.numel()} labels for {self.features.shape[0]} samples"
            )
        self.evaluations = 0

    @property
    def n_samples(self) -> int:
        return int(self.features.shape[0])

    @property
    def n_features(self) -> int:
        return int(self.features.shape[1])

    def _shard_gradient(self, job: Job, worker_id: int, n_workers: int, shard: _Shard) -> None:
        rows = worker_range(self.n_samples, worker_id, n_workers).as_slice()
        x = self.features[rows]
        y = self.labels[rows]
        z = x @ shard.theta
        shard.loss = float((F.softplus(z) - y * z).sum().item())
        shard.buffer.zero_()
        shard.buffer.add_(x.T @ (torch.sigmoid(z) - y))

    def compute(self, model, buffers: Sequence[torch.Tensor]) -> float:
        theta = model.theta
        config = model.config
        shards: List[_Shard] = [_Shard(buffer=buf, theta=theta) for buf in buffers]
        run_parallel(self._shard_gradient, len(shards), shards)

        merged = buffers[0]
        for buf in list(buffers)[1:]:
            merged.add_(buf)
        fx = sum(s.loss for s in shards)
        if config.rho2 != 0.0:
            merged.add_(theta, alpha=config.rho2)
            fx += 0.5 * config.rho2 * float(torch.dot(theta, theta).item())
        if config.rho1 != 0.0:
            fx += config.rho1 * float(theta.abs().sum().item())
        self.evaluations += 1
        if _LOG.isEnabledFor(logging.DEBUG):
            _LOG.debug("objective %.6f over %d samples (%d shards)", fx, self.n_samples, len(shards))
        return fx

    def error_rate(self, model) -> float:
        """Percentage of misclassified samples under the current weights."""

        if self.n_samples == 0:
            return 0.0
        pred = (self.features @ model.theta) > 0.0
        wrong = (pred != (self.labels > 0.5)).sum().item()
        return 100.0 * float(wrong) / self.n_samples
