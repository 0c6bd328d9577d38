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

"""Resilient propagation weight update with an orthant-wise L1 projection.

This is RPROP (Riedmiller & Braun, 1993) adapted to L1 regularization: a
pseudo-gradient in the style of OWL-QN selects the orthant each feature
should stay in, and any step that would leave it is dropped.
"""

from __future__ import annotations

from dataclasses import dataclass

import torch

from .config import RpropConfig
from .partition import FeatureRange, worker_range
from .state import RpropState

__all__ = ["UpdateTask", "pseudo_gradient", "rprop_update_range", "rprop_worker"]


@dataclass(frozen=True)
class UpdateTask:
    """Shared view of a run handed to every update worker."""

    theta: torch.Tensor
    state: RpropState
    config: RpropConfig


def pseudo_gradient(x: torch.Tensor, g: torch.Tensor, rho1: float) -> torch.Tensor:
    """Project ``g`` into the orthant of ``x`` for an L1 penalty ``rho1``.

    Weights already away from zero take the penalty's derivative for their
    sign. At zero the penalty's subgradient absorbs ``|g| <= rho1`` and the
    result is zero.
    """

    if rho1 == 0.0:
        return g.clone()
    zero = torch.zeros_like(g)
    at_zero = torch.where(g < -rho1, g + rho1, torch.where(g > rho1, g - rho1, zero))
    return torch.where(x < 0.0, g - rho1, torch.where(x > 0.0, g + rho1, at_zero))


def rprop_update_range(
    theta: torch.Tensor,
    state: RpropState,
    config: RpropConfig,
    feature_range: FeatureRange,
) -> None:
    """Apply one RPROP update to the features of ``feature_range`` in place.

    Every write goes through slice views of ``feature_range``; concurrent
    calls on disjoint ranges never touch the same element.
    """

    if len(feature_range) == 0:
        return
    sl = feature_range.as_slice()
    x = theta[sl]
    g = state.gradient[sl]
    gp = state.prev_gradient[sl]
    stp = state.step[sl]
    dlt = state.delta[sl]

    pg = pseudo_gradient(x, g, config.rho1)
    agree = gp * pg
    grow = agree > 0.0
    shrink = agree < 0.0

    # Same sign: grow the step. Sign flip: we jumped over a minimum, shrink
    # the step and undo the previous move.
    stp.copy_(
        torch.where(
            grow,
            torch.clamp(stp * config.step_inc, max=config.step_max),
            torch.where(shrink, torch.clamp(stp * config.step_dec, min=config.step_min), stp),
        )
    )

    # The growing branch follows the raw gradient, the neutral one the
    # pseudo-gradient.
    new_dlt = stp * -torch.sign(torch.where(grow, g, pg))
    if config.l1:
        new_dlt = torch.where(new_dlt * pg >= 0.0, torch.zeros_like(new_dlt), new_dlt)

    x.copy_(torch.where(shrink, x - dlt, x + new_dlt))
    dlt.copy_(torch.where(shrink, dlt, new_dlt))
    # A zeroed gradient makes the next comparison neutral.
    g.masked_fill_(shrink, 0.0)
    # Raw gradient, not the pseudo-gradient.
    gp.copy_(g)


def rprop_worker(job, worker_id: int, n_workers: int, task: UpdateTask) -> None:
    """Dispatcher entry point: update this worker's share of the features."""

    feature_range = worker_range(task.theta.numel(), worker_id, n_workers)
    rprop_update_range(task.theta, task.state, task.config, feature_range)
