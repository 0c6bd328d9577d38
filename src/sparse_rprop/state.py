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
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, List, NoReturn, Optional

import torch

__all__ = [
    "RpropState",
    "GradientBuffers",
    "allocate_state",
    "allocate_buffers",
    "fatal",
]

_LOG = logging.getLogger(__name__)

DTYPE = torch.float64


def fatal(message: str, exc: Optional[BaseException] = None) -> NoReturn:
    """Log ``message`` as critical and terminate through :class:`SystemExit`."""

    _LOG.critical(message, exc_info=exc)
    raise SystemExit(f"error: {message}") from exc


def _new_vector(n_features: int, fill: float, what: str) -> torch.Tensor:
    try:
        return torch.full((n_features,), fill, dtype=DTYPE)
    except (MemoryError, RuntimeError) as exc:
        fatal(f"out of memory allocating {what} ({n_features} x float64)", exc)


@dataclass
class RpropState:
    """Per-run optimizer vectors, co-indexed with the model weights.

    ``gradient`` holds the raw gradient refreshed by the oracle,
    ``prev_gradient`` the raw gradient saved after the last update,
    ``step`` the adaptive per-feature step and ``delta`` the last applied
    signed move.
    """

    gradient: torch.Tensor
    prev_gradient: torch.Tensor
    step: torch.Tensor
    delta: torch.Tensor
    released: bool = False

    @classmethod
    def new(cls, n_features: int, step_init: float = 0.1) -> "RpropState":
        return cls(
            gradient=_new_vector(n_features, 0.0, "gradient"),
            prev_gradient=_new_vector(n_features, 0.0, "previous gradient"),
            step=_new_vector(n_features, step_init, "step sizes"),
            delta=_new_vector(n_features, 0.0, "deltas"),
        )

    @property
    def n_features(self) -> int:
        return int(self.gradient.numel())

    def snapshot(self) -> "RpropState":
        return RpropState(
            gradient=self.gradient.clone(),
            prev_gradient=self.prev_gradient.clone(),
            step=self.step.clone(),
            delta=self.delta.clone(),
        )

    def release(self) -> None:
        empty = torch.empty(0, dtype=DTYPE)
        self.gradient = self.prev_gradient = self.step = self.delta = empty
        self.released = True


class GradientBuffers:
    """Worker gradient buffers handed to the oracle.

    Buffer 0 aliases the run's ``state.gradient`` and lives as long as the
    state; buffers ``1..W-1`` are private to the run and dropped by
    :meth:`release`.
    """

    def __init__(self, shared: torch.Tensor, n_workers: int):
        n_features = int(shared.numel())
        self._buffers: List[torch.Tensor] = [shared]
        for wid in range(1, n_workers):
            self._buffers.append(_new_vector(n_features, 0.0, f"gradient buffer {wid}"))
        self.released = False

    def __len__(self) -> int:
        return len(self._buffers)

    def __getitem__(self, idx: int) -> torch.Tensor:
        return self._buffers[idx]

    def __iter__(self) -> Iterator[torch.Tensor]:
        return iter(self._buffers)

    @property
    def shared(self) -> torch.Tensor:
        return self._buffers[0]

    def private(self) -> List[torch.Tensor]:
        return self._buffers[1:]

    def release(self) -> None:
        del self._buffers[1:]
        self.released = True


@contextmanager
def allocate_state(n_features: int, step_init: float = 0.1) -> Iterator[RpropState]:
    state = RpropState.new(n_features, step_init)
    try:
        yield state
    finally:
        state.release()


@contextmanager
def allocate_buffers(state: RpropState, n_workers: int) -> Iterator[GradientBuffers]:
    buffers = GradientBuffers(state.gradient, n_workers)
    try:
        yield buffers
    finally:
        buffers.release()
