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

import os
from dataclasses import dataclass, fields, replace
from typing import Dict, Mapping, Optional

__all__ = ["RpropConfig", "ENV_PREFIX"]

ENV_PREFIX = "SPARSE_RPROP_"

_TRUE_TOKENS = {"1", "true", "yes", "on"}


def _coerce(raw: str, kind: type) -> object:
    raw = raw.strip()
    if kind is bool:
        return raw.lower() in _TRUE_TOKENS
    if kind is int:
        return int(float(raw)) if any(c in raw for c in ".eE") else int(raw)
    return kind(raw)


@dataclass(frozen=True)
class RpropConfig:
    """Hyperparameters of one RPROP training run.

    The optimizer only reads these values. ``rho1`` enables the orthant-wise
    L1 projection when non-zero; ``rho2`` is the L2 coefficient consumed by
    the gradient oracle. ``stop_window``/``stop_eps`` drive the progress
    reporter's stopping criterion (``stop_window == 0`` disables it).
    """

    step_min: float = 1e-8
    step_max: float = 50.0
    step_inc: float = 1.2
    step_dec: float = 0.5
    step_init: float = 0.1
    rho1: float = 0.5
    rho2: float = 1e-4
    max_iter: int = 100
    n_workers: int = 1
    stop_window: int = 5
    stop_eps: float = 0.02

    @property
    def l1(self) -> bool:
        return self.rho1 != 0.0

    def validate(self) -> "RpropConfig":
        if not 0.0 < self.step_min <= self.step_max:
            raise ValueError(
                f"step bounds must satisfy 0 < step_min <= step_max, got "
                f"step_min={self.step_min} step_max={self.step_max}"
            )
        if not self.step_inc > 1.0:
            raise ValueError(f"step_inc must be > 1, got {self.step_inc}")
        if not 0.0 < self.step_dec < 1.0:
            raise ValueError(f"step_dec must be in (0, 1), got {self.step_dec}")
        if self.step_init <= 0.0:
            raise ValueError(f"step_init must be positive, got {self.step_init}")
        if self.rho1 < 0.0 or self.rho2 < 0.0:
            raise ValueError(f"regularization must be non-negative, got rho1={self.rho1} rho2={self.rho2}")
        if self.max_iter < 0:
            raise ValueError(f"max_iter must be >= 0, got {self.max_iter}")
        if self.n_workers < 1:
            raise ValueError(f"n_workers must be >= 1, got {self.n_workers}")
        if self.stop_window < 0 or self.stop_eps < 0.0:
            raise ValueError("stop_window and stop_eps must be non-negative")
        return self

    def replace(self, **changes) -> "RpropConfig":
        return replace(self, **changes).validate()

    @classmethod
    def from_env(
        cls,
        prefix: str = ENV_PREFIX,
        environ: Optional[Mapping[str, str]] = None,
        **overrides,
    ) -> "RpropConfig":
        """Build a config from ``<prefix><FIELD>`` environment variables.

        Field names are matched upper-case (``SPARSE_RPROP_N_WORKERS=4``).
        Keyword ``overrides`` win over the environment. Empty variables are
        ignored.
        """

        env = os.environ if environ is None else environ
        values: Dict[str, object] = {}
        for field in fields(cls):
            raw = env.get(prefix + field.name.upper(), "")
            if not raw.strip():
                continue
            kind = type(getattr(cls, field.name))
            try:
                values[field.name] = _coerce(raw, kind)
            except ValueError as exc:
                raise ValueError(f"invalid value for {prefix}{field.name.upper()}: {raw!r}") from exc
        values.update(overrides)
        return cls(**values).validate()
