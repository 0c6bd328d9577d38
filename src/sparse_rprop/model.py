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

from typing import Optional, Sequence, Union

import numpy as np
import torch

from .config import RpropConfig
from .state import DTYPE

__all__ = ["LinearModel"]


class LinearModel:
    """Dense weight vector of a linear model plus its training options."""

    def __init__(
        self,
        n_features: int,
        config: Optional[RpropConfig] = None,
        theta: Optional[Union[torch.Tensor, np.ndarray, Sequence[float]]] = None,
    ):
        self.config = config if config is not None else RpropConfig()
        if theta is None:
            self.theta = torch.zeros(int(n_features), dtype=DTYPE)
        else:
            self.theta = torch.as_tensor(theta, dtype=DTYPE).reshape(-1).clone().contiguous()
            if self.theta.numel() != n_features:
                raise ValueError(f"theta has {self.theta.numel()} entries, expected {n_features}")

    @property
    def n_features(self) -> int:
        return int(self.theta.numel())

    def active_features(self) -> int:
        return int(torch.count_nonzero(self.theta).item())

    def __repr__(self) -> str:
        return f"LinearModel(n_features={self.n_features}, active={self.active_features()})"
