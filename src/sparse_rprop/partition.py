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

from dataclasses import dataclass
from typing import List

__all__ = ["FeatureRange", "worker_range", "partition"]


@dataclass(frozen=True)
class FeatureRange:
    """Half-open block ``[start, stop)`` of features assigned to one worker."""

    worker_id: int
    n_workers: int
    start: int
    stop: int

    def as_slice(self) -> slice:
        return slice(self.start, self.stop)

    def __len__(self) -> int:
        return self.stop - self.start

    def indices(self) -> range:
        return range(self.start, self.stop)


def worker_range(n_features: int, worker_id: int, n_workers: int) -> FeatureRange:
    # Floor division puts the remainder on the later workers.
    start = n_features * worker_id // n_workers
    stop = n_features * (worker_id + 1) // n_workers
    return FeatureRange(worker_id, n_workers, start, stop)


def partition(n_features: int, n_workers: int) -> List[FeatureRange]:
    """Split ``[0, n_features)`` into ``n_workers`` contiguous disjoint ranges.

    The ranges cover every feature exactly once for any ``n_features >= 0``
    and ``n_workers >= 1``. When there are more workers than features some
    ranges are empty.
    """

    return [worker_range(n_features, wid, n_workers) for wid in range(n_workers)]
