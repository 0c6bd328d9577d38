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

from .config import RpropConfig
from .partition import FeatureRange, partition, worker_range
from .state import GradientBuffers, RpropState, allocate_buffers, allocate_state
from .update import UpdateTask, pseudo_gradient, rprop_update_range, rprop_worker
from .dispatch import Job, dispatch_diagnostics, reset_dispatch_metrics, run_parallel
from .cancel import CancellationFlag, install_sigint_handler
from .model import LinearModel
from .oracle import GradientOracle, LogisticOracle
from .progress import IterationRecord, ProgressReporter
from .optimizer import RpropTrainer, RunOutcome, optimize

__all__ = [
    "RpropConfig",
    "FeatureRange",
    "partition",
    "worker_range",
    "GradientBuffers",
    "RpropState",
    "allocate_buffers",
    "allocate_state",
    "UpdateTask",
    "pseudo_gradient",
    "rprop_update_range",
    "rprop_worker",
    "Job",
    "dispatch_diagnostics",
    "reset_dispatch_metrics",
    "run_parallel",
    "CancellationFlag",
    "install_sigint_handler",
    "LinearModel",
    "GradientOracle",
    "LogisticOracle",
    "IterationRecord",
    "ProgressReporter",
    "RpropTrainer",
    "RunOutcome",
    "optimize",
]
__version__ = "0.1.0"
