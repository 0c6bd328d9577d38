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
import signal
import threading
from typing import Any, Callable, Optional, Union

__all__ = ["CancellationFlag", "install_sigint_handler"]

_LOG = logging.getLogger(__name__)


class CancellationFlag:
    """Cooperative stop request shared between a run and outside actors.

    Reading never blocks; any thread (or a signal handler) may set it.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def set(self) -> None:
        self._event.set()

    def clear(self) -> None:
        self._event.clear()

    def is_set(self) -> bool:
        return self._event.is_set()

    def __bool__(self) -> bool:
        return self._event.is_set()

    def __repr__(self) -> str:
        return f"CancellationFlag(set={self.is_set()})"


_Handler = Union[Callable[[int, Any], Any], int, None]


def install_sigint_handler(flag: CancellationFlag) -> _Handler:
    """Make the first SIGINT set ``flag``; a second one interrupts as usual.

    Must be called from the main thread. Returns the handler that was in
    place so callers can restore it.
    """

    def _on_sigint(signum: int, frame: Optional[Any]) -> None:
        _LOG.warning("SIGINT caught, trying to stop (press again to abort)")
        flag.set()
        signal.signal(signal.SIGINT, signal.default_int_handler)

    return signal.signal(signal.SIGINT, _on_sigint)
