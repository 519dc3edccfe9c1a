# src/tasklite/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..sync.runner import ControllerRunner


@dataclass
class AppState:
    # Settings are kept on the state for easy access from commands.
    settings: object
    runner: ControllerRunner
    use_color: bool = False
