"""Session preferences that survive restarts, kept as JSON in the cache dir."""
from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Mapping, Optional

from .charts import DEFAULT_PERIOD, resolve_period
from .config import APP_NAME, get_xdg_cache_home

logger = logging.getLogger(__name__)

STATE_FILE_NAME = "session.json"


@dataclass
class SessionState:
    auto_refresh: bool = True
    distinct: bool = False
    chart_period: str = DEFAULT_PERIOD

    @classmethod
    def from_dict(cls, raw: Any) -> "SessionState":
        """Build a state from decoded JSON, keeping only well-typed known keys."""

        state = cls()
        if not isinstance(raw, Mapping):
            return state
        for item in fields(cls):
            value = raw.get(item.name)
            if isinstance(value, type(getattr(state, item.name))):
                setattr(state, item.name, value)
        state.chart_period = resolve_period(state.chart_period)
        return state

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class StateStore:
    def __init__(self, app_name: str = APP_NAME, root: Optional[Path] = None) -> None:
        self.path = (root or get_xdg_cache_home()) / app_name / STATE_FILE_NAME

    def load(self) -> SessionState:
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return SessionState()
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable session file %s: %s", self.path, exc)
            return SessionState()
        return SessionState.from_dict(raw)

    def save(self, state: SessionState) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(state.to_dict(), indent=2), encoding="utf-8")
        except OSError as exc:
            logger.warning("Could not save session preferences: %s", exc)
