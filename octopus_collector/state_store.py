"""Persistence of cached meter values across restarts."""

import json
import logging
from pathlib import Path
from typing import Dict, Protocol

from pydantic import ValidationError

from .models import CachedState

logger = logging.getLogger(__name__)


class StateStore(Protocol):
    """Load/save contract for per-meter cached state."""

    def load(self, meter_key: str) -> CachedState:
        ...

    def save(self, meter_key: str, state: CachedState) -> None:
        ...


class MemoryStateStore:
    """State store that lives for the process only."""

    def __init__(self):
        self._states: Dict[str, CachedState] = {}

    def load(self, meter_key: str) -> CachedState:
        return self._states.get(meter_key, CachedState())

    def save(self, meter_key: str, state: CachedState) -> None:
        self._states[meter_key] = state


class JsonFileStateStore:
    """State store backed by a single JSON file keyed by meter.

    File layout:
    {
        "import-1200000000000-21L0000000": {"last_watts": 412.5, "last_total_kwh": 6.42},
        ...
    }
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def _read_all(self) -> Dict[str, dict]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to read state cache {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring state cache {self.path}: not a JSON object")
            return {}
        return data

    def load(self, meter_key: str) -> CachedState:
        """Load state for a meter, zero state if none is cached."""
        entry = self._read_all().get(meter_key)
        if entry is None:
            return CachedState()
        try:
            state = CachedState.model_validate(entry)
        except ValidationError as e:
            logger.warning(f"Ignoring cached state for {meter_key}: {e}")
            return CachedState()
        logger.info(
            f"Restored cached state for {meter_key}: "
            f"{state.last_watts:.2f} W, {state.last_total_kwh:.3f} kWh"
        )
        return state

    def save(self, meter_key: str, state: CachedState) -> None:
        """Save state for a meter, preserving other meters' entries."""
        data = self._read_all()
        data[meter_key] = state.model_dump()

        # Ensure parent directory exists
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2))
        logger.debug(f"State for {meter_key} cached to {self.path}")
