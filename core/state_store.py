import json
import os
import tempfile

from pydantic import ValidationError

from config.logger import logger
from core.errors import StateStoreCorrupt
from models.state import PersistedState


class StateStore:
    """JSON file holding the bot's PersistedState. Sole source of truth across restarts."""

    def __init__(self, path="data/state.json"):
        self.path = path
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)

    def load(self) -> PersistedState:
        """Returns the stored state, or an empty PersistedState when missing or corrupt. Never raises."""
        if not os.path.exists(self.path):
            return PersistedState()

        try:
            return self._read()
        except (StateStoreCorrupt, UnicodeDecodeError) as e:
            logger.warning(f"⚠️ State file corrupt, starting from empty state: {e}")
        except OSError as e:
            logger.warning(f"⚠️ Could not read state file, starting from empty state: {e}")
        return PersistedState()

    def _read(self) -> PersistedState:
        with open(self.path, 'r', encoding='utf-8') as f:
            raw = f.read()
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StateStoreCorrupt(f"{self.path}: {e}") from e
        if not isinstance(data, dict):
            raise StateStoreCorrupt(f"{self.path}: expected an object")
        try:
            return PersistedState.model_validate(data)
        except ValidationError as e:
            raise StateStoreCorrupt(f"{self.path}: {e}") from e

    def save(self, state: PersistedState):
        """Write-temp-then-rename, so readers never see a half-written file."""
        directory = os.path.dirname(os.path.abspath(self.path))
        fd, tmp_path = tempfile.mkstemp(prefix=".state-", suffix=".tmp", dir=directory)
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(state.model_dump_json(indent=2))
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
