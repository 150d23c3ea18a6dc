import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

ONBOARDING_KEY = "water_grow_onboarding_completed"


class LocalPrefs:
    """Tiny JSON file holding the client's durable flags."""

    def __init__(self, path):
        self.path = Path(path)

    def _load(self):
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable prefs file {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    @property
    def onboarding_completed(self):
        return bool(self._load().get(ONBOARDING_KEY))

    def mark_onboarding_completed(self):
        data = self._load()
        data[ONBOARDING_KEY] = True
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            json.dump(data, f)
