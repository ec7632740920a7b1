import json
import logging
import os

from . import config

logger = logging.getLogger(__name__)


class LocalStore:
    """JSON key/value file holding the client's roster snapshot and backend config.

    Keys carry a version suffix; bumping it in config makes every client start fresh.
    """

    def __init__(self, path=config.STORE_PATH):
        self.path = path

    def _load(self):
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except ValueError as e:
            logger.warning("Ignoring unreadable local store %s: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data):
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f)
        os.replace(tmp_path, self.path)

    def get(self, key, default=None):
        return self._load().get(key, default)

    def set(self, key, value):
        data = self._load()
        data[key] = value
        self._write(data)

    def remove(self, key):
        data = self._load()
        if key in data:
            del data[key]
            self._write(data)

    def clear(self):
        if os.path.exists(self.path):
            os.remove(self.path)

    def load_players(self):
        players = self.get(config.STORAGE_KEY_PLAYERS)
        return players if isinstance(players, list) else None

    def save_players(self, players):
        self.set(config.STORAGE_KEY_PLAYERS, players)

    def load_config(self):
        app_config = self.get(config.STORAGE_KEY_CONFIG)
        return app_config if isinstance(app_config, dict) else {}

    def save_config(self, app_config):
        self.set(config.STORAGE_KEY_CONFIG, app_config)

