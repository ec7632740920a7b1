import logging
import threading

import requests

from . import config

logger = logging.getLogger(__name__)


class SyncError(Exception):
    """A mutation could not be delivered to the backend."""


class RosterClient:
    """Talks to the roster backend. Reads degrade to None; writes raise SyncError."""

    def __init__(self, url, timeout=config.REQUEST_TIMEOUT_SECONDS):
        self.url = url
        self.timeout = timeout

    def _get(self, action=None):
        params = {"action": action} if action else None
        response = requests.get(self.url, params=params, timeout=self.timeout)
        response.raise_for_status()
        payload = response.json()
        if payload.get("status") != "success":
            raise SyncError(payload.get("message", "Unknown error"))
        return payload

    def _read(self, action, key):
        if not self.url:
            return None
        try:
            payload = self._get(action)
        except (requests.exceptions.RequestException, ValueError, SyncError) as e:
            logger.error("Error fetching %s: %s", action or "roster", e)
            return None
        return payload.get(key) if key else payload

    def fetch_roster(self):
        data = self._read(None, "data")
        return data if isinstance(data, list) else None

    def get_stats(self):
        stats = self._read(config.ACTION_GET_STATS, "stats")
        return stats if isinstance(stats, list) else None

    def get_score(self):
        if not self.url:
            return {"scoreA": 0, "scoreB": 0}
        payload = self._read(config.ACTION_GET_SCORE, None)
        if payload is None:
            return None
        return {"scoreA": int(payload.get("scoreA", 0)), "scoreB": int(payload.get("scoreB", 0))}

    def get_settings(self):
        settings = self._read(config.ACTION_GET_SETTINGS, "settings")
        return settings if isinstance(settings, dict) else None

    def _post(self, action, actor, **fields):
        if not self.url:
            raise SyncError("No backend URL configured")
        body = {"action": action, "actor": actor or "Unknown", **fields}
        try:
            response = requests.post(self.url, json=body, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error("%s failed: %s", action, e)
            raise SyncError(str(e)) from e
        if payload.get("status") != "success":
            raise SyncError(payload.get("message", "Unknown error"))
        return payload

    def update_status(self, player_id, status, actor, timestamp=None):
        fields = {"id": player_id, "status": status}
        if timestamp is not None:
            fields["timestamp"] = timestamp
        return self._post(config.ACTION_UPDATE_STATUS, actor, **fields)

    def create_player(self, player, actor):
        return self._post(config.ACTION_CREATE_PLAYER, actor, player=player)

    def update_player_details(self, player, actor):
        return self._post(config.ACTION_UPDATE_PLAYER_DETAILS, actor, id=player["id"], player=player)

    def delete_player(self, player_id, actor):
        return self._post(config.ACTION_DELETE_PLAYER, actor, id=player_id)

    def reset_week(self, actor, should_archive):
        return self._post(config.ACTION_RESET_WEEK, actor, shouldArchive=bool(should_archive))

    def update_score(self, score_a, score_b, actor):
        return self._post(config.ACTION_UPDATE_SCORE, actor, scoreA=int(score_a), scoreB=int(score_b))

    def update_settings(self, settings, actor):
        return self._post(config.ACTION_UPDATE_SETTINGS, actor, settings=settings)

    def initialize_or_sync(self, players, actor):
        return self._post(config.ACTION_INITIALIZE_OR_SYNC, actor, players=players)


class ScoreSyncer:
    """Coalesces rapid score changes: only the latest score is sent, once things go quiet for delay seconds."""

    def __init__(self, client, actor, delay=config.SCORE_SYNC_DELAY):
        self.client = client
        self.actor = actor
        self.delay = delay
        self.last_error = None
        self._pending = None
        self._timer = None
        self._lock = threading.Lock()

    def push(self, score_a, score_b):
        with self._lock:
            self._pending = (int(score_a), int(score_b))
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.delay, self.flush)
            self._timer.daemon = True
            self._timer.start()

    @property
    def pending(self):
        return self._pending

    def flush(self):
        """Send the pending score now. Returns True if something was sent."""
        with self._lock:
            pending, self._pending = self._pending, None
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        if pending is None:
            return False
        if not self.client.url:
            # Local only: the score lives in this session until a backend is set
            self.last_error = None
            return False
        try:
            self.client.update_score(pending[0], pending[1], self.actor)
        except SyncError as e:
            logger.error("Score sync failed: %s", e)
            self.last_error = e
            return False
        self.last_error = None
        return True
