import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Optional

import uvicorn
from fastapi import APIRouter, Body, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import config
from . import roster
from .sheets_manager import SheetsManager

logger = logging.getLogger(__name__)

_sheet_lock = threading.Lock()


@contextmanager
def sheet_lock(lock=None, timeout=config.LOCK_TIMEOUT_SECONDS):
    """Serialize spreadsheet access. If the lock is not free within timeout, go ahead unlocked."""
    lock = lock if lock is not None else _sheet_lock
    acquired = lock.acquire(timeout=timeout)
    if not acquired:
        logger.warning("Sheet lock not acquired after %ss, proceeding unlocked", timeout)
    try:
        yield acquired
    finally:
        if acquired:
            lock.release()


def success(**payload):
    return {"status": "success", **payload}


def error(exc):
    return {"status": "error", "message": str(exc)}


def _require(payload, *fields):
    missing = [f for f in fields if payload.get(f) is None]
    if missing:
        raise ValueError(f"Missing fields: {', '.join(missing)}")


def _get_roster(sheets_mgr, params):
    return success(data=roster.players_to_records(sheets_mgr.get_players()))


def _get_stats(sheets_mgr, params):
    return success(stats=sheets_mgr.get_stats())


def _get_score(sheets_mgr, params):
    return success(**sheets_mgr.get_score())


def _get_settings(sheets_mgr, params):
    return success(settings=sheets_mgr.get_settings())


def _update_status(sheets_mgr, p):
    _require(p, "id", "status")
    players_df = sheets_mgr.update_status(str(p["id"]), p["status"], p.get("actor"))
    idx = roster.find_player_index(players_df, str(p["id"]))
    return success(message="Updated", playerStatus=players_df.at[idx, config.COL_STATUS])


def _create_player(sheets_mgr, p):
    _require(p, "player")
    player = sheets_mgr.create_player(p["player"], p.get("actor"))
    return success(message="Created", id=player["id"])


def _update_player_details(sheets_mgr, p):
    _require(p, "player")
    player_id = p.get("id") or p["player"].get("id")
    if not player_id:
        raise ValueError("Missing fields: id")
    sheets_mgr.update_player_details(str(player_id), p["player"], p.get("actor"))
    return success(message="Updated")


def _delete_player(sheets_mgr, p):
    _require(p, "id")
    sheets_mgr.delete_player(str(p["id"]), p.get("actor"))
    return success(message="Deleted")


def _reset_week(sheets_mgr, p):
    sheets_mgr.reset_week(p.get("actor"), should_archive=bool(p.get("shouldArchive", False)))
    return success(message="Reset")


def _update_score(sheets_mgr, p):
    _require(p, "scoreA", "scoreB")
    score = sheets_mgr.update_score(p["scoreA"], p["scoreB"], p.get("actor"))
    return success(message="Score updated", **score)


def _update_settings(sheets_mgr, p):
    _require(p, "settings")
    settings = sheets_mgr.update_settings(p["settings"], p.get("actor"))
    return success(message="Settings updated", settings=settings)


def _initialize_or_sync(sheets_mgr, p):
    _require(p, "players")
    players_df = sheets_mgr.initialize_or_sync(p["players"], p.get("actor"))
    return success(message=f"Synced {len(players_df)} players")


GET_ACTIONS = {
    None: _get_roster,
    config.ACTION_GET_STATS: _get_stats,
    config.ACTION_GET_SCORE: _get_score,
    config.ACTION_GET_SETTINGS: _get_settings,
}

POST_ACTIONS = {
    config.ACTION_UPDATE_STATUS: _update_status,
    config.ACTION_CREATE_PLAYER: _create_player,
    config.ACTION_UPDATE_PLAYER_DETAILS: _update_player_details,
    config.ACTION_DELETE_PLAYER: _delete_player,
    config.ACTION_RESET_WEEK: _reset_week,
    config.ACTION_UPDATE_SCORE: _update_score,
    config.ACTION_UPDATE_SETTINGS: _update_settings,
    config.ACTION_INITIALIZE_OR_SYNC: _initialize_or_sync,
}


def make_roster_router(sheets_mgr, lock=None) -> APIRouter:
    router = APIRouter(tags=["roster"])

    # Plain def handlers run in the threadpool, so the blocking lock is fine here
    @router.get("/")
    def get_action(action: Optional[str] = None):
        handler = GET_ACTIONS.get(action or None)
        if handler is None:
            return error(f"Unknown action: {action}")
        with sheet_lock(lock):
            try:
                return handler(sheets_mgr, {})
            except Exception as e:
                logger.exception("GET %s failed", action or "roster")
                return error(e)

    @router.post("/")
    def post_action(payload: Dict[str, Any] = Body(...)):
        action = payload.get("action")
        handler = POST_ACTIONS.get(action)
        if handler is None:
            return error(f"Unknown action: {action}")
        with sheet_lock(lock):
            try:
                response = handler(sheets_mgr, payload)
                logger.info("%s by %s", action, payload.get("actor") or "Unknown")
                return response
            except Exception as e:
                logger.exception("POST %s failed", action)
                return error(e)

    return router


def create_app(sheets_mgr=None) -> FastAPI:
    app = FastAPI(title="Monday Hoops Roster API", version="1.0.0")
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["GET", "POST"], allow_headers=["*"])
    app.include_router(make_roster_router(sheets_mgr or SheetsManager()))
    return app


def main():
    logging.basicConfig(level=logging.INFO)
    uvicorn.run(create_app(), host=config.API_HOST, port=config.API_PORT)


if __name__ == "__main__":
    main()
