import logging
import re
import uuid
from datetime import datetime, timedelta

import numpy as np
import pandas as pd

from . import config

logger = logging.getLogger(__name__)

ROSTER_COLUMNS = config.SHEET_HEADERS[config.SHEET_ROSTER]

STATUS_DISPLAY_ORDER = {
    config.STATUS_IN: 0,
    config.STATUS_WAITLIST: 1,
    config.STATUS_UNKNOWN: 2,
    config.STATUS_OUT: 3,
}

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class PlayerNotFoundError(KeyError):
    def __init__(self, player_id):
        super().__init__(player_id)
        self.player_id = player_id

    def __str__(self):
        return f"Player not found: {self.player_id}"


def to_millis(value):
    """Convert a sheet or JSON timestamp (epoch ms, number string or ISO date) to epoch ms."""
    if value is None or value is pd.NaT:
        return None
    if isinstance(value, (int, np.integer)) and not isinstance(value, bool):
        return int(value)
    if isinstance(value, (float, np.floating)):
        return None if np.isnan(value) else int(value)
    text = str(value).strip()
    if not text:
        return None
    if text.lstrip("-").isdigit():
        return int(text)
    try:
        ts = pd.Timestamp(text)
    except ValueError:
        logger.warning("Ignoring unreadable timestamp %r", text)
        return None
    if ts is pd.NaT:
        return None
    if ts.tzinfo is None:
        ts = ts.tz_localize("UTC")
    return int(ts.value // 1_000_000)


def millis_to_iso(millis):
    if millis is None:
        return ""
    return pd.Timestamp(int(millis), unit="ms", tz="UTC").isoformat().replace("+00:00", "Z")


def to_bool(value):
    if isinstance(value, str):
        return value.strip().lower() == "true"
    if value is None or (isinstance(value, float) and np.isnan(value)):
        return False
    return bool(value)


def _to_tier(value):
    tier = pd.to_numeric(value, errors="coerce")
    if pd.isna(tier):
        return config.DEFAULT_TIER
    return int(tier)


def _to_pin(value):
    if value is None or (isinstance(value, float) and np.isnan(value)):
        return ""
    if isinstance(value, (int, np.integer)):
        return str(value).zfill(4)
    return str(value).strip()


def _to_text(value):
    if value is None or (isinstance(value, float) and np.isnan(value)):
        return ""
    return str(value)


def normalize_players(players_df):
    """Return a copy of the roster with every column coerced to its canonical type."""
    df = players_df.copy()
    for col in ROSTER_COLUMNS:
        if col not in df.columns:
            df[col] = None
    df = df[ROSTER_COLUMNS].reset_index(drop=True)

    df[config.COL_ID] = df[config.COL_ID].map(_to_text)
    df[config.COL_NAME] = df[config.COL_NAME].map(_to_text)
    df[config.COL_TIER] = df[config.COL_TIER].map(_to_tier).astype(object)
    df[config.COL_STATUS] = df[config.COL_STATUS].map(
        lambda s: s if s in config.PLAYER_STATUSES else config.STATUS_UNKNOWN
    )
    df[config.COL_PHONE] = df[config.COL_PHONE].map(_to_text)
    # built by hand: Series.map would turn a None/int mix into floats
    df[config.COL_TIMESTAMP] = pd.Series(
        [to_millis(v) for v in df[config.COL_TIMESTAMP]], index=df.index, dtype=object
    )
    df[config.COL_IS_ADMIN] = df[config.COL_IS_ADMIN].map(to_bool).astype(object)
    df[config.COL_EMAIL] = df[config.COL_EMAIL].map(_to_text)
    df[config.COL_PIN] = df[config.COL_PIN].map(_to_pin)
    return df


def empty_players():
    return pd.DataFrame(columns=ROSTER_COLUMNS)


def players_from_records(records):
    """Build a roster DataFrame from JSON player dicts."""
    if not records:
        return empty_players()
    rows = []
    for record in records:
        rows.append({col: record.get(field) for field, col in config.PLAYER_FIELDS.items()})
    return normalize_players(pd.DataFrame(rows))


def players_to_records(players_df):
    """Convert a roster DataFrame to JSON player dicts."""
    df = normalize_players(players_df)
    records = []
    for _, row in df.iterrows():
        timestamp = row[config.COL_TIMESTAMP]
        records.append({
            "id": row[config.COL_ID],
            "name": row[config.COL_NAME],
            "tier": int(row[config.COL_TIER]),
            "status": row[config.COL_STATUS],
            "phoneNumber": row[config.COL_PHONE],
            "timestamp": None if timestamp is None else int(timestamp),
            "isAdmin": bool(row[config.COL_IS_ADMIN]),
            "email": row[config.COL_EMAIL],
            "pin": row[config.COL_PIN],
        })
    return records


def find_player_index(players_df, player_id):
    matches = players_df.index[players_df[config.COL_ID].astype(str) == str(player_id)]
    if len(matches) == 0:
        raise PlayerNotFoundError(player_id)
    return matches[0]


def priority_order(players_df):
    """Order players by tier, then signup time. Ties keep their current order."""
    keyed = players_df.assign(
        _tier=pd.to_numeric(players_df[config.COL_TIER], errors="coerce").fillna(config.DEFAULT_TIER),
        _ts=pd.to_numeric(players_df[config.COL_TIMESTAMP], errors="coerce").fillna(0),
    )
    # two stable passes, so equal (tier, timestamp) pairs keep input order
    keyed = keyed.sort_values("_ts", kind="stable").sort_values("_tier", kind="stable")
    return keyed.drop(columns=["_tier", "_ts"])


def recalculate_roster_status(players_df, max_players=config.MAX_PLAYERS):
    """Give IN to the first max_players hopefuls in priority order and WAITLIST to the rest.

    Players who are not IN or WAITLIST keep their status.
    """
    if max_players < 0:
        raise ValueError(f"max_players must not be negative: {max_players}")
    df = players_df.copy()
    hopefuls = df[df[config.COL_STATUS].isin(config.HOPEFUL_STATUSES)]
    ordered = priority_order(hopefuls)
    df.loc[ordered.index[:max_players], config.COL_STATUS] = config.STATUS_IN
    df.loc[ordered.index[max_players:], config.COL_STATUS] = config.STATUS_WAITLIST
    return df


def apply_status_change(players_df, player_id, new_status, now_ms):
    """Record a player's new status.

    A fresh signup timestamp is only given when the player enters the pool,
    so clicking IN again never moves anyone back in the queue.
    """
    if new_status not in config.PLAYER_STATUSES:
        raise ValueError(f"Invalid status: {new_status}")
    df = players_df.copy()
    df[config.COL_TIMESTAMP] = df[config.COL_TIMESTAMP].astype(object)
    idx = find_player_index(df, player_id)

    was_in_pool = df.at[idx, config.COL_STATUS] in config.HOPEFUL_STATUSES
    if new_status in config.HOPEFUL_STATUSES and not was_in_pool:
        df.at[idx, config.COL_TIMESTAMP] = int(now_ms)
    df.at[idx, config.COL_STATUS] = new_status
    return df


def reset_week(players_df):
    df = players_df.copy()
    df[config.COL_STATUS] = config.STATUS_UNKNOWN
    df[config.COL_TIMESTAMP] = None
    return df


def confirmed_players(players_df):
    return priority_order(players_df[players_df[config.COL_STATUS] == config.STATUS_IN])


def waitlisted_players(players_df):
    return priority_order(players_df[players_df[config.COL_STATUS] == config.STATUS_WAITLIST])


def sort_for_display(players_df):
    """IN first, then WAITLIST, UNKNOWN, OUT; tier and name within each group."""
    keyed = players_df.assign(
        _status=players_df[config.COL_STATUS].map(STATUS_DISPLAY_ORDER).fillna(len(STATUS_DISPLAY_ORDER)),
        _tier=pd.to_numeric(players_df[config.COL_TIER], errors="coerce").fillna(config.DEFAULT_TIER),
        _name=players_df[config.COL_NAME].astype(str).str.lower(),
    )
    keyed = keyed.sort_values(["_status", "_tier", "_name"], kind="stable")
    return keyed.drop(columns=["_status", "_tier", "_name"])


def filter_players(players_df, view):
    if view == config.FILTER_ALL:
        return players_df
    if view == config.FILTER_IN:
        return players_df[players_df[config.COL_STATUS] == config.STATUS_IN]
    if view == config.FILTER_WAITLIST:
        return players_df[players_df[config.COL_STATUS] == config.STATUS_WAITLIST]
    if view == config.FILTER_PENDING:
        return players_df[~players_df[config.COL_STATUS].isin(config.HOPEFUL_STATUSES)]
    raise ValueError(f"Unknown filter: {view}")


def parse_tiers(value):
    if isinstance(value, (list, tuple, set)):
        return {int(t) for t in value}
    return {int(t) for t in str(value).split(",") if t.strip()}


def can_sign_up(tier, is_admin, today, game_day=config.GAME_DAY, open_tiers=config.OPEN_SIGNUP_TIERS):
    """Tiers outside open_tiers can only go IN on game day. Admins are never restricted."""
    if is_admin:
        return True
    if int(tier) in parse_tiers(open_tiers):
        return True
    return config.WEEKDAYS[today.weekday()] == game_day


def next_game_date(today, game_day=config.GAME_DAY):
    """The first game day strictly after today."""
    days_ahead = (config.WEEKDAYS.index(game_day) - today.weekday()) % 7 or 7
    return today + timedelta(days=days_ahead)


def _ordinal(n):
    if 11 <= n % 100 <= 13:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def invite_message(today, game_day=config.GAME_DAY):
    game_date = next_game_date(today, game_day)
    return (f"🏀 {game_day} Hoops is on for {game_date.strftime('%B')} {_ordinal(game_date.day)}! "
            f"Who's in? Sign up before the spots are gone.")


def waitlist_message(max_players=config.MAX_PLAYERS):
    return (f"Sorry we are at capacity ({max_players}/{max_players}) this week! "
            "You didn't make the group but we appreciate your interest and will have you "
            "at top priority to join next week if you are available.")


def balance_teams(players_df):
    """Split the confirmed players into two teams with a snake draft over priority order."""
    ordered = confirmed_players(players_df)
    team_a, team_b = [], []
    tier_totals = {"A": 0, "B": 0}
    for pick, (_, player) in enumerate(ordered.iterrows()):
        # A, B, B, A, A, B, B, A, ...
        to_a = pick % 4 in (0, 3)
        if to_a:
            team_a.append(player[config.COL_NAME])
            tier_totals["A"] += int(player[config.COL_TIER])
        else:
            team_b.append(player[config.COL_NAME])
            tier_totals["B"] += int(player[config.COL_TIER])
    strategy = (f"Snake draft by tier: Team A tier total {tier_totals['A']}, "
                f"Team B tier total {tier_totals['B']}.")
    return {"teamA": team_a, "teamB": team_b, "strategy": strategy}


def validate_player_details(name, phone_number, pin, email=""):
    """Return a dict of field name to error message. Empty when the details are valid."""
    errors = {}
    if not name or not name.strip():
        errors["name"] = "Name is required."
    if not phone_number or len(re.sub(r"\D", "", phone_number)) != 10:
        errors["phoneNumber"] = "Must be 10 digits (xxx-xxx-xxxx)."
    if not pin or not re.fullmatch(r"\d{4}", str(pin)):
        errors["pin"] = "4-digit PIN is required."
    if email and not EMAIL_PATTERN.match(email):
        errors["email"] = "Invalid email."
    return errors


def new_player_record(name, phone_number, pin, email="", tier=config.DEFAULT_TIER, is_admin=False, player_id=None):
    return {
        "id": player_id or str(uuid.uuid4()),
        "name": name.strip(),
        "tier": int(tier),
        "status": config.STATUS_UNKNOWN,
        "phoneNumber": phone_number,
        "timestamp": None,
        "isAdmin": bool(is_admin),
        "email": email or "",
        "pin": pin,
    }


def now_millis():
    return int(datetime.now().timestamp() * 1000)
