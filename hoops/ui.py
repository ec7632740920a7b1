import io
import time
from datetime import date

import extra_streamlit_components as stx
import pandas as pd
import qrcode
import streamlit as st

from . import config
from . import roster
from .local_store import LocalStore
from .sheet_client import RosterClient, ScoreSyncer, SyncError

PAGE_CSS = """
    <style>
    .block-container {
        padding: 1.5rem 1.4rem !important;
    }
    .appview-container section:first-child {
        width: 250px !important;
    }
    .tier-badge {
        font-size: 0.8em;
        color: #888;
        margin-left: 5px;
    }
    .score {
        font-size: 72px;
        font-weight: 700;
        text-align: center;
        font-family: monospace;
    }
    </style>
"""

TIER_ICONS = {1: "🥇", 2: "🥈", 3: "🥉"}
STATUS_ICONS = {
    config.STATUS_IN: "✅",
    config.STATUS_WAITLIST: "⏳",
    config.STATUS_OUT: "❌",
    config.STATUS_UNKNOWN: "❔",
}


def init_page():
    """Call once per run, right after st.set_page_config."""
    st.markdown(PAGE_CSS, unsafe_allow_html=True)
    # The cookie component has to be rendered on every run
    st.session_state.cookie_manager = stx.CookieManager()


def qr_code_png(url):
    """Render url as a QR code and return the PNG bytes."""
    qr = qrcode.QRCode(version=1, box_size=10, border=5)
    qr.add_data(url)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    img_byte_arr = io.BytesIO()
    img.save(img_byte_arr, format='PNG')
    return img_byte_arr.getvalue()


def get_store():
    if "store" not in st.session_state:
        st.session_state.store = LocalStore()
    return st.session_state.store


def backend_url():
    return get_store().load_config().get("backendUrl") or config.BACKEND_URL


def get_client():
    url = backend_url()
    if st.session_state.get("client_url") != url or "client" not in st.session_state:
        st.session_state.client = RosterClient(url)
        st.session_state.client_url = url
    return st.session_state.client


def get_cookie_manager():
    return st.session_state.cookie_manager


def sync_roster(force=False):
    """Refresh the roster from the backend, keeping the last local snapshot if that fails."""
    store = get_store()
    if "players" not in st.session_state:
        st.session_state.players = store.load_players() or []
        st.session_state.live = False
        st.session_state.last_sync = 0.0

    due = time.time() - st.session_state.last_sync > config.AUTO_REFRESH_SECONDS
    if not (force or due):
        return st.session_state.players

    client = get_client()
    remote_players = client.fetch_roster()
    settings = client.get_settings()
    if settings:
        st.session_state.settings = settings
    if remote_players is not None:
        st.session_state.players = remote_players
        st.session_state.live = True
        store.save_players(remote_players)
        app_config = store.load_config()
        app_config["lastSync"] = int(time.time() * 1000)
        store.save_config(app_config)
    else:
        st.session_state.live = False
    st.session_state.last_sync = time.time()
    return st.session_state.players


def get_settings():
    return st.session_state.get("settings") or dict(config.DEFAULT_SETTINGS)


def players_frame():
    return roster.players_from_records(st.session_state.get("players", []))


def set_local_players(players_df):
    records = roster.players_to_records(players_df)
    st.session_state.players = records
    get_store().save_players(records)


def current_user(players_df):
    user_id = st.session_state.get("user_id")
    if user_id is None:
        user_id = get_cookie_manager().get(cookie=config.STORAGE_KEY_USER)
        st.session_state.user_id = user_id
    if not user_id:
        return None
    match = players_df[players_df[config.COL_ID] == user_id]
    if match.empty:
        return None
    return roster.players_to_records(match)[0]


def login(player_id):
    st.session_state.user_id = player_id
    get_cookie_manager().set(config.STORAGE_KEY_USER, player_id, key="set_user_cookie")


def logout():
    st.session_state.user_id = ""
    get_cookie_manager().delete(config.STORAGE_KEY_USER, key="delete_user_cookie")


def sync_badge():
    if st.session_state.get("live"):
        st.caption("🟢 Live")
    else:
        st.caption("⚪ Local only")


def login_panel(players_df):
    """Name + PIN login. Returns nothing; a successful login reruns the page."""
    st.subheader("Who are you?")
    search = st.text_input("Search your name", key="login_search")
    candidates = players_df.sort_values(by=config.COL_NAME)
    if search:
        candidates = candidates[candidates[config.COL_NAME].str.contains(search, case=False, regex=False)]

    names = dict(zip(candidates[config.COL_ID], candidates[config.COL_NAME]))
    selected = st.selectbox("Select your name", [""] + list(names), format_func=lambda i: names.get(i, ""))
    if not selected:
        return

    player = roster.players_to_records(players_df[players_df[config.COL_ID] == selected])[0]
    if not player["pin"]:
        st.warning("Please set a security PIN to secure your account.")
        updated = player_form("set_pin_form", player, is_admin_mode=False)
        if updated:
            try:
                get_client().update_player_details(updated, updated["name"])
            except SyncError as e:
                st.error(f"Could not save your PIN: {e}")
                return
            login(player["id"])
            sync_roster(force=True)
            st.rerun()
        return

    with st.form("pin_form"):
        entered_pin = st.text_input("PIN", type="password", max_chars=4)
        if st.form_submit_button("Log in"):
            if entered_pin.strip() == player["pin"].strip():
                login(player["id"])
                st.rerun()
            else:
                st.error("Incorrect PIN")


def player_form(key, initial=None, is_admin_mode=False):
    """Create/edit form. Returns the submitted player dict once it validates, else None."""
    initial = initial or {}
    with st.form(key):
        name = st.text_input("Name", value=initial.get("name", ""))
        phone = st.text_input("Phone (xxx-xxx-xxxx)", value=initial.get("phoneNumber", ""))
        email = st.text_input("Email (optional)", value=initial.get("email", ""))
        pin = st.text_input("4-digit PIN", value=initial.get("pin", ""), type="password", max_chars=4)
        tier = initial.get("tier", config.DEFAULT_TIER)
        is_admin = initial.get("isAdmin", False)
        if is_admin_mode:
            tier = st.radio("Tier", config.TIERS, index=config.TIERS.index(tier),
                            format_func=lambda t: f"{TIER_ICONS[t]} Tier {t}", horizontal=True)
            is_admin = st.checkbox("Admin rights", value=is_admin)
        submitted = st.form_submit_button("Save")

    if not submitted:
        return None
    errors = roster.validate_player_details(name, phone, pin, email)
    if errors:
        for message in errors.values():
            st.error(message)
        return None
    player = dict(initial)
    player.update({
        "name": name.strip(),
        "phoneNumber": phone,
        "email": email,
        "pin": pin,
        "tier": int(tier),
        "isAdmin": bool(is_admin),
    })
    player.setdefault("status", config.STATUS_UNKNOWN)
    return player


def require_admin():
    """Stop the page unless an admin is logged in. Returns (players_df, admin record)."""
    sync_roster()
    players_df = players_frame()
    user = current_user(players_df)
    if user is None:
        login_panel(players_df)
        st.stop()
    if not user["isAdmin"]:
        st.warning("This page is for admins only.")
        st.stop()
    return players_df, user


def player_line(player):
    return f"{STATUS_ICONS.get(player[config.COL_STATUS], '')} {player[config.COL_NAME]} " \
           f"<span class='tier-badge'>{TIER_ICONS.get(int(player[config.COL_TIER]), '')} T{int(player[config.COL_TIER])}</span>"


def show_roster_lists(players_df, max_players):
    confirmed = roster.confirmed_players(players_df)
    waitlisted = roster.waitlisted_players(players_df)

    st.subheader(f"Confirmed ({len(confirmed)}/{max_players})")
    if confirmed.empty:
        st.write("No one is in yet")
    for i, (_, player) in enumerate(confirmed.iterrows(), 1):
        st.markdown(f"{i}. {player_line(player)}", unsafe_allow_html=True)

    if not waitlisted.empty:
        st.subheader(f"Waitlist ({len(waitlisted)})")
        for i, (_, player) in enumerate(waitlisted.iterrows(), 1):
            st.markdown(f"{i}. {player_line(player)}", unsafe_allow_html=True)


def show_scoreboard(actor):
    """Live scoreboard with +1/+2/+3 buttons. Taps are coalesced before they are sent."""
    client = get_client()
    if st.session_state.get("scoreboard_actor") != actor or "score_syncer" not in st.session_state:
        st.session_state.score_syncer = ScoreSyncer(client, actor)
        st.session_state.scoreboard_actor = actor
    syncer = st.session_state.score_syncer

    if "score" not in st.session_state:
        st.session_state.score = client.get_score() or {"scoreA": 0, "scoreB": 0}

    header_col, sync_col = st.columns([4, 1])
    with header_col:
        st.header("🏆 Scoreboard")
        sync_badge()
    with sync_col:
        if st.button("🔄 Sync", key="score_sync"):
            syncer.flush()
            remote = client.get_score()
            if remote is not None:
                st.session_state.score = remote
            st.rerun()

    if syncer.last_error is not None:
        st.error(f"Score sync failed: {syncer.last_error}")

    score = st.session_state.score
    col_a, col_b = st.columns(2)
    for col, team, key in [(col_a, "Team A", "scoreA"), (col_b, "Team B", "scoreB")]:
        with col:
            st.subheader(team)
            st.markdown(f"<div class='score'>{score[key]}</div>", unsafe_allow_html=True)
            buttons = st.columns(3)
            for n, button_col in zip([1, 2, 3], buttons):
                with button_col:
                    if st.button(f"+{n}", key=f"{key}_plus_{n}"):
                        score[key] += n
                        syncer.push(score["scoreA"], score["scoreB"])
                        st.rerun()

    with st.expander("Edit or reset score"):
        with st.form("edit_score_form"):
            new_a = st.number_input("Team A", min_value=0, value=score["scoreA"], step=1)
            new_b = st.number_input("Team B", min_value=0, value=score["scoreB"], step=1)
            if st.form_submit_button("Save score"):
                st.session_state.score = {"scoreA": int(new_a), "scoreB": int(new_b)}
                syncer.push(new_a, new_b)
                syncer.flush()
                st.rerun()
        if st.button("Reset to 0-0", key="score_reset"):
            st.session_state.score = {"scoreA": 0, "scoreB": 0}
            syncer.push(0, 0)
            syncer.flush()
            st.rerun()

    if client.url:
        st.caption("Tap buttons to add points (syncs automatically)")
    else:
        st.caption("Local only: set a backend URL in Settings to share the score")


def show_share_texts(max_players, game_day):
    invite = roster.invite_message(date.today(), game_day)
    st.write("Invite message")
    st.code(f"{invite}\n\n{config.PLAYER_APP_URL}", language=None)
    st.write("Waitlist message")
    st.code(roster.waitlist_message(max_players), language=None)


def stats_table(stats):
    stats_df = pd.DataFrame(stats or [], columns=["name", "tier", "gamesPlayed"])
    stats_df.columns = ["Player", "Tier", "Games Played"]
    return stats_df
