from datetime import datetime

import streamlit as st

from hoops import config
from hoops import roster
from hoops import ui
from hoops.sheet_client import SyncError

st.set_page_config(page_title=f"Settings - {config.APP_TITLE}", layout="wide", initial_sidebar_state="collapsed")
ui.init_page()
st.title("Settings")

players_df, admin = ui.require_admin()
store = ui.get_store()
settings = ui.get_settings()

st.header("Backend")
app_config = store.load_config()
with st.form("backend_form"):
    url = st.text_input("Backend URL", value=app_config.get("backendUrl") or config.BACKEND_URL)
    if st.form_submit_button("Save & Sync"):
        app_config["backendUrl"] = url.strip()
        store.save_config(app_config)
        ui.sync_roster(force=True)
        if st.session_state.live:
            st.success("Connected")
        else:
            st.error("Could not reach the backend, staying in local-only mode")
ui.sync_badge()
if app_config.get("lastSync"):
    st.caption(f"Last sync: {datetime.fromtimestamp(app_config['lastSync'] / 1000):%Y-%m-%d %H:%M:%S}")

st.header("Game")
with st.form("game_settings_form"):
    max_players = st.number_input("Max players", min_value=1, max_value=50,
                                  value=int(settings[config.SETTING_MAX_PLAYERS]), step=1)
    game_day = st.selectbox("Game day", config.WEEKDAYS,
                            index=config.WEEKDAYS.index(settings[config.SETTING_GAME_DAY]))
    open_tiers = st.multiselect("Tiers that can sign up before game day", config.TIERS,
                                default=sorted(roster.parse_tiers(settings[config.SETTING_OPEN_TIERS])))
    if st.form_submit_button("Save settings"):
        updates = {
            config.SETTING_MAX_PLAYERS: int(max_players),
            config.SETTING_GAME_DAY: game_day,
            config.SETTING_OPEN_TIERS: ",".join(str(t) for t in sorted(open_tiers)),
        }
        try:
            response = ui.get_client().update_settings(updates, admin["name"])
        except SyncError as e:
            st.error(f"Failed to save settings: {e}")
        else:
            st.session_state.settings = response.get("settings", updates)
            ui.sync_roster(force=True)
            st.success("Settings saved")

st.header("Local Data")
st.write("Clears the locally cached roster and backend URL. Useful if data looks wrong.")
if st.button("Clear local cache"):
    store.clear()
    for key in ["players", "settings", "live", "last_sync", "score", "player_stats"]:
        st.session_state.pop(key, None)
    st.rerun()
