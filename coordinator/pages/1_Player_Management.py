import streamlit as st

from hoops import config
from hoops import roster
from hoops import ui
from hoops.sheet_client import SyncError

st.set_page_config(page_title=f"Player Management - {config.APP_TITLE}", layout="wide")
ui.init_page()
st.title("Player Management")

players_df, admin = ui.require_admin()
settings = ui.get_settings()
client = ui.get_client()

# Initialize session states
if 'admin_filter' not in st.session_state:
    st.session_state.admin_filter = config.FILTER_ALL
if 'editing_player' not in st.session_state:
    st.session_state.editing_player = None
if 'confirm_reset' not in st.session_state:
    st.session_state.confirm_reset = False


def run_admin_action(action, success_message):
    """Run a backend mutation, refresh the roster and report the outcome once."""
    try:
        action()
    except SyncError as e:
        st.error(f"Failed: {e}")
        return False
    ui.sync_roster(force=True)
    st.toast(success_message)
    return True


def change_status(player_id, name, key):
    """Selectbox callback: runs once per pick, before the page is drawn again."""
    new_status = st.session_state[key]
    try:
        response = client.update_status(player_id, new_status, admin["name"])
    except SyncError as e:
        st.error(f"Failed: {e}")
        return
    final_status = response.get("playerStatus", new_status)
    ui.sync_roster(force=True)
    if final_status != new_status:
        st.toast(f"{name} asked for {new_status}, roster has them {final_status}")
    else:
        st.toast(f"{name} marked {new_status}")


# Week controls
st.header("This Week")
ui.sync_badge()

col_reset, col_init = st.columns(2)
with col_reset:
    if not st.session_state.confirm_reset:
        if st.button("Reset Week"):
            st.session_state.confirm_reset = True
            st.rerun()
    else:
        st.warning("Reset every player's status for a new week?")
        archive = st.checkbox("Archive this week's confirmed players to the game history first", value=True)
        yes_col, no_col = st.columns(2)
        with yes_col:
            if st.button("Yes, reset"):
                if run_admin_action(lambda: client.reset_week(admin["name"], archive), "Roster reset for new week"):
                    st.session_state.confirm_reset = False
                    st.rerun()
        with no_col:
            if st.button("Cancel"):
                st.session_state.confirm_reset = False
                st.rerun()
with col_init:
    with st.popover("Initialize Database"):
        st.write("Overwrite the Google Sheet with the roster shown here?")
        if st.button("Yes, overwrite"):
            records = roster.players_to_records(players_df)
            if run_admin_action(lambda: client.initialize_or_sync(records, admin["name"]), "Database initialized!"):
                st.rerun()

# Add New Player
st.header("Add New Player")
new_player = ui.player_form("add_player_form", is_admin_mode=True)
if new_player:
    record = roster.new_player_record(
        new_player["name"], new_player["phoneNumber"], new_player["pin"], new_player["email"],
        tier=new_player["tier"], is_admin=new_player["isAdmin"]
    )
    if run_admin_action(lambda: client.create_player(record, admin["name"]), f"Added {record['name']}"):
        st.rerun()

# Edit Player
if st.session_state.editing_player:
    editing = st.session_state.editing_player
    st.header(f"Edit {editing['name']}")
    updated = ui.player_form("edit_player_form", editing, is_admin_mode=True)
    if updated:
        if run_admin_action(lambda: client.update_player_details(updated, admin["name"]), "Player profile updated"):
            st.session_state.editing_player = None
            st.rerun()
    col_delete, col_close = st.columns(2)
    with col_delete:
        if st.button("🗑️ Delete Player", type="primary"):
            if run_admin_action(lambda: client.delete_player(editing["id"], admin["name"]), "Player deleted"):
                if editing["id"] == admin["id"]:
                    ui.logout()
                st.session_state.editing_player = None
                st.rerun()
    with col_close:
        if st.button("Close"):
            st.session_state.editing_player = None
            st.rerun()

# Display Players
st.header("Current Players")
confirmed_count = (players_df[config.COL_STATUS] == config.STATUS_IN).sum()
waitlist_count = (players_df[config.COL_STATUS] == config.STATUS_WAITLIST).sum()
pending_count = len(players_df) - confirmed_count - waitlist_count

filter_labels = {
    config.FILTER_ALL: f"All ({len(players_df)})",
    config.FILTER_IN: f"In ({confirmed_count}/{settings[config.SETTING_MAX_PLAYERS]})",
    config.FILTER_WAITLIST: f"Waitlist ({waitlist_count})",
    config.FILTER_PENDING: f"Pending ({pending_count})",
}
st.session_state.admin_filter = st.radio(
    "Show", list(filter_labels), format_func=filter_labels.get, horizontal=True,
    index=list(filter_labels).index(st.session_state.admin_filter)
)

display_df = roster.filter_players(roster.sort_for_display(players_df), st.session_state.admin_filter)
if display_df.empty:
    st.info("No players match this filter")

for _, player in display_df.iterrows():
    col_name, col_contact, col_status, col_button = st.columns([3, 3, 2, 1])
    with col_name:
        admin_icon = " 🛡️" if player[config.COL_IS_ADMIN] else ""
        st.markdown(ui.player_line(player) + admin_icon, unsafe_allow_html=True)
    with col_contact:
        st.write(player[config.COL_PHONE])
    with col_status:
        status_key = f"status_{player[config.COL_ID]}"
        # Always show the stored status; the server may not grant the one picked
        st.session_state[status_key] = player[config.COL_STATUS]
        st.selectbox(
            "Status", config.PLAYER_STATUSES, key=status_key, label_visibility="collapsed",
            on_change=change_status,
            args=(player[config.COL_ID], player[config.COL_NAME], status_key)
        )
    with col_button:
        if st.button("Edit", key=f"edit_{player[config.COL_ID]}"):
            st.session_state.editing_player = roster.players_to_records(
                players_df[players_df[config.COL_ID] == player[config.COL_ID]]
            )[0]
            st.rerun()

# Teams for tonight
st.header("Teams")
confirmed = roster.confirmed_players(players_df)
if len(confirmed) < 4:
    st.info("Need 4+ confirmed players to make teams.")
elif st.button("Make Teams"):
    teams = roster.balance_teams(players_df)
    st.caption(teams["strategy"])
    team_a_col, team_b_col = st.columns(2)
    with team_a_col:
        st.subheader("Team A")
        for name in teams["teamA"]:
            st.write(f"🔵 {name}")
    with team_b_col:
        st.subheader("Team B")
        for name in teams["teamB"]:
            st.write(f"🟠 {name}")

st.header("Share")
ui.show_share_texts(settings[config.SETTING_MAX_PLAYERS], settings[config.SETTING_GAME_DAY])
