import time
from datetime import date

import streamlit as st

from hoops import config
from hoops import roster
from hoops import ui
from hoops.sheet_client import SyncError


def display_qr_code():
    """Display QR code at the bottom of the page"""

    st.markdown("""
    ### How Sign-ups Work

    - Tap **I'm In** to join this week's game, **I'm Out** if you can't make it
    - The first spots go by tier, then by who signed up first
    - Tier 1 players can sign up any time; everyone else opens on game day
    - Once the game is full you go on the waitlist and move up if someone drops out
    - Tapping **I'm In** again never costs you your place in line
    """)

    st.markdown("---")
    st.subheader("Let someone scan this code to open the app")
    st.image(ui.qr_code_png(config.PLAYER_APP_URL))


def handle_status_change(players_df, user, new_status, settings):
    """Update the local roster right away, then push the change to the backend."""
    if new_status == config.STATUS_IN and not roster.can_sign_up(
        user["tier"], user["isAdmin"], date.today(),
        settings[config.SETTING_GAME_DAY], settings[config.SETTING_OPEN_TIERS]
    ):
        st.error(f"Tier {user['tier']} invites open on {settings[config.SETTING_GAME_DAY]}!")
        return

    now_ms = roster.now_millis()
    players_df = roster.apply_status_change(players_df, user["id"], new_status, now_ms)
    players_df = roster.recalculate_roster_status(players_df, settings[config.SETTING_MAX_PLAYERS])
    ui.set_local_players(players_df)

    try:
        ui.get_client().update_status(user["id"], new_status, user["name"], now_ms)
        ui.sync_roster(force=True)
    except SyncError:
        # Keep the local change; the next successful sync replaces it
        st.session_state.live = False
    st.rerun()


def sign_up_panel():
    st.subheader("New here? Sign up")
    player = ui.player_form("sign_up_form")
    if not player:
        return
    record = roster.new_player_record(player["name"], player["phoneNumber"], player["pin"], player["email"])
    try:
        ui.get_client().create_player(record, record["name"])
        ui.sync_roster(force=True)
    except SyncError:
        players_df = ui.players_frame()
        players_df = roster.players_from_records(roster.players_to_records(players_df) + [record])
        ui.set_local_players(players_df)
        st.session_state.live = False
    ui.login(record["id"])
    st.success("Welcome to the team!")
    st.rerun()


def my_status_panel(players_df, user, settings):
    st.header(f"Hi {user['name']} {ui.TIER_ICONS.get(user['tier'], '')}")
    status = user["status"]
    if status == config.STATUS_IN:
        st.success("You're IN for this week")
    elif status == config.STATUS_WAITLIST:
        position = roster.waitlisted_players(players_df)[config.COL_ID].tolist().index(user["id"]) + 1
        st.warning(f"You're on the waitlist (#{position})")
    elif status == config.STATUS_OUT:
        st.info("You're out this week")
    else:
        st.info("Are you playing this week?")

    col_in, col_out = st.columns(2)
    with col_in:
        if st.button("🏀 I'm In", use_container_width=True):
            handle_status_change(players_df, user, config.STATUS_IN, settings)
    with col_out:
        if st.button("I'm Out", use_container_width=True):
            handle_status_change(players_df, user, config.STATUS_OUT, settings)

    with st.expander("Edit my profile"):
        updated = ui.player_form("edit_profile_form", user, is_admin_mode=False)
        if updated:
            try:
                ui.get_client().update_player_details(updated, user["name"])
                ui.sync_roster(force=True)
                st.success("Profile updated")
            except SyncError as e:
                st.error(f"Could not update profile: {e}")

    if st.button("Log out"):
        ui.logout()
        st.rerun()


def main():
    st.set_page_config(
        page_title=f"{config.APP_TITLE} - Player View",
        layout="wide",
        page_icon="🏀",
        menu_items=None
    )
    ui.init_page()
    st.title(config.APP_TITLE)

    ui.sync_roster()
    players_df = ui.players_frame()
    settings = ui.get_settings()
    max_players = settings[config.SETTING_MAX_PLAYERS]
    user = ui.current_user(players_df)

    top_left, top_right = st.columns([4, 1])
    with top_left:
        ui.sync_badge()
    with top_right:
        if st.button("🔄 Sync"):
            ui.sync_roster(force=True)
            st.rerun()

    if user is None:
        login_tab, signup_tab = st.tabs(["Log in", "Sign up"])
        with login_tab:
            ui.login_panel(players_df)
        with signup_tab:
            sign_up_panel()
        ui.show_roster_lists(players_df, max_players)
    else:
        roster_tab, score_tab, share_tab = st.tabs(["Roster", "Score", "Share"])
        with roster_tab:
            my_status_panel(players_df, user, settings)
            st.markdown("---")
            ui.show_roster_lists(players_df, max_players)
        with score_tab:
            ui.show_scoreboard(user["name"])
        with share_tab:
            ui.show_share_texts(max_players, settings[config.SETTING_GAME_DAY])

    display_qr_code()

    if st.toggle("Auto refresh", value=True):
        time.sleep(config.AUTO_REFRESH_SECONDS)
        ui.sync_roster(force=True)
        st.rerun()


if __name__ == "__main__":
    main()
