import streamlit as st

from hoops import config
from hoops import ui

st.set_page_config(page_title=f"{config.APP_TITLE} - Coordinator", layout="wide", initial_sidebar_state="collapsed")
ui.init_page()

st.title(f"{config.APP_TITLE} - Coordinator")
st.write("Welcome to the Monday Night Hoops roster manager!")
st.write("Please use the sidebar to navigate between different sections:")
st.markdown('1. <a href="Player_Management" target="_self">**Player Management**</a> - Add, edit and remove players, reset the week', unsafe_allow_html=True)
st.markdown('2. <a href="Scoreboard" target="_self">**Scoreboard**</a> - Keep score of the current game', unsafe_allow_html=True)
st.markdown('3. <a href="Stats" target="_self">**Stats**</a> - Games played per player from the game history', unsafe_allow_html=True)
st.markdown('4. <a href="Settings" target="_self">**Settings**</a> - Backend URL, capacity and sign-up rules', unsafe_allow_html=True)
st.markdown('5. <a href="Player_App" target="_self">**Player App**</a> - Share the player app', unsafe_allow_html=True)

players_df, admin = ui.require_admin()
settings = ui.get_settings()

st.markdown("---")
ui.sync_badge()
st.write(f"Logged in as **{admin['name']}**")

col1, col2, col3 = st.columns(3)
confirmed = (players_df[config.COL_STATUS] == config.STATUS_IN).sum()
waitlisted = (players_df[config.COL_STATUS] == config.STATUS_WAITLIST).sum()
with col1:
    st.metric("Confirmed", f"{confirmed}/{settings[config.SETTING_MAX_PLAYERS]}")
with col2:
    st.metric("Waitlist", int(waitlisted))
with col3:
    st.metric("Players", len(players_df))

if st.button("Log out"):
    ui.logout()
    st.rerun()
