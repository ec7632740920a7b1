import time

import streamlit as st

from hoops import config
from hoops import ui

st.set_page_config(page_title=f"Scoreboard - {config.APP_TITLE}", layout="wide", initial_sidebar_state="collapsed")
ui.init_page()

players_df, admin = ui.require_admin()
ui.show_scoreboard(admin["name"])

# Pick up scores entered on other devices
if st.toggle("Live refresh", value=False):
    time.sleep(config.SCOREBOARD_REFRESH_SECONDS)
    st.session_state.score_syncer.flush()
    remote = ui.get_client().get_score()
    if remote is not None:
        st.session_state.score = remote
    st.rerun()
