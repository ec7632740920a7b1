import streamlit as st

from hoops import config
from hoops import ui

st.set_page_config(page_title=f"Player App - {config.APP_TITLE}", layout="wide", initial_sidebar_state="collapsed")
ui.init_page()

st.title("Player App")
ui.require_admin()

st.image(ui.qr_code_png(config.PLAYER_APP_URL))

# Copyable link for group chats
st.code(config.PLAYER_APP_URL, language=None)
st.write("Let someone scan this code to open the player app")
