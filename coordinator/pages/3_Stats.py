import streamlit as st

from hoops import config
from hoops import ui

st.set_page_config(page_title=f"Stats - {config.APP_TITLE}", layout="wide", initial_sidebar_state="collapsed")
ui.init_page()
st.title("Player Stats")

players_df, admin = ui.require_admin()

if "player_stats" not in st.session_state or st.button("🔄 Refresh stats"):
    with st.spinner("Loading stats..."):
        st.session_state.player_stats = ui.get_client().get_stats()

stats = st.session_state.player_stats
if stats is None:
    st.error("Could not load stats from the backend")
    st.stop()
if not stats:
    st.info("No games archived yet. Archive a week from Player Management when resetting.")
    st.stop()

st.write("Games played, counted from archived weeks")
tier_filter = st.multiselect("Tiers", config.TIERS, default=config.TIERS,
                             format_func=lambda t: f"{ui.TIER_ICONS[t]} Tier {t}")
stats_df = ui.stats_table([s for s in stats if s["tier"] in tier_filter])
st.dataframe(stats_df, hide_index=True, use_container_width=True)

if not stats_df.empty:
    st.bar_chart(stats_df.set_index("Player")["Games Played"])
