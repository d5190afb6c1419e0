import streamlit as st

from snowfall_core import PHASE_LABELS
from snowfall_errors import SnowfallError
from snowfall_pipeline import SnowfallDataset, run
from snowfall_plots import DATA_SOURCE_CAPTION, format_value, pct_diff_figure, profile_figure
from snowfall_settings import get_settings


@st.cache_data(show_spinner="Loading SNOTEL and ONI data...")
def load_dataset() -> SnowfallDataset:
    # Downloads are cached on disk too, so a rerun only re-parses
    return run(get_settings())


# ------------------------
# Setup dataset
# ------------------------

st.set_page_config(page_title="WA Snowfall & ENSO", layout="wide")

try:
    dataset = load_dataset()
except SnowfallError as e:
    st.error(f"Could not build the snowfall dataset: {e}")
    st.stop()


# ------------------------
# UI
# ------------------------

# Header
st.markdown(
    f"<h2 style='text-align:center;margin-top:0'>WA Cascades snowfall by ENSO phase ({dataset.season_range_label})</h2>",
    unsafe_allow_html=True,
)
st.caption(DATA_SOURCE_CAPTION)

# Partial runs still show what succeeded
if dataset.skipped_sites:
    st.warning(f"Skipped sites (download or format failure): {', '.join(dataset.skipped_sites)}")
if dataset.undefined_baseline_sites:
    st.info(f"No Neutral seasons, so no % difference for: {', '.join(dataset.undefined_baseline_sites)}")
if dataset.incomplete_seasons:
    st.info(f"Seasons classified from a partial Nov-Mar index: {', '.join(map(str, dataset.incomplete_seasons))}")

st.plotly_chart(profile_figure(dataset.profile, dataset.season_range_label), use_container_width=True)
st.plotly_chart(pct_diff_figure(dataset.pct_diff, dataset.season_range_label), use_container_width=True)


# ------------------------
# One site at a glance
# ------------------------
st.markdown("### Site detail")

sites_available = sorted(dataset.joined["site_id"].unique().tolist())
if not sites_available:
    st.warning("No seasons with both snowfall and an ENSO phase.")
    st.stop()

site = st.selectbox("Site", sites_available)
site_pct = dataset.pct_diff[dataset.pct_diff["site_id"] == site].astype({"phase": str}).set_index("phase")

if site_pct.empty:
    st.write("No Neutral baseline for this site.")
else:
    # phases without data for this site stay blank rather than zero
    shown = [label for label in PHASE_LABELS if label in site_pct.index]
    for col, label in zip(st.columns(len(shown)), shown):
        row = site_pct.loc[label]
        col.metric(
            label,
            format_value(row["phase_avg_snowfall"], 1, " in"),
            delta=format_value(row["pct_diff"], 1, "%"),
        )

with st.expander("Seasons for this site"):
    site_seasons = (
        dataset.joined[dataset.joined["site_id"] == site]
        .pivot_table(index=["season_year", "phase"], columns="month_label",
                     values="total_snowfall", observed=True)
        .reset_index()
    )
    st.dataframe(site_seasons, use_container_width=True, hide_index=True)


# ------------------------
# Tables for export
# ------------------------
with st.expander("Phase / month profile"):
    st.dataframe(dataset.profile, use_container_width=True, hide_index=True)

with st.expander("% difference from Neutral"):
    st.dataframe(dataset.pct_diff, use_container_width=True, hide_index=True)

with st.expander("Season phases"):
    st.dataframe(dataset.phases, use_container_width=True, hide_index=True)
