import json
from typing import Dict, List, Optional

import altair as alt
import jsonschema
import pandas as pd
import streamlit as st

from vizbind.bind_channel import bind_channel
from vizbind.channels import MARK_TYPES
from vizbind.config import get_settings
from vizbind.datasets import output, schema
from vizbind.errors import VizBindError
from vizbind.fields import FieldSchema
from vizbind.observability import setup_logging
from vizbind.store import Store
from vizbind.workspace import (
    identifier_map,
    import_frame,
    new_mark,
    read_csv_bytes,
    renderable_unit,
    store_summary,
)


# -----------------------------
# Styling (UI polish)
# -----------------------------
st.set_page_config(
    page_title="VizBind Inspector",
    page_icon="🧷",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.markdown(
    """
<style>
.stApp {
  background: radial-gradient(1200px 700px at 15% 10%, rgba(99, 102, 241, 0.10), transparent 60%),
              radial-gradient(900px 600px at 85% 15%, rgba(16, 185, 129, 0.10), transparent 55%),
              #0b1220;
  color: #e5e7eb;
}
section[data-testid="stSidebar"] {
  background: linear-gradient(180deg, rgba(255,255,255,0.06), rgba(255,255,255,0.02));
  border-right: 1px solid rgba(255,255,255,0.10);
}
#MainMenu {visibility: hidden;}
footer {visibility: hidden;}
.vz-card {
  background: rgba(255,255,255,0.06);
  border: 1px solid rgba(255,255,255,0.10);
  border-radius: 14px;
  padding: 14px 14px;
}
.vz-muted { color: rgba(229,231,235,0.80); }
.vz-badge {
  display: inline-block;
  padding: 6px 10px;
  border-radius: 999px;
  font-size: 0.85rem;
  border: 1px solid rgba(255,255,255,0.12);
  background: rgba(255,255,255,0.06);
}
</style>
""",
    unsafe_allow_html=True,
)

PROPERTIES = ["x", "y", "x2", "y2", "width", "height", "fill", "stroke", "size", "shape", "opacity", "text"]


# -----------------------------
# Session state
# -----------------------------
if "store" not in st.session_state:
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    st.session_state["store"] = Store()
    st.session_state["last_error"] = None

store: Store = st.session_state["store"]


def dataset_options() -> Dict[str, int]:
    state = store.get_state()
    return {f"{d.name} (#{d.id})": d.id for d in state.datasets.values()}


def mark_options() -> Dict[str, int]:
    state = store.get_state()
    return {f"{m.name} [{m.type}] (#{m.id})": m.id for m in state.marks.values()}


def badge_history() -> str:
    return (
        f'<span class="vz-badge">Undo steps: <strong>{len(store.past)}</strong></span> '
        f'<span class="vz-badge">Batches: <strong>{store.batches_ended}</strong></span>'
    )


# -----------------------------
# Header
# -----------------------------
st.markdown(
    """
<div class="vz-card">
  <div style="font-size:1.75rem;font-weight:800;line-height:1.1;">VizBind Inspector</div>
  <div class="vz-muted" style="margin-top:6px;">Bind dataset fields to mark properties and watch the store reconcile.</div>
</div>
""",
    unsafe_allow_html=True,
)
st.write("")


# -----------------------------
# Sidebar: data + marks
# -----------------------------
with st.sidebar:
    st.markdown("## 📦 Inputs")
    csv_file = st.file_uploader("1) Upload CSV", type=["csv"])
    if csv_file is not None and st.button("Import as pipeline"):
        try:
            df = read_csv_bytes(csv_file.getvalue())
            pl_id, ds_id = import_frame(store, csv_file.name.rsplit(".", 1)[0], df)
            st.success(f"Pipeline #{pl_id} with source dataset #{ds_id}")
        except (ValueError, pd.errors.ParserError) as e:
            st.error(f"CSV read error: {e}")

    st.markdown("---")
    mark_type = st.selectbox("2) Add a mark", options=list(MARK_TYPES))
    if st.button("Add mark"):
        mark_id = new_mark(store, mark_type)
        st.success(f"Mark #{mark_id}")

    st.markdown("---")
    if st.button("Undo", disabled=not store.past):
        store.undo()


# -----------------------------
# Main tabs
# -----------------------------
tab_bind, tab_store, tab_about = st.tabs(["🧷 Bind", "🗂 Store", "ℹ️ About"])

with tab_bind:
    datasets = dataset_options()
    marks = mark_options()
    if not datasets or not marks:
        st.info("Import a **CSV** and add a **mark** in the sidebar to start binding.")
    else:
        c1, c2, c3, c4 = st.columns(4)
        ds_label = c1.selectbox("Dataset", options=list(datasets))
        ds_id = datasets[ds_label]
        fields: List[FieldSchema] = schema(store.get_state(), ds_id)
        by_name = {f.name: f for f in fields}
        field_name = c2.selectbox("Field", options=list(by_name))
        mark_label = c3.selectbox("Mark", options=list(marks))
        prop = c4.selectbox("Property", options=PROPERTIES)

        if st.button("Bind", type="primary") and field_name:
            try:
                bind_channel(store, ds_id, by_name[field_name], marks[mark_label], prop)
                st.session_state["last_error"] = None
            except VizBindError as e:
                st.session_state["last_error"] = e.to_dict()
            except (ValueError, jsonschema.ValidationError) as e:
                # altair / vl-convert rejecting the spec
                st.session_state["last_error"] = {"error": {"code": "COMPILER_REJECTED", "message": str(e)}}

        if st.session_state["last_error"]:
            st.error(st.session_state["last_error"]["error"]["message"])

        st.markdown(badge_history(), unsafe_allow_html=True)

        mark = store.get_state().marks.get(marks[mark_label])
        left, right = st.columns([1, 1], gap="large")
        with left:
            st.subheader("Unit spec")
            spec: Optional[dict] = mark.vl_unit if mark else None
            if spec:
                preview = {k: v for k, v in spec.items() if not k.startswith("_")}
                st.code(json.dumps(preview, ensure_ascii=False, indent=2))
                with st.expander("Identifier map", expanded=False):
                    st.json(identifier_map(spec))
            else:
                st.caption("Nothing bound yet.")

        with right:
            st.subheader("Preview")
            if spec and mark.from_data is not None:
                try:
                    state = store.get_state()
                    source = state.pipelines[state.datasets[mark.from_data].parent].source
                    rows = output(state, source)
                    chart = alt.Chart.from_dict(renderable_unit(spec, rows))
                    st.altair_chart(chart, use_container_width=True)
                except (ValueError, jsonschema.ValidationError) as e:
                    st.info(f"Preview failed: {e}")

with tab_store:
    summary = store_summary(store.get_state())
    for kind, rows in summary.items():
        st.markdown(f"### {kind.title()} ({len(rows)})")
        if rows:
            st.dataframe(pd.DataFrame(rows), use_container_width=True)

with tab_about:
    st.markdown(
        """
<div class="vz-card">
  <div style="font-size:1.1rem;font-weight:800;">ℹ️ About</div>
  <div class="vz-muted" style="margin-top:6px;">
    Every binding builds a Vega-Lite unit spec for the mark, compiles it to Vega, and
    reconciles datasets, scales, the mark's encoding and guides in one undoable step.
  </div>
</div>
""",
        unsafe_allow_html=True,
    )
