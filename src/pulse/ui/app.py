from __future__ import annotations

import os

import httpx
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go
import streamlit as st

from pulse.ui.history import append_point, counts_frame, history_frame

st.set_page_config(page_title="Pulse Monitor", layout="wide")

DEFAULT_URL = os.environ.get("PULSE_URL", "http://localhost:3000")


def _render_header() -> str:
    st.title("Pulse Monitor")
    st.caption("Live host, process and traffic readings from a running pulse server.")
    with st.sidebar:
        st.header("Source")
        base_url = st.text_input("Monitor URL", DEFAULT_URL)
        if st.button("Clear history"):
            st.session_state["history"] = []
    return base_url


def _fetch(base_url: str) -> dict[str, object] | None:
    try:
        resp = httpx.get(f"{base_url.rstrip('/')}/api/metrics", timeout=5.0)
        resp.raise_for_status()
    except httpx.HTTPError as exc:
        st.error(f"Could not reach {base_url}: {exc}")
        return None
    return resp.json()


def _plot_resources(history: pd.DataFrame) -> go.Figure:
    fig = go.Figure()
    for col, label in [("cpu", "CPU %"), ("sysMemPercent", "Memory %"), ("diskPercent", "Disk %")]:
        fig.add_trace(go.Scatter(x=history["timestamp"], y=history[col], name=label, mode="lines"))
    fig.update_layout(height=300, margin=dict(l=10, r=10, t=30, b=10), yaxis=dict(range=[0, 100]))
    return fig


def _plot_traffic(history: pd.DataFrame) -> go.Figure:
    fig = go.Figure()
    fig.add_trace(go.Scatter(x=history["timestamp"], y=history["rpm"], name="Requests / min", mode="lines"))
    fig.add_trace(
        go.Scatter(x=history["timestamp"], y=history["activeConnections"], name="Subscribers", mode="lines")
    )
    fig.update_layout(height=300, margin=dict(l=10, r=10, t=30, b=10))
    return fig


def _plot_latency(history: pd.DataFrame) -> go.Figure:
    fig = go.Figure()
    for col, label in [("avgResponseMs", "avg"), ("p95ResponseMs", "p95"), ("p99ResponseMs", "p99")]:
        fig.add_trace(go.Scatter(x=history["timestamp"], y=history[col], name=label, mode="lines"))
    fig.update_layout(height=300, margin=dict(l=10, r=10, t=30, b=10))
    return fig


def _plot_counts(counts: dict[str, int], label: str, title: str) -> go.Figure:
    frame = counts_frame(counts, label)
    if frame.empty:
        return go.Figure()
    fig = px.bar(frame, x=label, y="count", title=title)
    fig.update_layout(height=300, margin=dict(l=10, r=10, t=30, b=10))
    return fig


def _render_summary(snapshot: dict[str, object]) -> None:
    st.markdown(
        f"<span style='color:{snapshot['healthColor']};font-weight:600'>{snapshot['health']}</span>",
        unsafe_allow_html=True,
    )
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Requests", snapshot["totalRequests"], f"{snapshot['rps']} rps")
    col2.metric("Avg response", f"{snapshot['avgResponseMs']} ms")
    col3.metric("Success rate", f"{snapshot['successRate']}%")
    col4.metric("Process RSS", snapshot["memoryRssFormatted"])
    col5, col6, col7, col8 = st.columns(4)
    col5.metric("Received", snapshot["totalBytesReceivedFormatted"])
    col6.metric("Sent", snapshot["totalBytesSentFormatted"])
    col7.metric("Subscribers", snapshot["activeConnections"])
    col8.metric("Uptime", f"{snapshot['processUptimeSec']} s")


@st.fragment(run_every=2)
def _render_live(base_url: str) -> None:
    snapshot = _fetch(base_url)
    if snapshot is None:
        return
    history = append_point(st.session_state.get("history", []), snapshot)
    st.session_state["history"] = history
    frame = history_frame(history)

    _render_summary(snapshot)
    col1, col2 = st.columns(2)
    with col1:
        st.plotly_chart(_plot_resources(frame), use_container_width=True)
    with col2:
        st.plotly_chart(_plot_traffic(frame), use_container_width=True)

    col3, col4 = st.columns(2)
    with col3:
        st.plotly_chart(_plot_latency(frame), use_container_width=True)
    with col4:
        st.plotly_chart(
            _plot_counts(snapshot["statusCodes"], "status", "Status codes"),
            use_container_width=True,
        )
    st.plotly_chart(_plot_counts(snapshot["endpoints"], "endpoint", "Endpoints"), use_container_width=True)


def main() -> None:
    base_url = _render_header()
    _render_live(base_url)


if __name__ == "__main__":
    main()
