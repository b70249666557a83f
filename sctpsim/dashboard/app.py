"""Streamlit dashboard for a running simulation.

Polls the runtime's ``/state`` and ``/logs`` endpoints and renders both
endpoints, their logs and the packets in flight. Clicking "drop" on a packet
loses it in transit. Start the runtime first (``sctpsim-serve``), then
``streamlit run sctpsim/dashboard/app.py``.
"""

import time

import requests
import streamlit as st

st.set_page_config(page_title="SCTP Simulator", layout="wide")
base_url = st.text_input("Simulation URL", "http://localhost:8000").rstrip("/")
interval = st.slider("Refresh interval (sec)", 0.2, 2.0, 0.5)


def post(path, **kwargs):
    try:
        r = requests.post(base_url + path, timeout=2, **kwargs)
        result = r.json()
        if not result.get("ok"):
            st.toast(result.get("reason", "no effect"))
    except requests.RequestException as e:
        st.error(str(e))


try:
    state = requests.get(base_url + "/state", timeout=0.5).json()
except requests.RequestException as e:
    st.error(str(e))
    time.sleep(interval)
    st.rerun()

st.caption(state.get("analysis") or "Ready to analyze packets...")
client_col, net_col, server_col = st.columns(3)

for col, role in ((client_col, "client"), (server_col, "server")):
    node = state[role]
    with col:
        st.subheader(f"{role.upper()} NODE: {node['connectionState']}")
        st.text(
            f"Session ID: {node['sessionId'] or '---'}\n"
            f"Sequence #: {node['seq']}\n"
            f"Last Ack Rx: {node['lastAckReceived']}"
        )
        if role == "client":
            b1, b2, b3 = st.columns(3)
            if b1.button("Connect"):
                post("/connect")
            if b2.button("Disconnect"):
                post("/disconnect")
            if b3.button("Send data"):
                post("/data")
        else:
            if st.button("Listen"):
                post("/listen")
        try:
            entries = requests.get(f"{base_url}/logs/{role}", timeout=0.5).json()
        except requests.RequestException as e:
            entries = []
            st.error(str(e))
        for entry in entries[-15:]:
            st.text(f"[{entry['timestamp']}ms] {entry['category']}: {entry['message']}")

with net_col:
    st.subheader("In flight")
    for packet in state["inFlight"]:
        label = f"{packet['source']} -> {packet['destination']} {packet['flag']} seq={packet['seq']} ack={packet['ack']}"
        if st.button(f"drop {label}", key=packet["id"]):
            post(f"/packets/{packet['id']}/drop")
    st.json(state["stats"])
    if st.button("Reset"):
        post("/reset")

time.sleep(interval)
st.rerun()
