"""Streamlit operator dashboard for the walk-in queue."""

from __future__ import annotations

import os
from typing import Any, Dict, Optional

import pandas as pd
import requests
import streamlit as st

# ==========================================
# Configuration & Constants
# ==========================================
API_BASE_URL = os.getenv("QUEUE_API_URL", "http://127.0.0.1:8000")

st.set_page_config(
    page_title="Queue Dashboard",
    page_icon="⏳",
    layout="wide",
)


# ==========================================
# API Helper Functions
# ==========================================
def _auth_headers() -> Dict[str, str]:
    token = st.session_state.get("access_token")
    if not token:
        return {}
    return {"Authorization": f"Bearer {token}"}


def api_request(method: str, path: str, **kwargs: Any) -> Optional[Dict[str, Any]]:
    """Call the queue API and surface failures in the page."""
    try:
        response = requests.request(
            method,
            f"{API_BASE_URL}{path}",
            headers=_auth_headers(),
            timeout=5,
            **kwargs,
        )
        response.raise_for_status()
        return response.json()
    except requests.exceptions.RequestException as e:
        st.error(f"Backend request failed: {e}")
        return None


def _frame(rows: list[Dict[str, Any]], columns: list[str]) -> pd.DataFrame:
    frame = pd.DataFrame(rows)
    if frame.empty:
        return pd.DataFrame(columns=columns)
    return frame[columns]


# ==========================================
# UI Page Functions
# ==========================================
def render_header() -> None:
    st.title("⏳ Walk-in Queue")

    col1, col2 = st.columns([1, 2])
    with col1:
        preview_size = st.number_input("Party size preview", min_value=1, value=2)
    with col2:
        preview = api_request("GET", "/queue/preview", params={"size": int(preview_size)})
        if preview:
            st.metric("Expected entry", f"~{preview['estimated_wait_minutes']} min")

    with st.form("join_queue", clear_on_submit=True):
        size = st.number_input("Party size", min_value=1, value=2)
        note = st.text_input("Note")
        if st.form_submit_button("Join queue", type="primary"):
            if api_request("POST", "/queue", json={"size": int(size), "note": note}):
                st.rerun()


def render_queue(courses: list[Dict[str, Any]]) -> None:
    st.subheader("Queue")
    payload = api_request("GET", "/queue") or {"parties": []}
    parties = payload["parties"]
    if not parties:
        st.info("Nobody is waiting.")
        return

    st.dataframe(
        _frame(parties, ["position", "size", "note", "estimated_wait_minutes", "approximate"]),
        width="stretch",
    )

    course_labels = {course["name"]: course["course_id"] for course in courses}
    for party in parties:
        col1, col2, col3 = st.columns([2, 2, 1])
        col1.write(f"#{party['position']} · {party['size']} people · ~{party['estimated_wait_minutes']} min")
        selected = col2.selectbox(
            "Course",
            list(course_labels),
            key=f"course_{party['party_id']}",
            label_visibility="collapsed",
        )
        if col3.button("Admit", key=f"admit_{party['party_id']}") and selected:
            if api_request(
                "POST",
                f"/queue/{party['party_id']}/admit",
                json={"course_id": course_labels[selected]},
            ):
                st.rerun()
        if col3.button("Cancel", key=f"cancel_{party['party_id']}"):
            if api_request("DELETE", f"/queue/{party['party_id']}"):
                st.rerun()


def render_inside() -> None:
    st.subheader("Inside")
    payload = api_request("GET", "/inside") or {"occupants": [], "headcount": 0}
    st.caption(f"Headcount: {payload['headcount']}")
    for occupant in payload["occupants"]:
        col1, col2, col3 = st.columns([3, 1, 1])
        col1.write(f"{occupant['size']} people · {occupant['remaining_minutes']} min left")
        if col2.button("Checkout", key=f"checkout_{occupant['occupant_id']}"):
            if api_request("POST", f"/inside/{occupant['occupant_id']}/checkout"):
                st.rerun()
        if col3.button("Delete", key=f"delete_{occupant['occupant_id']}", help="Remove without history"):
            if api_request("DELETE", f"/inside/{occupant['occupant_id']}"):
                st.rerun()


def render_history() -> None:
    st.subheader("History")
    summary = api_request("GET", "/history/summary")
    if summary:
        col1, col2 = st.columns(2)
        col1.metric("Parties served", summary["total_parties"])
        col2.metric("Guests served", summary["total_headcount"])
        if summary["by_course"]:
            st.dataframe(pd.DataFrame(summary["by_course"]), width="stretch")

    payload = api_request("GET", "/history") or {"entries": []}
    entries = payload["entries"]
    st.dataframe(
        _frame(entries, ["size", "note", "course_id", "entered_at", "exited_at"]),
        width="stretch",
    )
    for entry in entries:
        col1, col2 = st.columns([4, 1])
        col1.write(f"{entry['size']} people · {entry['course_id'] or 'unassigned'} · left {entry['exited_at']}")
        if col2.button("Delete", key=f"history_{entry['history_id']}"):
            if api_request("DELETE", f"/history/{entry['history_id']}"):
                st.rerun()


def render_sidebar() -> None:
    st.sidebar.title("Venue")
    venue = api_request("GET", "/settings")
    if venue:
        capacity = st.sidebar.number_input(
            "Max capacity",
            min_value=1,
            value=int(venue["max_capacity"]),
        )
        if st.sidebar.button("Save capacity"):
            if api_request("PUT", "/settings/capacity", json={"max_capacity": int(capacity)}):
                st.sidebar.success("Capacity saved")

    st.sidebar.markdown("---")
    token = st.sidebar.text_input("Admin token", type="password")
    if st.sidebar.button("Login") and token:
        result = api_request("POST", "/login", json={"admin_token": token})
        if result:
            st.session_state["access_token"] = result["access_token"]
            st.sidebar.success("Logged in")
    if st.session_state.get("access_token") and st.sidebar.button("Logout"):
        if api_request("POST", "/logout"):
            st.session_state.pop("access_token", None)
            st.sidebar.success("Logged out")


# ==========================================
# Main App Router
# ==========================================
def main() -> None:
    render_sidebar()
    render_header()

    courses_payload = api_request("GET", "/courses") or {"courses": []}
    left, right = st.columns(2)
    with left:
        render_queue(courses_payload["courses"])
    with right:
        render_inside()

    st.markdown("---")
    render_history()


if __name__ == "__main__":
    main()
