from __future__ import annotations

import sys
from pathlib import Path
import streamlit as st

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app import db  # noqa: E402
from app.views import (  # noqa: E402
    db_connect,
    quote,
    shapes,
    takeoff,
)


DEFAULT_DB_PATH = str(ROOT / "db" / "shapes.sqlite")


def _init_state() -> None:
    state = st.session_state
    state.setdefault("db_path", DEFAULT_DB_PATH)
    state.setdefault("mode", "READ_ONLY")
    state.setdefault("edit_confirm", False)
    state.setdefault("data_version", None)
    state.setdefault("db_mtime", None)
    state.setdefault("external_change", False)
    state.setdefault("pending_write_refresh", False)
    state.setdefault("grouping_mode", "CLASSIFICATION")


def _detect_external_change(state: dict, db_path: str, conn) -> None:
    current_version = db.get_data_version(conn)
    current_mtime = db.get_db_mtime(db_path)
    external = False
    if state.get("data_version") is not None:
        if current_version != state["data_version"] or (
            state.get("db_mtime") is not None
            and current_mtime is not None
            and current_mtime != state["db_mtime"]
        ):
            if not state.get("pending_write_refresh", False):
                external = True
    state["data_version"] = current_version
    state["db_mtime"] = current_mtime
    state["external_change"] = external
    state["pending_write_refresh"] = False


def main() -> None:
    st.set_page_config(page_title="Steel Takeoff", layout="wide")
    _init_state()
    state = st.session_state

    with st.sidebar:
        st.title("Steel Takeoff")
        st.text_input("DB path", key="db_path")
        st.radio("Mode", ["READ_ONLY", "EDIT"], key="mode")
        if state["mode"] == "EDIT":
            st.checkbox("I understand this will modify DB", key="edit_confirm")
        mode_effective = "EDIT" if state["mode"] == "EDIT" and state["edit_confirm"] else "READ_ONLY"
        state["mode_effective"] = mode_effective

    db_path = state["db_path"]
    if not Path(db_path).exists():
        st.error(f"DB not found: {db_path}")
        st.info("Go to DB Connect to create the DB and apply migrations.")
        db_connect.render(None, state)
        return

    conn = None
    try:
        conn = db.connect(db_path, read_only=mode_effective != "EDIT")
    except Exception as exc:  # pragma: no cover - UI error path
        st.error(f"Failed to connect: {exc}")
        return

    try:
        _detect_external_change(state, db_path, conn)

        if state.get("external_change"):
            st.warning("DB changed outside UI. Reload views before exporting a quote.")

        with st.sidebar:
            page = st.radio(
                "Navigation",
                ["DB Connect", "Shapes", "Takeoff", "Quote"],
            )

        pages = {
            "DB Connect": db_connect,
            "Shapes": shapes,
            "Takeoff": takeoff,
            "Quote": quote,
        }

        pages[page].render(conn, state)
    finally:
        if conn is not None:
            conn.close()


if __name__ == "__main__":
    main()
