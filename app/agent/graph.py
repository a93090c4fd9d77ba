from __future__ import annotations

from functools import lru_cache
from typing import Any

from langgraph.graph import StateGraph, START, END

from app.agent.state import TurnState
from app.agent.nodes import (
    route_entry,
    start,
    collect,
    confirm,
    complete,
    legacy,
    migration,
    session_recovery,
    finalize_turn,
)

HANDLERS = ("start", "collect", "confirm", "complete", "legacy", "migration", "session_recovery")


def _route(state: Any) -> str:
    route = getattr(state, "route", None)
    return route if route in HANDLERS else "complete"


def _route_after_start(state: Any) -> str:
    route = getattr(state, "route", None)
    if route in ("collect", "legacy"):
        return route
    return "finalize"


@lru_cache(maxsize=1)
def compile_graph():
    """One turn: entry routing -> step handler -> finalize. No checkpointer; sessions come from snapshots."""
    builder = StateGraph(TurnState)
    builder.add_node("route_entry", route_entry)
    builder.add_node("start", start)
    builder.add_node("collect", collect)
    builder.add_node("confirm", confirm)
    builder.add_node("complete", complete)
    builder.add_node("legacy", legacy)
    builder.add_node("migration", migration)
    builder.add_node("session_recovery", session_recovery)
    builder.add_node("finalize_turn", finalize_turn)

    builder.add_edge(START, "route_entry")
    builder.add_conditional_edges(
        "route_entry",
        _route,
        {name: name for name in HANDLERS},
    )

    # A first non-empty message is handled by the collecting step in the same turn
    builder.add_conditional_edges(
        "start",
        _route_after_start,
        {
            "collect": "collect",
            "legacy": "legacy",
            "finalize": "finalize_turn",
        },
    )

    for name in HANDLERS:
        if name != "start":
            builder.add_edge(name, "finalize_turn")
    builder.add_edge("finalize_turn", END)

    return builder.compile()
