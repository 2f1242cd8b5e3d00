"""Planning seam: intent-to-plan contract and document loading."""

from layout_orchestrator.planning.documents import (
    DocumentError,
    dump_graph,
    load_document,
    load_edit_plan,
    load_graph,
)
from layout_orchestrator.planning.planner import Planner, StaticPlanner, normalize_intent

__all__ = [
    "DocumentError",
    "Planner",
    "StaticPlanner",
    "dump_graph",
    "load_document",
    "load_edit_plan",
    "load_graph",
    "normalize_intent",
]
