"""LangGraph StateGraph — compile the executor graph for one run."""

from __future__ import annotations

from langgraph.graph import START, StateGraph

from voidex.agent.nodes import (
    RunContext,
    make_nodes,
    route_after_guard,
    route_after_think,
    route_after_tools,
)
from voidex.agent.state import ExecutorState


def create_graph(run: RunContext):
    """
    Build and compile the executor graph.

    Graph flow:
        START → guard → think ⇄ execute_tools → guard ... → END

    ``guard`` owns the step safety limit, ``think`` streams one model
    turn, ``execute_tools`` gates and runs the requested tools.
    """
    nodes = make_nodes(run)

    graph = StateGraph(ExecutorState)

    # Add nodes
    graph.add_node("guard", nodes["guard"])
    graph.add_node("think", nodes["think"])
    graph.add_node("execute_tools", nodes["execute_tools"])

    # Edges
    graph.add_edge(START, "guard")
    graph.add_conditional_edges("guard", route_after_guard)
    graph.add_conditional_edges("think", route_after_think)
    graph.add_conditional_edges("execute_tools", route_after_tools)
    return graph.compile()
