"""LangGraph wiring for a full pipeline run.

The graph is a straight chain, trend acquisition followed by the six stages,
with a conditional edge after every node that ends the run as soon as the
run state records an error:

    acquire_trends -> trend_signals -> candidate_generation -> weighting
        -> composition -> render -> publish -> END
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Optional, TypedDict

from langgraph.graph import END, StateGraph

from trendreel.models.schemas import PIPELINE_STAGES, ChannelConfig, ScheduleConfig
from trendreel.pipeline.state import RunState

if TYPE_CHECKING:
    from trendreel.pipeline.orchestrator import PipelineOrchestrator

ACQUIRE_NODE = "acquire_trends"

NODE_SEQUENCE: tuple[str, ...] = (ACQUIRE_NODE,) + tuple(stage.value for stage in PIPELINE_STAGES)


class PipelineGraphState(TypedDict, total=False):
    """State threaded through the graph.

    Attributes:
        run_state: Current immutable run snapshot; replaced by every node.
        channel: Channel the run produces for.
        schedule: Publish schedule handed to the publish stage.
        credentials: Publisher credentials for the channel, if any.
        force_mock: Skip live trend acquisition and use the mock dataset.
    """
    run_state: RunState
    channel: ChannelConfig
    schedule: Optional[ScheduleConfig]
    credentials: Optional[dict[str, Any]]
    force_mock: bool


def _route_after(next_node: str) -> Callable[[PipelineGraphState], str]:
    def route(state: PipelineGraphState) -> str:
        if state["run_state"].error is not None:
            return "end"
        return next_node

    return route


def create_pipeline_graph(orchestrator: PipelineOrchestrator) -> StateGraph:
    """Build the run graph with nodes bound to ``orchestrator``."""
    workflow = StateGraph(PipelineGraphState)

    workflow.add_node(ACQUIRE_NODE, orchestrator.acquisition_node)
    for stage in PIPELINE_STAGES:
        workflow.add_node(stage.value, orchestrator.stage_node(stage))

    workflow.set_entry_point(ACQUIRE_NODE)

    for current, following in zip(NODE_SEQUENCE, NODE_SEQUENCE[1:]):
        workflow.add_conditional_edges(
            current,
            _route_after(following),
            {following: following, "end": END},
        )

    workflow.add_edge(NODE_SEQUENCE[-1], END)
    return workflow


def compile_pipeline_graph(orchestrator: PipelineOrchestrator):
    """Create and compile the run graph."""
    return create_pipeline_graph(orchestrator).compile()
