import logging
from collections.abc import Sequence

from langchain_core.language_models import BaseChatModel
from langchain_core.tools import BaseTool
from langgraph.graph import END, START, StateGraph
from langgraph.prebuilt import ToolNode, tools_condition

from backend.graph.state import AgentState

logger = logging.getLogger(__name__)

AGENT_NODE = "agent"
TOOLS_NODE = "tools"


def compile_graph(model: BaseChatModel, tools: Sequence[BaseTool] = ()):
    """Build and compile the tax assistant graph.

    agent -> (tools -> agent)* -> END when tools are given, otherwise a single
    agent step.
    """
    bound = model.bind_tools(list(tools)) if tools else model

    async def agent_node(state: AgentState) -> dict:
        response = await bound.ainvoke(state["messages"])
        return {"messages": [response]}

    graph = StateGraph(AgentState)
    graph.add_node(AGENT_NODE, agent_node)
    graph.add_edge(START, AGENT_NODE)

    if tools:
        graph.add_node(TOOLS_NODE, ToolNode(list(tools)))
        graph.add_conditional_edges(AGENT_NODE, tools_condition)
        graph.add_edge(TOOLS_NODE, AGENT_NODE)
    else:
        graph.add_edge(AGENT_NODE, END)

    logger.debug("Compiled agent graph with tools: %s", [t.name for t in tools])
    return graph.compile()
