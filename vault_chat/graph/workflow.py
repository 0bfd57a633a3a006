"""
Chat Workflow
-------------
    agents --(result)--> END
       `--(no agent)--> retriever --> generator --> END

The agents node gives the MasterAgent the first look at every message. Only
when it returns nothing does the message go through retrieval and completion.
"""

import logging
from langgraph.graph import END, StateGraph
from vault_chat.agents.master import MasterAgent
from vault_chat.chat.prompt import PromptBuilder
from vault_chat.graph.state import ChatState
from vault_chat.rag.service import RetrievalService

logger = logging.getLogger(__name__)


def build_graph(master_agent: MasterAgent, retrieval_service: RetrievalService, prompt_builder: PromptBuilder, llm):
    async def run_agents(state: ChatState):
        result = await master_agent.try_handle(state["message"], state.get("history", []), state["context"])
        return {"agent_result": result}

    async def retrieve_context(state: ChatState):
        context = state["context"]
        retrieval = await retrieval_service.retrieve(
            state["message"],
            state.get("mode", "none"),
            vault_id=context.vault_path,
            settings=context.settings.retrieval,
        )
        logger.info(
            f"[WORKFLOW] Retrieved {len(retrieval.chunks)} chunks, {len(retrieval.web_snippets)} web snippets"
        )
        return {"retrieval": retrieval}

    async def generate_answer(state: ChatState):
        prompt = prompt_builder.build(state["message"], state.get("history", []), state["retrieval"])
        answer = await llm.complete(prompt)
        return {"answer": answer}

    def route_after_agents(state: ChatState):
        if state.get("agent_result") is not None:
            return "end"
        return "retriever"

    workflow = StateGraph(ChatState)
    workflow.add_node("agents", run_agents)
    workflow.add_node("retriever", retrieve_context)
    workflow.add_node("generator", generate_answer)

    workflow.set_entry_point("agents")
    workflow.add_conditional_edges("agents", route_after_agents, {"end": END, "retriever": "retriever"})
    workflow.add_edge("retriever", "generator")
    workflow.add_edge("generator", END)
    return workflow.compile()
