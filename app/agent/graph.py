"""
LangGraph agent: agent → (tools → agent)* → finish, with a hard cap on tool rounds.

The model decides on every turn whether to answer or to call search_knowledge_base.
Tool results go into the scratchpad and the model is asked again. After
MAX_AGENT_ITERATIONS tool rounds a further tool request ends the run with a
fallback answer instead of looping.

Events are pushed into an asyncio.Queue by the graph task and read by the HTTP
layer; closing the event iterator cancels the run.
"""

import asyncio
import json
import logging
from contextlib import suppress
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, Literal, TypedDict

from langchain_core.messages import AIMessage, BaseMessage, ToolMessage
from langchain_core.prompts import ChatPromptTemplate, MessagesPlaceholder
from langgraph.graph import END, StateGraph

from app.agent.llm import ChatModel
from app.agent.messages import to_openai_messages
from app.agent.tools import AGENT_TOOLS, KnowledgeBaseSearchTool, execute_tool
from app.core.config import MAX_AGENT_ITERATIONS, USER_NAME

logger = logging.getLogger(__name__)

AGENT_SYSTEM_PROMPT = (
    "You are a conversational coach for {user_name}, trained to provide helpful professional answers. "
    "For any sales related questions, use the search_knowledge_base tool to find the most relevant information. "
    "When you use information returned by the tool, cite the source document "
    "(e.g. \"According to 'document_name.pdf', ...\"). "
    "If the search does not reveal any relevant information, then provide a general answer based on your training. "
    "Answer simple common-knowledge questions directly without using the tool."
)

MAX_ITERATIONS_ANSWER = (
    "I wasn't able to finish looking that up. "
    "Please try rephrasing your question or asking something more specific."
)


@dataclass(frozen=True)
class AgentInput:
    """The new user turn plus the converted conversation before it."""

    input: str
    chat_history: list[BaseMessage] = field(default_factory=list)


@dataclass(frozen=True)
class AgentEvent:
    """
    One element of the agent's event stream.
    event: token | tool_start | tool_end | done | error
    """

    event: str
    data: dict[str, Any] = field(default_factory=dict)

    def to_sse(self) -> str:
        return f"event: {self.event}\ndata: {json.dumps(self.data)}\n\n"


class AgentState(TypedDict):
    input: str
    chat_history: list  # LangChain messages from the client history
    agent_scratchpad: list  # AIMessage(tool_calls) + ToolMessage results of this run
    pending_tool_calls: list  # [{"id", "name", "arguments"}] from the last model turn
    answer: str
    iterations: int
    tools_used: list[str]


Emit = Callable[[AgentEvent], Awaitable[None]]


def build_prompt(user_name: str = USER_NAME) -> ChatPromptTemplate:
    """System instructions + history + current input + scratchpad."""
    return ChatPromptTemplate.from_messages(
        [
            ("system", AGENT_SYSTEM_PROMPT),
            MessagesPlaceholder("chat_history"),
            ("human", "{input}"),
            MessagesPlaceholder("agent_scratchpad"),
        ]
    ).partial(user_name=user_name)


def build_graph(
    model: ChatModel,
    search_tool: KnowledgeBaseSearchTool,
    emit: Emit,
    max_iterations: int = MAX_AGENT_ITERATIONS,
    prompt: ChatPromptTemplate | None = None,
):
    """
    Build and compile the agent graph for one run.
    agent → tools → agent ... → finish | give_up → END.
    """
    prompt = prompt or build_prompt()

    async def _agent(state: AgentState) -> dict:
        """Ask the model; stream its text and collect any tool calls."""
        formatted = prompt.format_messages(
            input=state["input"],
            chat_history=state["chat_history"],
            agent_scratchpad=state["agent_scratchpad"],
        )
        logger.info("[graph:agent] IN  iteration=%d prompt_messages=%d", state["iterations"], len(formatted))
        outcome: tuple = ("content_done", "")
        async for item in model.stream_with_tools(to_openai_messages(formatted), AGENT_TOOLS):
            if item[0] == "content_delta":
                await emit(AgentEvent("token", {"content": item[1]}))
            else:
                outcome = item
        if outcome[0] == "tool_calls":
            logger.info("[graph:agent] OUT tool_calls=%s", [tc["name"] for tc in outcome[1]])
            return {"pending_tool_calls": outcome[1], "answer": outcome[2] or ""}
        logger.info("[graph:agent] OUT answer_len=%d", len(outcome[1]))
        return {"pending_tool_calls": [], "answer": outcome[1]}

    async def _tools(state: AgentState) -> dict:
        """Run the requested tool calls one at a time, in order."""
        calls = state["pending_tool_calls"]
        scratchpad: list = [
            AIMessage(
                content=state["answer"],
                tool_calls=[{"id": tc["id"], "name": tc["name"], "args": tc["arguments"]} for tc in calls],
            )
        ]
        tools_used = list(state["tools_used"])
        for tc in calls:
            name = tc["name"]
            query = tc["arguments"].get("query")
            await emit(AgentEvent("tool_start", {"name": name, "query": query if isinstance(query, str) else ""}))
            result = await execute_tool(name, tc["arguments"], search_tool)
            tools_used.append(name)
            scratchpad.append(ToolMessage(content=result, tool_call_id=tc["id"]))
            await emit(AgentEvent("tool_end", {"name": name}))
        return {
            "agent_scratchpad": state["agent_scratchpad"] + scratchpad,
            "pending_tool_calls": [],
            "answer": "",
            "iterations": state["iterations"] + 1,
            "tools_used": tools_used,
        }

    async def _finish(state: AgentState) -> dict:
        await emit(AgentEvent("done", {"answer": state["answer"], "tools_used": list(state["tools_used"])}))
        return {}

    async def _give_up(state: AgentState) -> dict:
        logger.warning("[graph:give_up] tool rounds exhausted max_iterations=%d", max_iterations)
        await emit(AgentEvent("token", {"content": MAX_ITERATIONS_ANSWER}))
        await emit(AgentEvent("done", {"answer": MAX_ITERATIONS_ANSWER, "tools_used": list(state["tools_used"])}))
        return {"answer": MAX_ITERATIONS_ANSWER, "pending_tool_calls": []}

    def _route_after_agent(state: AgentState) -> Literal["tools", "give_up", "finish"]:
        """Tool calls go to tools until the cap; otherwise the answer is final."""
        if not state["pending_tool_calls"]:
            return "finish"
        next_node = "tools" if state["iterations"] < max_iterations else "give_up"
        logger.info("[graph:route_after_agent] iteration=%d max_iter=%d -> %s", state["iterations"], max_iterations, next_node)
        return next_node

    graph = StateGraph(AgentState)

    graph.add_node("agent", _agent)
    graph.add_node("tools", _tools)
    graph.add_node("finish", _finish)
    graph.add_node("give_up", _give_up)

    graph.set_entry_point("agent")
    graph.add_conditional_edges("agent", _route_after_agent)
    graph.add_edge("tools", "agent")
    graph.add_edge("finish", END)
    graph.add_edge("give_up", END)

    return graph.compile()


class AgentDispatcher:
    """Runs one agent conversation turn and exposes it as an async stream of AgentEvents."""

    def __init__(
        self,
        model: ChatModel,
        search_tool: KnowledgeBaseSearchTool,
        max_iterations: int = MAX_AGENT_ITERATIONS,
        prompt: ChatPromptTemplate | None = None,
        client: Any | None = None,
    ) -> None:
        self._model = model
        self._search_tool = search_tool
        self.max_iterations = max_iterations
        self._prompt = prompt or build_prompt()
        # Upstream client owned by this dispatcher, released by aclose()
        self._client = client

    async def aclose(self) -> None:
        """Close the owned upstream client (and its connection pool), if any."""
        client, self._client = self._client, None
        if client is not None:
            await client.close()

    async def stream(self, agent_input: AgentInput) -> AsyncIterator[AgentEvent]:
        """
        Yield events until done or error. Exactly one terminal event (done or error)
        ends a run. Closing this iterator early cancels the in-flight run.
        """
        logger.info("[agent:stream] START input=%r history_len=%d", agent_input.input, len(agent_input.chat_history))
        queue: asyncio.Queue = asyncio.Queue()
        graph = build_graph(self._model, self._search_tool, queue.put, self.max_iterations, self._prompt)
        initial: AgentState = {
            "input": agent_input.input,
            "chat_history": list(agent_input.chat_history),
            "agent_scratchpad": [],
            "pending_tool_calls": [],
            "answer": "",
            "iterations": 0,
            "tools_used": [],
        }

        async def _produce() -> None:
            try:
                # agent + tools per round, plus the terminal node
                await graph.ainvoke(initial, config={"recursion_limit": 2 * self.max_iterations + 5})
            except Exception as e:
                logger.exception("[agent:stream] Agent run failed")
                await queue.put(AgentEvent("error", {"message": str(e)}))
            finally:
                await queue.put(None)

        task = asyncio.create_task(_produce())
        try:
            while True:
                evt = await queue.get()
                if evt is None:
                    break
                yield evt
        finally:
            if not task.done():
                logger.info("[agent:stream] consumer closed; cancelling run")
                task.cancel()
                with suppress(asyncio.CancelledError):
                    await task
        logger.info("[agent:stream] END")
