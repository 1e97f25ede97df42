"""
Tests for the agent dispatcher: event stream, tool loop, iteration cap, failures, cancellation.

The hosted model is replaced by ScriptedModel; the store by FakeStore.
"""

import asyncio

from fakes import FakeStore, HangingModel, ScriptedModel, answer_round, tool_round
from langchain_core.messages import AIMessage, HumanMessage

from app.agent.graph import MAX_ITERATIONS_ANSWER, AgentDispatcher, AgentEvent, AgentInput
from app.agent.tools import NO_RESULTS_MESSAGE, KnowledgeBaseSearchTool
from app.core.errors import ToolCallParseError
from app.services.vector_store import RetrievedDocument


def _collect(dispatcher: AgentDispatcher, agent_input: AgentInput) -> list[AgentEvent]:
    async def run() -> list[AgentEvent]:
        return [evt async for evt in dispatcher.stream(agent_input)]

    return asyncio.run(run())


def _dispatcher(model, store=None, **kwargs) -> AgentDispatcher:
    return AgentDispatcher(model=model, search_tool=KnowledgeBaseSearchTool(store or FakeStore()), **kwargs)


def test_direct_answer_streams_tokens_then_done() -> None:
    model = ScriptedModel([answer_round("Paris is the capital.")])
    events = _collect(_dispatcher(model), AgentInput(input="What is the capital of France?"))
    kinds = [e.event for e in events]
    assert kinds == ["token", "token", "token", "token", "done"]
    assert "".join(e.data["content"] for e in events if e.event == "token") == "Paris is the capital."
    assert events[-1].data == {"answer": "Paris is the capital.", "tools_used": []}


def test_prompt_layout_system_history_input() -> None:
    model = ScriptedModel([answer_round("ok")])
    history = [HumanMessage(content="Hello"), AIMessage(content="Hi")]
    _collect(_dispatcher(model), AgentInput(input="Next question", chat_history=history))
    sent = model.calls[0]
    assert [m["role"] for m in sent] == ["system", "user", "assistant", "user"]
    assert "search_knowledge_base" in sent[0]["content"]
    assert "Alex" in sent[0]["content"]
    assert sent[1]["content"] == "Hello"
    assert sent[2]["content"] == "Hi"
    assert sent[3]["content"] == "Next question"


def test_tool_call_then_answer() -> None:
    store = FakeStore(docs=[RetrievedDocument("a.pdf", "Alpha."), RetrievedDocument("b.pdf", "Beta.")])
    model = ScriptedModel([tool_round("pricing", "call_9"), answer_round("According to a.pdf, Alpha.")])
    events = _collect(_dispatcher(model, store), AgentInput(input="What is our pricing?"))

    kinds = [e.event for e in events]
    assert kinds[:2] == ["tool_start", "tool_end"]
    assert kinds[-1] == "done"
    assert events[0].data == {"name": "search_knowledge_base", "query": "pricing"}
    assert events[-1].data["tools_used"] == ["search_knowledge_base"]
    assert store.calls == [("pricing", 3)]

    # The second model call sees the tool call and its result after the user input
    second = model.calls[1]
    assert second[-2]["role"] == "assistant"
    assert second[-2]["tool_calls"][0]["id"] == "call_9"
    assert second[-1]["role"] == "tool"
    assert second[-1]["tool_call_id"] == "call_9"
    assert "Source: a.pdf" in second[-1]["content"]
    assert "Source: b.pdf" in second[-1]["content"]


def test_scratchpad_accumulates_across_rounds() -> None:
    model = ScriptedModel([tool_round("one", "c1"), tool_round("two", "c2"), answer_round("done")])
    events = _collect(_dispatcher(model, FakeStore()), AgentInput(input="q"))
    assert events[-1].data["tools_used"] == ["search_knowledge_base", "search_knowledge_base"]
    third = model.calls[2]
    assert [m["role"] for m in third] == ["system", "user", "assistant", "tool", "assistant", "tool"]
    assert third[3]["content"] == NO_RESULTS_MESSAGE


def test_iteration_cap_gives_fallback_answer() -> None:
    model = ScriptedModel([tool_round("a", "c1"), tool_round("b", "c2"), tool_round("c", "c3")])
    store = FakeStore()
    events = _collect(_dispatcher(model, store, max_iterations=2), AgentInput(input="loop forever"))
    assert len(model.calls) == 3
    assert [q for q, _ in store.calls] == ["a", "b"]
    assert events[-2] == AgentEvent("token", {"content": MAX_ITERATIONS_ANSWER})
    assert events[-1].event == "done"
    assert events[-1].data["answer"] == MAX_ITERATIONS_ANSWER


def test_unknown_tool_is_reported_in_band() -> None:
    model = ScriptedModel([tool_round("x", "c1", name="web_search"), answer_round("fine")])
    events = _collect(_dispatcher(model), AgentInput(input="q"))
    assert events[-1].event == "done"
    assert model.calls[1][-1]["content"] == "Tool Error: Unknown tool: web_search"


def test_model_failure_becomes_error_event() -> None:
    model = ScriptedModel([RuntimeError("rate limited")])
    events = _collect(_dispatcher(model), AgentInput(input="q"))
    assert events == [AgentEvent("error", {"message": "rate limited"})]


def test_malformed_tool_arguments_become_error_event() -> None:
    model = ScriptedModel([ToolCallParseError("search_knowledge_base", "{not json")])
    events = _collect(_dispatcher(model), AgentInput(input="q"))
    assert len(events) == 1
    assert events[0].event == "error"
    assert "search_knowledge_base" in events[0].data["message"]


def test_failure_after_tokens_still_ends_with_error() -> None:
    model = ScriptedModel([tool_round("q", "c1"), RuntimeError("upstream went away")])
    events = _collect(_dispatcher(model), AgentInput(input="q"))
    assert [e.event for e in events] == ["tool_start", "tool_end", "error"]


def test_closing_stream_cancels_run() -> None:
    model = HangingModel()
    dispatcher = _dispatcher(model)

    async def run() -> AgentEvent:
        stream = dispatcher.stream(AgentInput(input="q"))
        first = await stream.__anext__()
        await asyncio.wait_for(stream.aclose(), timeout=5)
        return first

    first = asyncio.run(run())
    assert first == AgentEvent("token", {"content": "Thinking"})
    assert model.cancelled is True


def test_agent_event_sse_framing() -> None:
    frame = AgentEvent("token", {"content": "Hi"}).to_sse()
    assert frame == 'event: token\ndata: {"content": "Hi"}\n\n'
