# Run from project root: streamlit run app/ui.py
# UI talks to backend API (POST /api/chat, SSE). Chat history lives here and is sent in full on every turn.

import os
import sys
from pathlib import Path

# Ensure project root is on path (Streamlit may run with cwd != project root)
_root_from_file = Path(__file__).resolve().parent.parent
_cwd = os.getcwd()
for _root in (_root_from_file, _cwd):
    _root = str(_root)
    if _root not in sys.path:
        sys.path.insert(0, _root)

import streamlit as st
import requests

from app.chat_client import ERROR_KEY, error_entry, history_for_request, iter_sse_events

# Backend config
API_BASE = os.environ.get("API_BASE", "http://localhost:8000")
USER_NAME = os.environ.get("COACH_USER_NAME", "Alex")

st.title("AI Conversational Coach")
st.caption(f"Hello {USER_NAME}! Ask me about our knowledge resources or general topics.")

if "messages" not in st.session_state:
    st.session_state.messages = []
# New chat: clear local messages (server keeps nothing between requests)
if st.button("New chat", key="new_chat"):
    st.session_state.messages = []
    st.rerun()

if not st.session_state.messages:
    st.caption("No messages yet. Try asking something like:")
    st.caption('  • "What are the key features of Product X?" (tries knowledge base)')
    st.caption('  • "Tell me about the history of AI." (general knowledge)')


def _role_label(role: str) -> str:
    return f"You ({USER_NAME})" if role == "user" else "AI Coach"


for msg in st.session_state.messages:
    with st.chat_message(msg["role"]):
        st.caption(_role_label(msg["role"]))
        if msg.get(ERROR_KEY):
            st.error(msg["content"])
        else:
            st.markdown(msg["content"])

# If we just submitted a query, stream the answer for it
if st.session_state.get("pending_query"):
    with st.chat_message("assistant"):
        st.caption(_role_label("assistant"))
        thinking_placeholder = st.empty()
        thinking_placeholder.caption("Thinking...")
        answer_placeholder = st.empty()
        tools_caption = st.empty()
        answer = ""
        error = ""
        tools_used: list[str] = []
        try:
            r = requests.post(
                f"{API_BASE}/api/chat",
                json={"messages": history_for_request(st.session_state.messages)},
                stream=True,
                timeout=90,
            )
            if not r.ok:
                try:
                    error = f"Error: {r.json().get('error', r.text[:200])}"
                except ValueError:
                    error = f"Error: {r.status_code}: {r.text[:200]}"
            else:
                accumulated = []
                for event, data in iter_sse_events(r.iter_lines(decode_unicode=True)):
                    if event == "token":
                        content = data.get("content", "")
                        if content:
                            accumulated.append(content)
                            thinking_placeholder.empty()
                            answer_placeholder.markdown("".join(accumulated))
                    elif event == "tool_start":
                        thinking_placeholder.caption(f"Searching knowledge base: {data.get('query', '')}")
                    elif event == "tool_end":
                        name = data.get("name", "")
                        if name:
                            tools_used.append(name)
                            tools_caption.caption(f"Tools used: {', '.join(tools_used)}")
                    elif event == "done":
                        answer = data.get("answer", "") or "".join(accumulated)
                        thinking_placeholder.empty()
                        if answer:
                            answer_placeholder.markdown(answer)
                    elif event == "error":
                        error = data.get("message", "Unknown error")
                answer = answer or "".join(accumulated)
        except requests.RequestException as e:
            error = f"Connection failed: {e}"
        if error:
            thinking_placeholder.empty()
            answer_placeholder.error(error)
            st.session_state.messages.append(error_entry(error))
        else:
            st.session_state.messages.append({"role": "assistant", "content": answer or "No answer."})
    del st.session_state["pending_query"]
    st.rerun()

# New message from user: show it immediately, then rerun so "Thinking..." appears
if prompt := st.chat_input("Ask a question..."):
    st.session_state.messages.append({"role": "user", "content": prompt})
    st.session_state.pending_query = prompt
    st.rerun()
