"""
Tests for the chat page helpers: request history and SSE line parsing.
"""

from app.chat_client import error_entry, history_for_request, iter_sse_events


class TestHistoryForRequest:
    def test_failed_turn_is_not_sent_upstream(self) -> None:
        messages = [
            {"role": "user", "content": "Hi"},
            error_entry("Error: Missing environment variables: OPENAI_API_KEY"),
            {"role": "user", "content": "Hi again"},
        ]
        assert history_for_request(messages) == [{"role": "user", "content": "Hi again"}]

    def test_answered_turns_are_kept(self) -> None:
        messages = [
            {"role": "user", "content": "What is in the playbook?"},
            {"role": "assistant", "content": "According to a.pdf, first."},
            {"role": "user", "content": "Tell me more"},
            error_entry("Connection failed: timed out"),
            {"role": "user", "content": "Retry"},
        ]
        assert history_for_request(messages) == [
            {"role": "user", "content": "What is in the playbook?"},
            {"role": "assistant", "content": "According to a.pdf, first."},
            {"role": "user", "content": "Retry"},
        ]

    def test_ui_only_keys_are_stripped(self) -> None:
        assert history_for_request([{"role": "user", "content": "q", "shown": True}]) == [
            {"role": "user", "content": "q"}
        ]


class TestIterSseEvents:
    def test_parses_named_events(self) -> None:
        lines = [
            "event: token",
            'data: {"content": "Hel"}',
            "",
            "event: done",
            'data: {"answer": "Hello", "tools_used": []}',
            "",
        ]
        assert list(iter_sse_events(lines)) == [
            ("token", {"content": "Hel"}),
            ("done", {"answer": "Hello", "tools_used": []}),
        ]

    def test_bad_data_and_orphan_data_lines(self) -> None:
        lines = ['data: {"content": "ignored"}', None, "event: error", "data: not json"]
        assert list(iter_sse_events(lines)) == [("error", {})]
