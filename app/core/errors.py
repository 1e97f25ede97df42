"""
Application errors for clean API error handling.

Use ConfigurationError when a required setting (vector store endpoint, store
token, model key) is missing so the API can return 500 before calling anything
upstream. ToolCallParseError marks a model response whose tool-call arguments
are not valid JSON; the agent run reports it as a failure.
"""


class ConfigurationError(Exception):
    """Raised when required environment values are missing."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        self.message = f"Missing environment variables: {', '.join(missing)}"
        super().__init__(self.message)


class ToolCallParseError(Exception):
    """Raised when the model emits tool-call arguments that cannot be decoded."""

    def __init__(self, tool_name: str, raw_arguments: str) -> None:
        self.tool_name = tool_name
        self.raw_arguments = raw_arguments
        super().__init__(f"Malformed arguments for tool {tool_name!r}: {raw_arguments[:200]!r}")
