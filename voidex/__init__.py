"""voidex — autonomous terminal agent on LangGraph + LiteLLM."""

__version__ = "0.1.0"
