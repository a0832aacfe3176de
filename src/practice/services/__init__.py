"""Services backed by external systems (LLM providers, contest feeds)."""
