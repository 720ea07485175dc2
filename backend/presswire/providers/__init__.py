"""External model providers (LLM completions for press-release writing)."""
