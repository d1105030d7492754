"""LLM layer — provider interface, OpenAI-compatible driver, Moments gateway."""
