"""Article drafting and scoring on top of the LLM providers."""
