"""Conversation handling: prompts, the dispatch loop and agent sessions."""
