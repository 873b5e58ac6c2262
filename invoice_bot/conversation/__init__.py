"""Conversation flows: per-user state, pure transitions and the event dispatcher."""
