"""Conversational messaging core: conversations, messages, read tracking and reactions."""
