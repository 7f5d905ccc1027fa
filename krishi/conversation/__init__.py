"""Conversation log: messages, store and reset."""
