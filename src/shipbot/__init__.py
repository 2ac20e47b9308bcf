"""Shipbot — a chat bot bridge for ships: watch updates, accept invites, join chats, reply."""

__version__ = "0.3.0"
