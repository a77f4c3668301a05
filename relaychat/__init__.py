"""RelayChat: browser chat interface relaying messages to arbitrary webhooks."""

__version__ = "1.0.0"
