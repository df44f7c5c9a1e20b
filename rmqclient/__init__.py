"""Consumer-side building blocks for a message queue client: errors, messages,
queue allocation strategies, statistics, options and a push consumer core."""

__version__ = "0.1.0"
__all__ = ["errors", "message", "strategy", "statistics", "options", "push_consumer"]