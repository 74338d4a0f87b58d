"""Short-video backend: feed, comment and favorite services and a Flask HTTP gateway."""

__version__ = "0.1.0"