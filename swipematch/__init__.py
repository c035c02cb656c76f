"""SwipeMatch: group movie picking by swipe consensus."""

__version__ = "0.1.0"
