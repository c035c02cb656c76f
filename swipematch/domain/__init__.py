"""SwipeMatch domain layer: models and errors."""
