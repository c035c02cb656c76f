"""Infrastructure layer: adapters, stubs, caches and observability."""
