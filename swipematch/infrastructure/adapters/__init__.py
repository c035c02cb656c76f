"""Production adapters: TMDB catalog, session stores, realtime feed."""
