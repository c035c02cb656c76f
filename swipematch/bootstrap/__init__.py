"""Bootstrap wiring: database session factory and service construction."""
