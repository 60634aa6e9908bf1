"""Infrastructure adapters: logging, database sessions, external HTTP clients."""
