"""Infrastructure adapters: inference providers and Redis connectivity."""
