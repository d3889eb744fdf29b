"""Configuration, errors, Redis and rate limiting."""
