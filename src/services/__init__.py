"""Catalog services: tag registry, association reconciler, item repository."""
