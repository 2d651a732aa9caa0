"""Core infrastructure: configuration, persistence, cache, errors and logging.

The core package has no dependencies on models, services or the API layer.
"""
