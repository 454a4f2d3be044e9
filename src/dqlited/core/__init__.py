"""Core primitives: errors, logging, settings and deadlines."""
