"""Core primitives: errors, logging, settings, clock, result envelope, ORM."""
