"""Core sanitization domain: models, ports, exceptions and algorithms."""
