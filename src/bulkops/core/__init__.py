"""Core primitives shared by every bulkops module: errors, logging, settings."""
