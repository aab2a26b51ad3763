"""Core infrastructure: configuration, database, security and error handling."""
