"""Core infrastructure: database, logging, sync context, errors and metrics."""
