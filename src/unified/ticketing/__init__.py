"""Ticketing vertical: unified schemas, provider mappers and fetchers, persistence descriptors."""
