"""CRM vertical: unified schemas, provider mappers and fetchers, persistence descriptors."""
