"""Custom field mappings: attribute definition, resolution and slug translation."""
