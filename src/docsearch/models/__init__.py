"""Document, query and result models."""
