"""Infrastructure adapters: object stores and the catalog database."""
