"""Service layer: the data service contract, its two backends, scoring and reporting."""
