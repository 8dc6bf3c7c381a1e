"""API routers for the PB Portal."""
