"""API routers: database, auth, storage, functions."""
