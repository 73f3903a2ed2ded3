"""HTTP surface of the account hub (FastAPI)."""
