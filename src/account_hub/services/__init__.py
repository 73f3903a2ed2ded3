"""Domain services shared by the API routes, CLI and background tasks."""
