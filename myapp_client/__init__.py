"""MyApp client: HTTP client functions and the ``myapp`` CLI."""
