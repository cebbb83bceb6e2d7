"""MyApp admin: the ``myapp-admin`` CLI for the local cluster store."""
