"""Tournament services (bracket building and advancement)."""
