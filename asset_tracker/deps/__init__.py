"""Request dependencies: authentication and role checks."""
