"""BasicApi: pet store benchmark service."""
