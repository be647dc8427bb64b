"""Fleet registry API package."""
