"""
Pydantic schemas.

Request bodies are validated by these models; responses are built
from result views, so read models carry the resolved reference
snapshots next to the raw reference identifiers.
"""
