"""
Community site backend.

A small FastAPI service exposing forum posts, a single announcement and user
submissions, persisted in a key-value store (Redis, SQL or in-memory).
"""
