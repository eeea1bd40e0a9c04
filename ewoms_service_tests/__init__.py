"""
ewoms_service tests

Covers the HTTP API through FastAPI's TestClient and the helper modules
directly. Redis is replaced by an in-memory double and outgoing mail and
Apple receipt calls are patched.
"""
