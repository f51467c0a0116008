"""Data stores for persistence and caching.

Stores handle:
- PostgreSQL: engine, session factory, transactional scopes
- Redis: webhook delivery markers, OAuth tokens

No sync or translation logic in stores - that belongs in services.
"""
