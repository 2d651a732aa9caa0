"""Test suite for CanvasVault.

Test structure follows the test pyramid:
- unit/: Unit tests - services and helpers in isolation (mocks, no database)
- integration/: Services against an in-memory SQLite database and MemoryCache
- api/: HTTP endpoints end-to-end through the ASGI app

No external services are needed: SQLite (aiosqlite) stands in for PostgreSQL,
MemoryCache for Redis, and provider HTTP calls are mocked with pytest-httpx.
"""
