"""
Integration tests package.

These tests talk to a real PostgreSQL server with the pgvector extension
(DATABASE_URL). They are skipped unless explicitly requested:

    pytest tests/integration/ -v --run-integration
"""
