"""Integration tests for weekplanner.

These tests require a PostgreSQL database (use Docker: docker-compose up -d db).
Point TEST_DATABASE_URL at it if it is not on localhost.

Run with: pytest tests/integration/ -v
Skip with: pytest -m "not integration"
"""
