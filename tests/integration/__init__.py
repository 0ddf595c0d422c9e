"""Integration tests for the voting service.

- Storage tests run the voting components against a real PostgreSQL server
- API tests drive a running voting API over HTTP

Tests skip when the server they need is not reachable.
"""
