"""Unit tests for the voting service.

These tests run the components against the in-memory storage backend and
need no external services.
"""
