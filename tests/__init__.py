"""
Notification routing test suite.

This package contains:
- unit/: Unit tests (store and routing core over a temporary SQLite file)
- integration/: Integration tests (HTTP gateway end to end)
"""
