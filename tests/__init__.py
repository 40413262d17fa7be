"""
FormaOS Test Suite
==================

Test organization:
- tests/unit/          - Unit tests (no external dependencies)
- tests/services/      - Service tests over in-memory repositories

Run tests:
    pytest                          # All tests
    pytest tests/unit               # Unit tests only
    pytest tests/services/automation
"""
