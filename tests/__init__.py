"""
Test suite for BazaarFlow AI.

Run tests:
    pytest tests/
"""
