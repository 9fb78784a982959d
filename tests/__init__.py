"""
Test suite for romfetch.

Run all tests with:
    pytest tests/ -v

Run specific test file:
    pytest tests/test_resolver.py -v

Run with coverage:
    pytest tests/ --cov=romfetch --cov-report=html
"""
