"""Pytest configuration for Paranoid Python Toolkit."""


def pytest_configure(config):
    """Configure pytest with custom settings."""
    config.addinivalue_line("markers", "cascade: mark test as exercising dependents")
