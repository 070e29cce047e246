"""Shared pytest configuration."""


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast, isolated tests of a single function or class")
    config.addinivalue_line("markers", "integration: full simulation runs")
