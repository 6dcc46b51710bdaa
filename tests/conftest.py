"""Global pytest configuration (non-GUI fixtures only)."""

pytest_plugins = ["tests.fixtures.browser"]
