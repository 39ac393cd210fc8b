"""Pytest bootstrap configuration.

Ensure mandatory environment variables are set before test collection
and module imports that depend on application settings.
"""
import os

# Mandatory secret key for settings validation
os.environ.setdefault("SECRET_KEY", "test-secret-key")
# In-memory database; API tests inject an in-memory unit of work instead
os.environ.setdefault("DATABASE__URL", "sqlite+aiosqlite:///:memory:")
# Unhandled errors must go through the JSON exception handler, not the debug page
os.environ.setdefault("DEBUG", "false")
