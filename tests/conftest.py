"""
Shared pytest setup.

Settings are read when creds.core.config is first imported, and ADMIN_SCOPE has no
default, so the environment must be populated before any creds import.
"""

import os

os.environ.setdefault("ADMIN_SCOPE", "admin")
os.environ.setdefault("DATABASE_URL", "sqlite://")
