"""
Test configuration. Sets operator credentials before any app module is imported.
"""

import os

os.environ["APP_USER"] = "operator"
os.environ["APP_PASSWORD"] = "correct-horse"
os.environ["APP_JWT_SECRET"] = "test-jwt-secret"
os.environ.pop("ALLOWED_SENDERS", None)
