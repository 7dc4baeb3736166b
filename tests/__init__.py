"""Test package: pin settings to an isolated, fast configuration before vidtube is imported."""

import os
import tempfile

os.environ.setdefault("APP_ENV", "dev")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ACCESS_TOKEN_SECRET", "test-access-secret-7f3c9a1e5b2d4c6f8a0e1b3d5f7a9c2e")
os.environ.setdefault("REFRESH_TOKEN_SECRET", "test-refresh-secret-4b8d2f6a0c1e3a5c7e9b1d3f5a7c9e0b")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("UPLOAD_TEMP_DIR", tempfile.mkdtemp(prefix="vidtube-uploads-"))
