import os

# Default to an in-memory SQLite database for tests
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("AUTO_CREATE_SCHEMA", "false")
os.environ.setdefault("SECRET_KEY", "x" * 32)
