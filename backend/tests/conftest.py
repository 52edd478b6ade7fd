import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LLM_PROVIDER", "noop")
os.environ.setdefault("OPIK_ENABLED", "false")
