from __future__ import annotations

"""Shared pytest fixtures and test environment defaults."""

import os
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

os.environ["EMBEDDING_PROVIDER"] = "none"
os.environ["RAG_LLM_PROVIDER"] = "none"
os.environ.pop("OPENAI_API_KEY", None)
os.environ.setdefault("RAG_ALLOW_CROSS_SESSION", "false")
os.environ.setdefault("RAG_REQUIRE_SESSION", "false")
os.environ.setdefault("RAG_METRICS_ENABLED", "true")
