import os, sys
from pathlib import Path

import pytest

# Add project root to sys.path for imports
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

# No real key and no pacing delays during tests
os.environ["OPENAI_API_KEY"] = ""
os.environ.setdefault("EMB_REQUEST_DELAY", "0")
os.environ.setdefault("EMB_INTER_BATCH_DELAY", "0")
os.environ.setdefault("EMB_MODEL_ID", "text-embedding-3-small")

from semantic_reader.store import VectorStore  # noqa: E402


@pytest.fixture
def store(tmp_path):
    st = VectorStore(str(tmp_path / "vectors.db")).open()
    yield st
    st.close()
