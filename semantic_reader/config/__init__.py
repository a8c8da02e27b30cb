"""
Settings for the embedding pipeline.

``.env`` is loaded first, then ``config.toml`` (see :mod:`.loader`); each
settings object prefers its TOML table, then the environment, then its
built-in default. Importing this package also configures logging.
"""

import logging
from dotenv import load_dotenv

from .loader import load_raw_config
from .embedding import Embedding
from .queue import Queue
from .store import Store

load_dotenv()

logging.basicConfig(
    format="[%(asctime)s] [%(levelname)s] [%(name)s]: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    level=logging.INFO,
)
# Per-request lines from the HTTP stack drown out queue progress
for _noisy in ("httpx", "openai"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

_raw = load_raw_config()

embedding = Embedding(_raw)
queue = Queue(_raw)
store = Store(_raw)

__all__ = ["embedding", "queue", "store"]
