import os
from pathlib import Path

_DEFAULT_SQLITE_PATH = Path("data") / "vectors.db"


class Store:
    def __init__(self, config: dict | None = None) -> None:
        store_cfg = (config or {}).get("semantic_reader", {}).get("store", {})
        self.VECTOR_DB_PATH: str = str(
            store_cfg.get("vector_db_path", os.getenv("VECTOR_DB_PATH", str(_DEFAULT_SQLITE_PATH)))
        )
        # How often to run vector store maintenance (in seconds)
        self.MAINTENANCE_INTERVAL: int = int(
            store_cfg.get("maintenance_interval", os.getenv("MAINTENANCE_INTERVAL", "3600"))
        )
