import os


class Embedding:
    def __init__(self, config: dict | None = None) -> None:
        emb_cfg = (config or {}).get("semantic_reader", {}).get("embedding", {})
        key_env = str(emb_cfg.get("api_key_env", "OPENAI_API_KEY"))

        # May be empty; the queue can also receive a key at runtime.
        self.OPENAI_API_KEY: str = os.getenv(key_env, "") or ""
        self.EMB_MODEL_ID: str = str(emb_cfg.get("model_id", os.getenv("EMB_MODEL_ID", "text-embedding-3-small")))
        self.EMB_DIM: int = int(emb_cfg.get("dim", os.getenv("EMB_DIM", "1536")))

        # ~8000 tokens at roughly 4 chars per token
        self.EMB_MAX_CHARS: int = int(emb_cfg.get("max_chars", os.getenv("EMB_MAX_CHARS", "32000")))

        # Pause between single-text calls inside a batch (seconds)
        self.EMB_REQUEST_DELAY: float = float(
            emb_cfg.get("request_delay", os.getenv("EMB_REQUEST_DELAY", "0.02"))
        )
        self.EMB_TIMEOUT: float = float(emb_cfg.get("timeout", os.getenv("EMB_TIMEOUT", "30")))
        self.EMB_MAX_RETRIES: int = int(emb_cfg.get("max_retries", os.getenv("EMB_MAX_RETRIES", "2")))
        self.EMB_BASE_URL: str | None = emb_cfg.get("base_url") or os.getenv("EMB_BASE_URL") or None
