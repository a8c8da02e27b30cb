import os


class Queue:
    def __init__(self, config: dict | None = None) -> None:
        q_cfg = (config or {}).get("semantic_reader", {}).get("queue", {})
        self.BATCH_SIZE: int = int(q_cfg.get("batch_size", os.getenv("EMB_BATCH_SIZE", "10")))
        self.INTER_BATCH_DELAY: float = float(
            q_cfg.get("inter_batch_delay", os.getenv("EMB_INTER_BATCH_DELAY", "0.1"))
        )
        reembed_raw = q_cfg.get("reembed_on_model_change", os.getenv("REEMBED_ON_MODEL_CHANGE", "1"))
        self.REEMBED_ON_MODEL_CHANGE: bool = str(reembed_raw).lower() in ("1", "true", "yes")
