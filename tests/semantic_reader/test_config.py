from semantic_reader.config.embedding import Embedding
from semantic_reader.config.loader import load_raw_config
from semantic_reader.config.queue import Queue
from semantic_reader.config.store import Store


def test_missing_file_is_empty(tmp_path):
    assert load_raw_config(tmp_path / "nope.toml") == {}


def test_toml_overrides_env(tmp_path, monkeypatch):
    monkeypatch.setenv("EMB_BATCH_SIZE", "3")
    monkeypatch.setenv("EMB_DIM", "256")
    cfg_file = tmp_path / "config.toml"
    cfg_file.write_text(
        "[semantic_reader.queue]\n"
        "batch_size = 25\n"
        "reembed_on_model_change = false\n"
        "[semantic_reader.store]\n"
        'vector_db_path = "/tmp/x.db"\n'
    )
    raw = load_raw_config(cfg_file)

    q = Queue(raw)
    assert q.BATCH_SIZE == 25
    assert q.REEMBED_ON_MODEL_CHANGE is False
    assert Store(raw).VECTOR_DB_PATH == "/tmp/x.db"
    # not in the file -> env
    assert Embedding(raw).EMB_DIM == 256


def test_api_key_env_name_is_configurable(monkeypatch):
    monkeypatch.setenv("READER_OPENAI_KEY", "sk-alt")
    emb = Embedding({"semantic_reader": {"embedding": {"api_key_env": "READER_OPENAI_KEY"}}})
    assert emb.OPENAI_API_KEY == "sk-alt"


def test_package_exposes_settings_objects():
    from semantic_reader import config

    assert set(config.__all__) == {"embedding", "queue", "store"}
    assert isinstance(config.queue, Queue)
    assert isinstance(config.store, Store)
