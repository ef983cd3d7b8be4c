import os
import shutil
import sys
import tempfile
import threading

import pytest

# Keep the file sink out of the working tree
_LOG_DIR = tempfile.mkdtemp(prefix="grimoire-test-logs-")
os.environ["GRIMOIRE_LOG_FILE"] = os.path.join(_LOG_DIR, "debug.log")

# Add src directory to Python path
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(__file__)), "src"))

from loguru import logger as loguru_logger  # noqa: E402

from grimoire.core.database import DatabaseManager  # noqa: E402
from grimoire.core.exceptions import ExternalServiceError  # noqa: E402
from grimoire.core.token_counter import TokenEncoder  # noqa: E402
from grimoire.retrieval.primitives import RawHit  # noqa: E402


CAMPAIGN_ID = "camp1"


def make_raw_asset(asset_id, name=None, record_type="NPC", campaign_id=CAMPAIGN_ID, **overrides):
    """Raw store document the way the asset store exports it."""
    raw = {
        "_id": {"$oid": asset_id},
        "campaignId": {"$oid": campaign_id},
        "name": name or f"Asset {asset_id}",
        "gmSummary": f"Summary of {asset_id}",
        "recordType": record_type,
        "createdAt": {"$date": "2024-01-01T00:00:00Z"},
        "updatedAt": {"$date": "2024-02-01T00:00:00Z"},
    }
    if record_type == "NPC":
        raw["npcData"] = {"motivation": "Gold", "mannerisms": "Taps the table"}
    elif record_type == "Location":
        raw["locationData"] = {"description": "A drafty keep", "condition": "Crumbling"}
    elif record_type == "Plot":
        raw["plotData"] = {"status": "InProgress", "urgency": "Critical"}
    elif record_type == "SessionEvent":
        raw["sessionEventData"] = {"summary": "The party arrived", "sessionDate": {"$date": 1704067200000}}
    raw.update(overrides)
    return raw


class FakeChannel:
    """Retrieval primitive returning its documents in order."""

    def __init__(self, docs=None, error=None):
        self.docs = list(docs or [])
        self.error = error
        self.calls = []

    async def __call__(self, channel_input, campaign_id, limit, record_type=None):
        self.calls.append(
            {"input": channel_input, "campaign_id": campaign_id, "limit": limit, "record_type": record_type}
        )
        if self.error is not None:
            raise self.error
        docs = [d for d in self.docs if record_type is None or d.get("recordType") == record_type]
        return [
            RawHit(item_id=doc["_id"], score=1.0 - position * 0.01, record=doc)
            for position, doc in enumerate(docs[:limit])
        ]


class FakeAssetCounter:
    def __init__(self, total=0):
        self.total = total
        self.calls = []

    async def __call__(self, campaign_id, record_type=None):
        self.calls.append((campaign_id, record_type))
        return self.total


class FakeProvider:
    """Embedding provider with a fixed vector."""

    def __init__(self, vector=None, error=None):
        self.vector = [0.1, 0.2, 0.3] if vector is None else vector
        self.error = error
        self.texts = []

    async def embed(self, text):
        self.texts.append(text)
        if self.error is not None:
            raise self.error
        return list(self.vector)


class WordEncoder(TokenEncoder):
    """One token per whitespace separated word."""

    def __init__(self):
        self.vocab = []
        self.index = {}
        self.threads = []

    def encode(self, text):
        self.threads.append(threading.get_ident())
        tokens = []
        for word in text.split():
            if word not in self.index:
                self.index[word] = len(self.vocab)
                self.vocab.append(word)
            tokens.append(self.index[word])
        return tokens

    def decode(self, tokens):
        return " ".join(self.vocab[token] for token in tokens)


class UnavailableEncoder(TokenEncoder):
    """Encoder whose tokenizer can never be loaded."""

    def __init__(self):
        self.threads = []

    def encode(self, text):
        self.threads.append(threading.get_ident())
        raise ExternalServiceError("Could not download tokenizer nomic-ai/nomic-embed-text-v1.5")

    def decode(self, tokens):
        raise ExternalServiceError("Could not download tokenizer nomic-ai/nomic-embed-text-v1.5")


class ListSink:
    """Metric store keeping rows in memory."""

    def __init__(self, error=None):
        self.metrics = []
        self.error = error

    async def save(self, metric):
        if self.error is not None:
            raise self.error
        self.metrics.append(metric)


@pytest.fixture
def log_records():
    """Loguru records emitted during the test."""
    records = []
    handler_id = loguru_logger.add(lambda message: records.append(message.record), level="DEBUG")
    yield records
    loguru_logger.remove(handler_id)


@pytest.fixture
def temp_db_path():
    """Temporary SQLite file for the telemetry database."""
    temp_dir = tempfile.mkdtemp()
    yield os.path.join(temp_dir, "metrics.db")
    shutil.rmtree(temp_dir)


@pytest.fixture
def db_manager(temp_db_path):
    manager = DatabaseManager(temp_db_path)
    yield manager
    manager.close()


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """No config file or override variables leak into the test."""
    for variable in (
        "GRIMOIRE_CONFIG",
        "SEARCH_METRICS_SAMPLE_RATE",
        "GRIMOIRE_SEARCH_METRICS_SAMPLE_RATE",
        "GRIMOIRE_RRF_K",
        "GRIMOIRE_OVER_FETCH_MULTIPLIER",
        "GRIMOIRE_EMBEDDING_MODEL",
        "GRIMOIRE_EMBEDDING_CACHE_MAX_SIZE",
        "GRIMOIRE_OLLAMA_URL",
        "GRIMOIRE_DB_PATH",
        "GRIMOIRE_LOG_LEVEL",
    ):
        monkeypatch.delenv(variable, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path
