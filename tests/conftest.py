import pytest

from loglens.config import Config
from loglens.models import ParserConfig
from loglens.service import LogLens
from loglens.store import RecordStore

SCENARIO_LINES = [
    "2024-01-01T00:00:00Z ERROR svc1 boom",
    "2024-01-01T00:00:05Z INFO svc1 ok",
]

SCENARIO_PATTERN = r"^(?P<timestamp>\S+) (?P<level>\w+) (?P<service>\S+) (?P<message>.*)$"


@pytest.fixture
def scenario_lines():
    return list(SCENARIO_LINES)


@pytest.fixture
def regex_config():
    return ParserConfig(type="regex", pattern=SCENARIO_PATTERN)


@pytest.fixture
def store():
    return RecordStore()


@pytest.fixture
def engine():
    return LogLens()


@pytest.fixture
def scenario_engine(engine, scenario_lines, regex_config):
    """Engine holding the two scenario records."""
    engine.ingest(scenario_lines, regex_config)
    return engine


@pytest.fixture
def config():
    return Config(environ={})
