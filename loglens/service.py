"""LogLens facade, the entry point the API and CLI call into."""

import logging
from typing import Iterable

from loglens import ingest as ingestion
from loglens import query as query_engine
from loglens.models import (
    ImportResult,
    ParserConfig,
    Query,
    QueryResult,
    Record,
    Report,
    Stats,
    TimelinePoint,
    TimelineRequest,
)
from loglens.parsers import SUPPORTED_TYPES
from loglens.store import RecordStore
from loglens.timeline import bucketize
from loglens.values import now_ms

logger = logging.getLogger(__name__)


class LogLens:
    """Owns one record store and routes requests to the engine components.

    Any object with the ``insert`` / ``scan`` / ``stats`` / ``get`` methods of
    RecordStore can be injected in place of the in-memory store.
    """

    def __init__(self, store=None, default_parser: ParserConfig | None = None):
        self.store = store if store is not None else RecordStore()
        self.default_parser = default_parser or ParserConfig()

    @classmethod
    def from_config(cls, config) -> "LogLens":
        return cls(
            store=RecordStore(max_records=config.get("storage.max_records")),
            default_parser=ParserConfig.from_dict(config["parser"]),
        )

    def ingest(self, raw_lines: Iterable[str], parser_config: ParserConfig | None = None) -> ImportResult:
        return ingestion.ingest(raw_lines, parser_config or self.default_parser, self.store)

    def import_file(self, filepath: str, parser_config: ParserConfig | None = None) -> ImportResult:
        return ingestion.ingest_file(filepath, parser_config, self.store)

    def run_query(self, query: Query) -> QueryResult:
        return query_engine.execute(query, self.store)

    def run_timeline(self, request: TimelineRequest) -> list[TimelinePoint]:
        return bucketize(request, self.store)

    def get_stats(self) -> Stats:
        return self.store.stats()

    def get_record(self, record_id: str) -> Record:
        return self.store.get(record_id)

    def explain(self, query: Query) -> str:
        return query_engine.explain(query)

    def build_report(self, query: Query, bucket_ms: int) -> Report:
        """Query results plus the timeline for the same filters, in one document."""
        result = self.run_query(query)
        timeline = self.run_timeline(TimelineRequest(bucket_ms=bucket_ms, filters=query.filters))
        logger.info("Built report: %d matches, %d buckets", result.total, len(timeline))
        return Report(
            generated_at=now_ms(),
            query=query,
            bucket_ms=bucket_ms,
            timeline=timeline,
            result=result,
        )

    @staticmethod
    def supported_parser_types() -> list[str]:
        return list(SUPPORTED_TYPES)
