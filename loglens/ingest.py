"""Ingestion: parse raw lines and append them to a store, best effort per line."""

import logging
import time
from typing import Iterable, Iterator

from loglens.errors import ParseError, StoreError
from loglens.models import ImportResult, ParserConfig
from loglens.parsers import create_parser, detect_parser_type

logger = logging.getLogger(__name__)

SAMPLE_LINES = 20


def ingest(lines: Iterable[str], config: ParserConfig, store) -> ImportResult:
    """Parse every line and insert the successes.

    A bad line is recorded in ``errors`` and does not stop the batch. An
    invalid parser config raises InvalidArgument before any line is read.
    """
    started = time.perf_counter()
    parser = create_parser(config)
    result = ImportResult()

    for line_no, line in enumerate(lines, 1):
        result.total_records += 1
        try:
            record = parser.parse(line)
            store.insert(record)
        except (ParseError, StoreError) as e:
            logger.debug("Line %d rejected: %s", line_no, e)
            result.errors.append(f"line {line_no}: {e}")
            continue
        result.processed += 1

    result.duration = round((time.perf_counter() - started) * 1000, 3)
    logger.info(
        "Ingested %d/%d lines with %s parser (%d errors) in %.1f ms",
        result.processed, result.total_records, config.type, len(result.errors), result.duration,
    )
    return result


def read_lines(filepath: str) -> Iterator[str]:
    """Yield non-blank lines of a UTF-8 file without their line endings."""
    with open(filepath, "r", encoding="utf-8") as f:
        for line in f:
            line = line.rstrip("\r\n")
            if not line.strip():
                continue
            yield line


def detect_config(filepath: str) -> ParserConfig:
    """Build a ParserConfig by sampling the start of a file."""
    sample = []
    for line in read_lines(filepath):
        sample.append(line)
        if len(sample) >= SAMPLE_LINES:
            break
    parser_type = detect_parser_type("\n".join(sample))
    logger.info("Detected %s format for %s", parser_type, filepath)
    return ParserConfig(type=parser_type)


def ingest_file(filepath: str, config: ParserConfig | None, store) -> ImportResult:
    """Import a log file; with no config the parser type is auto-detected."""
    if config is None:
        config = detect_config(filepath)
    logger.info("Importing %s", filepath)
    return ingest(read_lines(filepath), config, store)
