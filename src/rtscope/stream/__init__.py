"""
Stream-side components for rtscope: line parsing, the ingestion thread and
the session that ties ingestion to per-frame rendering.
"""

from rtscope.stream.ingest import IngestionWorker
from rtscope.stream.io import parse_line, read_sample
from rtscope.stream.session import Frame, ScopeSession, configure_logging

__all__ = [
    "parse_line",
    "read_sample",
    "IngestionWorker",
    "Frame",
    "ScopeSession",
    "configure_logging",
]
