"""Data ingestion loaders for concrete laboratory workbooks."""

from .lab_workbook import IngestionError, IngestResult, IngestWarning
from .lab_workbook import ingest_workbook, load_lab_workbook, parse_workbook

__all__ = [
    "IngestionError",
    "IngestResult",
    "IngestWarning",
    "ingest_workbook",
    "load_lab_workbook",
    "parse_workbook",
]
