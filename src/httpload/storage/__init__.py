from __future__ import annotations

from httpload.storage.duckdb_store import Storage
from httpload.storage.report import build_report, write_report

__all__ = ["Storage", "build_report", "write_report"]
