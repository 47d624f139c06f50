"""Run report written alongside the sync log."""

import json
import os
import tempfile
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from clpsync.models import StageResult


class RunReportService:
    """Collects stage results and writes them as JSON after every change."""

    def __init__(self, report_file: str, logger, enabled: bool = True):
        self.report_file = report_file
        self.logger = logger
        self.enabled = enabled
        self.report: Dict[str, Any] = {
            "run_id": None,
            "status": "running",
            "started_at": None,
            "finished_at": None,
            "duration_seconds": None,
            "metadata": {},
            "stages": [],
            "error": None,
        }

    def start_run(self, run_id: str, metadata: Dict[str, Any]):
        self.report["run_id"] = run_id
        self.report["status"] = "running"
        self.report["started_at"] = self.now()
        self.report["metadata"] = metadata
        self.write()

    def record(self, result: StageResult, started_at: str):
        finished_at = self.now()
        self.report["stages"].append(
            {
                "name": result.name,
                "status": result.status.value,
                "fatal": result.fatal,
                "detail": result.detail,
                "started_at": started_at,
                "finished_at": finished_at,
                "duration_seconds": self._elapsed(started_at, finished_at),
            }
        )
        self.write()

    def finalize(self, status: str, error: Optional[str] = None):
        self.report["status"] = status
        self.report["finished_at"] = self.now()
        if self.report.get("started_at"):
            self.report["duration_seconds"] = self._elapsed(
                self.report["started_at"], self.report["finished_at"]
            )
        self.report["error"] = error
        self.write()

    def write(self):
        if not self.enabled:
            return

        directory = os.path.dirname(self.report_file) or "."
        try:
            os.makedirs(directory, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(prefix="clpsync-report-", suffix=".json", dir=directory)
        except OSError as exc:
            self.logger.warning("Could not write report file '%s': %s", self.report_file, exc)
            return

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as file_obj:
                json.dump(self.report, file_obj, indent=2, sort_keys=True)
                file_obj.write("\n")
            os.replace(temp_path, self.report_file)
        except OSError as exc:
            self.logger.warning("Could not write report file '%s': %s", self.report_file, exc)
            try:
                os.remove(temp_path)
            except OSError:
                pass

    @staticmethod
    def _elapsed(started_at: str, finished_at: str) -> float:
        return (datetime.fromisoformat(finished_at) - datetime.fromisoformat(started_at)).total_seconds()

    @staticmethod
    def now() -> str:
        return datetime.now(timezone.utc).isoformat()
