# src/clover/observers/jsonfile.py
from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

from ..logging.log import default_log_dir
from .events import BaseEvent


class JsonFileObserver:
    """
    Appends one JSON object per event to `<log dir>/<run_id>.jsonl`, the
    machine-readable companion of the run's text log.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    @classmethod
    def for_run(cls, run_id: str, log_dir: Optional[Path] = None) -> "JsonFileObserver":
        return cls((log_dir or default_log_dir()) / f"{run_id}.jsonl")

    def notify(self, event: BaseEvent) -> None:
        record = {"event": type(event).__name__, **event.dict()}
        with self.path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(record, sort_keys=True) + "\n")
