"""
Rehearsal history.
Each finished session is kept as one JSON file under the work directory.
"""
import json
import logging
import os
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Dict, List, Optional

logger = logging.getLogger("session_store")


@dataclass
class SessionRecord:
    """Summary of one rehearsal, as shown in the history list."""
    id: str
    date: str  # ISO format timestamp
    scenario_title: str
    score: Optional[float] = None  # None when analysis was unavailable
    summary: str = ""
    elapsed_seconds: int = 0
    transcript: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_session(cls, context, outcome) -> "SessionRecord":
        """Build a record from a finished SessionContext and its AnalysisOutcome."""
        result = outcome.result if outcome is not None else None
        return cls(
            id=context.session_id,
            date=datetime.now().isoformat(timespec="seconds"),
            scenario_title=context.scenario.title,
            score=result.score if result else None,
            summary=result.summary if result else "",
            elapsed_seconds=context.elapsed_seconds,
            transcript=context.to_conversation(),
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionRecord":
        return cls(
            id=data["id"],
            date=data["date"],
            scenario_title=data.get("scenario_title", ""),
            score=data.get("score"),
            summary=data.get("summary", ""),
            elapsed_seconds=int(data.get("elapsed_seconds", 0)),
            transcript=list(data.get("transcript", [])),
        )


class SessionStore:
    """Saves and lists SessionRecords as JSON files."""

    def __init__(self, sessions_dir: str):
        self.sessions_dir = sessions_dir
        os.makedirs(self.sessions_dir, exist_ok=True)

    def _get_record_path(self, record_id: str) -> str:
        return os.path.join(self.sessions_dir, f"{record_id}.json")

    def save(self, record: SessionRecord) -> str:
        path = self._get_record_path(record.id)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(asdict(record), f, indent=2, ensure_ascii=False)
        logger.info(f"Saved session {record.id} to {path}")
        return path

    def load(self, record_id: str) -> Optional[SessionRecord]:
        path = self._get_record_path(record_id)
        if not os.path.exists(path):
            return None
        with open(path, "r", encoding="utf-8") as f:
            return SessionRecord.from_dict(json.load(f))

    def list_records(self) -> List[SessionRecord]:
        """All readable records, newest first. Corrupt files are skipped with a warning."""
        records = []
        for filename in os.listdir(self.sessions_dir):
            if not filename.endswith(".json"):
                continue
            path = os.path.join(self.sessions_dir, filename)
            try:
                with open(path, "r", encoding="utf-8") as f:
                    records.append(SessionRecord.from_dict(json.load(f)))
            except (OSError, ValueError, KeyError) as e:
                logger.warning(f"Skipping unreadable session file {filename}: {e}")
        records.sort(key=lambda r: r.date, reverse=True)
        return records

    def average_score(self) -> Optional[float]:
        scores = [r.score for r in self.list_records() if r.score is not None]
        if not scores:
            return None
        return sum(scores) / len(scores)
