import json
import os
import yaml
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from pathlib import Path

# Progress event schema constants for lightweight validation/testing
PROGRESS_EVENT_SCHEMA: Dict[str, Tuple[type, ...]] = {
    "timestamp": (str,),
    "run_id": (str, type(None)),
    "subject": (str, type(None)),
    "stage": (str,),
    "status": (str,),
    "current": (int, type(None)),
    "total": (int, type(None)),
    "percent": (float, int, type(None)),
    "message": (str, type(None)),
    "artifacts": (list,),
    "command": (str, type(None)),
    "extra": (dict,),
}
# Note: `warning` is an event-level status for non-fatal issues while a stage is still running.
# Pipeline state keeps the stage lifecycle (running/done/failed/skipped/queued).
PROGRESS_STATUS_VALUES = {"running", "done", "failed", "skipped", "queued", "warning"}


def load_settings(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return data or {}


def ensure_dir(path: str):
    os.makedirs(path, exist_ok=True)


def save_json(path: str, data: Any):
    """Save JSON file, ensuring parent directory exists."""
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)


def read_json(path: str) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def append_jsonl(path: str, row):
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a", encoding="utf-8") as f:
        f.write(json.dumps(row, ensure_ascii=False) + "\n")


def _utc() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _type_ok(val: Any, allowed: Tuple[type, ...]) -> bool:
    if val is None:
        return type(None) in allowed
    for typ in allowed:
        if typ is float and isinstance(val, (int, float)) and not isinstance(val, bool):
            return True
        if typ is int and isinstance(val, int) and not isinstance(val, bool):
            return True
        if isinstance(val, typ):
            return True
    return False


def validate_progress_event(event: Dict[str, Any]):
    """Lightweight runtime guard to keep progress events well-shaped."""
    missing = [k for k in PROGRESS_EVENT_SCHEMA if k not in event]
    if missing:
        raise ValueError(f"Missing progress event fields: {missing}")
    if event.get("status") not in PROGRESS_STATUS_VALUES:
        raise ValueError(f"Invalid progress status: {event.get('status')}")
    for key, allowed in PROGRESS_EVENT_SCHEMA.items():
        if not _type_ok(event.get(key), allowed):
            expected = ", ".join([t.__name__ if t is not type(None) else "None" for t in allowed])
            raise ValueError(f"Field '{key}' expected types [{expected}], got {type(event.get(key)).__name__}")


def default_run_id(base: str = "run") -> str:
    """
    Timestamped id tagging every event emitted by one invocation.
    Format: <base>-YYYYMMDD-HHMMSS-<6hex>
    """
    import uuid
    ts = datetime.now().strftime("%Y%m%d-%H%M%S")
    return f"{base}-{ts}-{uuid.uuid4().hex[:6]}"


class ProgressLogger:
    """
    Progress/state emitter for one subject directory.
    - Appends JSONL events to progress_path (append-only).
    - Updates pipeline_state.json with per-stage lifecycle status.
    Either path may be None, in which case that sink is skipped.
    """

    def __init__(self, state_path: Optional[str] = None, progress_path: Optional[str] = None,
                 run_id: Optional[str] = None, subject: Optional[str] = None):
        self.state_path = state_path
        self.progress_path = progress_path
        self.run_id = run_id
        self.subject = subject
        if progress_path:
            Path(progress_path).parent.mkdir(parents=True, exist_ok=True)
        if state_path:
            Path(state_path).parent.mkdir(parents=True, exist_ok=True)

    @classmethod
    def for_subject(cls, subject_dir: str, subject: Optional[str] = None, run_id: Optional[str] = None):
        return cls(state_path=os.path.join(subject_dir, "pipeline_state.json"),
                   progress_path=os.path.join(subject_dir, "pipeline_events.jsonl"),
                   run_id=run_id, subject=subject)

    def log(self, stage: str, status: str, current: Optional[int] = None, total: Optional[int] = None,
            message: Optional[str] = None, artifacts: Optional[List[str]] = None,
            command: Optional[str] = None, extra: Optional[Dict[str, Any]] = None):
        now = _utc()
        percent = None
        if current is not None and total:
            percent = round((current / total) * 100, 1)

        event = {
            "timestamp": now,
            "run_id": self.run_id,
            "subject": self.subject,
            "stage": stage,
            "status": status,
            "current": current,
            "total": total,
            "percent": percent,
            "message": message,
            "artifacts": list(artifacts or []),
            "command": command,
            "extra": extra or {},
        }

        validate_progress_event(event)

        if self.progress_path:
            append_jsonl(self.progress_path, event)

        if self.state_path:
            self._update_state(stage, status, event)

        return event

    def _update_state(self, stage: str, status: str, event: Dict[str, Any]):
        state = {}
        if os.path.exists(self.state_path):
            try:
                state = read_json(self.state_path)
            except (OSError, ValueError):
                print(f"[warn] unreadable {self.state_path}; starting a fresh state file")
                state = {}
        stages = state.get("stages", {})
        if self.run_id:
            state["run_id"] = self.run_id
        if self.subject:
            state["subject"] = self.subject
        stage_state = stages.get(stage, {})
        # Warnings are recorded via events only; they never overwrite a finished lifecycle status.
        state_status = status
        if status == "warning":
            prev = stage_state.get("status")
            state_status = prev if prev in {"done", "failed", "skipped"} else "running"
        stage_state.update({
            "status": state_status,
            "artifacts": event["artifacts"] or stage_state.get("artifacts", []),
            "command": event["command"] or stage_state.get("command"),
            "updated_at": event["timestamp"],
            "progress": {
                "current": event["current"],
                "total": event["total"],
                "percent": event["percent"],
                "message": event["message"],
            },
        })
        stages[stage] = stage_state
        state["stages"] = stages
        with open(self.state_path, "w", encoding="utf-8") as f:
            json.dump(state, f, indent=2)
