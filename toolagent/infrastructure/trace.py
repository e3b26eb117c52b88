"""运行 trace 记录器。"""

from __future__ import annotations

import json
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


class TraceRecorder:
    """把单次运行的关键信息写入 JSON 文件，便于审计。"""

    def __init__(
        self,
        trace_dir: Union[str, Path],
        run_id: str,
        *,
        provider: str,
        model: str,
        max_iterations: int,
    ):
        traces_dir = Path(trace_dir)
        traces_dir.mkdir(parents=True, exist_ok=True)
        self.path = traces_dir / f"{run_id}.json"
        self._lock = threading.Lock()
        self.data: Dict[str, Any] = {
            "run_id": run_id,
            "provider": provider,
            "model": model,
            "max_iterations": max_iterations,
            "started_at": _utcnow(),
            "finished_at": None,
            "final_status": None,
            "final_reply_preview": None,
            "error": None,
            "steps": [],
        }
        self._flush()

    def _flush(self) -> None:
        self.path.write_text(json.dumps(self.data, ensure_ascii=False, indent=2, default=str), encoding="utf-8")

    def _append(self, entry: Dict[str, Any]) -> None:
        with self._lock:
            self.data["steps"].append(entry)
            self._flush()

    def record_llm_step(self, iteration: int, *, has_tool_calls: bool, summary: str) -> None:
        self._append(
            {
                "type": "llm",
                "iteration": iteration,
                "timestamp": _utcnow(),
                "has_tool_calls": has_tool_calls,
                "response_summary": summary,
            }
        )

    def record_tool_step(
        self,
        iteration: int,
        *,
        tool_name: str,
        args: Dict[str, Any],
        result_summary: Optional[str] = None,
        error: Optional[Dict[str, Any]] = None,
    ) -> None:
        entry: Dict[str, Any] = {
            "type": "tool",
            "iteration": iteration,
            "timestamp": _utcnow(),
            "tool_name": tool_name,
            "args": _trim_args(args),
            "result_summary": result_summary,
        }
        if error:
            entry["error"] = error
        self._append(entry)

    def finalize(self, status: str, final_reply: Optional[str], error: Optional[Dict[str, Any]] = None) -> None:
        with self._lock:
            self.data["finished_at"] = _utcnow()
            self.data["final_status"] = status
            self.data["final_reply_preview"] = (final_reply or "")[:400]
            self.data["error"] = error
            self._flush()


def _trim_args(args: Any) -> Any:
    if not isinstance(args, dict):
        return args
    trimmed: Dict[str, Any] = {}
    for key, value in args.items():
        if isinstance(value, str) and len(value) > 200:
            trimmed[key] = value[:200] + "..."
        else:
            trimmed[key] = value
    return trimmed


def summarize(text: Optional[str], limit: int = 160) -> str:
    if not text:
        return ""
    text = text.strip()
    if len(text) <= limit:
        return text
    return text[:limit] + "..."
