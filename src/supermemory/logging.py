"""JSONL logging for observability."""

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


@dataclass
class LogEntry:
    """A single log entry."""

    timestamp: str
    event: str
    session_key: str | None = None
    memory_id: str | None = None
    category: str | None = None
    query: str | None = None
    count: int | None = None
    duration_ms: float | None = None
    error: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict, excluding None values."""
        data = asdict(self)
        return {k: v for k, v in data.items() if v is not None and v != {} and v != []}


class JSONLLogger:
    """Logger that writes structured memory events in JSONL format."""

    def __init__(
        self,
        log_dir: str | Path | None = None,
        filename: str = "logs.jsonl",
        max_size_mb: float = 10.0,
        debug: bool = False,
    ) -> None:
        if log_dir is None:
            log_dir = Path.home() / ".supermemory" / "logs"
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.filename = filename
        self.max_size_bytes = int(max_size_mb * 1024 * 1024)
        self.debug_enabled = debug

    @property
    def log_path(self) -> Path:
        """Current log file path."""
        return self.log_dir / self.filename

    def _rotate_if_needed(self) -> None:
        """Rotate log file if it exceeds max size."""
        if not self.log_path.exists():
            return

        if self.log_path.stat().st_size >= self.max_size_bytes:
            timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
            rotated_name = f"{self.log_path.stem}_{timestamp}.jsonl"
            self.log_path.rename(self.log_dir / rotated_name)

    def _write(self, entry: LogEntry) -> None:
        """Write a log entry to the file."""
        self._rotate_if_needed()

        with open(self.log_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry.to_dict(), ensure_ascii=False) + "\n")

    def log(
        self,
        event: str,
        *,
        session_key: str | None = None,
        memory_id: str | None = None,
        category: str | None = None,
        query: str | None = None,
        count: int | None = None,
        duration_ms: float | None = None,
        error: str | None = None,
        **extra: Any,
    ) -> None:
        """Log an event."""
        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            event=event,
            session_key=session_key or None,
            memory_id=memory_id,
            category=category,
            query=query,
            count=count,
            duration_ms=duration_ms,
            error=error,
            extra=extra if extra else {},
        )
        self._write(entry)

    def debug(self, message: str, **extra: Any) -> None:
        """Log a debug event, only written when debug is enabled."""
        if self.debug_enabled:
            self.log("debug", message=message, **extra)

    def log_recall(
        self,
        query: str,
        count: int,
        *,
        session_key: str | None = None,
        duration_ms: float | None = None,
    ) -> None:
        """Log a recall pass over the memory store."""
        self.log(
            "recall",
            session_key=session_key,
            query=query,
            count=count,
            duration_ms=duration_ms,
        )

    def log_capture(
        self,
        extracted: int,
        stored: int,
        *,
        session_key: str | None = None,
        duration_ms: float | None = None,
    ) -> None:
        """Log a capture pass at the end of a turn."""
        self.log(
            "capture",
            session_key=session_key,
            count=stored,
            duration_ms=duration_ms,
            extracted=extracted,
            skipped=extracted - stored,
        )

    def log_store(
        self,
        memory_id: str,
        category: str,
        *,
        session_key: str | None = None,
        source: str = "auto",
    ) -> None:
        """Log a newly stored memory."""
        self.log(
            "store",
            session_key=session_key,
            memory_id=memory_id,
            category=category,
            source=source,
        )

    def log_forget(self, target: str, count: int) -> None:
        """Log a forget request and how many memories it removed."""
        self.log("forget", query=target, count=count)

    def log_tool_call(
        self,
        tool_name: str,
        args: dict[str, Any],
        *,
        session_key: str | None = None,
    ) -> None:
        """Log a memory tool call from the agent."""
        self.log(
            "tool_call",
            session_key=session_key,
            tool_name=tool_name,
            tool_args=args,
        )

    def log_tool_result(
        self,
        tool_name: str,
        success: bool,
        *,
        session_key: str | None = None,
        duration_ms: float | None = None,
        error: str | None = None,
    ) -> None:
        """Log the outcome of a memory tool call."""
        self.log(
            "tool_result",
            session_key=session_key,
            duration_ms=duration_ms,
            error=error if not success else None,
            success=success,
            tool_name=tool_name,
        )

    def log_error(
        self,
        stage: str,
        error: BaseException | str,
        *,
        session_key: str | None = None,
    ) -> None:
        """Log a failure at an orchestration boundary."""
        self.log(
            "error",
            session_key=session_key,
            error=str(error),
            stage=stage,
        )


# Global logger instance
_logger: JSONLLogger | None = None


def get_logger() -> JSONLLogger:
    """Get the global logger instance."""
    global _logger
    if _logger is None:
        _logger = JSONLLogger()
    return _logger


def configure_logger(
    log_dir: str | Path | None = None,
    max_size_mb: float = 10.0,
    debug: bool = False,
) -> JSONLLogger:
    """Configure and return the global logger."""
    global _logger
    _logger = JSONLLogger(log_dir=log_dir, max_size_mb=max_size_mb, debug=debug)
    return _logger
