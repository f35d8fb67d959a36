"""Observability utilities: structured job logging and stage timings."""

import logging
import time
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional

from .logging_config import get_logger


@dataclass
class LogContext:
    """Context information attached to every log line of a job."""

    correlation_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    operation: str = ""
    component: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    def with_operation(self, operation: str) -> "LogContext":
        """Create new context with operation set."""
        return LogContext(
            correlation_id=self.correlation_id,
            operation=operation,
            component=self.component,
            metadata=self.metadata.copy(),
        )

    def with_metadata(self, **kwargs: Any) -> "LogContext":
        """Create new context with additional metadata."""
        new_metadata = self.metadata.copy()
        new_metadata.update(kwargs)
        return LogContext(
            correlation_id=self.correlation_id,
            operation=self.operation,
            component=self.component,
            metadata=new_metadata,
        )


class StructuredLogger:
    """Logger that renders a LogContext into each message."""

    def __init__(self, name: str = "cropslice", logger: Optional[logging.Logger] = None):
        self._logger = logger or get_logger(name)

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def _format(
        self, message: str, context: Optional[LogContext], extra: Dict[str, Any]
    ) -> str:
        if context is None:
            fields = extra
            prefix = ""
        else:
            fields = {**context.metadata, **extra}
            prefix = f"[{context.correlation_id}] "
            if context.operation:
                prefix = f"[{context.operation}] {prefix}"
        if fields:
            rendered = ", ".join(f"{k}={v}" for k, v in fields.items())
            return f"{prefix}{message} ({rendered})"
        return f"{prefix}{message}"

    def debug(self, message: str, context: Optional[LogContext] = None, **kwargs: Any) -> None:
        if self._logger.isEnabledFor(logging.DEBUG):
            self._logger.debug(self._format(message, context, kwargs))

    def info(self, message: str, context: Optional[LogContext] = None, **kwargs: Any) -> None:
        self._logger.info(self._format(message, context, kwargs))

    def warning(self, message: str, context: Optional[LogContext] = None, **kwargs: Any) -> None:
        self._logger.warning(self._format(message, context, kwargs))

    def error(self, message: str, context: Optional[LogContext] = None, **kwargs: Any) -> None:
        self._logger.error(self._format(message, context, kwargs))


@dataclass
class StageMetrics:
    """Timing of one pipeline stage."""

    stage: str
    start_time: float
    end_time: float
    success: bool
    error_message: Optional[str] = None

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    @property
    def duration_ms(self) -> float:
        return self.duration * 1000


class MetricsCollector:
    """Collector for stage timings."""

    def __init__(self) -> None:
        self._metrics: List[StageMetrics] = []

    def record(self, metric: StageMetrics) -> None:
        self._metrics.append(metric)

    def get_metrics(self, stage: Optional[str] = None) -> List[StageMetrics]:
        if stage:
            return [m for m in self._metrics if m.stage == stage]
        return self._metrics.copy()

    def get_summary(self, stage: Optional[str] = None) -> Dict[str, Any]:
        """Summary statistics, optionally for a single stage."""
        metrics = self.get_metrics(stage)
        if not metrics:
            return {}

        durations = [m.duration for m in metrics]
        successful = [m for m in metrics if m.success]
        return {
            "total_operations": len(metrics),
            "successful_operations": len(successful),
            "failed_operations": len(metrics) - len(successful),
            "avg_duration": sum(durations) / len(durations),
            "max_duration": max(durations),
            "total_duration": sum(durations),
        }

    def clear(self) -> None:
        self._metrics.clear()


@asynccontextmanager
async def timed_stage(
    stage: str,
    metrics: Optional[MetricsCollector] = None,
    logger: Optional[Any] = None,
    context: Optional[LogContext] = None,
) -> AsyncIterator[None]:
    """Time the enclosed block and record it as a StageMetrics entry."""
    start_time = time.perf_counter()
    stage_context = (context or LogContext()).with_operation(stage)
    error_message: Optional[str] = None
    try:
        yield
    except BaseException as exc:
        error_message = str(exc) or type(exc).__name__
        raise
    finally:
        end_time = time.perf_counter()
        if metrics is not None:
            metrics.record(
                StageMetrics(
                    stage=stage,
                    start_time=start_time,
                    end_time=end_time,
                    success=error_message is None,
                    error_message=error_message,
                )
            )
        if logger is not None:
            duration_ms = round((end_time - start_time) * 1000, 1)
            if error_message is None:
                logger.debug(f"Completed {stage}", stage_context, duration_ms=duration_ms)
            else:
                logger.warning(
                    f"Failed {stage}: {error_message}",
                    stage_context,
                    duration_ms=duration_ms,
                )
