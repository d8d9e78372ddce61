import structlog
import logging
import sys
import time
from contextlib import contextmanager
from typing import Dict, Any, Iterator, Optional
from datetime import datetime
import os


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    service_name: str = "context-engine"
) -> None:
    """Setup structured logging configuration"""

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO)
    )

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        add_engine_context,
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer(ensure_ascii=False))
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(
        service=service_name,
        environment=os.getenv("ENVIRONMENT", "development"),
        version=os.getenv("SERVICE_VERSION", "unknown")
    )


def add_engine_context(logger: logging.Logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Copy request-scoped identifiers from contextvars onto every entry"""

    if "timestamp" not in event_dict:
        event_dict["timestamp"] = datetime.utcnow().isoformat()

    bound = structlog.contextvars.get_contextvars()
    for key in ("request_id", "session_id", "agent_id", "user_id"):
        value = bound.get(key)
        if value is not None and key not in event_dict:
            event_dict[key] = value

    return event_dict


class EngineLogger:
    """Typed log helpers for memory and context events"""

    def __init__(self, name: str):
        self.logger = structlog.get_logger(name)

    def log_memory_event(
        self,
        action: str,
        agent_id: int,
        user_id: str,
        details: Optional[Dict[str, Any]] = None,
        **kwargs
    ):
        """Log a memory lifecycle event (created, summarized, deleted)"""

        self.logger.info(
            "memory_event",
            action=action,
            agent_id=agent_id,
            user_id=user_id,
            details=details or {},
            **kwargs
        )

    def log_context_update(
        self,
        session_id: Optional[str],
        context_type: str,
        action: str,
        details: Optional[Dict[str, Any]] = None
    ):
        """Log a change to the assembled context"""

        self.logger.info(
            "context_update",
            session_id=session_id,
            context_type=context_type,
            action=action,
            details=details or {}
        )

    def log_degradation(
        self,
        operation: str,
        fallback: str,
        error: Optional[str] = None,
        **kwargs
    ):
        """Log a recovered failure and the fallback that replaced it"""

        self.logger.warning(
            "degraded_operation",
            operation=operation,
            fallback=fallback,
            error=error,
            **kwargs
        )


engine_logger = EngineLogger("context_engine")


class MetricsCollector:
    """Collect latency and counter metrics and emit them as log events"""

    def __init__(self):
        self.metrics: Dict[str, Any] = {}

    def record_latency(self, operation: str, duration_ms: float, tags: Optional[Dict[str, str]] = None):
        """Record operation latency"""

        key = f"latency.{operation}"
        if key not in self.metrics:
            self.metrics[key] = {
                "count": 0,
                "sum": 0.0,
                "min": float('inf'),
                "max": 0.0
            }

        entry = self.metrics[key]
        entry["count"] += 1
        entry["sum"] += duration_ms
        entry["min"] = min(entry["min"], duration_ms)
        entry["max"] = max(entry["max"], duration_ms)

        engine_logger.logger.debug(
            "metric",
            metric_type="latency",
            operation=operation,
            duration_ms=round(duration_ms, 3),
            tags=tags or {}
        )

    def increment_counter(self, name: str, value: int = 1, tags: Optional[Dict[str, str]] = None):
        """Increment a counter metric"""

        self.metrics[name] = self.metrics.get(name, 0) + value

        engine_logger.logger.debug(
            "metric",
            metric_type="counter",
            name=name,
            value=value,
            tags=tags or {}
        )

    @contextmanager
    def timed(self, operation: str, tags: Optional[Dict[str, str]] = None) -> Iterator[None]:
        """Record the latency of the wrapped block, even when it raises"""

        started = time.perf_counter()
        try:
            yield
        finally:
            self.record_latency(operation, (time.perf_counter() - started) * 1000, tags)

    def get_metrics_summary(self) -> Dict[str, Any]:
        """Get summary of all metrics"""

        summary = {}
        for key, value in self.metrics.items():
            if isinstance(value, dict) and "count" in value:
                summary[key] = {
                    "count": value["count"],
                    "avg": value["sum"] / value["count"] if value["count"] > 0 else 0,
                    "min": value["min"] if value["min"] != float('inf') else 0,
                    "max": value["max"]
                }
            else:
                summary[key] = value

        return summary

    def reset(self):
        self.metrics.clear()


metrics = MetricsCollector()
