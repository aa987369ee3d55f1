# Observability Package
from observability.execution_logger import (
    ExecutionContext,
    ExecutionLogger,
    LoggerState,
    LoggerStateError,
    NullExecutionLogger,
    PersistentExecutionLogger,
)
from observability.log_processing import ExecutionLogProcessor, InProcessLogQueue, LogQueue, LogQueueMessage
from observability.scheduler import BackgroundScheduler, InlineScheduler, Scheduler
from observability.trace_aggregation import TraceAggregator

__all__ = [
    "ExecutionContext",
    "ExecutionLogger",
    "LoggerState",
    "LoggerStateError",
    "NullExecutionLogger",
    "PersistentExecutionLogger",
    "ExecutionLogProcessor",
    "InProcessLogQueue",
    "LogQueue",
    "LogQueueMessage",
    "BackgroundScheduler",
    "InlineScheduler",
    "Scheduler",
    "TraceAggregator",
]
