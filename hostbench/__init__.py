"""hostbench - run a standard set of server benchmarks and report one result."""

from .cli import main
from .models import (
    AggregateReport,
    GovernorSnapshot,
    MetricRecord,
    MetricStatus,
    RuntimeSummary,
    SystemInfo,
    TestSection,
)
from .types import TestFamily


__version__ = "2024.6.9"

__all__ = [
    "AggregateReport",
    "GovernorSnapshot",
    "MetricRecord",
    "MetricStatus",
    "RuntimeSummary",
    "SystemInfo",
    "TestFamily",
    "TestSection",
    "main",
]
