"""Database models."""

# Import all models here so metadata.create_all can see them
from proctor.models.assessment import TestAttempt, TestQuestion, TestVersion
from proctor.models.telemetry import TelemetryEvent, TelemetrySession

__all__ = [
    "TestVersion",
    "TestQuestion",
    "TestAttempt",
    "TelemetrySession",
    "TelemetryEvent",
]
