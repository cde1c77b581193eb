"""Request execution layer with retry policy and observer notifications."""

from .engine import RequestEngine
from .events import (
	EngineEventHub,
	LogSubscriber,
	LogVerboseEvent,
	RetryRequestEvent,
	RetrySubscriber,
)

__all__ = [
	"EngineEventHub",
	"LogSubscriber",
	"LogVerboseEvent",
	"RequestEngine",
	"RetryRequestEvent",
	"RetrySubscriber",
]
