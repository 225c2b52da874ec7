"""
autofill_core - fill web forms from a retrieval-augmented document store.

Drives a live browser page through Playwright, collects its form fields,
asks an OpenAI file_search model for values and writes them back.
"""

__version__ = "0.3.0"

from .availability import AvailabilityMonitor, probe_availability
from .config import Config, Credentials
from .events import StatusEvent, StatusReporter
from .exceptions import (
    AutofillError,
    ConfigurationError,
    RetrievalError,
    RetryExhaustedError,
)
from .field_safety import Sensitivity, classify, classify_descriptor, classify_element
from .fingerprint import fingerprint
from .models import ApplyResult, FieldDescriptor, RunSummary
from .orchestrator import AutofillEngine, RunState
from .page import PageSession, PlaywrightDriver
from .pool import BoundedPool, run_bounded
from .retrieval import RetrievalClient
from .retry import retry_async
from .single_field import HoverTrigger, SingleFieldFlow, SingleFieldResult

__all__ = [
    "ApplyResult",
    "AutofillEngine",
    "AutofillError",
    "AvailabilityMonitor",
    "BoundedPool",
    "Config",
    "ConfigurationError",
    "Credentials",
    "FieldDescriptor",
    "HoverTrigger",
    "PageSession",
    "PlaywrightDriver",
    "RetrievalClient",
    "RetrievalError",
    "RetryExhaustedError",
    "RunState",
    "RunSummary",
    "Sensitivity",
    "SingleFieldFlow",
    "SingleFieldResult",
    "StatusEvent",
    "StatusReporter",
    "classify",
    "classify_descriptor",
    "classify_element",
    "fingerprint",
    "probe_availability",
    "retry_async",
    "run_bounded",
]
