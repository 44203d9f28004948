"""Release publication: version resolution, sync, PR lifecycle, tags, releases."""

from pubflow.publish.development import DevelopOutcome, start_development
from pubflow.publish.errors import PublishError, PublishErrorKind
from pubflow.publish.model import PublishOutcome
from pubflow.publish.orchestrator import PublishOptions, PublishOrchestrator

__all__ = [
    "DevelopOutcome",
    "PublishError",
    "PublishErrorKind",
    "PublishOptions",
    "PublishOrchestrator",
    "PublishOutcome",
    "start_development",
]
