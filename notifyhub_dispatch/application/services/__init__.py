from .dispatch_engine import (
    CHANNEL_UNAVAILABLE,
    NO_RECIPIENTS,
    DispatchEngine,
    MessageOutcome,
    PassSummary,
)
from .message_submission_service import MessageSubmissionService, SubmissionResult
from .recipient_resolver import RecipientResolver

__all__ = [
    "CHANNEL_UNAVAILABLE",
    "NO_RECIPIENTS",
    "DispatchEngine",
    "MessageOutcome",
    "MessageSubmissionService",
    "PassSummary",
    "RecipientResolver",
    "SubmissionResult",
]
