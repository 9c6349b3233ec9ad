"""Internal machinery: HTTP pipeline, certificates, retry, paging."""

from .certificates import CertificateStore, SystemCertificateStore
from .http import ApiClient, HttpError, OutgoingRequest, Stage
from .paging import (
    PageRequest,
    StreamCancelled,
    StreamCompleted,
    StreamFailed,
    StreamOutcome,
    read_page,
    stream_pages,
)
from .retry import (
    BackoffPolicy,
    Cancelled,
    Completed,
    Failed,
    Outcome,
    classify,
    execute_with_retry,
)
from .stages import (
    ClientCertificateStage,
    CredentialStage,
    HostRewriteStage,
    UserAgentStage,
)

__all__ = [
    "CertificateStore",
    "SystemCertificateStore",
    "ApiClient",
    "HttpError",
    "OutgoingRequest",
    "Stage",
    "PageRequest",
    "StreamCancelled",
    "StreamCompleted",
    "StreamFailed",
    "StreamOutcome",
    "read_page",
    "stream_pages",
    "BackoffPolicy",
    "Cancelled",
    "Completed",
    "Failed",
    "Outcome",
    "classify",
    "execute_with_retry",
    "ClientCertificateStage",
    "CredentialStage",
    "HostRewriteStage",
    "UserAgentStage",
]
