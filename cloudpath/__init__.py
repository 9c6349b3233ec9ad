"""cloudpath - Reach Google Cloud APIs over direct, PSC or mTLS paths.

Example:

    from cloudpath import Authorization, BearerCredential, TransportFactory, resolve
    from cloudpath.gcp import LOGGING_ENDPOINT, AuditLogAdapter

    authorization = Authorization("me@example.com", BearerCredential(token))
    directions = resolve(LOGGING_ENDPOINT, authorization.enrollment)
    client = TransportFactory().build(directions, authorization)

    async with AuditLogAdapter(client) as audit_log:
        outcome = await audit_log.list_instance_events(
            ["my-project"], ["us-central1-a"], [], since, processor,
        )
"""

# Disables loguru output for the package until setup_logging is called
from cloudpath.logging import LogConfig, setup_logging, teardown_logging

# Authorization
from cloudpath.auth import (
    NOT_ENROLLED,
    Authorization,
    BearerCredential,
    ClientCertificate,
    Credential,
    DeviceEnrollment,
    Enrolled,
    NotEnrolled,
)

# Batch
from cloudpath.batch import gather_best_effort

# Cancellation
from cloudpath.cancellation import Cancellation

# Configuration
from cloudpath.config import (
    ClientSettings,
    load_config,
    resolve_backoff,
    resolve_client_settings,
    resolve_endpoint,
    resolve_log_config,
)
from cloudpath.constants import VERSION

# Endpoints
from cloudpath.endpoints import (
    EndpointDirections,
    PrivateServiceConnect,
    ServiceEndpoint,
    TransportType,
    resolve,
)

# Errors (ADT)
from cloudpath.errors import (
    AccessDeniedError,
    ApiError,
    BatchError,
    ConfigurationError,
    ErrorKind,
    OperationCancelledError,
    ReauthenticationRequiredError,
    TransientError,
)

# Transport, retry and paging
from cloudpath.infra import (
    ApiClient,
    BackoffPolicy,
    Cancelled,
    Completed,
    Failed,
    HttpError,
    PageRequest,
    StreamCancelled,
    StreamCompleted,
    StreamFailed,
    classify,
    execute_with_retry,
    stream_pages,
)
from cloudpath.transport import TransportFactory

__version__ = VERSION

__all__ = [
    # Logging
    "LogConfig",
    "setup_logging",
    "teardown_logging",
    # Authorization
    "NOT_ENROLLED",
    "Authorization",
    "BearerCredential",
    "ClientCertificate",
    "Credential",
    "DeviceEnrollment",
    "Enrolled",
    "NotEnrolled",
    # Batch
    "gather_best_effort",
    # Cancellation
    "Cancellation",
    # Configuration
    "ClientSettings",
    "load_config",
    "resolve_backoff",
    "resolve_client_settings",
    "resolve_endpoint",
    "resolve_log_config",
    # Endpoints
    "EndpointDirections",
    "PrivateServiceConnect",
    "ServiceEndpoint",
    "TransportType",
    "resolve",
    # Errors
    "AccessDeniedError",
    "ApiError",
    "BatchError",
    "ConfigurationError",
    "ErrorKind",
    "OperationCancelledError",
    "ReauthenticationRequiredError",
    "TransientError",
    # Transport
    "ApiClient",
    "BackoffPolicy",
    "Cancelled",
    "Completed",
    "Failed",
    "HttpError",
    "PageRequest",
    "StreamCancelled",
    "StreamCompleted",
    "StreamFailed",
    "TransportFactory",
    "classify",
    "execute_with_retry",
    "stream_pages",
    # Version
    "__version__",
]
