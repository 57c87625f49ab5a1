"""Reconciliation core: deadlines, diagnostics, execution and polling."""

from .deadline import Deadline
from .diagnostics import (
    Diagnostic,
    Diagnostics,
    Severity,
    Target,
    add_api_action_error,
    add_general_error,
    add_general_warning,
    check_resource_available_status,
)
from .exceptions import (
    AuthenticationError,
    ConfigurationError,
    DeadlineExceeded,
    KakaoCloudError,
)
from .executor import Outcome, Reauthenticator, RemoteOperation, RetrySettings, execute
from .locks import lock_for
from .wait import Absence, DeletionCheck, Fetch, StatusOf, poll_until, poll_until_deletion

__all__ = [
    "Absence",
    "AuthenticationError",
    "ConfigurationError",
    "Deadline",
    "DeadlineExceeded",
    "DeletionCheck",
    "Diagnostic",
    "Diagnostics",
    "Fetch",
    "KakaoCloudError",
    "Outcome",
    "Reauthenticator",
    "RemoteOperation",
    "RetrySettings",
    "Severity",
    "StatusOf",
    "Target",
    "add_api_action_error",
    "add_general_error",
    "add_general_warning",
    "check_resource_available_status",
    "execute",
    "lock_for",
    "poll_until",
    "poll_until_deletion",
]
