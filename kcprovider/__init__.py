"""kcprovider: KakaoCloud resource handlers on an async reconciliation core.

Example:
    from kcprovider import Diagnostics, KakaoCloudClient, resolve_config
    from kcprovider.resources import cluster

    async with KakaoCloudClient.from_config(resolve_config()) as kc:
        diags = Diagnostics()
        created = await cluster.create_cluster(kc, diags, {"name": "demo", ...})
        for d in diags:
            print(d.severity, d.summary, d.detail)
"""

from kcprovider.auth import TokenAuth
from kcprovider.client import KakaoCloudClient
from kcprovider.config import ProviderConfig, Timeouts, build_config, load_config, resolve_config
from kcprovider.core import (
    Absence,
    AuthenticationError,
    ConfigurationError,
    Deadline,
    DeadlineExceeded,
    Diagnostic,
    Diagnostics,
    KakaoCloudError,
    Outcome,
    RetrySettings,
    Severity,
    Target,
    execute,
    poll_until,
    poll_until_deletion,
)
from kcprovider.infra.http import HttpClient, HttpError, Response
from kcprovider.logging import LogConfig

__version__ = "0.1.0"

__all__ = [
    "Absence",
    "AuthenticationError",
    "ConfigurationError",
    "Deadline",
    "DeadlineExceeded",
    "Diagnostic",
    "Diagnostics",
    "HttpClient",
    "HttpError",
    "KakaoCloudClient",
    "KakaoCloudError",
    "LogConfig",
    "Outcome",
    "ProviderConfig",
    "Response",
    "RetrySettings",
    "Severity",
    "Target",
    "Timeouts",
    "TokenAuth",
    "build_config",
    "execute",
    "load_config",
    "poll_until",
    "poll_until_deletion",
    "resolve_config",
]
