"""Centralized constants and enums for kcprovider.

Timeouts, realms, regions and availability zones live here so that
configuration and handlers agree on them.
"""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path
from typing import Final

# =============================================================================
# Timeouts (seconds)
# =============================================================================

DEFAULT_CREATE_TIMEOUT: Final = 60 * 60
DEFAULT_READ_TIMEOUT: Final = 30 * 60
DEFAULT_UPDATE_TIMEOUT: Final = 30 * 60
DEFAULT_DELETE_TIMEOUT: Final = 30 * 60

HTTP_TIMEOUT: Final = 30

# Tokens closer than this to expiry are revalidated before use
TOKEN_EXPIRY_SKEW: Final = 5 * 60


class Action(StrEnum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


# =============================================================================
# Realms, regions, zones
# =============================================================================


class ServiceRealm(StrEnum):
    PUBLIC = "public"
    GOV = "gov"
    STAGE = "stage"


class Region(StrEnum):
    KR1 = "kr-central-1"
    KR2 = "kr-central-2"
    KR3 = "kr-central-3"


DEFAULT_SERVICE_REALM: Final = ServiceRealm.PUBLIC
DEFAULT_REGION: Final = Region.KR2

ZONE_MATRIX: Final[dict[ServiceRealm, dict[Region, tuple[str, ...]]]] = {
    ServiceRealm.STAGE: {
        Region.KR2: ("kr-central-2-a", "kr-central-2-b"),
    },
    ServiceRealm.PUBLIC: {
        Region.KR2: ("kr-central-2-a", "kr-central-2-b", "kr-central-2-c", "kr-central-2-d"),
    },
    ServiceRealm.GOV: {
        Region.KR1: ("kr-central-1-a", "kr-central-1-b"),
    },
}


# =============================================================================
# Services and endpoints
# =============================================================================


class Service(StrEnum):
    IAM = "iam"
    IMAGE = "image"
    KUBERNETES_ENGINE = "kubernetes_engine"


SERVICE_HOSTS: Final[dict[Service, str]] = {
    Service.IAM: "iam",
    Service.IMAGE: "image",
    Service.KUBERNETES_ENGINE: "kubernetes-engine",
}

CREDENTIAL_ID_ENV: Final = "APPLICATION_CREDENTIAL_ID"
CREDENTIAL_SECRET_ENV: Final = "APPLICATION_CREDENTIAL_SECRET"

CONFIG_DIR: Final = Path.home() / ".kcprovider"
