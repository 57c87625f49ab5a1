"""TOML-based provider configuration.

Loads ~/.kcprovider/defaults.toml (global) and kcprovider.toml (project),
merges them, fills credentials from the environment and validates the
result into a ProviderConfig.
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TypeAlias, TypeVar

from kcprovider.constants import (
    CONFIG_DIR,
    CREDENTIAL_ID_ENV,
    CREDENTIAL_SECRET_ENV,
    DEFAULT_CREATE_TIMEOUT,
    DEFAULT_DELETE_TIMEOUT,
    DEFAULT_READ_TIMEOUT,
    DEFAULT_REGION,
    DEFAULT_SERVICE_REALM,
    DEFAULT_UPDATE_TIMEOUT,
    SERVICE_HOSTS,
    ZONE_MATRIX,
    Action,
    Region,
    Service,
    ServiceRealm,
)
from kcprovider.core.exceptions import ConfigurationError
from kcprovider.core.executor import RetrySettings

RawConfig: TypeAlias = dict[str, Any]

GLOBAL_CONFIG_PATH = CONFIG_DIR / "defaults.toml"
PROJECT_CONFIG_NAME = "kcprovider.toml"

_REALM_DOMAINS: dict[ServiceRealm, str] = {
    ServiceRealm.PUBLIC: "kakaocloud.com",
    ServiceRealm.GOV: "kakaocloud-gov.com",
    ServiceRealm.STAGE: "kakaocloud-stage.com",
}


@dataclass(frozen=True, slots=True)
class Timeouts:
    """Per-action operation timeouts in seconds."""

    create: float = DEFAULT_CREATE_TIMEOUT
    read: float = DEFAULT_READ_TIMEOUT
    update: float = DEFAULT_UPDATE_TIMEOUT
    delete: float = DEFAULT_DELETE_TIMEOUT

    def for_action(self, action: Action | str) -> float:
        return getattr(self, Action(action).value)


@dataclass(frozen=True, slots=True)
class ProviderConfig:
    application_credential_id: str
    application_credential_secret: str = field(repr=False)
    service_realm: ServiceRealm = DEFAULT_SERVICE_REALM
    region: Region = DEFAULT_REGION
    endpoint_overrides: dict[str, str] = field(default_factory=dict)
    availability_zones: tuple[str, ...] = ()
    timeouts: Timeouts = field(default_factory=Timeouts)
    retry: RetrySettings = field(default_factory=RetrySettings)

    def endpoint(self, service: Service | str) -> str:
        service = Service(service)
        if override := self.endpoint_overrides.get(service.value):
            return override.rstrip("/")
        domain = _REALM_DOMAINS[self.service_realm]
        host = SERVICE_HOSTS[service]
        if service is Service.IAM:
            return f"https://{host}.{domain}"
        return f"https://{host}.{self.region.value}.{domain}"


def _deep_merge(base: RawConfig, override: RawConfig) -> RawConfig:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_toml(path: Path) -> RawConfig:
    if not path.is_file():
        return {}
    with path.open("rb") as f:
        return tomllib.load(f)


def load_config(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> RawConfig:
    global_cfg = _read_toml(global_path or GLOBAL_CONFIG_PATH)
    project_path = (project_dir or Path.cwd()) / PROJECT_CONFIG_NAME
    project_cfg = _read_toml(project_path)

    merged = _deep_merge(global_cfg, project_cfg)
    merged.setdefault("endpoint_overrides", {})
    merged.setdefault("timeouts", {})
    merged.setdefault("retry", {})
    return merged


E = TypeVar("E", ServiceRealm, Region)
C = TypeVar("C")


def _enum(cls: type[E], name: str, value: Any) -> E:
    try:
        return cls(value)
    except ValueError:
        valid = ", ".join(m.value for m in cls)
        raise ConfigurationError(f"Invalid {name} '{value}'. Valid: {valid}") from None


def _build_section(cls: type[C], name: str, raw: RawConfig) -> C:
    try:
        return cls(**raw)
    except TypeError as e:
        raise ConfigurationError(f"Invalid [{name}] section: {e}") from e


def build_config(raw: RawConfig, *, env: dict[str, str] | None = None) -> ProviderConfig:
    """Validate a merged raw config, filling credentials from `env`."""
    env = os.environ if env is None else env  # type: ignore[assignment]
    raw = dict(raw)

    credential_id = raw.pop("application_credential_id", None) or env.get(CREDENTIAL_ID_ENV, "")
    credential_secret = (
        raw.pop("application_credential_secret", None) or env.get(CREDENTIAL_SECRET_ENV, "")
    )
    if not credential_id:
        raise ConfigurationError("application_credential_id is required")
    if not credential_secret:
        raise ConfigurationError("application_credential_secret is required")

    realm = _enum(ServiceRealm, "service_realm", raw.pop("service_realm", None) or DEFAULT_SERVICE_REALM)
    region = _enum(Region, "region", raw.pop("region", None) or DEFAULT_REGION)

    zones = ZONE_MATRIX.get(realm, {}).get(region)
    if zones is None:
        raise ConfigurationError(
            f"unsupported combination: service_realm={realm.value}, region={region.value}"
        )

    overrides = dict(raw.pop("endpoint_overrides", None) or {})
    unknown = set(overrides) - {s.value for s in Service}
    if unknown:
        raise ConfigurationError(f"Unknown endpoint override(s): {', '.join(sorted(unknown))}")

    timeouts = _build_section(Timeouts, "timeouts", raw.pop("timeouts", None) or {})
    retry = _build_section(RetrySettings, "retry", raw.pop("retry", None) or {})

    if raw:
        raise ConfigurationError(f"Unknown configuration key(s): {', '.join(sorted(raw))}")

    return ProviderConfig(
        application_credential_id=credential_id,
        application_credential_secret=credential_secret,
        service_realm=realm,
        region=region,
        endpoint_overrides=overrides,
        availability_zones=zones,
        timeouts=timeouts,
        retry=retry,
    )


def resolve_config(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
    env: dict[str, str] | None = None,
) -> ProviderConfig:
    raw = load_config(project_dir=project_dir, global_path=global_path)
    return build_config(raw, env=env)
