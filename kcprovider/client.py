"""Shared, authenticated client handed to every resource handler."""

from __future__ import annotations

from typing import Any

from loguru import logger

from kcprovider.auth import TokenAuth
from kcprovider.config import ProviderConfig, Timeouts
from kcprovider.constants import HTTP_TIMEOUT, Service
from kcprovider.core.executor import RetrySettings
from kcprovider.infra.http import Auth, HttpClient


class KakaoCloudClient:
    """Per-service HTTP clients sharing one credential.

    `refresh()` is the reauthentication capability the executor calls when
    a request is rejected for an expired token.
    """

    def __init__(
        self,
        auth: Auth,
        *,
        image: HttpClient,
        kubernetes_engine: HttpClient,
        timeouts: Timeouts | None = None,
        retry: RetrySettings | None = None,
    ) -> None:
        self.auth = auth
        self.image = image
        self.kubernetes_engine = kubernetes_engine
        self.timeouts = timeouts or Timeouts()
        self.retry = retry or RetrySettings()

    @classmethod
    def from_config(cls, config: ProviderConfig, *, timeout: float = HTTP_TIMEOUT) -> KakaoCloudClient:
        auth = TokenAuth(
            config.endpoint(Service.IAM),
            config.application_credential_id,
            config.application_credential_secret,
            timeout=timeout,
        )
        endpoints = {s: config.endpoint(s) for s in (Service.IMAGE, Service.KUBERNETES_ENGINE)}
        logger.bind(component="client").debug("Endpoints: {endpoints}", endpoints=endpoints)
        return cls(
            auth,
            image=HttpClient(endpoints[Service.IMAGE], auth, timeout=timeout),
            kubernetes_engine=HttpClient(endpoints[Service.KUBERNETES_ENGINE], auth, timeout=timeout),
            timeouts=config.timeouts,
            retry=config.retry,
        )

    async def refresh(self) -> None:
        await self.auth.refresh()

    async def close(self) -> None:
        await self.image.close()
        await self.kubernetes_engine.close()

    async def __aenter__(self) -> KakaoCloudClient:
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.close()
