"""
API Key Admission Gate

Request-boundary check that runs before any router:

1. Health path (and docs paths outside production) pass through untouched.
2. Requests without the API key header are rejected with 401.
3. The key is checked against stored keys; on a match, usage is recorded.
4. Otherwise the key is compared to the legacy static key, if configured.
   Legacy key use is not metered.
5. Anything else is rejected with 401.

Store failures and timeouts reject the request with the same response as an
invalid key (fail-closed) and are logged for operators.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from fastapi import Request, Response
from fastapi.responses import PlainTextResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from keygate.config import Settings, get_settings
from keygate.core.database import get_session_factory
from keygate.core.exceptions import StoreUnavailableError
from keygate.core.security import matches_static_key
from keygate.services.api_key_service import ApiKeyService

logger = logging.getLogger(__name__)

MISSING_KEY_MESSAGE = "API Key is required"
INVALID_KEY_MESSAGE = "Invalid API Key"


@dataclass(frozen=True)
class GateConfig:
    """Gate configuration snapshot, built once per request."""

    header_name: str = "X-API-Key"
    legacy_api_key: str | None = None
    health_path: str = "/health"
    docs_paths: tuple[str, ...] = ()
    docs_bypass_enabled: bool = False
    store_timeout: float = 5.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "GateConfig":
        return cls(
            header_name=settings.api_key_header,
            legacy_api_key=settings.legacy_api_key or None,
            health_path=settings.health_path,
            docs_paths=tuple(settings.docs_paths_list),
            docs_bypass_enabled=not settings.is_production,
            store_timeout=settings.store_timeout_seconds,
        )


class Admission(str, Enum):
    """Outcome of the gate check for one request."""

    BYPASS = "bypass"
    ACCEPTED = "accepted"
    ACCEPTED_LEGACY = "accepted_legacy"
    MISSING_KEY = "missing_key"
    INVALID_KEY = "invalid_key"
    STORE_UNAVAILABLE = "store_unavailable"

    @property
    def allowed(self) -> bool:
        return self in (Admission.BYPASS, Admission.ACCEPTED, Admission.ACCEPTED_LEGACY)


def path_has_prefix(path: str, prefix: str) -> bool:
    """
    Segment-aware prefix match.

    "/health" matches "/health" and "/health/db", but not "/healthz".
    """
    prefix = prefix.rstrip("/")
    if not prefix:
        return True
    if not path.lower().startswith(prefix.lower()):
        return False
    return len(path) == len(prefix) or path[len(prefix)] == "/"


class AdmissionGate:
    """Decides whether a request may proceed. Holds no per-request state."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    def is_bypassed(self, path: str, config: GateConfig) -> bool:
        if path_has_prefix(path, config.health_path):
            return True
        if config.docs_bypass_enabled:
            return any(path_has_prefix(path, docs) for docs in config.docs_paths)
        return False

    async def check(
        self,
        path: str,
        provided_key: str | None,
        config: GateConfig,
        remote: str | None = None,
    ) -> Admission:
        """
        Decide admission for one request.

        Args:
            path: Request path
            provided_key: Header value, or None if the header is absent
            config: Gate configuration for this request
            remote: Client address, for log context

        Returns:
            Admission outcome
        """
        if self.is_bypassed(path, config):
            return Admission.BYPASS

        if provided_key is None:
            return Admission.MISSING_KEY

        try:
            async with self.session_factory() as session:
                service = ApiKeyService(session, store_timeout=config.store_timeout)
                api_key = await service.authenticate(provided_key)
                if api_key is not None:
                    await service.record_usage(api_key.id)
                    await service.commit()
                    return Admission.ACCEPTED
        except (StoreUnavailableError, SQLAlchemyError, OSError):
            logger.error(
                f"API key store unavailable, rejecting request from {remote}",
                exc_info=True,
                extra={"remote_addr": remote},
            )
            return Admission.STORE_UNAVAILABLE

        if matches_static_key(provided_key, config.legacy_api_key):
            return Admission.ACCEPTED_LEGACY

        return Admission.INVALID_KEY


class ApiKeyMiddleware(BaseHTTPMiddleware):
    """Reject requests lacking a valid API key before they reach any router."""

    def __init__(
        self,
        app: ASGIApp,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        settings_provider: Callable[[], Settings] = get_settings,
    ):
        super().__init__(app)
        self._session_factory = session_factory
        self.settings_provider = settings_provider

    @property
    def gate(self) -> AdmissionGate:
        # Resolved lazily so the engine is created after settings are loaded
        return AdmissionGate(self._session_factory or get_session_factory())

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        config = GateConfig.from_settings(self.settings_provider())
        remote = request.client.host if request.client else None

        outcome = await self.gate.check(
            request.url.path,
            request.headers.get(config.header_name),
            config,
            remote=remote,
        )

        if outcome is Admission.BYPASS:
            return await call_next(request)

        if outcome is Admission.MISSING_KEY:
            logger.warning(f"API request without API key from {remote}")
            return PlainTextResponse(MISSING_KEY_MESSAGE, status_code=401)

        if not outcome.allowed:
            logger.warning(
                f"Invalid API key attempt from {remote}",
                extra={"remote_addr": remote, "reason": outcome.value},
            )
            return PlainTextResponse(INVALID_KEY_MESSAGE, status_code=401)

        logger.info(
            f"Valid API request from {remote}",
            extra={"remote_addr": remote, "via": outcome.value},
        )
        return await call_next(request)
