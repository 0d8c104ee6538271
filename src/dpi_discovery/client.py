"""
Discovery Service client.

This module provides an async HTTP client for the daemon's discovery
endpoints (start, status, cancel, fingerprint) and for the Config Store
endpoints used to turn a discovered preset into a bypass set.

Every failure is raised as a DiscoveryError subclass:
- NetworkError: the service could not be reached or timed out
- ServiceError: the service answered with a non-2xx status
- ProtocolError: the body could not be decoded into the expected shape
"""

import time
from typing import Any, Optional

import httpx

from .config import ServiceConfig
from .enums import ClientErrorCode, LogLevel
from .event_logger import EventLogger
from .exceptions import NetworkError, ProtocolError, ServiceError
from .models import (
    DiscoveryOptions,
    DiscoverySession,
    DiscoveryTarget,
    DPIFingerprint,
    SimilarSet,
    StartResponse,
)
from .session_parser import (
    parse_fingerprint,
    parse_session,
    parse_similar_sets,
    parse_start_response,
)


class DiscoveryClient:
    """
    Async client for the Discovery Service and Config Store APIs.

    The underlying httpx client is created lazily on first use, or
    eagerly when the object is used as an async context manager.
    """

    COMPONENT = "DiscoveryClient"

    def __init__(
        self,
        config: ServiceConfig,
        logger: Optional[EventLogger] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            config: Service location, timeout and credentials
            logger: Optional event logger
            transport: Optional httpx transport (used to fake the service)
        """
        self._config = config
        self._logger = logger
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "DiscoveryClient":
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Accept": "application/json"}
            if self._config.api_token:
                headers["Authorization"] = f"Bearer {self._config.api_token}"
            self._client = httpx.AsyncClient(
                base_url=self._config.base_url.rstrip("/"),
                headers=headers,
                verify=self._config.verify_tls,
                timeout=httpx.Timeout(self._config.timeout_seconds),
                transport=self._transport,
            )
        return self._client

    def _path(self, *parts: str) -> str:
        prefix = self._config.api_prefix.strip("/")
        segments = [prefix] if prefix else []
        segments.extend(part.strip("/") for part in parts)
        return "/" + "/".join(segments)

    # -- Discovery Service -------------------------------------------------

    async def start(
        self,
        target: DiscoveryTarget,
        options: Optional[DiscoveryOptions] = None,
    ) -> StartResponse:
        """
        Ask the service to start a discovery for a target.

        Raises:
            ServiceError: If the service rejects the request; the message
                is the service's response text
        """
        body = {"check_url": target.check_url, "domain": target.domain}
        body.update((options or DiscoveryOptions()).to_payload())

        response = await self._request("POST", self._path("discovery"), json=body)
        if not response.is_success:
            raise ServiceError(
                code=ClientErrorCode.REJECTED.value,
                message=response.text.strip() or "Failed to start discovery",
                status_code=response.status_code,
                details={"domain": target.domain},
            )
        return parse_start_response(self._json(response))

    async def status(self, session_id: str) -> DiscoverySession:
        """
        Fetch the full snapshot of a session.

        Raises:
            ServiceError: With status_code 404 if the service no longer
                knows the session, or any other non-2xx status
        """
        response = await self._request(
            "GET", self._path("discovery", "status"), params={"id": session_id}
        )
        if response.status_code == 404:
            raise ServiceError(
                code=ClientErrorCode.NOT_FOUND.value,
                message=response.text.strip() or "Check suite not found",
                status_code=404,
                details={"session_id": session_id},
            )
        if not response.is_success:
            raise ServiceError(
                code=ClientErrorCode.SERVER_ERROR.value,
                message=f"Failed to fetch discovery status: HTTP {response.status_code}",
                status_code=response.status_code,
                details={"session_id": session_id, "body": response.text[:200]},
            )
        return parse_session(self._json(response))

    async def cancel(self, session_id: str) -> None:
        """Ask the service to stop a session."""
        response = await self._request(
            "DELETE", self._path("discovery", "cancel"), params={"id": session_id}
        )
        if not response.is_success:
            raise ServiceError(
                code=(
                    ClientErrorCode.NOT_FOUND.value
                    if response.status_code == 404
                    else ClientErrorCode.SERVER_ERROR.value
                ),
                message=response.text.strip() or "Failed to cancel discovery",
                status_code=response.status_code,
                details={"session_id": session_id},
            )

    async def fingerprint(self, domain: str) -> DPIFingerprint:
        """Probe the DPI in front of a domain."""
        response = await self._request(
            "POST", self._path("discovery", "fingerprint"), json={"domain": domain}
        )
        self._raise_for_status(response, "Fingerprinting failed")
        fingerprint = parse_fingerprint(self._json(response))
        if fingerprint is None:
            raise ProtocolError(
                code=ClientErrorCode.PARSE_ERROR.value,
                message="Fingerprint response is not an object",
            )
        return fingerprint

    # -- Config Store --------------------------------------------------------

    async def add_preset_as_set(self, set_config: dict, name: str, domain: str) -> str:
        """
        Create a new bypass set from a trial's configuration.

        The set is named `name` and targets only `domain`.

        Returns:
            The service's confirmation message
        """
        targets = dict(set_config.get("targets") or {})
        targets["sni_domains"] = [domain]
        body = dict(set_config, name=name, targets=targets)

        response = await self._request("POST", self._path("discovery", "add"), json=body)
        self._raise_for_status(response, "Failed to add configuration")
        data = self._json(response)
        if isinstance(data, dict) and data.get("message"):
            return str(data["message"])
        return f"Added '{name}' configuration"

    async def find_similar_sets(self, set_config: dict) -> list[SimilarSet]:
        """List enabled sets whose bypass configuration matches `set_config`."""
        response = await self._request(
            "POST", self._path("discovery", "similar"), json=set_config
        )
        self._raise_for_status(response, "Failed to look up similar sets")
        return parse_similar_sets(self._json(response))

    async def add_domain_to_set(self, set_id: str, domain: str) -> None:
        """Add a domain to an existing set's SNI targets."""
        response = await self._request(
            "POST",
            self._path("config", "sets", set_id, "domains"),
            json={"domain": domain},
        )
        self._raise_for_status(response, "Failed to add domain")

    # -- plumbing -----------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        json: Optional[Any] = None,
    ) -> httpx.Response:
        """
        Send one request, mapping transport failures to NetworkError.

        Non-2xx responses are returned, not raised; callers decide what a
        given status means for their endpoint.
        """
        client = self._ensure_client()
        start_time = time.perf_counter()

        try:
            response = await client.request(method, path, params=params, json=json)
        except httpx.TimeoutException as e:
            raise self._network_error(
                ClientErrorCode.TIMEOUT,
                f"Request timed out after {self._config.timeout_seconds}s",
                method, path, e,
            )
        except httpx.ConnectError as e:
            error_msg = str(e)
            if "ssl" in error_msg.lower() or "certificate" in error_msg.lower():
                raise self._network_error(
                    ClientErrorCode.TLS_ERROR,
                    f"TLS connection error: {error_msg}",
                    method, path, e,
                )
            raise self._network_error(
                ClientErrorCode.NETWORK_ERROR,
                f"Connection error: {error_msg}",
                method, path, e,
            )
        except httpx.HTTPError as e:
            raise self._network_error(
                ClientErrorCode.NETWORK_ERROR,
                f"Request failed: {e}",
                method, path, e,
            )

        self._log(
            LogLevel.DEBUG,
            f"{method} {path} -> {response.status_code}",
            {"params": params or {}, "elapsed_ms": round(self._elapsed_ms(start_time), 1)},
        )
        return response

    def _network_error(
        self,
        code: ClientErrorCode,
        message: str,
        method: str,
        path: str,
        cause: Exception,
    ) -> NetworkError:
        if self._logger:
            self._logger.log_error(self.COMPONENT, message, error=cause, request_url=path)
        return NetworkError(
            code=code.value,
            message=message,
            details={"method": method, "path": path},
        )

    def _raise_for_status(self, response: httpx.Response, fallback: str) -> None:
        if response.is_success:
            return
        raise ServiceError(
            code=(
                ClientErrorCode.NOT_FOUND.value
                if response.status_code == 404
                else ClientErrorCode.SERVER_ERROR.value
            ),
            message=response.text.strip() or fallback,
            status_code=response.status_code,
        )

    def _json(self, response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise ProtocolError(
                code=ClientErrorCode.PARSE_ERROR.value,
                message=f"Failed to decode JSON response: {e}",
                details={"status_code": response.status_code},
            )

    def _log(self, level: LogLevel, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(level, self.COMPONENT, message, data)

    def _elapsed_ms(self, start_time: float) -> float:
        return (time.perf_counter() - start_time) * 1000

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def config(self) -> ServiceConfig:
        return self._config
