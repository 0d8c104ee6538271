"""
Tests for the Discovery Service client.

The service is faked with httpx.MockTransport; each test inspects the
requests the client sent and the errors it raised.
"""

import asyncio
import json

import httpx
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from dpi_discovery.client import DiscoveryClient
from dpi_discovery.config import ServiceConfig
from dpi_discovery.enums import ClientErrorCode, SessionStatus, TLSVersion
from dpi_discovery.event_logger import EventLogger
from dpi_discovery.exceptions import NetworkError, ProtocolError, ServiceError
from dpi_discovery.models import DiscoveryOptions, DiscoveryTarget


TARGET = DiscoveryTarget(raw="youtube.com", domain="youtube.com", check_url="https://youtube.com/")


def run_with_handler(handler, operation, config: ServiceConfig = None, logger=None):
    """Run `operation(client)` against a mocked service and return its result."""
    async def run_test():
        client = DiscoveryClient(
            config or ServiceConfig(base_url="http://daemon.test"),
            logger=logger,
            transport=httpx.MockTransport(handler),
        )
        async with client:
            return await operation(client)

    return asyncio.run(run_test())


class TestStartRequest:
    def test_start_sends_target_and_options(self) -> None:
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"id": "abc", "estimated_tests": 12})

        options = DiscoveryOptions(
            skip_dns=True,
            payload_files=("google.bin",),
            validation_tries=3,
            tls_version=TLSVersion.TLS13,
        )
        response = run_with_handler(handler, lambda c: c.start(TARGET, options))

        assert response.id == "abc"
        assert response.estimated_tests == 12
        request = seen[0]
        assert request.method == "POST"
        assert request.url.path == "/api/discovery"
        body = json.loads(request.content)
        assert body == {
            "check_url": "https://youtube.com/",
            "domain": "youtube.com",
            "skip_dns": True,
            "payload_files": ["google.bin"],
            "validation_tries": 3,
            "tls_version": "tls13",
        }

    def test_default_options_send_only_target(self) -> None:
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            return httpx.Response(200, json={"id": "abc"})

        run_with_handler(handler, lambda c: c.start(TARGET))
        assert seen == [{"check_url": "https://youtube.com/", "domain": "youtube.com"}]

    @given(text=st.text(alphabet=st.characters(min_codepoint=33, max_codepoint=126), min_size=1, max_size=80))
    @settings(max_examples=30, deadline=None)
    def test_rejection_text_is_verbatim(self, text: str) -> None:
        """*For any* rejection body, the ServiceError message SHALL be that body."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(409, text=text)

        with pytest.raises(ServiceError) as exc_info:
            run_with_handler(handler, lambda c: c.start(TARGET))

        assert exc_info.value.message == text
        assert exc_info.value.code == ClientErrorCode.REJECTED.value
        assert exc_info.value.status_code == 409

    def test_bearer_token_sent(self) -> None:
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.headers.get("authorization"))
            return httpx.Response(200, json={"id": "abc"})

        config = ServiceConfig(base_url="http://daemon.test", api_token="s3cret")
        run_with_handler(handler, lambda c: c.start(TARGET), config=config)
        assert seen == ["Bearer s3cret"]

    def test_custom_prefix(self) -> None:
        paths = []

        def handler(request: httpx.Request) -> httpx.Response:
            paths.append(request.url.path)
            return httpx.Response(200, json={"id": "abc"})

        config = ServiceConfig(base_url="http://daemon.test/", api_prefix="/b4/api/")
        run_with_handler(handler, lambda c: c.start(TARGET), config=config)
        assert paths == ["/b4/api/discovery"]


class TestStatusRequest:
    def test_status_decodes_session(self) -> None:
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={
                "id": "abc",
                "status": "running",
                "total_checks": 12,
                "completed_checks": 3,
                "domain_results": {
                    "youtube.com": {"results": {"tcp_frag": {"status": "complete", "speed": 1048576}}},
                },
            })

        session = run_with_handler(handler, lambda c: c.status("abc"))

        assert seen[0].url.path == "/api/discovery/status"
        assert seen[0].url.params["id"] == "abc"
        assert session.status == SessionStatus.RUNNING
        assert session.domain_results["youtube.com"].results["tcp_frag"].speed == 1048576.0

    def test_unknown_session_is_not_found(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, text="Check suite not found")

        with pytest.raises(ServiceError) as exc_info:
            run_with_handler(handler, lambda c: c.status("gone"))
        assert exc_info.value.is_not_found
        assert exc_info.value.code == ClientErrorCode.NOT_FOUND.value

    def test_server_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="boom")

        with pytest.raises(ServiceError) as exc_info:
            run_with_handler(handler, lambda c: c.status("abc"))
        assert not exc_info.value.is_not_found
        assert exc_info.value.code == ClientErrorCode.SERVER_ERROR.value

    def test_garbage_body_is_protocol_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>proxy login</html>")

        with pytest.raises(ProtocolError):
            run_with_handler(handler, lambda c: c.status("abc"))


class TestTransportFailures:
    def test_timeout(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("read timed out", request=request)

        with pytest.raises(NetworkError) as exc_info:
            run_with_handler(handler, lambda c: c.status("abc"))
        assert exc_info.value.code == ClientErrorCode.TIMEOUT.value

    def test_connection_refused(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(NetworkError) as exc_info:
            run_with_handler(handler, lambda c: c.cancel("abc"))
        assert exc_info.value.code == ClientErrorCode.NETWORK_ERROR.value

    def test_certificate_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("[SSL: CERTIFICATE_VERIFY_FAILED]", request=request)

        with pytest.raises(NetworkError) as exc_info:
            run_with_handler(handler, lambda c: c.status("abc"))
        assert exc_info.value.code == ClientErrorCode.TLS_ERROR.value

    def test_failure_is_logged(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        logger = EventLogger(output_format="json", output_stream=_NullStream())
        with pytest.raises(NetworkError):
            run_with_handler(handler, lambda c: c.status("abc"), logger=logger)

        errors = [e for e in logger.entries if e.component == "DiscoveryClient"]
        assert errors
        assert errors[-1].data["error_type"] == "ConnectError"


class TestOtherEndpoints:
    def test_cancel_uses_delete(self) -> None:
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"success": True})

        run_with_handler(handler, lambda c: c.cancel("abc"))
        assert seen[0].method == "DELETE"
        assert seen[0].url.path == "/api/discovery/cancel"
        assert seen[0].url.params["id"] == "abc"

    def test_fingerprint(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert json.loads(request.content) == {"domain": "youtube.com"}
            return httpx.Response(200, json={"type": "tspu", "confidence": 90})

        fingerprint = run_with_handler(handler, lambda c: c.fingerprint("youtube.com"))
        assert fingerprint.confidence == 90.0

    def test_add_preset_targets_only_domain(self) -> None:
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"message": "Added 'yt' configuration"})

        set_config = {"id": "x", "targets": {"sni_domains": ["other.com"], "ip": []}}
        message = run_with_handler(
            handler, lambda c: c.add_preset_as_set(set_config, "yt", "youtube.com")
        )

        assert message == "Added 'yt' configuration"
        assert bodies[0]["name"] == "yt"
        assert bodies[0]["targets"] == {"sni_domains": ["youtube.com"], "ip": []}
        assert set_config["targets"]["sni_domains"] == ["other.com"]

    def test_similar_sets_and_add_domain(self) -> None:
        paths = []

        def handler(request: httpx.Request) -> httpx.Response:
            paths.append(request.url.path)
            if request.url.path.endswith("/similar"):
                return httpx.Response(200, json=[{"id": "s1", "name": "Video", "domains": []}])
            return httpx.Response(200, json={"success": True})

        async def operation(client: DiscoveryClient):
            sets = await client.find_similar_sets({"fragmentation": {}})
            await client.add_domain_to_set(sets[0].id, "youtube.com")
            return sets

        sets = run_with_handler(handler, operation)
        assert sets[0].name == "Video"
        assert paths == ["/api/discovery/similar", "/api/config/sets/s1/domains"]


class _NullStream:
    def write(self, text: str) -> int:
        return len(text)

    def flush(self) -> None:
        pass
