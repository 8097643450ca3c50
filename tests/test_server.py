"""Tests for the HTTP adapter."""

import asyncio

import pytest
from fastapi.testclient import TestClient

from conftest import EVM_ADDRESS, EVM_KEY, ScriptedProvider, tool_response
from nexis_agent.core.dispatch import ROUND_CAP_MESSAGE
from nexis_agent.llm.base import LLMResponse
from nexis_agent.server import TIMEOUT_MESSAGE, UNAVAILABLE_MESSAGE, create_app, sanitize_error


def _echo_last(messages):
    last = messages[-1]
    if last.role == "user":
        return tool_response(("getWalletAddress", {}))
    return LLMResponse(content=last.content)


@pytest.fixture
def client_for(make_runtime):
    def _client(script):
        return TestClient(create_app(make_runtime(ScriptedProvider(script))))

    return _client


class TestInfoEndpoints:
    def test_health(self, client_for):
        response = client_for([]).get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_index_lists_chains(self, client_for):
        body = client_for([]).get("/").json()
        assert "baseSepolia" in body["supportedChains"]
        assert "solana" in body["supportedChains"]

    def test_chains_hide_rpc_urls(self, client_for):
        body = client_for([]).get("/chains").json()
        keys = {chain["key"] for chain in body}
        assert {"ethereum", "baseSepolia", "monad", "polygon", "arbitrum", "solana"} <= keys
        for chain in body:
            assert "rpcUrl" not in chain and "rpc_url" not in chain


class TestAgentEndpoint:
    def test_missing_input(self, client_for):
        response = client_for([]).post("/agent", json={})
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Input is required"
        assert "timestamp" in body

    def test_blank_input(self, client_for):
        response = client_for([]).post("/agent", json={"input": "   "})
        assert response.status_code == 400

    def test_malformed_body(self, client_for):
        response = client_for([]).post("/agent", json={"input": ["not", "a", "string"]})
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid request body"

    def test_success_envelope(self, client_for):
        response = client_for([LLMResponse(content="gm")]).post("/agent", json={"input": "hello"})

        assert response.status_code == 200
        body = response.json()
        assert body["response"] == "gm"
        assert "timestamp" in body
        assert "monad" in body["supportedChains"]

    def test_credentials_are_connected_for_the_request(self, client_for):
        response = client_for(_echo_last).post(
            "/agent",
            json={"input": "what is my address?", "credentials": {"evmKey": EVM_KEY}},
        )

        assert response.status_code == 200
        assert EVM_ADDRESS in response.json()["response"]

    def test_legacy_flat_key_fields(self, client_for):
        response = client_for(_echo_last).post(
            "/agent", json={"input": "address?", "evmPrivateKey": EVM_KEY}
        )
        assert EVM_ADDRESS in response.json()["response"]

    def test_requests_do_not_share_wallets(self, client_for):
        client = client_for(_echo_last)
        client.post("/agent", json={"input": "a", "credentials": {"evmKey": EVM_KEY}})

        response = client.post("/agent", json={"input": "b"})

        assert EVM_ADDRESS not in response.json()["response"]
        assert response.json()["response"].startswith("No wallets connected")

    def test_invalid_key_is_not_echoed(self, client_for):
        bad_key = "0xnot-really-a-key"
        response = client_for([]).post(
            "/agent", json={"input": "hi", "credentials": {"evmKey": bad_key}}
        )

        assert response.status_code == 400
        assert bad_key not in response.text
        assert "EVM private key" in response.json()["error"]

    def test_deadline_returns_504(self, make_runtime, agent_config):
        agent_config.dispatch.request_timeout_seconds = 0.05

        async def _never_answers(messages):
            await asyncio.sleep(5)

        class SlowProvider(ScriptedProvider):
            async def complete(self, messages, tools=None):
                await _never_answers(messages)
                return LLMResponse(content="too late")

        client = TestClient(create_app(make_runtime(SlowProvider([]))))
        response = client.post("/agent", json={"input": "hi"})

        assert response.status_code == 504
        assert response.json()["error"] == TIMEOUT_MESSAGE

    def test_model_credential_failure_is_masked(self, client_for):
        def _unauthorized(messages):
            raise RuntimeError("Incorrect API key provided: sk-abc123")

        response = client_for(_unauthorized).post("/agent", json={"input": "hi"})

        assert response.status_code == 500
        assert response.json()["error"] == UNAVAILABLE_MESSAGE
        assert "sk-abc123" not in response.text

    def test_round_cap_is_still_a_response(self, make_runtime, agent_config):
        agent_config.dispatch.max_rounds = 2
        provider = ScriptedProvider(lambda messages: tool_response(("help", {})))
        client = TestClient(create_app(make_runtime(provider)))

        response = client.post("/agent", json={"input": "loop"})

        assert response.status_code == 200
        assert response.json()["response"] == ROUND_CAP_MESSAGE


class TestSanitizeError:
    def test_masks_credential_errors(self):
        assert sanitize_error("Authentication failed") == UNAVAILABLE_MESSAGE

    def test_redacts_supplied_secrets(self):
        message = sanitize_error("bad value 0xsecret", ("0xsecret", None))
        assert message == "bad value [redacted]"
