"""FastAPI boundary adapter for the Nexis agent."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from nexis_agent import __version__
from nexis_agent.config import AgentConfig
from nexis_agent.core.agent import AgentRuntime
from nexis_agent.errors import NexisError

logger = logging.getLogger("nexis_agent.server")

TIMEOUT_MESSAGE = (
    "Request timeout - the server may be starting up. Please try again in a moment."
)
UNAVAILABLE_MESSAGE = "Service temporarily unavailable"
_SENSITIVE_MARKERS = ("api key", "api_key", "apikey", "unauthorized", "authentication")


class Credentials(BaseModel):
    evm_key: Optional[str] = Field(None, alias="evmKey")
    non_evm_key: Optional[str] = Field(None, alias="nonEvmKey")

    model_config = ConfigDict(populate_by_name=True)


class AgentRequest(BaseModel):
    input: Optional[str] = None
    credentials: Optional[Credentials] = None
    # flat fields accepted from older clients
    evm_private_key: Optional[str] = Field(None, alias="evmPrivateKey")
    solana_private_key: Optional[str] = Field(None, alias="solanaPrivateKey")

    model_config = ConfigDict(populate_by_name=True)

    def keys(self) -> tuple[str | None, str | None]:
        creds = self.credentials or Credentials()
        return (
            creds.evm_key or self.evm_private_key,
            creds.non_evm_key or self.solana_private_key,
        )


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code, content={"error": message, "timestamp": _timestamp()}
    )


def sanitize_error(message: str, secrets: tuple[str | None, ...] = ()) -> str:
    """Hide credential-related failures and scrub request secrets from *message*."""
    lowered = message.lower()
    if any(marker in lowered for marker in _SENSITIVE_MARKERS):
        return UNAVAILABLE_MESSAGE
    for secret in secrets:
        if secret:
            message = message.replace(secret, "[redacted]")
    return message


def create_app(runtime: AgentRuntime) -> FastAPI:
    """Build the HTTP app around a ready :class:`AgentRuntime`."""
    config = runtime.config
    app = FastAPI(title=config.name, version=__version__)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def _invalid_request(request: Request, exc: RequestValidationError):
        return _error(400, "Invalid request body")

    @app.get("/")
    async def index():
        return {
            "message": f"Welcome to {config.name}!",
            "version": __version__,
            "supportedChains": runtime.chains.list_keys(),
            "endpoints": {
                "agent": "POST /agent - Interact with the multi-chain agent",
                "health": "GET /health - Health check",
                "chains": "GET /chains - Supported networks",
            },
        }

    @app.get("/health")
    async def health():
        return {"status": "healthy", "timestamp": _timestamp()}

    @app.get("/chains")
    async def chains():
        return [
            {
                "key": chain.key,
                "name": chain.display_name,
                "family": chain.family.value,
                "chainId": chain.chain_id,
                "nativeSymbol": chain.native_symbol,
                "explorerUrl": chain.explorer_url,
                "faucetUrl": chain.faucet_url,
                "tokens": [
                    {"symbol": t.symbol, "address": t.contract_address}
                    for t in runtime.chains.tokens_for(chain.key)
                ],
            }
            for chain in runtime.chains.all()
        ]

    @app.post("/agent")
    async def agent(body: AgentRequest):
        text = (body.input or "").strip()
        if not text:
            return _error(400, "Input is required")

        evm_key, solana_key = body.keys()
        session = runtime.new_session()
        try:
            result = await asyncio.wait_for(
                session.handle(text, evm_key=evm_key, solana_key=solana_key),
                timeout=config.dispatch.request_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning("Request exceeded the %ss deadline", config.dispatch.request_timeout_seconds)
            return _error(504, TIMEOUT_MESSAGE)
        except NexisError as exc:
            return _error(400, sanitize_error(exc.user_message(), (evm_key, solana_key)))
        except Exception as exc:
            logger.error("Agent request failed: %s", type(exc).__name__)
            return _error(500, sanitize_error(str(exc) or type(exc).__name__, (evm_key, solana_key)))
        finally:
            session.close()

        return {
            "response": result.answer,
            "timestamp": _timestamp(),
            "supportedChains": runtime.chains.list_keys(),
        }

    return app


def run_server(config: AgentConfig, host: str | None = None, port: int | None = None) -> None:
    """Start uvicorn. Raises ConfigurationError before binding when the model key is missing."""
    runtime = AgentRuntime.from_config(config)
    host = host or config.server.host
    port = port or config.server.port
    logger.info(f"{config.name} running on {host}:{port}")
    uvicorn.run(create_app(runtime), host=host, port=port, log_level="info")
