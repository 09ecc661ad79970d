"""Flag-evaluation capability and its FeatBit implementation."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Protocol

from agent_flag.config import FeatBitConfig
from agent_flag.exceptions import FlagClientNotInitializedError, FlagServiceError
from agent_flag.obs.logging import get_logger
from agent_flag.types import EvaluationContext

logger = get_logger("agent_flag.flags.client")


class FlagClient(Protocol):
    """The subset of a flag SDK the workflow relies on."""

    async def wait_for_initialization(self) -> None:
        """Block until the client is ready; raise when it cannot get there."""

    async def string_variation(self, flag_key: str, context: EvaluationContext, default: str) -> str:
        """Evaluate a string flag."""

    async def json_variation(self, flag_key: str, context: EvaluationContext, default: Any) -> Any:
        """Evaluate a JSON flag."""

    async def close(self) -> None:
        """Flush pending events and release the connection."""


def to_featbit_user(context: EvaluationContext) -> dict[str, str]:
    """Render an evaluation context as a FeatBit user dict."""
    user = {"key": context.user_id, "name": context.user_id}
    for key, value in context.attributes.items():
        if key in ("key", "name"):
            continue
        user[key] = value
    return user


class FeatBitFlagClient:
    """FeatBit-backed flag client.

    The FeatBit Python SDK is synchronous; every call is pushed to a worker
    thread so evaluation does not block the event loop. Evaluations are
    read-only against the SDK's local data store and may run concurrently.
    """

    def __init__(self, config: FeatBitConfig) -> None:
        self.config = config
        self._client: Any | None = None

    async def wait_for_initialization(self) -> None:
        if self._client is not None:
            return
        self._client = await asyncio.to_thread(self._build_client)

    def _build_client(self) -> Any:
        try:
            from fbclient.client import FBClient
            from fbclient.config import Config
        except ImportError as exc:
            raise FlagServiceError(
                "FeatBit SDK is not installed. Install 'fb-python-sdk' to use FeatBitFlagClient."
            ) from exc

        logger.info(
            "Connecting to FeatBit | streaming=%s | events=%s",
            self.config.streaming_uri,
            self.config.events_uri,
        )
        client = FBClient(
            Config(self.config.sdk_key, self.config.events_uri, self.config.streaming_uri),
            start_wait=self.config.start_wait_seconds,
        )
        if not client.initialize:
            client.stop()
            raise FlagServiceError(
                f"FeatBit client did not become ready within {self.config.start_wait_seconds:.0f}s"
            )
        return client

    async def string_variation(self, flag_key: str, context: EvaluationContext, default: str) -> str:
        client = self._require_client()
        value = await asyncio.to_thread(client.variation, flag_key, to_featbit_user(context), default)
        if isinstance(value, str):
            return value
        if isinstance(value, (dict, list)):
            return json.dumps(value)
        return str(value)

    async def json_variation(self, flag_key: str, context: EvaluationContext, default: Any) -> Any:
        client = self._require_client()
        value = await asyncio.to_thread(client.variation, flag_key, to_featbit_user(context), default)
        if isinstance(value, str):
            return json.loads(value)
        return value

    async def close(self) -> None:
        client, self._client = self._client, None
        if client is not None:
            await asyncio.to_thread(client.stop)

    def _require_client(self) -> Any:
        if self._client is None:
            raise FlagClientNotInitializedError("FeatBit client not initialized")
        return self._client
