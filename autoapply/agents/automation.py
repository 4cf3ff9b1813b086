"""Automation Agent — the browser-driving capability the workflow steps call.

The agent is a black box: it receives a natural-language instruction, acts on
the open page and returns a loosely shaped JSON response. ``HttpAutomationAgent``
talks to an agent service over HTTP:

    POST /navigate  {"url": "..."}
    POST /execute   {"instruction": "...", "output_schema": {...} | null, "model": "..."}
    POST /act       {"instruction": "...", "model": "..."}
"""

import logging
from typing import Any, Protocol

import httpx
from pydantic import BaseModel

from autoapply.utils.parsing import invoke_with_retry

logger = logging.getLogger(__name__)


class AutomationAgent(Protocol):
    async def navigate(self, url: str) -> None: ...

    async def execute(
        self, instruction: str, output_schema: type[BaseModel] | None = None
    ) -> Any: ...

    async def act(self, instruction: str) -> Any: ...

    async def aclose(self) -> None: ...


class HttpAutomationAgent:
    """AutomationAgent backed by an HTTP automation service."""

    def __init__(
        self,
        base_url: str,
        model_name: str,
        api_key: str,
        timeout: float = 300.0,
        max_retries: int = 3,
        retry_max_wait: float = 16,
        client: httpx.AsyncClient | None = None,
    ):
        self.model_name = model_name
        self.max_retries = max_retries
        self.retry_max_wait = retry_max_wait
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={"Authorization": f"Bearer {api_key}"},
        )

    async def _post(self, path: str, payload: dict) -> Any:
        async def _send():
            response = await self._client.post(path, json=payload)
            response.raise_for_status()
            return response.json() if response.content else {}

        return await invoke_with_retry(
            _send, max_retries=self.max_retries, max_wait=self.retry_max_wait
        )

    async def navigate(self, url: str) -> None:
        logger.info("Navigating to %s", url)
        await self._post("/navigate", {"url": url})

    async def execute(
        self, instruction: str, output_schema: type[BaseModel] | None = None
    ) -> Any:
        payload = {
            "instruction": instruction,
            "output_schema": output_schema.model_json_schema(by_alias=True) if output_schema else None,
            "model": self.model_name,
        }
        logger.debug(
            "Executing agent instruction",
            extra={"schema": output_schema.__name__ if output_schema else None},
        )
        return await self._post("/execute", payload)

    async def act(self, instruction: str) -> Any:
        return await self._post("/act", {"instruction": instruction, "model": self.model_name})

    async def aclose(self) -> None:
        await self._client.aclose()
