"""
Minimax Casting Proposer
Direct integration with Minimax API (not through Ollama)
"""

import logging
from typing import Optional

import httpx

from adapters.base import CastingProposer, CastingRequest
from adapters.prompts import SYSTEM_PROMPT, build_user_prompt
from config import settings
from pipeline.errors import ProposerError

logger = logging.getLogger(__name__)


class MinimaxProposer(CastingProposer):
    """Client for Minimax chat completions."""

    name = "minimax"

    def __init__(
        self,
        api_key: str = None,
        base_url: str = None,
        model: str = None,
        timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.api_key = api_key or settings.minimax_api_key
        self.base_url = base_url or settings.minimax_base_url
        self.model = model or settings.minimax_model
        self.timeout = timeout or settings.proposer_timeout
        self.transport = transport

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def propose(self, request: CastingRequest) -> str:
        if not self.is_configured():
            raise ProposerError("Minimax API key not configured")

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }

        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_user_prompt(request)}
            ],
            "temperature": settings.casting_temperature,
            "max_tokens": settings.casting_max_tokens,
            "response_format": {"type": "json_object"}
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    f"{self.base_url}/text/chatcompletion_v2",
                    headers=headers,
                    json=payload
                )
        except httpx.HTTPError as e:
            raise ProposerError(f"Minimax API request failed: {type(e).__name__}: {e}") from e

        if response.status_code != 200:
            raise ProposerError(
                f"Minimax API error: {response.status_code} - {response.text[:200]}",
                {"status_code": response.status_code}
            )

        try:
            result = response.json()
            content = (result.get("choices") or [{}])[0].get("message", {}).get("content", "")
        except (ValueError, AttributeError) as e:
            raise ProposerError("Minimax returned a malformed envelope") from e

        if not content:
            raise ProposerError("Empty response from Minimax")
        return content
