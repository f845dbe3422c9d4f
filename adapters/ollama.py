"""Ollama Casting Proposer - local model via /api/generate"""
import logging
from typing import Optional

import httpx

from adapters.base import CastingProposer, CastingRequest
from adapters.prompts import SYSTEM_PROMPT, build_user_prompt
from config import settings
from pipeline.errors import ProposerError

logger = logging.getLogger(__name__)


class OllamaProposer(CastingProposer):
    """Ask an Ollama-served model for a cast, in a single non-streamed response."""

    name = "ollama"

    def __init__(
        self,
        base_url: str = None,
        model: str = None,
        timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = base_url or settings.ollama_url
        self.model = model or settings.llm_model
        self.timeout = timeout or settings.proposer_timeout
        self.transport = transport

    async def propose(self, request: CastingRequest) -> str:
        payload = {
            "model": self.model,
            "system": SYSTEM_PROMPT,
            "prompt": build_user_prompt(request),
            "stream": False,
            "format": "json",
            "options": {
                "temperature": settings.casting_temperature,
                "num_predict": settings.casting_max_tokens
            }
        }

        logger.info(f"Calling {self.model} for {len(request.characters)} character voices")
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(f"{self.base_url}/api/generate", json=payload)
        except httpx.ConnectError as e:
            raise ProposerError(f"Cannot connect to Ollama at {self.base_url}") from e
        except httpx.HTTPError as e:
            raise ProposerError(f"Ollama request failed: {type(e).__name__}: {e}") from e

        if response.status_code != 200:
            raise ProposerError(
                f"Ollama error: {response.status_code} - {response.text[:200]}",
                {"status_code": response.status_code}
            )

        try:
            content = response.json().get("response", "")
        except (ValueError, AttributeError) as e:
            raise ProposerError("Ollama returned a malformed envelope") from e

        if not content:
            raise ProposerError("Empty response from Ollama")
        return content
