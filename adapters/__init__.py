"""Casting Proposer Adapters"""
from adapters.base import CastingProposer, CastingRequest
from adapters.minimax import MinimaxProposer
from adapters.ollama import OllamaProposer
from config import settings

PROPOSERS = {
    "ollama": OllamaProposer,
    "minimax": MinimaxProposer,
}


def get_proposer(backend: str = None) -> CastingProposer:
    """Build the proposer named by ``backend`` (defaults to CASTING_BACKEND)."""
    backend = (backend or settings.casting_backend).lower()
    if backend not in PROPOSERS:
        raise ValueError(f"Unknown casting backend: {backend}")
    return PROPOSERS[backend]()


__all__ = ["CastingProposer", "CastingRequest", "MinimaxProposer", "OllamaProposer", "get_proposer"]
