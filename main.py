"""
VoiceCast Server - Main Entry Point
Voice casting and speaker reconciliation for AI-narrated stories

Run: uvicorn main:app --host 0.0.0.0 --port 9000 --reload
"""

import logging
from contextlib import asynccontextmanager
from typing import Dict, List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from adapters import get_proposer
from config import settings
from pipeline.assignment_store import AssignmentStore
from pipeline.errors import CastingError, ErrorKind
from pipeline.speaker_reconciler import SpeakerReconciler
from pipeline.validation import validate_existing_assignments
from pipeline.voice_assigner import VoiceAssigner
from pipeline.voice_catalog import VoiceCatalog

# Configure logging
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

# Initialize pipeline components
voice_catalog = VoiceCatalog.default()
assignment_store = AssignmentStore(settings.db_path)
voice_assigner = VoiceAssigner(get_proposer(), voice_catalog)
speaker_reconciler = SpeakerReconciler(assignment_store, voice_assigner)

ERROR_STATUS = {
    ErrorKind.CAPACITY: 422,
    ErrorKind.VALIDATION: 422,
    ErrorKind.COVERAGE: 422,
    ErrorKind.PROPOSER: 502,
}


# ============================================================================
# Authentication Dependency
# ============================================================================

async def verify_api_key(x_api_key: str = Header(None)):
    """
    Verify API key if password is configured.
    Add header: X-API-Key: your_password
    """
    if not settings.api_password:
        return True  # No password configured, allow all

    if not x_api_key:
        raise HTTPException(status_code=401, detail="X-API-Key header required")

    if x_api_key != settings.api_password:
        raise HTTPException(status_code=403, detail="Invalid API key")

    return True


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup."""
    await assignment_store.init()
    logger.info("VoiceCast Server started")
    yield
    logger.info("VoiceCast Server shutting down")


# Create FastAPI app
app = FastAPI(
    title="VoiceCast Server",
    description="Voice casting and speaker reconciliation API",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CastingError)
async def casting_error_handler(request: Request, exc: CastingError):
    """Casting failures halt the scene; report every detail to the caller."""
    logger.error(f"Casting failed ({exc.kind.value}) for {request.url.path}: {exc.message}")
    return JSONResponse(status_code=ERROR_STATUS.get(exc.kind, 500), content=exc.to_dict())


# ============================================================================
# Helper Dependencies
# ============================================================================

def get_store() -> AssignmentStore:
    return assignment_store


def get_reconciler() -> SpeakerReconciler:
    return speaker_reconciler


# ============================================================================
# Request Bodies
# ============================================================================

class DialogueLine(BaseModel):
    speaker: str
    text: str = ""
    emotion: Optional[str] = None
    delivery: Optional[str] = None
    start: Optional[int] = None
    end: Optional[int] = None


class CharacterIn(BaseModel):
    name: str
    gender: str = "unknown"
    role: Optional[str] = None
    description: str = ""
    traits: Optional[Dict] = None
    age_group: Optional[str] = None


class ReconcileBody(BaseModel):
    dialogue: List[DialogueLine]
    new_characters: List[CharacterIn] = Field(default_factory=list)
    story_context: Dict = Field(default_factory=dict)
    narrator_voice_id: Optional[str] = None


class QuickValidateBody(BaseModel):
    dialogue: List[DialogueLine]


class CharactersBody(BaseModel):
    characters: List[CharacterIn]


# ============================================================================
# API Endpoints
# ============================================================================

@app.get("/api/status")
async def root():
    """Health check endpoint."""
    return {
        "status": "running",
        "name": "VoiceCast Server",
        "version": "1.0.0"
    }


@app.get("/api/health")
async def health_check():
    """Detailed health check."""
    return {
        "status": "healthy",
        "database": settings.db_path,
        "casting_backend": settings.casting_backend,
        "voices": len(voice_catalog)
    }


@app.get("/api/voices")
async def list_voices():
    """List all voices available for casting."""
    return voice_catalog.to_list()


@app.get("/api/sessions/{session_id}/characters")
async def get_characters(session_id: str, store: AssignmentStore = Depends(get_store)):
    """Get all characters for a session with their voice bindings."""
    characters = await store.get_characters(session_id)
    return [c.to_dict() for c in characters]


@app.post("/api/sessions/{session_id}/characters", dependencies=[Depends(verify_api_key)])
async def create_characters(
    session_id: str,
    body: CharactersBody,
    store: AssignmentStore = Depends(get_store)
):
    """Register planned characters for a session. Existing names are reused."""
    created = []
    for char in body.characters:
        if not char.name.strip():
            raise HTTPException(status_code=400, detail="Character name required")
        created.append(await store.insert_character(
            session_id,
            char.name,
            gender=char.gender,
            role=char.role or "supporting",
            description=char.description,
            traits=char.traits,
            age_group=char.age_group,
            created_by="story_planning"
        ))
    return [c.to_dict() for c in created]


@app.get("/api/sessions/{session_id}/voices")
async def get_voice_assignments(
    session_id: str,
    narrator_voice_id: Optional[str] = None,
    store: AssignmentStore = Depends(get_store)
):
    """Stored voice bindings plus an integrity report against the narrator voice."""
    assignments = await store.get_voice_assignments(session_id)
    narrator_voice_id = narrator_voice_id or settings.default_narrator_voice_id
    report = validate_existing_assignments(
        {a.character_name: a.voice_id for a in assignments}, narrator_voice_id
    )
    return {
        "session_id": session_id,
        "narrator_voice_id": narrator_voice_id,
        "assignments": [a.to_dict() for a in assignments],
        "integrity": report.to_dict()
    }


@app.post("/api/sessions/{session_id}/speakers/reconcile", dependencies=[Depends(verify_api_key)])
async def reconcile_speakers(
    session_id: str,
    body: ReconcileBody,
    reconciler: SpeakerReconciler = Depends(get_reconciler)
):
    """
    Resolve every dialogue speaker to a character and make sure each has a voice.

    Casting failures come back as JSON errors; audio generation must not proceed.
    """
    result = await reconciler.reconcile(
        session_id,
        [line.model_dump() for line in body.dialogue],
        declared_new_characters=[c.model_dump(exclude_none=True) for c in body.new_characters],
        story_context=body.story_context,
        narrator_voice_id=body.narrator_voice_id
    )
    return result.to_dict()


@app.post("/api/sessions/{session_id}/speakers/validate")
async def quick_validate_speakers(
    session_id: str,
    body: QuickValidateBody,
    reconciler: SpeakerReconciler = Depends(get_reconciler)
):
    """Pre-flight check before audio generation. Read-only."""
    result = await reconciler.quick_validate(session_id, [line.model_dump() for line in body.dialogue])
    return result.to_dict()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.host, port=settings.port)
