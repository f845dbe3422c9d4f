"""
Assignment Store - SQLite persistence for characters and voice bindings
One connection per operation. The store is the only session-scoped state the
casting engine touches.
"""

import json
import logging
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Dict, List, Optional, Set

import aiosqlite

from models.casting import Character, VoiceAssignment, normalize_gender
from pipeline.errors import ValidationError

logger = logging.getLogger(__name__)

CHARACTER_COLUMNS = (
    "c.id, c.session_id, c.name, c.gender, c.role, c.description, "
    "c.traits_json, c.age_group, c.created_by"
)


class AssignmentStore:
    """Characters and character -> voice bindings, keyed by story session."""

    def __init__(self, db_path):
        self.db_path = str(db_path)

    @asynccontextmanager
    async def connect(self):
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            yield db

    async def init(self):
        """Create tables and indices if they do not exist."""
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        async with self.connect() as db:
            await db.execute("""
                CREATE TABLE IF NOT EXISTS characters (
                    id TEXT PRIMARY KEY,
                    session_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    gender TEXT DEFAULT 'unknown',
                    role TEXT,
                    description TEXT,
                    traits_json TEXT,
                    age_group TEXT,
                    created_by TEXT,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)

            # Voice bindings: one voice per character, one character per voice
            await db.execute("""
                CREATE TABLE IF NOT EXISTS character_voice_assignments (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    session_id TEXT NOT NULL,
                    character_id TEXT NOT NULL,
                    voice_id TEXT NOT NULL,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    UNIQUE(session_id, character_id),
                    UNIQUE(session_id, voice_id),
                    FOREIGN KEY (character_id) REFERENCES characters(id)
                )
            """)

            await db.execute(
                "CREATE UNIQUE INDEX IF NOT EXISTS idx_characters_session_name "
                "ON characters(session_id, name COLLATE NOCASE)"
            )
            await db.execute(
                "CREATE INDEX IF NOT EXISTS idx_voice_assignments_session "
                "ON character_voice_assignments(session_id)"
            )
            await db.commit()

    @staticmethod
    def _row_to_character(row) -> Character:
        return Character.from_dict({
            "id": row["id"],
            "session_id": row["session_id"],
            "name": row["name"],
            "gender": row["gender"],
            "role": row["role"],
            "description": row["description"],
            "traits_json": row["traits_json"],
            "age_group": row["age_group"],
            "created_by": row["created_by"],
            "voice_id": row["voice_id"],
        })

    async def get_characters(self, session_id: str) -> List[Character]:
        """All characters of a session, oldest first, with any bound voice attached."""
        async with self.connect() as db:
            cursor = await db.execute(
                f"SELECT {CHARACTER_COLUMNS}, cva.voice_id FROM characters c "
                "LEFT JOIN character_voice_assignments cva "
                "ON cva.character_id = c.id AND cva.session_id = c.session_id "
                "WHERE c.session_id = ? ORDER BY c.rowid",
                (session_id,)
            )
            rows = await cursor.fetchall()
        return [self._row_to_character(row) for row in rows]

    async def get_character_by_name(self, session_id: str, name: str) -> Optional[Character]:
        async with self.connect() as db:
            cursor = await db.execute(
                f"SELECT {CHARACTER_COLUMNS}, cva.voice_id FROM characters c "
                "LEFT JOIN character_voice_assignments cva "
                "ON cva.character_id = c.id AND cva.session_id = c.session_id "
                "WHERE c.session_id = ? AND c.name = ? COLLATE NOCASE",
                (session_id, name.strip())
            )
            row = await cursor.fetchone()
        return self._row_to_character(row) if row else None

    async def insert_character(
        self,
        session_id: str,
        name: str,
        gender: str = "unknown",
        role: str = "minor",
        description: str = "",
        traits: Optional[Dict] = None,
        age_group: Optional[str] = None,
        created_by: Optional[str] = None
    ) -> Character:
        """
        Insert a character, or return the existing row when the name is taken.

        Name uniqueness is case-insensitive within the session, so two
        overlapping reconciliations converge on the same row.
        """
        character_id = uuid.uuid4().hex[:12]
        name = name.strip()
        try:
            async with self.connect() as db:
                await db.execute(
                    "INSERT INTO characters "
                    "(id, session_id, name, gender, role, description, traits_json, age_group, created_by) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        character_id, session_id, name, normalize_gender(gender), role,
                        description, json.dumps(traits or {}), age_group, created_by
                    )
                )
                await db.commit()
        except aiosqlite.IntegrityError:
            existing = await self.get_character_by_name(session_id, name)
            if existing is None:
                raise
            logger.warning(f"Character {name} already exists in session {session_id} - using existing")
            return existing

        return Character(
            id=character_id,
            session_id=session_id,
            name=name,
            gender=gender,
            role=role,
            description=description,
            traits=traits or {},
            age_group=age_group,
            created_by=created_by
        )

    async def get_voice_assignment(self, session_id: str, character_id: str) -> Optional[str]:
        async with self.connect() as db:
            cursor = await db.execute(
                "SELECT voice_id FROM character_voice_assignments WHERE session_id = ? AND character_id = ?",
                (session_id, character_id)
            )
            row = await cursor.fetchone()
        return row["voice_id"] if row else None

    async def upsert_voice_assignment(self, session_id: str, character_id: str, voice_id: str):
        await self.save_voice_assignments(session_id, {character_id: voice_id})

    async def save_voice_assignments(self, session_id: str, bindings: Dict[str, str]):
        """
        Upsert character_id -> voice_id bindings in one transaction.

        Raises:
            ValidationError: when a voice is already bound to another character.
        """
        try:
            async with self.connect() as db:
                for character_id, voice_id in bindings.items():
                    await db.execute(
                        "INSERT INTO character_voice_assignments (session_id, character_id, voice_id) "
                        "VALUES (?, ?, ?) "
                        "ON CONFLICT(session_id, character_id) DO UPDATE SET "
                        "voice_id = excluded.voice_id, updated_at = CURRENT_TIMESTAMP",
                        (session_id, character_id, voice_id)
                    )
                await db.commit()
        except aiosqlite.IntegrityError as e:
            logger.error(f"Voice binding conflict in session {session_id}: {e}")
            raise ValidationError([
                f"Voice already bound to another character in session {session_id}: {e}"
            ]) from e

    async def get_voice_assignments(self, session_id: str) -> List[VoiceAssignment]:
        """All bindings of a session joined to character names."""
        async with self.connect() as db:
            cursor = await db.execute(
                "SELECT c.id, c.name, cva.voice_id FROM character_voice_assignments cva "
                "JOIN characters c ON c.id = cva.character_id "
                "WHERE cva.session_id = ? ORDER BY c.rowid",
                (session_id,)
            )
            rows = await cursor.fetchall()
        return [
            VoiceAssignment(
                session_id=session_id,
                character_id=row["id"],
                character_name=row["name"],
                voice_id=row["voice_id"]
            )
            for row in rows
        ]

    async def bound_voice_ids(self, session_id: str) -> Set[str]:
        return {a.voice_id for a in await self.get_voice_assignments(session_id)}
