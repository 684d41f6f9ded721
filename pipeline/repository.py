"""
Output Repository - SQLite persistence for translations and their per-language outputs.

Synchronous; the async pipeline reaches it through ResilientStore, which runs
every call in a worker thread under the store retry policy.
"""

import json
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from config.constants import SQLITE_TIMEOUT_SECONDS, TRANSLATION_PROMPT_SETTING
from config.logging_config import get_logger

from .output_record import (
    OutputRecord,
    ProofreadStatus,
    TransitionPlan,
    TranslationStatus,
    parse_timestamp,
    utc_now,
)

logger = get_logger(__name__)


# ========== Seed data ==========

DEFAULT_MODELS = [
    {"name": "GPT-5", "provider": "openai", "model_identifier": "gpt-5", "is_default": True},
    {"name": "GPT-5 Mini", "provider": "openai", "model_identifier": "gpt-5-mini", "is_default": False},
    {"name": "Claude 4.5 Sonnet", "provider": "anthropic", "model_identifier": "claude-sonnet-4-20250514", "is_default": False},
]

DEFAULT_LANGUAGES = [
    ("en", "English", "English"),
    ("es", "Spanish", "Español"),
    ("zh", "Chinese", "中文"),
    ("fr", "French", "Français"),
    ("de", "German", "Deutsch"),
    ("ja", "Japanese", "日本語"),
    ("ko", "Korean", "한국어"),
    ("ar", "Arabic", "العربية"),
    ("pt", "Portuguese", "Português"),
    ("hi", "Hindi", "हिन्दी"),
]

DEFAULT_SETTINGS = {
    TRANSLATION_PROMPT_SETTING: (
        "You are a professional translator specialized in marketing and business content. "
        "Translate the text while maintaining the tone, style, formatting, and intent of the "
        "original. Preserve any special formatting, bullet points, or emphasis. Return only "
        "the translated text without explanations or commentary."
    ),
}

_OUTPUT_COLUMNS = (
    "id", "translation_id", "language_code", "language_name", "model_id",
    "translated_text", "proofread_proposed_changes", "proofread_original_translation",
    "translation_status", "proofread_status",
    "translation_duration_ms", "translation_output_tokens",
    "proofread_duration_ms", "proofread_output_tokens",
    "error_message", "created_at", "updated_at",
)


def new_id() -> str:
    return uuid.uuid4().hex


def _to_timestamp(value: Union[datetime, str, None]) -> Optional[str]:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


class OutputRepository:
    """
    SQLite repository for translations, output records and reference data.

    Output rows are keyed by id; every status write is conditional on the id
    and the statuses the writer last saw, so a write from a superseded run
    matches zero rows.
    """

    def __init__(self, db_path: Union[str, Path] = "data/babellion.db"):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()
        logger.info(f"OutputRepository initialized: {self.db_path}")

    @contextmanager
    def _get_connection(self):
        """Get database connection with context manager."""
        conn = sqlite3.connect(str(self.db_path), timeout=SQLITE_TIMEOUT_SECONDS)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self):
        """Initialize database schema."""
        with self._get_connection() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS translations (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL DEFAULT '',
                    source_text TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS translation_outputs (
                    id TEXT PRIMARY KEY,
                    translation_id TEXT NOT NULL
                        REFERENCES translations(id) ON DELETE CASCADE,
                    language_code TEXT NOT NULL,
                    language_name TEXT NOT NULL,
                    model_id TEXT,

                    translated_text TEXT,
                    -- JSON: list of proposed changes, or the raw model text
                    proofread_proposed_changes TEXT,
                    proofread_original_translation TEXT,

                    translation_status TEXT NOT NULL DEFAULT 'pending',
                    proofread_status TEXT NOT NULL DEFAULT 'pending',

                    translation_duration_ms INTEGER,
                    translation_output_tokens INTEGER,
                    proofread_duration_ms INTEGER,
                    proofread_output_tokens INTEGER,

                    error_message TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                -- One record per (translation, language)
                CREATE UNIQUE INDEX IF NOT EXISTS idx_outputs_translation_language
                ON translation_outputs(translation_id, language_code);

                CREATE TABLE IF NOT EXISTS ai_models (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    provider TEXT NOT NULL,
                    model_identifier TEXT NOT NULL UNIQUE,
                    is_default INTEGER NOT NULL DEFAULT 0,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS languages (
                    id TEXT PRIMARY KEY,
                    code TEXT NOT NULL UNIQUE,
                    name TEXT NOT NULL,
                    native_name TEXT,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );
            """)

            logger.info("Database schema initialized")

    def seed_defaults(self) -> None:
        """Insert default models, languages and settings. Safe to call repeatedly."""
        now = utc_now().isoformat()
        with self._get_connection() as conn:
            for model in DEFAULT_MODELS:
                conn.execute("""
                    INSERT OR IGNORE INTO ai_models
                        (id, name, provider, model_identifier, is_default, is_active, created_at)
                    VALUES (?, ?, ?, ?, ?, 1, ?)
                """, (
                    new_id(), model["name"], model["provider"],
                    model["model_identifier"], int(model["is_default"]), now,
                ))

            for code, name, native_name in DEFAULT_LANGUAGES:
                conn.execute("""
                    INSERT OR IGNORE INTO languages (id, code, name, native_name, is_active, created_at)
                    VALUES (?, ?, ?, ?, 1, ?)
                """, (new_id(), code, name, native_name, now))

            for key, value in DEFAULT_SETTINGS.items():
                conn.execute(
                    "INSERT OR IGNORE INTO settings (key, value, updated_at) VALUES (?, ?, ?)",
                    (key, value, now),
                )

        logger.info(
            f"Seeded defaults: {len(DEFAULT_MODELS)} models, {len(DEFAULT_LANGUAGES)} languages"
        )

    # ========== Translations ==========

    def create_translation(self, translation_id: str, title: str, source_text: str) -> Dict[str, Any]:
        now = utc_now().isoformat()
        with self._get_connection() as conn:
            conn.execute("""
                INSERT INTO translations (id, title, source_text, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
            """, (translation_id, title, source_text, now, now))
        return {
            "id": translation_id,
            "title": title,
            "source_text": source_text,
            "created_at": now,
            "updated_at": now,
        }

    def get_translation(self, translation_id: str) -> Optional[Dict[str, Any]]:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM translations WHERE id = ?", (translation_id,)
            ).fetchone()
            return dict(row) if row else None

    def delete_translation(self, translation_id: str) -> bool:
        """Delete a translation and, by cascade, all of its outputs."""
        with self._get_connection() as conn:
            cursor = conn.execute("DELETE FROM translations WHERE id = ?", (translation_id,))
            return cursor.rowcount > 0

    # ========== Reference data ==========

    def list_models(self, active_only: bool = True) -> List[Dict[str, Any]]:
        query = "SELECT * FROM ai_models"
        if active_only:
            query += " WHERE is_active = 1"
        query += " ORDER BY is_default DESC, name ASC"
        with self._get_connection() as conn:
            return [self._row_to_model(row) for row in conn.execute(query).fetchall()]

    def get_model(self, model_id: str) -> Optional[Dict[str, Any]]:
        with self._get_connection() as conn:
            row = conn.execute("SELECT * FROM ai_models WHERE id = ?", (model_id,)).fetchone()
            return self._row_to_model(row) if row else None

    def get_default_model(self) -> Optional[Dict[str, Any]]:
        with self._get_connection() as conn:
            row = conn.execute("""
                SELECT * FROM ai_models
                WHERE is_active = 1
                ORDER BY is_default DESC, created_at ASC
                LIMIT 1
            """).fetchone()
            return self._row_to_model(row) if row else None

    def list_languages(self, active_only: bool = True) -> List[Dict[str, Any]]:
        query = "SELECT * FROM languages"
        if active_only:
            query += " WHERE is_active = 1"
        query += " ORDER BY name ASC"
        with self._get_connection() as conn:
            return [self._row_to_language(row) for row in conn.execute(query).fetchall()]

    def get_languages(self, codes: Iterable[str]) -> List[Dict[str, Any]]:
        """Active languages among `codes`, in no particular order."""
        codes = list(codes)
        if not codes:
            return []
        placeholders = ", ".join("?" for _ in codes)
        with self._get_connection() as conn:
            rows = conn.execute(
                f"SELECT * FROM languages WHERE is_active = 1 AND code IN ({placeholders})",
                codes,
            ).fetchall()
            return [self._row_to_language(row) for row in rows]

    def get_setting(self, key: str) -> Optional[str]:
        with self._get_connection() as conn:
            row = conn.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
            return row["value"] if row else None

    def set_setting(self, key: str, value: str) -> None:
        with self._get_connection() as conn:
            conn.execute("""
                INSERT INTO settings (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
            """, (key, value, utc_now().isoformat()))

    # ========== Outputs ==========

    def replace_output(self, record: OutputRecord) -> OutputRecord:
        """
        Delete any output for (translation, language) and insert `record`,
        in one transaction.
        """
        values = self._output_values(record)
        with self._get_connection() as conn:
            conn.execute(
                "DELETE FROM translation_outputs WHERE translation_id = ? AND language_code = ?",
                (record.translation_id, record.language_code),
            )
            conn.execute(
                f"INSERT INTO translation_outputs ({', '.join(_OUTPUT_COLUMNS)}) "
                f"VALUES ({', '.join('?' for _ in _OUTPUT_COLUMNS)})",
                [values[column] for column in _OUTPUT_COLUMNS],
            )
        return record

    def get_output(self, output_id: str) -> Optional[OutputRecord]:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM translation_outputs WHERE id = ?", (output_id,)
            ).fetchone()
            return self._row_to_output(row) if row else None

    def list_outputs(self, translation_id: str) -> List[OutputRecord]:
        with self._get_connection() as conn:
            rows = conn.execute("""
                SELECT * FROM translation_outputs
                WHERE translation_id = ?
                ORDER BY language_name ASC
            """, (translation_id,)).fetchall()
            return [self._row_to_output(row) for row in rows]

    def apply_transition(self, plan: TransitionPlan, updated_at: datetime) -> bool:
        """
        Write a validated transition.

        Returns:
            False if no row matched: the record was deleted by a newer run or
            moved out of the expected state.
        """
        changes = {
            column: self._encode_output_value(column, value)
            for column, value in plan.changes.items()
        }
        changes["updated_at"] = updated_at.isoformat()

        assignments = ", ".join(f"{column} = ?" for column in changes)
        with self._get_connection() as conn:
            cursor = conn.execute(
                f"UPDATE translation_outputs SET {assignments} "
                "WHERE id = ? AND translation_status = ? AND proofread_status = ?",
                [
                    *changes.values(),
                    plan.output_id,
                    plan.expected_translation_status.value,
                    plan.expected_proofread_status.value,
                ],
            )
            return cursor.rowcount > 0

    def update_output_text(self, output_id: str, translated_text: str) -> bool:
        """
        Manual edit of a finished translation.

        False unless the translation is completed and proofreading is
        completed, failed or skipped.
        """
        with self._get_connection() as conn:
            cursor = conn.execute("""
                UPDATE translation_outputs
                SET translated_text = ?, updated_at = ?
                WHERE id = ? AND translation_status = ?
                  AND proofread_status IN (?, ?, ?)
            """, (
                translated_text,
                utc_now().isoformat(),
                output_id,
                TranslationStatus.COMPLETED.value,
                ProofreadStatus.COMPLETED.value,
                ProofreadStatus.FAILED.value,
                ProofreadStatus.SKIPPED.value,
            ))
            return cursor.rowcount > 0

    # ========== Row mapping ==========

    @staticmethod
    def _encode_output_value(column: str, value: Any) -> Any:
        if column == "proofread_proposed_changes":
            return json.dumps(value, ensure_ascii=False) if value is not None else None
        if column in ("translation_status", "proofread_status"):
            return value.value
        if column in ("created_at", "updated_at"):
            return _to_timestamp(value)
        return value

    def _output_values(self, record: OutputRecord) -> Dict[str, Any]:
        return {
            column: self._encode_output_value(column, getattr(record, column))
            for column in _OUTPUT_COLUMNS
        }

    def _row_to_output(self, row: sqlite3.Row) -> OutputRecord:
        """Convert database row to an OutputRecord."""
        proposal = row["proofread_proposed_changes"]
        return OutputRecord(
            id=row["id"],
            translation_id=row["translation_id"],
            language_code=row["language_code"],
            language_name=row["language_name"],
            model_id=row["model_id"],
            translated_text=row["translated_text"],
            proofread_proposed_changes=json.loads(proposal) if proposal is not None else None,
            proofread_original_translation=row["proofread_original_translation"],
            translation_status=TranslationStatus(row["translation_status"]),
            proofread_status=ProofreadStatus(row["proofread_status"]),
            translation_duration_ms=row["translation_duration_ms"],
            translation_output_tokens=row["translation_output_tokens"],
            proofread_duration_ms=row["proofread_duration_ms"],
            proofread_output_tokens=row["proofread_output_tokens"],
            error_message=row["error_message"],
            created_at=parse_timestamp(row["created_at"]),
            updated_at=parse_timestamp(row["updated_at"]),
        )

    @staticmethod
    def _row_to_model(row: sqlite3.Row) -> Dict[str, Any]:
        return {
            "id": row["id"],
            "name": row["name"],
            "provider": row["provider"],
            "model_identifier": row["model_identifier"],
            "is_default": bool(row["is_default"]),
            "is_active": bool(row["is_active"]),
        }

    @staticmethod
    def _row_to_language(row: sqlite3.Row) -> Dict[str, Any]:
        return {
            "id": row["id"],
            "code": row["code"],
            "name": row["name"],
            "native_name": row["native_name"],
            "is_active": bool(row["is_active"]),
        }


# Singleton instance
_repository: Optional[OutputRepository] = None

def get_output_repository(db_path: Union[str, Path, None] = None) -> OutputRepository:
    """Get or create the output repository singleton."""
    global _repository
    if _repository is None:
        if db_path is None:
            from config.settings import settings
            db_path = settings.database_path
        _repository = OutputRepository(db_path)
    return _repository
