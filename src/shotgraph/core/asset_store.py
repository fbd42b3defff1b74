"""SQLite store for subject profiles and image assets."""

import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .attributes import Gender
from .images import ImageRef

logger = logging.getLogger(__name__)


class SubjectProfile(BaseModel):
    """A reusable character identity with its reference images."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    description: str | None = None
    gender: Gender | None = None
    body_type: str | None = None
    type: Literal["Real Person", "Created Character"] = "Created Character"
    images: tuple[ImageRef, ...] = ()
    tags: tuple[str, ...] = ()


class StoredAsset(BaseModel):
    """An uploaded image asset."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    image: ImageRef
    label: str | None = None
    created_at: str | None = None


class AssetStore:
    """Manage subject profiles and image assets using SQLite.

    Two collections, ``subjects`` and ``assets``, each keyed by id with the
    record stored as JSON.  Every operation opens its own connection, so the
    store can be shared freely within one process.
    """

    def __init__(self, db_path: Path):
        """Initialize the asset database.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize_db()
        logger.info(f"Initialized asset database at {self.db_path}")

    def _initialize_db(self) -> None:
        """Create database schema if it doesn't exist."""
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS subjects (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    payload TEXT NOT NULL,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
                """)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS assets (
                    id TEXT PRIMARY KEY,
                    payload TEXT NOT NULL,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
                """)
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_subjects_name
                ON subjects(name)
                """)
            conn.commit()

    # --- Subjects -----------------------------------------------------------

    def put_subject(self, profile: SubjectProfile) -> bool:
        """Insert or replace a subject profile.

        Returns:
            True if stored, False on database error
        """
        try:
            with sqlite3.connect(self.db_path) as conn:
                conn.execute(
                    """
                    INSERT OR REPLACE INTO subjects (id, name, payload, updated_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (profile.id, profile.name, profile.model_dump_json(), datetime.now().isoformat()),
                )
                conn.commit()
            logger.info(f"Stored subject profile: {profile.id} ({profile.name})")
            return True

        except sqlite3.Error as e:
            logger.error(f"Error storing subject {profile.id}: {e}")
            return False

    def get_subject(self, subject_id: str) -> SubjectProfile | None:
        """Look up a subject profile by id.

        Returns:
            The profile, or None if absent or unreadable
        """
        try:
            with sqlite3.connect(self.db_path) as conn:
                row = conn.execute(
                    "SELECT payload FROM subjects WHERE id = ? LIMIT 1", (subject_id,)
                ).fetchone()

        except sqlite3.Error as e:
            logger.error(f"Error reading subject {subject_id}: {e}")
            return None

        if row is None:
            return None
        return self._load(SubjectProfile, row[0])

    def delete_subject(self, subject_id: str) -> bool:
        """Delete a subject profile.

        Returns:
            True if deleted, False if it did not exist
        """
        return self._delete("subjects", subject_id)

    def list_subjects(self) -> list[SubjectProfile]:
        """Get all subject profiles, sorted by name."""
        try:
            with sqlite3.connect(self.db_path) as conn:
                rows = conn.execute("SELECT payload FROM subjects ORDER BY name, id").fetchall()

        except sqlite3.Error as e:
            logger.error(f"Error listing subjects: {e}")
            return []

        profiles = (self._load(SubjectProfile, row[0]) for row in rows)
        return [p for p in profiles if p is not None]

    def subject_library(self) -> dict[str, SubjectProfile]:
        """All profiles keyed by id, in the shape the prompt compiler expects."""
        return {profile.id: profile for profile in self.list_subjects()}

    # --- Assets -------------------------------------------------------------

    def put_asset(self, asset_id: str, image: ImageRef, label: str | None = None) -> StoredAsset | None:
        """Insert or replace an image asset.

        Returns:
            The stored record, or None on database error
        """
        asset = StoredAsset(
            id=asset_id, image=image, label=label, created_at=datetime.now().isoformat()
        )
        try:
            with sqlite3.connect(self.db_path) as conn:
                conn.execute(
                    "INSERT OR REPLACE INTO assets (id, payload, created_at) VALUES (?, ?, ?)",
                    (asset.id, asset.model_dump_json(), asset.created_at),
                )
                conn.commit()
            logger.info(f"Stored asset: {asset_id} ({image.mime_type})")
            return asset

        except sqlite3.Error as e:
            logger.error(f"Error storing asset {asset_id}: {e}")
            return None

    def get_asset(self, asset_id: str) -> StoredAsset | None:
        try:
            with sqlite3.connect(self.db_path) as conn:
                row = conn.execute(
                    "SELECT payload FROM assets WHERE id = ? LIMIT 1", (asset_id,)
                ).fetchone()

        except sqlite3.Error as e:
            logger.error(f"Error reading asset {asset_id}: {e}")
            return None

        return self._load(StoredAsset, row[0]) if row else None

    def delete_asset(self, asset_id: str) -> bool:
        return self._delete("assets", asset_id)

    def list_assets(self) -> list[StoredAsset]:
        """Get all assets, newest first."""
        try:
            with sqlite3.connect(self.db_path) as conn:
                rows = conn.execute(
                    "SELECT payload FROM assets ORDER BY created_at DESC, id"
                ).fetchall()

        except sqlite3.Error as e:
            logger.error(f"Error listing assets: {e}")
            return []

        assets = (self._load(StoredAsset, row[0]) for row in rows)
        return [a for a in assets if a is not None]

    # --- Helpers ------------------------------------------------------------

    def _delete(self, table: Literal["subjects", "assets"], record_id: str) -> bool:
        try:
            with sqlite3.connect(self.db_path) as conn:
                cursor = conn.cursor()
                cursor.execute(f"DELETE FROM {table} WHERE id = ?", (record_id,))
                conn.commit()
                was_deleted = cursor.rowcount > 0

        except sqlite3.Error as e:
            logger.error(f"Error deleting {record_id} from {table}: {e}")
            return False

        if was_deleted:
            logger.info(f"Deleted {record_id} from {table}")
        else:
            logger.debug(f"Not in {table}: {record_id}")
        return was_deleted

    @staticmethod
    def _load(model, payload: str):
        try:
            return model.model_validate(json.loads(payload))
        except (ValueError, ValidationError) as e:
            logger.warning(f"Skipping unreadable {model.__name__} record: {e}")
            return None

    def clear(self) -> None:
        """Remove every subject and asset.

        This is primarily for testing purposes.
        """
        try:
            with sqlite3.connect(self.db_path) as conn:
                conn.execute("DELETE FROM subjects")
                conn.execute("DELETE FROM assets")
                conn.commit()
                logger.info("Cleared asset database")

        except sqlite3.Error as e:
            logger.error(f"Error clearing asset database: {e}")
