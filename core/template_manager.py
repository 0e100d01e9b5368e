"""
Template Manager Module

This module handles persistence and retrieval of enrolled face templates and
the authentication audit log.

Everything lives in one SQLite database:
- face_templates: one row per enrolled user, the fused descriptor stored as
  a float32 BLOB next to its metadata
- auth_logs: one row per authentication attempt (outcome and scores only,
  never images or descriptors)

A template is replaced with a single upsert inside a transaction, so a reader
always sees either the old row or the new one.

Usage:
    from core.template_manager import TemplateManager

    manager = TemplateManager(db_path="storage/face_auth.sqlite")
    manager.save_template(template)
    loaded = manager.load_template("user_42")
    manager.replace_template(new_template)
    manager.delete_template("user_42")
"""

import logging
import sqlite3
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np

from core.errors import AlreadyEnrolledError

# Setup logging
logger = logging.getLogger(__name__)


@dataclass
class FaceTemplate:
    """
    An enrolled face template.

    Owned by exactly one user. Replaced wholesale on re-enrollment and never
    updated element-wise.

    Attributes:
        user_id: Owner of the template.
        template_id: Opaque unique ID assigned at enrollment time.
        descriptor: Fused face descriptor, shape (D,), float32, read-only.
        created_at: When the template was built (timezone-aware, UTC).
        n_captures: Number of captures fused into the descriptor.
    """

    user_id: str
    template_id: str
    descriptor: np.ndarray
    created_at: datetime
    n_captures: int = 0

    def __post_init__(self):
        """Normalize the descriptor to a read-only float32 vector."""
        descriptor = np.array(self.descriptor, dtype=np.float32).ravel()
        descriptor.setflags(write=False)
        self.descriptor = descriptor

    @property
    def descriptor_dim(self) -> int:
        """Return the length of the descriptor."""
        return len(self.descriptor)


def _to_iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def _from_iso(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromisoformat(value)


class TemplateManager:
    """
    Durable, user-keyed store for face templates and auth logs.

    One SQLite connection is shared by all threads and guarded by a lock;
    each public method runs as its own transaction.

    Attributes:
        db_path: Path to the SQLite database file.
    """

    def __init__(self, db_path: str):
        """
        Initialize the TemplateManager.

        Creates the database and its parent directory if they don't exist.

        Args:
            db_path: Path to SQLite database file, or ":memory:".
        """
        self.db_path = Path(db_path) if db_path != ":memory:" else None
        self._db_target = db_path
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()

        if self.db_path is not None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._init_database()

        logger.info(f"TemplateManager initialized: db={db_path}")

    def _get_connection(self) -> sqlite3.Connection:
        """
        Get or create the SQLite connection.

        Returns:
            SQLite connection with Row factory for dict-like access.
        """
        if self._conn is None:
            self._conn = sqlite3.connect(str(self._db_target), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def _init_database(self) -> None:
        """
        Initialize the SQLite database schema.

        Creates tables if they don't exist:
        - face_templates: one fused descriptor per enrolled user
        - auth_logs: authentication attempt history (for auditing)
        """
        with self._lock:
            conn = self._get_connection()
            with conn:
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS face_templates (
                        user_id TEXT PRIMARY KEY,
                        template_id TEXT NOT NULL UNIQUE,
                        descriptor BLOB NOT NULL,
                        descriptor_dim INTEGER NOT NULL,
                        n_captures INTEGER,
                        enrolled_at TEXT NOT NULL
                    )
                """)

                conn.execute("""
                    CREATE TABLE IF NOT EXISTS auth_logs (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        user_id TEXT,
                        timestamp TEXT NOT NULL,
                        outcome TEXT NOT NULL,
                        is_match BOOLEAN,
                        distance REAL,
                        confidence_percent INTEGER,
                        template_id TEXT,
                        processing_time_ms INTEGER
                    )
                """)

        logger.debug("Database schema initialized")

    @staticmethod
    def _template_row(template: FaceTemplate) -> tuple:
        return (
            template.user_id,
            template.template_id,
            template.descriptor.astype(np.float32).tobytes(),
            template.descriptor_dim,
            template.n_captures,
            _to_iso(template.created_at),
        )

    def save_template(self, template: FaceTemplate) -> str:
        """
        Store the first template for a user.

        Args:
            template: FaceTemplate object to save.

        Returns:
            The stored template ID.

        Raises:
            AlreadyEnrolledError: If the user already has a template.
        """
        with self._lock:
            conn = self._get_connection()
            try:
                with conn:
                    conn.execute("""
                        INSERT INTO face_templates
                        (user_id, template_id, descriptor, descriptor_dim, n_captures, enrolled_at)
                        VALUES (?, ?, ?, ?, ?, ?)
                    """, self._template_row(template))
            except sqlite3.IntegrityError as e:
                raise AlreadyEnrolledError(
                    "Face authentication is already enabled for this user",
                    details={"user_id": template.user_id},
                ) from e

        logger.info(f"Saved template {template.template_id} for user {template.user_id} "
                    f"(dim={template.descriptor_dim}, captures={template.n_captures})")

        return template.template_id

    def replace_template(self, template: FaceTemplate) -> Optional[str]:
        """
        Atomically store a template, replacing the user's current one.

        The old descriptor is discarded in the same transaction that makes
        the new one visible.

        Args:
            template: Fully built replacement template.

        Returns:
            The template ID that was replaced, or None if there was none.
        """
        with self._lock:
            conn = self._get_connection()
            with conn:
                row = conn.execute(
                    "SELECT template_id FROM face_templates WHERE user_id = ?",
                    (template.user_id,),
                ).fetchone()

                conn.execute("""
                    INSERT INTO face_templates
                    (user_id, template_id, descriptor, descriptor_dim, n_captures, enrolled_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    ON CONFLICT(user_id) DO UPDATE SET
                        template_id = excluded.template_id,
                        descriptor = excluded.descriptor,
                        descriptor_dim = excluded.descriptor_dim,
                        n_captures = excluded.n_captures,
                        enrolled_at = excluded.enrolled_at
                """, self._template_row(template))

        previous_id = row["template_id"] if row is not None else None
        logger.info(f"Replaced template for user {template.user_id}: "
                    f"{previous_id} -> {template.template_id}")

        return previous_id

    def load_template(self, user_id: str) -> Optional[FaceTemplate]:
        """
        Load a user's template.

        A stored descriptor that cannot be decoded is returned as an empty
        vector so the matcher fails closed on it.

        Args:
            user_id: The user's identifier.

        Returns:
            FaceTemplate object, or None if the user is not enrolled.
        """
        with self._lock:
            conn = self._get_connection()
            row = conn.execute("""
                SELECT user_id, template_id, descriptor, descriptor_dim, n_captures, enrolled_at
                FROM face_templates
                WHERE user_id = ?
            """, (user_id,)).fetchone()

        if row is None:
            return None

        blob = row["descriptor"] or b""
        itemsize = np.dtype(np.float32).itemsize
        if len(blob) % itemsize != 0 or len(blob) // itemsize != row["descriptor_dim"]:
            logger.error(f"Stored descriptor for user {user_id} is corrupt "
                         f"({len(blob)} bytes, expected dim {row['descriptor_dim']})")
            descriptor = np.zeros(0, dtype=np.float32)
        else:
            descriptor = np.frombuffer(blob, dtype=np.float32)

        return FaceTemplate(
            user_id=row["user_id"],
            template_id=row["template_id"],
            descriptor=descriptor,
            created_at=_from_iso(row["enrolled_at"]),
            n_captures=row["n_captures"] or 0,
        )

    def delete_template(self, user_id: str) -> bool:
        """
        Delete a user's template. Auth logs are kept for auditing.

        Args:
            user_id: The user's identifier.

        Returns:
            True if a template was deleted, False if there was none.
        """
        with self._lock:
            conn = self._get_connection()
            with conn:
                cursor = conn.execute("DELETE FROM face_templates WHERE user_id = ?", (user_id,))
                deleted = cursor.rowcount > 0

        if deleted:
            logger.info(f"Deleted template for user {user_id}")
        else:
            logger.debug(f"No template to delete for user {user_id}")

        return deleted

    def user_exists(self, user_id: str) -> bool:
        """
        Check if a user has an enrolled template.

        Args:
            user_id: The user's identifier.

        Returns:
            True if a template exists, False otherwise.
        """
        with self._lock:
            conn = self._get_connection()
            row = conn.execute("SELECT 1 FROM face_templates WHERE user_id = ?", (user_id,)).fetchone()
        return row is not None

    def get_status(self, user_id: str) -> Dict[str, Any]:
        """
        Get enrollment status without touching the descriptor.

        Returns:
            Dictionary with enabled, enrolled_at, has_template and template_id.
        """
        with self._lock:
            conn = self._get_connection()
            row = conn.execute("""
                SELECT template_id, enrolled_at, length(descriptor) AS descriptor_bytes
                FROM face_templates
                WHERE user_id = ?
            """, (user_id,)).fetchone()

        if row is None:
            return {"enabled": False, "enrolled_at": None, "has_template": False, "template_id": None}

        return {
            "enabled": True,
            "enrolled_at": _from_iso(row["enrolled_at"]),
            "has_template": bool(row["descriptor_bytes"]),
            "template_id": row["template_id"],
        }

    def log_authentication(
        self,
        user_id: Optional[str],
        outcome: str,
        is_match: bool,
        distance: Optional[float] = None,
        confidence_percent: Optional[int] = None,
        template_id: Optional[str] = None,
        processing_time_ms: int = 0,
    ) -> int:
        """
        Log an authentication attempt for auditing.

        Args:
            user_id: User the attempt was made for.
            outcome: "match", "no_match", or the error code that ended the attempt.
            is_match: Whether authentication succeeded.
            distance: Descriptor distance, if matching ran.
            confidence_percent: Display confidence, if matching ran.
            template_id: Template the capture was compared against.
            processing_time_ms: Total processing time in milliseconds.

        Returns:
            The log entry ID.
        """
        with self._lock:
            conn = self._get_connection()
            with conn:
                cursor = conn.execute("""
                    INSERT INTO auth_logs
                    (user_id, timestamp, outcome, is_match, distance,
                     confidence_percent, template_id, processing_time_ms)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    user_id,
                    _to_iso(datetime.now(timezone.utc)),
                    outcome,
                    is_match,
                    distance,
                    confidence_percent,
                    template_id,
                    processing_time_ms,
                ))
                log_id = cursor.lastrowid

        logger.debug(f"Logged authentication attempt: id={log_id}, user={user_id}, outcome={outcome}")

        return log_id

    def get_auth_logs(
        self,
        user_id: Optional[str] = None,
        limit: int = 100
    ) -> List[Dict[str, Any]]:
        """
        Get authentication attempt logs, newest first.

        Args:
            user_id: Filter by user ID (optional).
            limit: Maximum number of entries to return.

        Returns:
            List of log entries as dictionaries.
        """
        with self._lock:
            conn = self._get_connection()
            if user_id:
                rows = conn.execute("""
                    SELECT * FROM auth_logs
                    WHERE user_id = ?
                    ORDER BY id DESC
                    LIMIT ?
                """, (user_id, limit)).fetchall()
            else:
                rows = conn.execute("""
                    SELECT * FROM auth_logs
                    ORDER BY id DESC
                    LIMIT ?
                """, (limit,)).fetchall()

        logs = []
        for row in rows:
            logs.append({
                "id": row["id"],
                "user_id": row["user_id"],
                "timestamp": _from_iso(row["timestamp"]),
                "outcome": row["outcome"],
                "is_match": bool(row["is_match"]),
                "distance": row["distance"],
                "confidence_percent": row["confidence_percent"],
                "template_id": row["template_id"],
                "processing_time_ms": row["processing_time_ms"],
            })

        return logs

    def get_stats(self) -> Dict[str, Any]:
        """
        Get statistics about the template database.

        Returns:
            Dictionary with:
            - total_users: Number of enrolled users
            - total_auth_attempts: Number of authentication attempts
            - successful_auths: Number of successful authentications
        """
        with self._lock:
            conn = self._get_connection()
            user_stats = conn.execute("SELECT COUNT(*) AS count FROM face_templates").fetchone()
            auth_stats = conn.execute(
                "SELECT COUNT(*) AS total, SUM(is_match) AS successes FROM auth_logs"
            ).fetchone()

        return {
            "total_users": user_stats["count"] or 0,
            "total_auth_attempts": auth_stats["total"] or 0,
            "successful_auths": int(auth_stats["successes"] or 0),
        }

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                logger.debug("Database connection closed")


# Singleton instance for the manager
_manager_instance: Optional[TemplateManager] = None


def get_template_manager(db_path: Optional[str] = None) -> TemplateManager:
    """
    Get or create the singleton TemplateManager instance.

    Args:
        db_path: Path to SQLite database.
                 If None, uses the value from config.

    Returns:
        The shared TemplateManager instance.
    """
    global _manager_instance

    if _manager_instance is None:
        if db_path is None:
            from core.config import get_storage_config, get_project_root

            storage_config = get_storage_config()
            db_path = storage_config["db_path"]
            if db_path != ":memory:" and not Path(db_path).is_absolute():
                db_path = str(get_project_root() / db_path)

        _manager_instance = TemplateManager(db_path)

    return _manager_instance
