"""SQLite persistence for users, refresh tokens and videos."""

from __future__ import annotations

import sqlite3
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        password TEXT NOT NULL,
        email TEXT UNIQUE NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS refresh_tokens (
        token TEXT PRIMARY KEY,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        revoked_at TIMESTAMP,
        user_id TEXT NOT NULL,
        expires_at TIMESTAMP NOT NULL,
        FOREIGN KEY(user_id) REFERENCES users(id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS videos (
        id TEXT PRIMARY KEY,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        title TEXT NOT NULL,
        description TEXT,
        thumbnail_url TEXT,
        video_url TEXT TEXT,
        user_id INTEGER,
        FOREIGN KEY(user_id) REFERENCES users(id)
    )
    """,
)

_VIDEO_COLUMNS = (
    "id, created_at, updated_at, title, description, thumbnail_url, video_url, user_id"
)


def _parse_time(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _store_time(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _format_time(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _as_uuid(value: Any) -> uuid.UUID:
    return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))


@dataclass
class User:
    """A registered user; ``password`` holds the stored hash."""

    id: uuid.UUID
    email: str
    password: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON representation of the user."""
        return {
            "id": str(self.id),
            "created_at": _format_time(self.created_at),
            "updated_at": _format_time(self.updated_at),
            "email": self.email,
            "password": self.password,
        }


@dataclass
class Video:
    """Metadata for an uploaded video."""

    id: uuid.UUID
    title: str
    description: str
    user_id: uuid.UUID
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    thumbnail_url: Optional[str] = None
    video_url: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON representation of the video."""
        return {
            "id": str(self.id),
            "created_at": _format_time(self.created_at),
            "updated_at": _format_time(self.updated_at),
            "thumbnail_url": self.thumbnail_url,
            "video_url": self.video_url,
            "title": self.title,
            "description": self.description,
            "user_id": str(self.user_id),
        }


@dataclass
class RefreshToken:
    """A refresh token issued to a user."""

    token: str
    user_id: uuid.UUID
    expires_at: datetime
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    revoked_at: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON representation of the token."""
        return {
            "token": self.token,
            "user_id": str(self.user_id),
            "expires_at": _format_time(self.expires_at),
            "created_at": _format_time(self.created_at),
            "updated_at": _format_time(self.updated_at),
            "revoked_at": _format_time(self.revoked_at),
        }


class Client:
    """Database client; creates the schema on open."""

    def __init__(self, path: str) -> None:
        self._conn = sqlite3.connect(
            str(path), isolation_level=None, check_same_thread=False
        )
        for statement in _SCHEMA:
            self._conn.execute(statement)

    def __enter__(self) -> "Client":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying connection."""
        self._conn.close()

    def reset(self) -> None:
        """Delete every row from every table."""
        for table in ("refresh_tokens", "users", "videos"):
            try:
                self._conn.execute(f"DELETE FROM {table}")
            except sqlite3.Error as exc:
                raise sqlite3.DatabaseError(
                    f"failed to reset table {table}: {exc}"
                ) from exc

    # Refresh tokens

    def create_refresh_token(
        self, token: str, user_id: uuid.UUID, expires_at: datetime
    ) -> Optional[RefreshToken]:
        """Store a refresh token and return it as saved."""
        self._conn.execute(
            """
            INSERT INTO refresh_tokens (token, created_at, updated_at, user_id, expires_at)
            VALUES (?, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP, ?, ?)
            """,
            (token, str(user_id), _store_time(expires_at)),
        )
        return self.get_refresh_token(token)

    def revoke_refresh_token(self, token: str) -> None:
        """Mark a refresh token as revoked now."""
        self._conn.execute(
            "UPDATE refresh_tokens SET revoked_at = CURRENT_TIMESTAMP WHERE token = ?",
            (token,),
        )

    def get_refresh_token(self, token: str) -> Optional[RefreshToken]:
        """Return the refresh token, or None if it is unknown."""
        row = self._conn.execute(
            """
            SELECT token, created_at, updated_at, user_id, expires_at, revoked_at
            FROM refresh_tokens WHERE token = ?
            """,
            (token,),
        ).fetchone()
        if row is None:
            return None
        token_value, created, updated, user_id, expires, revoked = row
        return RefreshToken(
            token=token_value,
            user_id=_as_uuid(user_id),
            expires_at=_parse_time(expires),
            created_at=_parse_time(created),
            updated_at=_parse_time(updated),
            revoked_at=_parse_time(revoked),
        )

    def delete_refresh_token(self, token: str) -> None:
        """Remove a refresh token."""
        self._conn.execute("DELETE FROM refresh_tokens WHERE token = ?", (token,))

    # Users

    def get_users(self) -> list[User]:
        """Return all users with only their id and e-mail filled in."""
        rows = self._conn.execute("SELECT id, email FROM users").fetchall()
        return [User(id=_as_uuid(user_id), email=email) for user_id, email in rows]

    def _user_from_row(self, row: tuple) -> User:
        user_id, created, updated, email, password = row
        return User(
            id=_as_uuid(user_id),
            email=email,
            password=password,
            created_at=_parse_time(created),
            updated_at=_parse_time(updated),
        )

    def get_user_by_email(self, email: str) -> Optional[User]:
        """Return the user with this e-mail, or None."""
        row = self._conn.execute(
            "SELECT id, created_at, updated_at, email, password FROM users WHERE email = ?",
            (email,),
        ).fetchone()
        return None if row is None else self._user_from_row(row)

    def get_user_by_refresh_token(self, token: str) -> Optional[User]:
        """Return the user that owns the refresh token, or None."""
        row = self._conn.execute(
            """
            SELECT u.id, u.created_at, u.updated_at, u.email, u.password
            FROM users u
            JOIN refresh_tokens rt ON u.id = rt.user_id
            WHERE rt.token = ?
            """,
            (token,),
        ).fetchone()
        return None if row is None else self._user_from_row(row)

    def create_user(self, email: str, password: str) -> Optional[User]:
        """Insert a user with a new id and return it."""
        user_id = uuid.uuid4()
        self._conn.execute(
            """
            INSERT INTO users (id, created_at, updated_at, email, password)
            VALUES (?, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP, ?, ?)
            """,
            (str(user_id), email, password),
        )
        return self.get_user(user_id)

    def get_user(self, user_id: uuid.UUID) -> Optional[User]:
        """Return the user with this id, or None."""
        row = self._conn.execute(
            "SELECT id, created_at, updated_at, email, password FROM users WHERE id = ?",
            (str(user_id),),
        ).fetchone()
        return None if row is None else self._user_from_row(row)

    def delete_user(self, user_id: uuid.UUID) -> None:
        """Remove a user."""
        self._conn.execute("DELETE FROM users WHERE id = ?", (str(user_id),))

    # Videos

    @staticmethod
    def _video_from_row(row: tuple) -> Video:
        video_id, created, updated, title, description, thumb, url, user_id = row
        return Video(
            id=_as_uuid(video_id),
            title=title,
            description=description,
            user_id=_as_uuid(user_id),
            created_at=_parse_time(created),
            updated_at=_parse_time(updated),
            thumbnail_url=thumb,
            video_url=url,
        )

    def get_videos(self, user_id: uuid.UUID) -> list[Video]:
        """Return a user's videos, newest first."""
        rows = self._conn.execute(
            f"SELECT {_VIDEO_COLUMNS} FROM videos WHERE user_id = ? "
            "ORDER BY created_at DESC",
            (str(user_id),),
        ).fetchall()
        return [self._video_from_row(row) for row in rows]

    def create_video(
        self, title: str, description: str, user_id: uuid.UUID
    ) -> Optional[Video]:
        """Insert a video with a new id and return it."""
        video_id = uuid.uuid4()
        self._conn.execute(
            """
            INSERT INTO videos (id, created_at, updated_at, title, description, user_id)
            VALUES (?, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP, ?, ?, ?)
            """,
            (str(video_id), title, description, str(user_id)),
        )
        return self.get_video(video_id)

    def get_video(self, video_id: uuid.UUID) -> Optional[Video]:
        """Return the video with this id, or None."""
        row = self._conn.execute(
            f"SELECT {_VIDEO_COLUMNS} FROM videos WHERE id = ?", (str(video_id),)
        ).fetchone()
        return None if row is None else self._video_from_row(row)

    def update_video(self, video: Video) -> None:
        """Write a video's editable fields back to the database."""
        self._conn.execute(
            """
            UPDATE videos
            SET title = ?, description = ?, thumbnail_url = ?, video_url = ?, user_id = ?
            WHERE id = ?
            """,
            (
                video.title,
                video.description,
                video.thumbnail_url,
                video.video_url,
                str(video.user_id),
                str(video.id),
            ),
        )

    def delete_video(self, video_id: uuid.UUID) -> None:
        """Remove a video."""
        self._conn.execute("DELETE FROM videos WHERE id = ?", (str(video_id),))