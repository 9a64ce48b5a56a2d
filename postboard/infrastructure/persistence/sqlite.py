import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Union

from ...domain.errors import NotFoundError
from ...domain.models import Post, Reply, Subscription, SubscriptionStatus, User
from ...domain.ports.persistence import PersistenceGateway


class SQLitePersistence(PersistenceGateway):
    """SQLite-backed implementation of the persistence gateway."""

    def __init__(self, path: Union[Path, str]) -> None:
        if str(path) != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._initialize()

    def _initialize(self) -> None:
        with self._conn:
            self._conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    email TEXT NOT NULL UNIQUE,
                    username TEXT NOT NULL,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    subscription_status TEXT NOT NULL DEFAULT 'inactive',
                    stripe_customer_id TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE UNIQUE INDEX IF NOT EXISTS idx_users_stripe_customer_id
                    ON users(stripe_customer_id);

                CREATE TABLE IF NOT EXISTS subscriptions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    stripe_customer_id TEXT NOT NULL,
                    stripe_subscription_id TEXT NOT NULL UNIQUE,
                    status TEXT NOT NULL,
                    current_period_start TEXT NOT NULL,
                    current_period_end TEXT NOT NULL,
                    cancel_at_period_end INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    FOREIGN KEY(user_id) REFERENCES users(id)
                );

                CREATE INDEX IF NOT EXISTS idx_subscriptions_user_id
                    ON subscriptions(user_id, created_at DESC);

                CREATE TABLE IF NOT EXISTS posts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    title TEXT NOT NULL,
                    content TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'pending',
                    created_at TEXT NOT NULL,
                    FOREIGN KEY(user_id) REFERENCES users(id)
                );

                CREATE TABLE IF NOT EXISTS replies (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    post_id INTEGER NOT NULL,
                    user_id INTEGER,
                    content TEXT NOT NULL,
                    is_anonymous INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY(post_id) REFERENCES posts(id) ON DELETE CASCADE
                );
                """
            )

    def close(self) -> None:
        self._conn.close()

    # UserRepository API ----------------------------------------------------
    def create_user(self, email: str, username: str) -> User:
        now = self._now()
        with self._lock, self._conn:
            cur = self._conn.execute(
                """
                INSERT INTO users (email, username, is_active, subscription_status, created_at, updated_at)
                VALUES (?, ?, 1, ?, ?, ?)
                """,
                (email.lower(), username, SubscriptionStatus.INACTIVE.value, now, now),
            )
            cur = self._conn.execute("SELECT * FROM users WHERE id = ?", (cur.lastrowid,))
            row = cur.fetchone()
        if not row:
            raise RuntimeError("Failed to persist user.")
        return self._row_to_user(row)

    def get_user_by_id(self, user_id: int) -> Optional[User]:
        with self._lock:
            cur = self._conn.execute("SELECT * FROM users WHERE id = ?", (user_id,))
            row = cur.fetchone()
        return self._row_to_user(row) if row else None

    def get_user_by_email(self, email: str) -> Optional[User]:
        with self._lock:
            cur = self._conn.execute("SELECT * FROM users WHERE email = ?", (email.lower(),))
            row = cur.fetchone()
        return self._row_to_user(row) if row else None

    def get_user_by_customer_ref(self, customer_ref: str) -> Optional[User]:
        with self._lock:
            cur = self._conn.execute(
                "SELECT * FROM users WHERE stripe_customer_id = ?",
                (customer_ref,),
            )
            row = cur.fetchone()
        return self._row_to_user(row) if row else None

    def list_users_with_customer_ref(self) -> List[User]:
        with self._lock:
            cur = self._conn.execute(
                """
                SELECT * FROM users
                WHERE stripe_customer_id IS NOT NULL AND stripe_customer_id != ''
                ORDER BY id ASC
                """
            )
            rows = cur.fetchall()
        return [self._row_to_user(row) for row in rows]

    def set_customer_ref_if_absent(self, user_id: int, customer_ref: str) -> bool:
        with self._lock, self._conn:
            cur = self._conn.execute(
                """
                UPDATE users SET stripe_customer_id = ?, updated_at = ?
                WHERE id = ? AND stripe_customer_id IS NULL
                """,
                (customer_ref, self._now(), user_id),
            )
            return cur.rowcount == 1

    def set_subscription_status(self, user_id: int, status: SubscriptionStatus) -> None:
        with self._lock, self._conn:
            self._write_status_locked(user_id, status)

    def deactivate_user(self, user_id: int) -> None:
        with self._lock, self._conn:
            cur = self._conn.execute(
                "UPDATE users SET is_active = 0, updated_at = ? WHERE id = ?",
                (self._now(), user_id),
            )
            if cur.rowcount == 0:
                raise NotFoundError(f"User {user_id} not found.")

    # SubscriptionRepository API ---------------------------------------------
    def upsert_subscription(
        self,
        user_id: int,
        stripe_customer_id: str,
        stripe_subscription_id: str,
        status: SubscriptionStatus,
        current_period_start: datetime,
        current_period_end: datetime,
        cancel_at_period_end: bool = False,
    ) -> Subscription:
        with self._lock, self._conn:
            row = self._upsert_subscription_locked(
                user_id,
                stripe_customer_id,
                stripe_subscription_id,
                status,
                current_period_start,
                current_period_end,
                cancel_at_period_end,
            )
        return self._row_to_subscription(row)

    def apply_subscription_state(
        self,
        user_id: int,
        stripe_customer_id: str,
        stripe_subscription_id: str,
        status: SubscriptionStatus,
        current_period_start: datetime,
        current_period_end: datetime,
        cancel_at_period_end: bool = False,
    ) -> Subscription:
        with self._lock, self._conn:
            row = self._upsert_subscription_locked(
                user_id,
                stripe_customer_id,
                stripe_subscription_id,
                status,
                current_period_start,
                current_period_end,
                cancel_at_period_end,
            )
            self._write_status_locked(user_id, status)
        return self._row_to_subscription(row)

    def get_subscription_by_provider_ref(self, stripe_subscription_id: str) -> Optional[Subscription]:
        with self._lock:
            cur = self._conn.execute(
                "SELECT * FROM subscriptions WHERE stripe_subscription_id = ?",
                (stripe_subscription_id,),
            )
            row = cur.fetchone()
        return self._row_to_subscription(row) if row else None

    def get_current_subscription(self, user_id: int) -> Optional[Subscription]:
        with self._lock:
            cur = self._conn.execute(
                """
                SELECT * FROM subscriptions
                WHERE user_id = ?
                ORDER BY created_at DESC, id DESC
                LIMIT 1
                """,
                (user_id,),
            )
            row = cur.fetchone()
        return self._row_to_subscription(row) if row else None

    def list_subscriptions_for_user(self, user_id: int) -> List[Subscription]:
        with self._lock:
            cur = self._conn.execute(
                "SELECT * FROM subscriptions WHERE user_id = ? ORDER BY created_at DESC, id DESC",
                (user_id,),
            )
            rows = cur.fetchall()
        return [self._row_to_subscription(row) for row in rows]

    # ContentRepository API --------------------------------------------------
    def create_post(self, user_id: int, title: str, content: str) -> Post:
        now = self._now()
        with self._lock, self._conn:
            cur = self._conn.execute(
                "INSERT INTO posts (user_id, title, content, status, created_at) VALUES (?, ?, ?, 'pending', ?)",
                (user_id, title, content, now),
            )
            cur = self._conn.execute("SELECT * FROM posts WHERE id = ?", (cur.lastrowid,))
            row = cur.fetchone()
        if not row:
            raise RuntimeError("Failed to persist post.")
        return self._row_to_post(row)

    def get_post(self, post_id: int) -> Optional[Post]:
        with self._lock:
            cur = self._conn.execute("SELECT * FROM posts WHERE id = ?", (post_id,))
            row = cur.fetchone()
        return self._row_to_post(row) if row else None

    def create_reply(self, post_id: int, user_id: Optional[int], content: str, is_anonymous: bool) -> Reply:
        now = self._now()
        with self._lock, self._conn:
            cur = self._conn.execute(
                """
                INSERT INTO replies (post_id, user_id, content, is_anonymous, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (post_id, user_id, content, int(is_anonymous), now),
            )
            cur = self._conn.execute("SELECT * FROM replies WHERE id = ?", (cur.lastrowid,))
            row = cur.fetchone()
        if not row:
            raise RuntimeError("Failed to persist reply.")
        return self._row_to_reply(row)

    # Helpers ----------------------------------------------------------------
    def _upsert_subscription_locked(
        self,
        user_id: int,
        stripe_customer_id: str,
        stripe_subscription_id: str,
        status: SubscriptionStatus,
        current_period_start: datetime,
        current_period_end: datetime,
        cancel_at_period_end: bool,
    ) -> sqlite3.Row:
        now = self._now()
        self._conn.execute(
            """
            INSERT INTO subscriptions (
                user_id, stripe_customer_id, stripe_subscription_id, status,
                current_period_start, current_period_end, cancel_at_period_end,
                created_at, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(stripe_subscription_id)
            DO UPDATE SET
                user_id = excluded.user_id,
                stripe_customer_id = excluded.stripe_customer_id,
                status = excluded.status,
                current_period_start = excluded.current_period_start,
                current_period_end = excluded.current_period_end,
                cancel_at_period_end = excluded.cancel_at_period_end,
                updated_at = excluded.updated_at
            """,
            (
                user_id,
                stripe_customer_id,
                stripe_subscription_id,
                status.value,
                self._format_datetime(current_period_start),
                self._format_datetime(current_period_end),
                int(cancel_at_period_end),
                now,
                now,
            ),
        )
        cur = self._conn.execute(
            "SELECT * FROM subscriptions WHERE stripe_subscription_id = ?",
            (stripe_subscription_id,),
        )
        row = cur.fetchone()
        if not row:
            raise RuntimeError("Failed to persist subscription.")
        return row

    def _write_status_locked(self, user_id: int, status: SubscriptionStatus) -> None:
        cur = self._conn.execute(
            "UPDATE users SET subscription_status = ?, updated_at = ? WHERE id = ?",
            (status.value, self._now(), user_id),
        )
        if cur.rowcount == 0:
            raise NotFoundError(f"User {user_id} not found.")

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()

    @staticmethod
    def _format_datetime(value: datetime) -> str:
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat()

    @staticmethod
    def _parse_datetime(value: str) -> datetime:
        result = datetime.fromisoformat(value)
        if result.tzinfo is None:
            return result.replace(tzinfo=timezone.utc)
        return result.astimezone(timezone.utc)

    def _row_to_user(self, row: sqlite3.Row) -> User:
        return User(
            id=row["id"],
            email=row["email"],
            username=row["username"],
            is_active=bool(row["is_active"]),
            subscription_status=SubscriptionStatus.parse(row["subscription_status"]),
            stripe_customer_id=row["stripe_customer_id"],
            created_at=self._parse_datetime(row["created_at"]),
            updated_at=self._parse_datetime(row["updated_at"]),
        )

    def _row_to_subscription(self, row: sqlite3.Row) -> Subscription:
        return Subscription(
            id=row["id"],
            user_id=row["user_id"],
            stripe_customer_id=row["stripe_customer_id"],
            stripe_subscription_id=row["stripe_subscription_id"],
            status=SubscriptionStatus.parse(row["status"]),
            current_period_start=self._parse_datetime(row["current_period_start"]),
            current_period_end=self._parse_datetime(row["current_period_end"]),
            cancel_at_period_end=bool(row["cancel_at_period_end"]),
            created_at=self._parse_datetime(row["created_at"]),
            updated_at=self._parse_datetime(row["updated_at"]),
        )

    def _row_to_post(self, row: sqlite3.Row) -> Post:
        return Post(
            id=row["id"],
            user_id=row["user_id"],
            title=row["title"],
            content=row["content"],
            status=row["status"],
            created_at=self._parse_datetime(row["created_at"]),
        )

    def _row_to_reply(self, row: sqlite3.Row) -> Reply:
        return Reply(
            id=row["id"],
            post_id=row["post_id"],
            user_id=row["user_id"],
            content=row["content"],
            is_anonymous=bool(row["is_anonymous"]),
            created_at=self._parse_datetime(row["created_at"]),
        )
