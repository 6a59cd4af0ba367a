"""
SQL user repository.

Stores user accounts, including the two-factor state (status, factor handle,
active flag). Rows are soft-deleted: a deleted user keeps its row with
deleted_at set and becomes invisible to every other operation.

Statements are written to run on PostgreSQL in production and on SQLite in
tests.
"""
import uuid
import logging
from typing import Dict, List, Optional, Protocol
from datetime import datetime, timezone
from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import QueuePool

from ..auth.errors import NotFound, UserAlreadyExists
from ..auth.types import (
    EMAIL_MAX_LENGTH,
    NAME_MAX_LENGTH,
    PHONE_MAX_LENGTH,
    USERNAME_MAX_LENGTH,
    Filters,
    TwoFactorStatus,
    User,
)
from ..utils.config import DatabaseConfig

logger = logging.getLogger(__name__)

USER_COLUMNS = """
    id, username, first_name, last_name, email, phone, password,
    twofa_status, twofa_code, twofa_active
"""


class UserRepository(Protocol):
    def create(self, user: User) -> None:
        ...

    def get_all(self, filters: Filters, offset: int, limit: int) -> List[User]:
        ...

    def get(self, user_id: str) -> User:
        ...

    def delete(self, user_id: str) -> None:
        ...

    def update(self, user_id: str, **fields) -> None:
        ...

    def count(self, filters: Filters) -> int:
        ...


def _row_to_user(row) -> User:
    return User(
        id=row[0],
        username=row[1],
        first_name=row[2] or "",
        last_name=row[3] or "",
        email=row[4] or "",
        phone=row[5] or "",
        password=row[6] or "",
        twofa_status=TwoFactorStatus.parse(row[7]),
        twofa_code=row[8] or "",
        twofa_active=bool(row[9]),
    )


def _filter_clause(filters: Filters) -> tuple:
    """Build the WHERE clause and parameters for a Filters value."""
    clauses = ["deleted_at IS NULL"]
    params: Dict[str, str] = {}

    if filters.first_name:
        clauses.append("LOWER(first_name) LIKE :first_name")
        params["first_name"] = f"%{filters.first_name.lower()}%"
    if filters.last_name:
        clauses.append("LOWER(last_name) LIKE :last_name")
        params["last_name"] = f"%{filters.last_name.lower()}%"
    if filters.username:
        clauses.append("username = :username")
        params["username"] = filters.username

    return " AND ".join(clauses), params


class UserDB:
    """
    Connection manager and repository for user accounts.

    Example usage:
        user_db = UserDB(DatabaseConfig(url="postgresql://..."))
        user_db.init_schema()

        user_db.create(User(id="", username="alice", password=hash_password("secret1")))
        users = user_db.get_all(Filters(username="alice"), offset=0, limit=1)
    """

    # Columns update() is allowed to write
    UPDATABLE = {
        "first_name", "last_name", "email", "phone",
        "twofa_status", "twofa_code", "twofa_active",
    }

    def __init__(self, config: DatabaseConfig):
        self.engine = create_engine(
            config.url,
            poolclass=QueuePool,
            pool_size=config.pool_size,
            max_overflow=config.max_overflow,
            pool_timeout=30,
            pool_pre_ping=True,  # Test connections before use (detect stale)
            pool_recycle=300,
        )
        self.Session = sessionmaker(bind=self.engine)

    @contextmanager
    def get_session(self):
        """
        Get a database session with automatic commit/rollback.

        Usage:
            with user_db.get_session() as session:
                result = session.execute(query)
        """
        session = self.Session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ==========================================
    # CRUD
    # ==========================================

    def create(self, user: User) -> None:
        """
        Insert a new user. Assigns a UUID when user.id is empty.

        Raises:
            UserAlreadyExists: If the username is taken.
        """
        if not user.id:
            user.id = str(uuid.uuid4())
        now = datetime.now(timezone.utc)

        try:
            with self.get_session() as session:
                session.execute(
                    text("""
                        INSERT INTO users (
                            id, username, first_name, last_name, email, phone,
                            password, twofa_status, twofa_code, twofa_active,
                            created_at, updated_at
                        ) VALUES (
                            :id, :username, :first_name, :last_name, :email, :phone,
                            :password, :twofa_status, :twofa_code, :twofa_active,
                            :created_at, :updated_at
                        )
                    """),
                    {
                        "id": user.id,
                        "username": user.username,
                        "first_name": user.first_name,
                        "last_name": user.last_name,
                        "email": user.email,
                        "phone": user.phone,
                        "password": user.password,
                        "twofa_status": user.twofa_status.value,
                        "twofa_code": user.twofa_code,
                        "twofa_active": user.twofa_active,
                        "created_at": now,
                        "updated_at": now,
                    }
                )
        except IntegrityError as e:
            logger.warning(f"User insert rejected: {e.orig}")
            raise UserAlreadyExists(user.username) from e

        logger.info(f"User created with id: {user.id}")

    def get_all(self, filters: Filters, offset: int, limit: int) -> List[User]:
        where, params = _filter_clause(filters)
        params.update({"limit": limit, "offset": offset})

        with self.get_session() as session:
            rows = session.execute(
                text(f"""
                    SELECT {USER_COLUMNS}
                    FROM users
                    WHERE {where}
                    ORDER BY created_at DESC
                    LIMIT :limit OFFSET :offset
                """),
                params
            ).fetchall()

        return [_row_to_user(row) for row in rows]

    def get(self, user_id: str) -> User:
        """
        Raises:
            NotFound: If no live user has this id.
        """
        with self.get_session() as session:
            row = session.execute(
                text(f"""
                    SELECT {USER_COLUMNS}
                    FROM users
                    WHERE id = :id AND deleted_at IS NULL
                """),
                {"id": user_id}
            ).fetchone()

        if row is None:
            logger.debug(f"User {user_id} not found")
            raise NotFound(user_id)
        return _row_to_user(row)

    def delete(self, user_id: str) -> None:
        """
        Soft-delete a user.

        Raises:
            NotFound: If no live user has this id.
        """
        now = datetime.now(timezone.utc)
        with self.get_session() as session:
            result = session.execute(
                text("""
                    UPDATE users
                    SET deleted_at = :now, updated_at = :now
                    WHERE id = :id AND deleted_at IS NULL
                """),
                {"id": user_id, "now": now}
            )
            deleted = result.rowcount

        if deleted == 0:
            logger.info(f"User {user_id} doesn't exist")
            raise NotFound(user_id)
        logger.info(f"User {user_id} deleted")

    def update(self, user_id: str, **fields) -> None:
        """
        Update the given columns; None values are skipped.

        Example:
            user_db.update(user.id, twofa_status=TwoFactorStatus.PENDING,
                           twofa_code=handle, twofa_active=True)

        Raises:
            NotFound: If no live user has this id.
            ValueError: If a field is not updatable.
        """
        values = {k: v for k, v in fields.items() if v is not None}
        unknown = set(values) - self.UPDATABLE
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        if isinstance(values.get("twofa_status"), TwoFactorStatus):
            values["twofa_status"] = values["twofa_status"].value

        assignments = [f"{column} = :{column}" for column in sorted(values)]
        assignments.append("updated_at = :updated_at")
        values["updated_at"] = datetime.now(timezone.utc)
        values["id"] = user_id

        with self.get_session() as session:
            result = session.execute(
                text(f"""
                    UPDATE users
                    SET {", ".join(assignments)}
                    WHERE id = :id AND deleted_at IS NULL
                """),
                values
            )
            updated = result.rowcount

        if updated == 0:
            logger.info(f"User {user_id} doesn't exist")
            raise NotFound(user_id)

    def count(self, filters: Filters) -> int:
        where, params = _filter_clause(filters)
        with self.get_session() as session:
            total = session.execute(
                text(f"SELECT COUNT(*) FROM users WHERE {where}"),
                params
            ).scalar()

        logger.debug(f"Counted {total} users")
        return int(total or 0)

    # ==========================================
    # Schema Initialization
    # ==========================================

    def init_schema(self) -> None:
        """
        Create the users table and its indexes if they don't exist.

        Call this once during application setup.
        """
        if self.engine.dialect.name == "postgresql":
            timestamp = "TIMESTAMP WITH TIME ZONE"
        else:
            timestamp = "TIMESTAMP"

        with self.get_session() as session:
            session.execute(text(f"""
                CREATE TABLE IF NOT EXISTS users (
                    id CHAR(36) PRIMARY KEY,
                    username VARCHAR({USERNAME_MAX_LENGTH}) UNIQUE NOT NULL,
                    first_name VARCHAR({NAME_MAX_LENGTH}) NOT NULL,
                    last_name VARCHAR({NAME_MAX_LENGTH}) NOT NULL,
                    email VARCHAR({EMAIL_MAX_LENGTH}),
                    phone VARCHAR({PHONE_MAX_LENGTH}),
                    password VARCHAR(150),
                    twofa_status VARCHAR(10) NOT NULL DEFAULT '',
                    twofa_code VARCHAR(34) NOT NULL DEFAULT '',
                    twofa_active BOOLEAN NOT NULL DEFAULT FALSE,
                    created_at {timestamp} NOT NULL,
                    updated_at {timestamp} NOT NULL,
                    deleted_at {timestamp}
                )
            """))
            session.execute(text("""
                CREATE INDEX IF NOT EXISTS idx_users_created ON users(created_at)
            """))
            session.execute(text("""
                CREATE INDEX IF NOT EXISTS idx_users_deleted ON users(deleted_at)
            """))

        logger.info("Database schema initialized")


# Singleton instance
_user_db_instance: Optional[UserDB] = None


def get_user_db(config: DatabaseConfig) -> UserDB:
    """
    Get singleton UserDB instance, created on first use.
    """
    global _user_db_instance
    if _user_db_instance is None:
        _user_db_instance = UserDB(config)
    return _user_db_instance
