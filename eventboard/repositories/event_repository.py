"""
EventRepository class for PostgreSQL CRUD operations.
Handles all database interactions for event listings, plus removal of
locally stored images once a row no longer references them.
"""
import os
import threading
from contextlib import contextmanager
from typing import Optional, List, Dict, Any, Sequence

from psycopg2.extras import RealDictCursor
from psycopg2.pool import ThreadedConnectionPool

from ..config import (
    DatabaseConfig, EVENTS_TABLE, SEARCHABLE_COLUMNS, UPLOAD_FOLDER,
    POOL_MIN_CONNECTIONS, POOL_MAX_CONNECTIONS, POOL_ACQUIRE_TIMEOUT
)
from ..exceptions import PersistenceError, InvalidColumnError
from ..log import logger
from ..models.event import Event, ImageRef

SCHEMA_SQL = f"""
    CREATE TABLE IF NOT EXISTS {EVENTS_TABLE} (
        id SERIAL PRIMARY KEY,
        name TEXT NOT NULL,
        event TEXT NOT NULL,
        venue TEXT NOT NULL,
        topic TEXT NOT NULL,
        details TEXT NOT NULL,
        image TEXT,
        timestamp TEXT
    )
"""


def check_column(column: str) -> str:
    """Return column if it is searchable, otherwise raise InvalidColumnError."""
    if column not in SEARCHABLE_COLUMNS:
        raise InvalidColumnError(column)
    return column


class EventRepository:
    """
    Repository class for Event database operations.

    insert() and query() raise PersistenceError on failure; update() and
    delete() log the failure and return False.
    """

    def __init__(
        self,
        config: DatabaseConfig,
        upload_folder: str = UPLOAD_FOLDER,
        pool=None,
        max_connections: int = POOL_MAX_CONNECTIONS,
        acquire_timeout: float = POOL_ACQUIRE_TIMEOUT
    ):
        """
        Initialize the repository. The pool is opened on first use unless
        one is given, so an unreachable database does not stop startup.
        """
        self.config = config
        self.upload_folder = upload_folder
        self.max_connections = max_connections
        self.acquire_timeout = acquire_timeout
        self._pool = pool
        self._pool_lock = threading.Lock()
        # getconn() fails with PoolError when exhausted, so borrowers queue here
        self._slots = threading.BoundedSemaphore(max_connections)
        if pool is None:
            config.validate()

    @property
    def pool(self):
        if self._pool is None:
            with self._pool_lock:
                if self._pool is None:
                    logger.info("Database config: {}", self.config.safe_dict())
                    self._pool = ThreadedConnectionPool(
                        POOL_MIN_CONNECTIONS,
                        self.max_connections,
                        **self.config.connect_kwargs()
                    )
        return self._pool

    @contextmanager
    def _connection(self):
        """Borrow a pooled connection; commit on success, roll back on error."""
        if not self._slots.acquire(timeout=self.acquire_timeout):
            raise PersistenceError("Timed out waiting for a database connection")
        try:
            pool = self.pool
            conn = pool.getconn()
        except Exception:
            self._slots.release()
            raise

        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            pool.putconn(conn, close=bool(getattr(conn, 'closed', False)))
            self._slots.release()

    def _log_error(self, error: Exception) -> None:
        logger.error("SQL Error: {}", error)

    def _remove_local_image(self, image: Optional[str]) -> bool:
        """
        Delete a locally stored image file. Remote URLs and absolute paths
        are never touched. Returns True if a file was removed; failures are
        logged and never raised.
        """
        ref = ImageRef(image)
        if not ref.is_local:
            return False

        folder = os.path.abspath(self.upload_folder)
        path = os.path.abspath(os.path.join(folder, ref.value))
        if os.path.dirname(path) != folder:
            logger.warning("Refusing to remove image outside uploads folder: {}", ref.value)
            return False

        try:
            os.remove(path)
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning("Failed to remove local image {}: {}", path, e)
            return False

    def query(self, sql: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        """Run a parameterized statement and return rows as dictionaries."""
        try:
            with self._connection() as conn:
                cursor = conn.cursor(cursor_factory=RealDictCursor)
                cursor.execute(sql, tuple(params) or None)
                rows = cursor.fetchall() if cursor.description else []
                return [dict(row) for row in rows]
        except Exception as e:
            self._log_error(e)
            raise PersistenceError(str(e)) from e

    def insert(self, fields: Dict[str, str], image: str, timestamp: str) -> int:
        """
        Insert a new event row.
        Returns the generated ID.
        """
        rows = self.query(
            f"""INSERT INTO {EVENTS_TABLE} (name, event, venue, topic, details, image, timestamp)
                VALUES (%s, %s, %s, %s, %s, %s, %s)
                RETURNING id""",
            (
                fields['name'], fields['event'], fields['venue'],
                fields['topic'], fields['details'], image, timestamp
            )
        )
        return rows[0]['id']

    def update(
        self,
        event_id: int,
        fields: Dict[str, str],
        new_image: str,
        previous_image: Optional[str]
    ) -> bool:
        """
        Overwrite an event row in place.
        If the image changed, the previous local file is removed.
        Returns True if a row was updated.
        """
        try:
            with self._connection() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    f"""UPDATE {EVENTS_TABLE}
                        SET name = %s, event = %s, venue = %s, topic = %s, details = %s, image = %s
                        WHERE id = %s""",
                    (
                        fields['name'], fields['event'], fields['venue'],
                        fields['topic'], fields['details'], new_image, event_id
                    )
                )
                updated = cursor.rowcount > 0
        except Exception as e:
            self._log_error(e)
            return False

        if updated and previous_image and new_image != previous_image:
            self._remove_local_image(previous_image)
        return updated

    def delete(self, event_id: int) -> bool:
        """
        Delete an event row and its local image, if any.
        Returns True if a row was deleted.
        """
        try:
            with self._connection() as conn:
                cursor = conn.cursor(cursor_factory=RealDictCursor)
                cursor.execute(f"SELECT image FROM {EVENTS_TABLE} WHERE id = %s", (event_id,))
                row = cursor.fetchone()
                image = row['image'] if row else None

                cursor.execute(f"DELETE FROM {EVENTS_TABLE} WHERE id = %s", (event_id,))
                deleted = cursor.rowcount > 0
        except Exception as e:
            self._log_error(e)
            return False

        if deleted:
            self._remove_local_image(image)
        return deleted

    def find_by_id(self, event_id: int) -> Optional[Event]:
        """Find an event by its ID."""
        rows = self.query(f"SELECT * FROM {EVENTS_TABLE} WHERE id = %s", (event_id,))
        return Event.from_dict(rows[0]) if rows else None

    def find_all(self) -> List[Event]:
        """Find all events, newest first."""
        rows = self.query(f"SELECT * FROM {EVENTS_TABLE} ORDER BY id DESC")
        return [Event.from_dict(row) for row in rows]

    def distinct(self, column: str) -> List[Any]:
        """Distinct non-null values of a searchable column, sorted ascending."""
        column = check_column(column)
        rows = self.query(
            f"SELECT DISTINCT {column} FROM {EVENTS_TABLE} "
            f"WHERE {column} IS NOT NULL ORDER BY {column} ASC"
        )
        return [row[column] for row in rows]

    def search(self, column: str, value: str) -> List[Event]:
        """Events whose column exactly equals value, newest first."""
        column = check_column(column)
        rows = self.query(
            f"SELECT * FROM {EVENTS_TABLE} WHERE {column} = %s ORDER BY id DESC",
            (value,)
        )
        return [Event.from_dict(row) for row in rows]

    def ensure_schema(self) -> None:
        """Create the events table if it does not exist."""
        self.query(SCHEMA_SQL)

    def close(self) -> None:
        """Close every pooled connection."""
        if self._pool is not None:
            self._pool.closeall()
