"""
Shared fixtures.

The repository is exercised against an in-memory SQLite database wrapped to
look like a psycopg2 pool: %s placeholders become ? and rows come back as
dictionaries, so the production SQL runs unchanged.
"""
import sqlite3
from io import BytesIO

import pytest

from eventboard import create_app
from eventboard.config import Settings, DatabaseConfig
from eventboard.log import logger
from eventboard.repositories import EventRepository
from eventboard.services.blob_store import BlobResult

PNG_BYTES = b'\x89PNG\r\n\x1a\n' + b'\x00' * 32

SQLITE_SCHEMA = """
    CREATE TABLE webdevsite (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        event TEXT NOT NULL,
        venue TEXT NOT NULL,
        topic TEXT NOT NULL,
        details TEXT NOT NULL,
        image TEXT,
        timestamp TEXT
    )
"""


class SqliteCursor:
    def __init__(self, pool, conn):
        self._pool = pool
        self._cursor = conn.cursor()

    def execute(self, sql, params=None):
        self._pool.statements.append(sql)
        if self._pool.fail_next:
            self._pool.fail_next = False
            raise sqlite3.OperationalError('simulated database failure')
        self._cursor.execute(sql.replace('%s', '?'), tuple(params or ()))

    @property
    def description(self):
        return self._cursor.description

    @property
    def rowcount(self):
        return self._cursor.rowcount

    def fetchone(self):
        row = self._cursor.fetchone()
        return dict(row) if row is not None else None

    def fetchall(self):
        return [dict(row) for row in self._cursor.fetchall()]


class SqliteConnection:
    closed = False

    def __init__(self, pool, conn):
        self._pool = pool
        self._conn = conn

    def cursor(self, cursor_factory=None):
        return SqliteCursor(self._pool, self._conn)

    def commit(self):
        self._conn.commit()

    def rollback(self):
        self._conn.rollback()


class SqlitePool:
    """Stands in for psycopg2's ThreadedConnectionPool."""

    def __init__(self):
        self._conn = sqlite3.connect(':memory:', check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute(SQLITE_SCHEMA)
        self._conn.commit()
        self.statements = []
        self.fail_next = False
        self.checked_out = 0

    def getconn(self):
        self.checked_out += 1
        return SqliteConnection(self, self._conn)

    def putconn(self, conn, close=False):
        self.checked_out -= 1

    def closeall(self):
        self._conn.close()


class FakeBlobClient:
    """Records calls; uploads succeed unless fail is set."""

    def __init__(self):
        self.fail = False
        self.puts = []
        self.deletes = []

    @property
    def configured(self):
        return True

    def put(self, target_key, local_file_path):
        self.puts.append((target_key, local_file_path))
        if self.fail:
            return BlobResult(False, error='HTTP 503: unavailable')
        return BlobResult(True, url=f'https://store.example.com/v1/blob/{target_key}')

    def delete(self, target_key_or_url):
        self.deletes.append(target_key_or_url)
        return BlobResult(True)


def png_upload(filename='photo.png', mimetype='image/png'):
    return (BytesIO(PNG_BYTES), filename, mimetype)


def event_form(**overrides):
    form = {
        'name': 'Expo',
        'event': 'Tech Fair',
        'venue': 'Hall A',
        'topic': 'AI',
        'details': 'Annual showcase of student projects',
    }
    form.update(overrides)
    return form


@pytest.fixture
def upload_folder(tmp_path):
    folder = tmp_path / 'uploads'
    folder.mkdir()
    return folder


@pytest.fixture
def settings(tmp_path, upload_folder):
    return Settings(
        database=DatabaseConfig(host='localhost', user='postgres', password='', database='webdevsite'),
        secret_key='test-secret',
        upload_folder=str(upload_folder),
        log_dir=str(tmp_path / 'logs'),
        auto_init_db=False,
    )


@pytest.fixture
def pool():
    pool = SqlitePool()
    yield pool
    pool.closeall()


@pytest.fixture
def repository(settings, pool):
    return EventRepository(settings.database, settings.upload_folder, pool=pool)


@pytest.fixture
def blob():
    return FakeBlobClient()


@pytest.fixture
def app(settings, repository, blob):
    app = create_app(settings, repository=repository, blob_client=blob)
    app.config['TESTING'] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_client(client):
    resp = client.post('/api/login', json={'username': 'admin', 'password': 'admin123'})
    assert resp.status_code == 200
    return client


@pytest.fixture
def log_messages():
    messages = []
    handler_id = logger.add(messages.append, level='WARNING', format='{level} - {message}')
    yield messages
    try:
        logger.remove(handler_id)
    except ValueError:
        # Already dropped by configure_logger
        pass
