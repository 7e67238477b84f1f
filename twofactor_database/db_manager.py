import logging
import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime

from twofactor_core import codec
from twofactor_core.credentials import Credential, ScratchCodes
from twofactor_core.errors import UnknownIdentityError
from twofactor_core.repository import CounterKind, counter_kind

from .setup_database import DATABASE_FILE, setup_database

logger = logging.getLogger(__name__)

# counter kind -> users column
_COUNTER_COLUMNS = {
    CounterKind.TOTP: "last_totp_counter",
    CounterKind.HOTP: "last_hotp_counter",
}


class SQLiteCredentialRepository:
    """
    Credential repository backed by an SQLite file.

    A new connection is opened for every call, so one instance can be shared
    between threads. ``timeout`` (seconds) bounds how long a call waits for a
    locked database. Compare-and-set writes run inside ``BEGIN IMMEDIATE``
    transactions.
    """

    def __init__(self, path: str = DATABASE_FILE, timeout: float = 5.0):
        self.path = path
        self.timeout = timeout
        if path == ':memory:':
            raise ValueError("an in-memory database cannot be shared between connections")
        if not os.path.exists(path):
            setup_database(path)

    def get_db_connection(self) -> sqlite3.Connection:
        """Open a connection (autocommit mode, rows as dictionaries)"""
        conn = sqlite3.connect(self.path, timeout=self.timeout, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _transaction(self):
        conn = self.get_db_connection()
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            else:
                conn.execute("COMMIT")
        finally:
            conn.close()

    @staticmethod
    def _user_row(conn: sqlite3.Connection, identity: str) -> sqlite3.Row:
        row = conn.execute(
            "SELECT id, secret_key, key_representation, last_totp_counter, last_hotp_counter FROM users WHERE username = ?",
            (identity,),
        ).fetchone()
        if row is None:
            raise UnknownIdentityError(identity)
        return row

    @staticmethod
    def _scratch_codes(conn: sqlite3.Connection, user_id: int, default_digits: int = None) -> ScratchCodes:
        rows = conn.execute(
            "SELECT code, digits FROM scratch_codes WHERE user_id = ? AND consumed = 0 ORDER BY id",
            (user_id,),
        ).fetchall()
        if not rows:
            if default_digits is None:
                return ScratchCodes()
            return ScratchCodes((), default_digits)
        return ScratchCodes(tuple(r['code'] for r in rows), rows[0]['digits'])

    # --- Credential repository contract ----------------------------------
    def load(self, identity: str) -> bytes:
        """Raw secret of the user; UnknownIdentityError if not enrolled"""
        conn = self.get_db_connection()
        try:
            row = self._user_row(conn, identity)
        finally:
            conn.close()
        return codec.decode(row['secret_key'], row['key_representation'])

    def save_credential(self, identity: str, credential: Credential) -> None:
        """Insert a new user or replace the credential of an existing one"""
        with self._transaction() as conn:
            conn.execute(
                """INSERT INTO users
                       (username, secret_key, key_representation, last_totp_counter, last_hotp_counter)
                   VALUES (?, ?, ?, NULL, NULL)
                   ON CONFLICT(username) DO UPDATE SET
                       secret_key = excluded.secret_key,
                       key_representation = excluded.key_representation,
                       last_totp_counter = NULL,
                       last_hotp_counter = NULL""",
                (identity, credential.key, credential.key_representation.value),
            )
            user_id = self._user_row(conn, identity)['id']
            conn.execute("DELETE FROM scratch_codes WHERE user_id = ?", (user_id,))
            conn.executemany(
                "INSERT INTO scratch_codes (user_id, code, digits) VALUES (?, ?, ?)",
                [(user_id, code, credential.scratch_codes.digits) for code in credential.scratch_codes],
            )
        logger.info("Credential saved for user id %s", user_id)

    def load_scratch_codes(self, identity: str) -> ScratchCodes:
        conn = self.get_db_connection()
        try:
            user_id = self._user_row(conn, identity)['id']
            return self._scratch_codes(conn, user_id)
        finally:
            conn.close()

    def replace_scratch_codes(self, identity: str, previous: ScratchCodes, updated: ScratchCodes) -> bool:
        """Mark consumed every code missing from ``updated``, if the stored set is still ``previous``"""
        with self._transaction() as conn:
            user_id = self._user_row(conn, identity)['id']
            if self._scratch_codes(conn, user_id, previous.digits) != previous:
                return False
            consumed = set(previous.codes) - set(updated.codes)
            conn.executemany(
                """UPDATE scratch_codes SET consumed = 1, consumed_at = ?
                   WHERE user_id = ? AND code = ? AND consumed = 0""",
                [(datetime.now().strftime('%Y-%m-%d %H:%M:%S'), user_id, code) for code in consumed],
            )
        return True

    # --- Counter state ----------------------------------------------------
    def load_counter_state(self, identity: str, kind: CounterKind):
        column = _COUNTER_COLUMNS[counter_kind(kind)]
        conn = self.get_db_connection()
        try:
            return self._user_row(conn, identity)[column]
        finally:
            conn.close()

    def save_counter_state(self, identity: str, kind: CounterKind, last_matched_counter: int, previous) -> bool:
        """Compare-and-set: only move forward, and only from ``previous``"""
        column = _COUNTER_COLUMNS[counter_kind(kind)]
        with self._transaction() as conn:
            cursor = conn.execute(
                f"""UPDATE users SET {column} = ?, last_login = ?
                    WHERE username = ? AND {column} IS ?
                      AND ({column} IS NULL OR {column} < ?)""",
                (last_matched_counter, datetime.now().strftime('%Y-%m-%d %H:%M:%S'),
                 identity, previous, last_matched_counter),
            )
            return cursor.rowcount == 1

    # --- Helpers used by the web backend ---------------------------------
    def user_exists(self, identity: str) -> bool:
        conn = self.get_db_connection()
        try:
            row = conn.execute("SELECT id FROM users WHERE username = ?", (identity,)).fetchone()
        finally:
            conn.close()
        return row is not None

    def log_otp_attempt(self, identity: str, method: str, is_success: bool) -> None:
        """Record a verification attempt (unknown users are stored with a NULL user id)"""
        conn = self.get_db_connection()
        try:
            row = conn.execute("SELECT id FROM users WHERE username = ?", (identity,)).fetchone()
            conn.execute(
                "INSERT INTO otp_attempts (user_id, method, is_success) VALUES (?, ?, ?)",
                (row['id'] if row else None, method, is_success),
            )
        finally:
            conn.close()

    def count_attempts(self, identity: str, method: str = None) -> int:
        conn = self.get_db_connection()
        try:
            query = ("SELECT COUNT(*) FROM otp_attempts a JOIN users u ON u.id = a.user_id "
                     "WHERE u.username = ?")
            params = [identity]
            if method:
                query += " AND a.method = ?"
                params.append(method)
            return conn.execute(query, params).fetchone()[0]
        finally:
            conn.close()
