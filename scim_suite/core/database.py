"""SQL Server helper for fixture setup and side-effect checks.

Reads and writes the ``hsi`` user tables of the environment-selected database.
Only used by tests marked ``database``; the suite never owns this schema.
"""
from __future__ import annotations
import logging
import random
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
INITIAL_RETRY_DELAY = 1.0
CONNECT_TIMEOUT = 60

USER_COLUMNS = (
    "usernum, username, realname, emailaddress, disablelogin, "
    "lastlogon, lastpwchange, obuniqueid, usertype"
)


def build_connection_string(config) -> str:
    """ODBC connection string for the profile's SQL Server instance."""
    profile = config.profile
    parts = [
        f"Driver={{{config.db_driver}}}",
        f"Server={profile.db_server}",
        f"Database={profile.db_name}",
        f"UID={profile.db_user}",
        f"PWD={profile.db_password}",
        f"Encrypt={'yes' if config.db_encrypt else 'no'}",
        f"TrustServerCertificate={'yes' if config.db_trust_server_certificate else 'no'}",
        f"Connection Timeout={CONNECT_TIMEOUT}",
    ]
    return ";".join(parts) + ";"


def _pyodbc_connect(connection_string: str):
    import pyodbc

    return pyodbc.connect(connection_string, autocommit=True, timeout=CONNECT_TIMEOUT)


def _pyodbc_connection_errors() -> Tuple[type, ...]:
    import pyodbc

    return (pyodbc.OperationalError, pyodbc.InterfaceError)


class UserAccountStore:
    """Shared connection to the user-account tables.

    The connection is opened lazily on first use and reused for the whole run.
    Connection-class failures are retried with exponential backoff, except
    while a write runs: the seeding INSERT is never replayed. Query errors
    propagate immediately.
    """

    def __init__(
        self,
        config,
        connection_factory: Optional[Callable[[str], Any]] = None,
        retry_on: Optional[Tuple[type, ...]] = None,
    ):
        self.config = config
        self._connect = connection_factory or _pyodbc_connect
        self._retry_on = retry_on
        self._connection = None
        self._lock = threading.Lock()
        self._column_info: Optional[Tuple[List[str], Optional[str]]] = None

    # -- Connection management ----------------------------------------------

    def database_info(self) -> Dict[str, str]:
        profile = self.config.profile
        return {"server": profile.db_server, "database": profile.db_name, "user": profile.db_user}

    def _get_connection(self):
        with self._lock:
            if self._connection is None:
                info = self.database_info()
                logger.info(f"⏳ Connecting to {info['server']}\\{info['database']}")
                self._connection = self._connect(build_connection_string(self.config))
                logger.info("✅ Database connection established")
            return self._connection

    def _reset_connection(self) -> None:
        with self._lock:
            connection, self._connection = self._connection, None
        if connection is not None:
            try:
                connection.close()
            except Exception as exc:
                logger.debug(f"Ignoring error while closing stale connection: {exc}")

    def close(self) -> None:
        with self._lock:
            connection, self._connection = self._connection, None
        if connection is not None:
            connection.close()
            logger.info("Database connection closed")

    def __enter__(self) -> "UserAccountStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _retryable_errors(self) -> Tuple[type, ...]:
        if self._retry_on is None:
            self._retry_on = _pyodbc_connection_errors()
        return self._retry_on

    def _run(self, operation: Callable[[Any], Any], retry_statement: bool = True):
        """Run ``operation(cursor)`` with connection retry.

        Opening the connection is always retried. A connection failure while
        the statement runs re-runs it only when ``retry_statement`` is true;
        non-idempotent writes pass False and the error propagates.
        """
        retryable = self._retryable_errors()
        delay = INITIAL_RETRY_DELAY
        for attempt in range(1, MAX_RETRIES + 1):
            executing = False
            try:
                connection = self._get_connection()
                cursor = connection.cursor()
                executing = True
                try:
                    return operation(cursor)
                finally:
                    cursor.close()
            except retryable as exc:
                if executing and not retry_statement:
                    self._reset_connection()
                    raise
                if attempt == MAX_RETRIES:
                    raise
                logger.warning(
                    f"Database connection attempt {attempt} failed ({exc}); retrying in {delay:.0f}s"
                )
                self._reset_connection()
                time.sleep(delay)
                delay *= 2

    # -- Queries -------------------------------------------------------------

    @staticmethod
    def _fetch_one(cursor, sql: str, *params) -> Optional[Dict[str, Any]]:
        cursor.execute(sql, *params)
        row = cursor.fetchone()
        if row is None:
            return None
        columns = [column[0].lower() for column in cursor.description]
        return dict(zip(columns, row))

    def get_user(self, username: str) -> Optional[Dict[str, Any]]:
        """User row by username, or None."""
        sql = f"SELECT {USER_COLUMNS} FROM hsi.useraccount WHERE username = ?"
        return self._run(lambda cursor: self._fetch_one(cursor, sql, username))

    def get_user_by_id(self, user_num: int) -> Optional[Dict[str, Any]]:
        sql = f"SELECT {USER_COLUMNS} FROM hsi.useraccount WHERE usernum = ?"
        return self._run(lambda cursor: self._fetch_one(cursor, sql, int(user_num)))

    def get_group_by_id(self, group_num: int) -> Optional[Dict[str, Any]]:
        sql = "SELECT usergroupnum, usergroupname FROM hsi.usergroup WHERE usergroupnum = ?"
        return self._run(lambda cursor: self._fetch_one(cursor, sql, int(group_num)))

    def get_group_by_name(self, group_name: str) -> Optional[Dict[str, Any]]:
        sql = "SELECT usergroupnum, usergroupname FROM hsi.usergroup WHERE usergroupname = ?"
        return self._run(lambda cursor: self._fetch_one(cursor, sql, group_name))

    def is_user_group_member(self, user_num: int, group_num: int) -> bool:
        sql = "SELECT usernum FROM hsi.userxusergroup WHERE usernum = ? AND usergroupnum = ?"
        row = self._run(lambda cursor: self._fetch_one(cursor, sql, int(user_num), int(group_num)))
        return row is not None

    def get_group_members(self, group_num: int) -> List[int]:
        def query(cursor):
            cursor.execute("SELECT usernum FROM hsi.userxusergroup WHERE usergroupnum = ?", int(group_num))
            return [int(row[0]) for row in cursor.fetchall()]

        return self._run(query)

    def user_account_columns(self) -> Tuple[List[str], Optional[str]]:
        """Column names of ``hsi.useraccount`` and its identity column (cached)."""
        if self._column_info is not None:
            return self._column_info

        def query(cursor):
            cursor.execute(
                "SELECT c.COLUMN_NAME, "
                "COLUMNPROPERTY(OBJECT_ID('hsi.useraccount'), c.COLUMN_NAME, 'IsIdentity') "
                "FROM INFORMATION_SCHEMA.COLUMNS c "
                "WHERE c.TABLE_SCHEMA = 'hsi' AND c.TABLE_NAME = 'useraccount' "
                "ORDER BY c.ORDINAL_POSITION"
            )
            return cursor.fetchall()

        rows = self._run(query)
        columns = [row[0] for row in rows]
        identity = next((row[0] for row in rows if row[1] == 1), None)
        logger.info(f"📋 hsi.useraccount columns: {', '.join(columns[:10])}...")
        logger.info(f"🔑 Identity column: {identity or 'None (usernum needs explicit value)'}")
        self._column_info = (columns, identity)
        return self._column_info

    def create_test_user(self, username: str, institution_id: Optional[str] = None) -> int:
        """Insert a user row directly, bypassing the API.

        Used to seed users the API itself cannot create (OEM DELETE tests).

        Args:
            username: Username for the new row
            institution_id: Institution to assign when the table has that column

        Returns:
            The new row's ``usernum``
        """
        columns, identity = self.user_account_columns()
        by_name = {column.lower(): column for column in columns}
        user_num_column = by_name.get("usernum")
        if user_num_column is None:
            raise RuntimeError("hsi.useraccount has no usernum column")

        values: Dict[str, Any] = {
            "username": username,
            "realname": f"Test User {username}",
            "emailaddress": f"{username}@test.com",
            "disablelogin": 0,
            "obuniqueid": int(time.time() * 1000),
        }
        insert: List[Tuple[str, Any]] = []
        if identity is None:
            insert.append((user_num_column, random.randint(100000, 999999)))
        insert.extend((by_name[key], value) for key, value in values.items() if key in by_name)

        institution_column = by_name.get("institutionid") or by_name.get("institution")
        if institution_id and institution_column:
            insert.append((institution_column, int(institution_id)))

        sql = (
            f"INSERT INTO hsi.useraccount ({', '.join(name for name, _ in insert)}) "
            f"OUTPUT INSERTED.{user_num_column} "
            f"VALUES ({', '.join('?' for _ in insert)})"
        )

        def query(cursor):
            cursor.execute(sql, *[value for _, value in insert])
            return int(cursor.fetchone()[0])

        user_num = self._run(query, retry_statement=False)
        logger.info(
            f"✅ Created test user in database: {username} "
            f"(ID: {user_num}, InstitutionId: {institution_id or 'N/A'})"
        )
        return user_num

    def delete_test_user(self, user_num: int) -> None:
        """Remove a seeded user and its group memberships (cleanup only)."""
        def query(cursor):
            cursor.execute("DELETE FROM hsi.userxusergroup WHERE usernum = ?", int(user_num))
            cursor.execute("DELETE FROM hsi.useraccount WHERE usernum = ?", int(user_num))

        self._run(query)
        logger.info(f"🗑️  Cleaned up test user from database (ID: {user_num})")
