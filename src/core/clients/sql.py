"""
Azure SQL Database queries with Azure AD token authentication.

pyodbc is a blocking driver, so each query runs in a worker thread. The
connection is opened, used for one statement and closed on every exit path,
including a failure halfway through the query.
"""

import asyncio
import logging
import struct
from typing import Any

import pyodbc

from core.auth.credentials import DATABASE_RESOURCE
from core.clients.base import dependency_call
from core.types import TokenProvider

logger = logging.getLogger(__name__)

# msodbcsql pre-connect attribute that carries an Azure AD access token
SQL_COPT_SS_ACCESS_TOKEN = 1256

DEFAULT_DRIVER = "ODBC Driver 18 for SQL Server"
DEFAULT_PORT = 1433


def token_struct(token: str) -> bytes:
    """Pack an access token the way the ODBC driver expects it (UTF-16-LE, length-prefixed)."""
    token_bytes = token.encode("UTF-16-LE")
    return struct.pack(f"<I{len(token_bytes)}s", len(token_bytes), token_bytes)


class SqlDatabaseClient:
    """Runs single statements against one database."""

    capability = "sql-query"
    dependency = "sql"

    def __init__(
        self,
        server: str,
        database: str,
        provider: TokenProvider,
        driver: str = DEFAULT_DRIVER,
        timeout_seconds: int = 30,
    ):
        self.server = server
        self.database = database
        self.driver = driver
        self.timeout_seconds = timeout_seconds
        self._provider = provider

    @classmethod
    def with_credential(
        cls, endpoint: str, provider: TokenProvider, **options: Any
    ) -> "SqlDatabaseClient":
        return cls(
            endpoint,
            options["database"],
            provider,
            driver=options.get("driver") or DEFAULT_DRIVER,
            timeout_seconds=options.get("timeout_seconds", 30),
        )

    @property
    def connection_string(self) -> str:
        return (
            f"Driver={{{self.driver}}};"
            f"Server=tcp:{self.server},{DEFAULT_PORT};"
            f"Database={self.database};"
            "Encrypt=yes;TrustServerCertificate=no;"
            f"Connection Timeout={self.timeout_seconds}"
        )

    def _execute(self, sql: str, token: str) -> int:
        connection = pyodbc.connect(
            self.connection_string,
            attrs_before={SQL_COPT_SS_ACCESS_TOKEN: token_struct(token)},
            timeout=self.timeout_seconds,
        )
        try:
            cursor = connection.cursor()
            try:
                cursor.execute(sql)
                if cursor.description is not None:
                    return len(cursor.fetchall())
                return cursor.rowcount
            finally:
                cursor.close()
        finally:
            connection.close()

    async def run_query(self, sql: str) -> int:
        """
        Execute one statement and return its row count.

        For statements that return rows the count is the number of rows
        fetched; otherwise it is the driver-reported affected row count.

        Raises:
            AuthenticationError: If no database token could be obtained
            DependencyError: If connecting or executing fails
        """
        async with dependency_call(
            self.dependency, "run_query", server=self.server, database=self.database
        ) as op:
            grant = await self._provider.acquire_token(DATABASE_RESOURCE)
            row_count = await asyncio.to_thread(self._execute, sql, grant.token)
            op.add_context(row_count=row_count)
        return row_count
