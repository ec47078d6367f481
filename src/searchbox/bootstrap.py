"""
Index bootstrap: the generated tsvector column and its GIN index.

A table becomes searchable once it carries VECTOR_COLUMN, generated from
its text columns:

    ALTER TABLE "products" ADD COLUMN "pg_searchbox_doc" tsvector
        GENERATED ALWAYS AS (to_tsvector('english', COALESCE("name", '') || ' ' || ...)) STORED;
    CREATE INDEX "pg_searchbox_idx__products" ON "products" USING gin ("pg_searchbox_doc");

Without an explicit column list every text-like column of the table is used.
"""

from typing import Any, List, Optional, Sequence

from psycopg import sql

from config.constants import DEFAULT_LANGUAGE, VECTOR_COLUMN
from core.logging import get_logger
from searchbox.sql import ident, join, literal

logger = get_logger(__name__)

INDEX_PREFIX = "pg_searchbox_idx__"

TEXT_DATA_TYPES = ("text", "character varying", "character")


class BootstrapError(Exception):
    """The table cannot be (un)indexed as asked."""
    pass


def index_name_for(table: str) -> str:
    return f"{INDEX_PREFIX}{table}"


def document_expr(columns: Sequence[str]) -> sql.Composable:
    """COALESCE(col, '') joined with spaces, the input of to_tsvector."""
    if not columns:
        raise BootstrapError("At least one text column is needed to build the search document")
    return join(" || ' ' || ", (
        sql.SQL("COALESCE({}, '')").format(ident(column)) for column in columns
    ))


def add_vector_column_sql(table: str, columns: Sequence[str], language: str = DEFAULT_LANGUAGE) -> sql.Composable:
    return sql.SQL(
        "ALTER TABLE {table} ADD COLUMN {vector} tsvector "
        "GENERATED ALWAYS AS (to_tsvector({lang}::regconfig, {document})) STORED"
    ).format(
        table=ident(table),
        vector=ident(VECTOR_COLUMN),
        lang=literal(language),
        document=document_expr(columns),
    )


def create_index_sql(table: str) -> sql.Composable:
    return sql.SQL("CREATE INDEX {index} ON {table} USING gin ({vector})").format(
        index=ident(index_name_for(table)),
        table=ident(table),
        vector=ident(VECTOR_COLUMN),
    )


def drop_index_sql(table: str) -> sql.Composable:
    return sql.SQL("DROP INDEX IF EXISTS {}").format(ident(index_name_for(table)))


def drop_vector_column_sql(table: str) -> sql.Composable:
    return sql.SQL("ALTER TABLE {} DROP COLUMN IF EXISTS {}").format(ident(table), ident(VECTOR_COLUMN))


TEXT_COLUMNS_SQL = sql.SQL(
    "SELECT column_name FROM information_schema.columns "
    "WHERE table_schema = current_schema() AND table_name = %s "
    "AND data_type = ANY(%s) "
    "ORDER BY ordinal_position"
)

TABLE_EXISTS_SQL = sql.SQL("SELECT to_regclass(%s) IS NOT NULL")


def text_columns(conn: Any, table: str) -> List[str]:
    """Text-like columns of a table in declaration order (vector column excluded)."""
    rows = conn.execute(TEXT_COLUMNS_SQL, (table, list(TEXT_DATA_TYPES))).fetchall()
    return [row[0] for row in rows if row[0] != VECTOR_COLUMN]


def ensure_table(conn: Any, table: str) -> None:
    row = conn.execute(TABLE_EXISTS_SQL, (table,)).fetchone()
    if not row or not row[0]:
        raise BootstrapError(f"Table does not exist: {table}")


def create_vector_index(
    conn: Any,
    table: str,
    columns: Optional[Sequence[str]] = None,
    language: str = DEFAULT_LANGUAGE,
) -> List[str]:
    """
    Add the generated vector column and its GIN index to a table.

    Returns:
        The columns folded into the search document.

    Raises:
        BootstrapError: the table is missing or has no text columns.
    """
    ensure_table(conn, table)
    columns = list(columns) if columns else text_columns(conn, table)
    if not columns:
        raise BootstrapError(f"Found no text columns in table: {table}")

    conn.execute(add_vector_column_sql(table, columns, language))
    conn.execute(create_index_sql(table))
    logger.info("Search index created", table=table, columns=columns, language=language)
    return columns


def drop_vector_index(conn: Any, table: str) -> None:
    """Remove the GIN index and the vector column."""
    ensure_table(conn, table)
    conn.execute(drop_index_sql(table))
    conn.execute(drop_vector_column_sql(table))
    logger.info("Search index dropped", table=table)
