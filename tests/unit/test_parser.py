"""
Unit tests for statement parsing.

Tests cover:
- Tokenizing (longest-match operators, quoting, blobs, numbers)
- SELECT/INSERT/UPDATE/DELETE parsing
- WHERE precedence (OR of AND-groups)
- CREATE TABLE column definitions and primary keys
- Unsupported keywords and joins
"""

import pytest

from xdb.errors import SchemaError, StatementSyntaxError, UnsupportedStatementError
from xdb.schema import ColumnType
from xdb.sql import (
    ComparisonOperator,
    CreateIndexStatement,
    CreateTableStatement,
    DeleteStatement,
    DropTableStatement,
    InsertStatement,
    SelectStatement,
    TokenType,
    UpdateStatement,
    is_mutating,
    parse_statement,
    tokenize,
)


# =============================================================================
# Lexer Tests
# =============================================================================


class TestTokenize:
    """Tests for the tokenizer."""

    def test_longest_match_operators(self) -> None:
        """>= and <> are single tokens."""
        tokens = tokenize("a >= 1 AND b <> 2")
        operators = [t.text for t in tokens if t.type == TokenType.OPERATOR]
        assert operators == [">=", "<>"]

    def test_operator_without_spaces(self) -> None:
        """Operators are found without surrounding whitespace."""
        tokens = tokenize("age<=30")
        assert [t.text for t in tokens[:-1]] == ["age", "<=", "30"]

    def test_string_with_escaped_quote(self) -> None:
        """Doubled quotes inside strings are unescaped."""
        tokens = tokenize("'it''s'")
        assert tokens[0].type == TokenType.STRING
        assert tokens[0].value == "it's"

    def test_blob_literal(self) -> None:
        """X'..' is lexed as bytes."""
        tokens = tokenize("X'0aff'")
        assert tokens[0].type == TokenType.BLOB
        assert tokens[0].value == b"\x0a\xff"

    def test_negative_number(self) -> None:
        """A sign directly before digits is part of the number."""
        tokens = tokenize("x = -5")
        assert tokens[2].type == TokenType.NUMBER
        assert tokens[2].text == "-5"

    def test_quoted_identifier(self) -> None:
        """Double quotes delimit identifiers."""
        tokens = tokenize('"user name"')
        assert tokens[0].type == TokenType.IDENTIFIER
        assert tokens[0].value == "user name"

    def test_line_comment_skipped(self) -> None:
        """-- comments are ignored."""
        tokens = tokenize("SELECT * -- everything\nFROM t")
        assert [t.text for t in tokens[:-1]] == ["SELECT", "*", "FROM", "t"]

    def test_unterminated_string(self) -> None:
        """Unterminated strings are syntax errors."""
        with pytest.raises(StatementSyntaxError):
            tokenize("SELECT * FROM t WHERE a = 'oops")

    def test_ends_with_eof(self) -> None:
        """Token list always ends with EOF."""
        assert tokenize("")[-1].type == TokenType.EOF


# =============================================================================
# SELECT Tests
# =============================================================================


class TestSelect:
    """Tests for SELECT parsing."""

    def test_select_star(self) -> None:
        """SELECT * leaves columns as None."""
        stmt = parse_statement("SELECT * FROM users")
        assert isinstance(stmt, SelectStatement)
        assert stmt.table == "users"
        assert stmt.columns is None
        assert stmt.where is None

    def test_select_columns_where_order_limit(self) -> None:
        """All clauses are captured."""
        stmt = parse_statement(
            "select name, age from users where age > 25 order by age desc, name limit 2;"
        )
        assert stmt.columns == ("name", "age")
        assert stmt.where is not None
        condition = stmt.where.branches[0][0]
        assert condition.column == "age"
        assert condition.operator == ComparisonOperator.GT
        assert condition.value == 25
        assert [(t.column, t.descending) for t in stmt.order_by] == [
            ("age", True),
            ("name", False),
        ]
        assert stmt.limit == 2

    def test_or_splits_outer_and_inner(self) -> None:
        """a AND b OR c parses as (a AND b) OR c."""
        stmt = parse_statement("SELECT * FROM t WHERE a = 1 AND b = 2 OR c = 3")
        assert len(stmt.where.branches) == 2
        assert [c.column for c in stmt.where.branches[0]] == ["a", "b"]
        assert [c.column for c in stmt.where.branches[1]] == ["c"]

    def test_like_in_and_null_tests(self) -> None:
        """LIKE, IN and IS [NOT] NULL are recognized."""
        stmt = parse_statement(
            "SELECT * FROM t WHERE name LIKE '%ok%' AND id IN (1, 2) "
            "AND a IS NULL AND b IS NOT NULL"
        )
        ops = [c.operator for c in stmt.where.branches[0]]
        assert ops == [
            ComparisonOperator.LIKE,
            ComparisonOperator.IN,
            ComparisonOperator.IS_NULL,
            ComparisonOperator.IS_NOT_NULL,
        ]
        assert stmt.where.branches[0][1].value == (1, 2)

    def test_not_equal_spellings(self) -> None:
        """!= and <> mean the same thing."""
        a = parse_statement("SELECT * FROM t WHERE x != 1")
        b = parse_statement("SELECT * FROM t WHERE x <> 1")
        assert a.where.branches[0][0].operator == ComparisonOperator.NE
        assert b.where.branches[0][0].operator == ComparisonOperator.NE

    def test_literals_in_where(self) -> None:
        """NULL, booleans and strings are converted."""
        stmt = parse_statement("SELECT * FROM t WHERE a = TRUE OR b = 'x' OR c = NULL")
        values = [branch[0].value for branch in stmt.where.branches]
        assert values == [True, "x", None]

    def test_parentheses_rejected(self) -> None:
        """WHERE does not support grouping."""
        with pytest.raises(StatementSyntaxError):
            parse_statement("SELECT * FROM t WHERE (a = 1 OR b = 2)")

    def test_join_is_unsupported(self) -> None:
        """Joins raise UnsupportedStatementError."""
        with pytest.raises(UnsupportedStatementError) as exc_info:
            parse_statement("SELECT * FROM a JOIN b ON a.id = b.id")
        assert exc_info.value.keyword == "JOIN"

    def test_trailing_garbage(self) -> None:
        """Extra tokens after the statement are rejected."""
        with pytest.raises(StatementSyntaxError):
            parse_statement("SELECT * FROM t extra")

    def test_negative_limit(self) -> None:
        """LIMIT must be non-negative."""
        with pytest.raises(StatementSyntaxError):
            parse_statement("SELECT * FROM t LIMIT -1")


# =============================================================================
# Write Statement Tests
# =============================================================================


class TestWriteStatements:
    """Tests for INSERT, UPDATE and DELETE parsing."""

    def test_insert(self) -> None:
        """INSERT captures columns and typed values."""
        stmt = parse_statement(
            "INSERT INTO users (id, name, active, avatar) VALUES (1, 'Goku', TRUE, X'00')"
        )
        assert isinstance(stmt, InsertStatement)
        assert stmt.columns == ("id", "name", "active", "avatar")
        assert stmt.values == (1, "Goku", True, b"\x00")

    def test_insert_without_columns(self) -> None:
        """The column list is optional."""
        stmt = parse_statement("INSERT INTO t VALUES (1, 2)")
        assert stmt.columns is None
        assert stmt.values == (1, 2)

    def test_multi_row_insert_rejected(self) -> None:
        """Only one VALUES tuple is allowed."""
        with pytest.raises(StatementSyntaxError):
            parse_statement("INSERT INTO t (a) VALUES (1), (2)")

    def test_update(self) -> None:
        """UPDATE captures assignments and WHERE."""
        stmt = parse_statement("UPDATE users SET name = 'Vegeta', age = 40 WHERE id = 1")
        assert isinstance(stmt, UpdateStatement)
        assert [(a.column, a.value) for a in stmt.assignments] == [
            ("name", "Vegeta"),
            ("age", 40),
        ]
        assert stmt.where.branches[0][0].value == 1

    def test_delete(self) -> None:
        """DELETE without WHERE matches everything."""
        stmt = parse_statement("DELETE FROM users")
        assert isinstance(stmt, DeleteStatement)
        assert stmt.where is None

    def test_is_mutating(self) -> None:
        """Only SELECT is read-only."""
        assert not is_mutating(parse_statement("SELECT * FROM t"))
        assert is_mutating(parse_statement("DELETE FROM t"))
        assert is_mutating(parse_statement("DROP TABLE t"))


# =============================================================================
# Schema Statement Tests
# =============================================================================


class TestCreateTable:
    """Tests for CREATE TABLE parsing."""

    def test_columns_and_types(self) -> None:
        """Types, NOT NULL and DEFAULT are captured."""
        stmt = parse_statement(
            "CREATE TABLE users ("
            "id INTEGER PRIMARY KEY, "
            "name VARCHAR(255) NOT NULL, "
            "score REAL DEFAULT 1, "
            "bio TEXT, "
            "avatar BLOB)"
        )
        assert isinstance(stmt, CreateTableStatement)
        types = {c.name: c.type for c in stmt.columns}
        assert types == {
            "id": ColumnType.INTEGER,
            "name": ColumnType.TEXT,
            "score": ColumnType.REAL,
            "bio": ColumnType.TEXT,
            "avatar": ColumnType.BLOB,
        }
        assert stmt.primary_key == ("id",)
        name = next(c for c in stmt.columns if c.name == "name")
        assert name.not_null
        score = next(c for c in stmt.columns if c.name == "score")
        assert score.default == 1.0

    def test_table_level_primary_key(self) -> None:
        """A table-level PRIMARY KEY sets a composite key."""
        stmt = parse_statement(
            "CREATE TABLE m (a INTEGER, b TEXT, c REAL, PRIMARY KEY (a, b))"
        )
        assert stmt.primary_key == ("a", "b")
        flags = {c.name: c.primary_key for c in stmt.columns}
        assert flags == {"a": True, "b": True, "c": False}

    def test_if_not_exists(self) -> None:
        """IF NOT EXISTS is recorded."""
        stmt = parse_statement("CREATE TABLE IF NOT EXISTS t (id INTEGER)")
        assert stmt.if_not_exists

    def test_duplicate_column(self) -> None:
        """Duplicate column names are schema errors."""
        with pytest.raises(SchemaError):
            parse_statement("CREATE TABLE t (a INTEGER, a TEXT)")

    def test_unknown_primary_key_column(self) -> None:
        """Table-level keys must name defined columns."""
        with pytest.raises(SchemaError):
            parse_statement("CREATE TABLE t (a INTEGER, PRIMARY KEY (b))")

    def test_unknown_type(self) -> None:
        """Unsupported types are syntax errors."""
        with pytest.raises(StatementSyntaxError):
            parse_statement("CREATE TABLE t (a GEOMETRY)")

    def test_table_constraints_are_skipped(self) -> None:
        """UNIQUE and FOREIGN KEY table constraints are ignored."""
        stmt = parse_statement(
            "CREATE TABLE t (a INTEGER, b INTEGER, UNIQUE (a, b), "
            "FOREIGN KEY (b) REFERENCES other (id))"
        )
        assert [c.name for c in stmt.columns] == ["a", "b"]

    def test_create_index(self) -> None:
        """CREATE UNIQUE INDEX is parsed."""
        stmt = parse_statement("CREATE UNIQUE INDEX idx_name ON users (name, age)")
        assert isinstance(stmt, CreateIndexStatement)
        assert stmt.name == "idx_name"
        assert stmt.table == "users"
        assert stmt.columns == ("name", "age")
        assert stmt.unique

    def test_drop_table_if_exists(self) -> None:
        """DROP TABLE IF EXISTS is recorded."""
        stmt = parse_statement("DROP TABLE IF EXISTS users")
        assert isinstance(stmt, DropTableStatement)
        assert stmt.table == "users"
        assert stmt.if_exists


class TestUnsupported:
    """Tests for keywords outside the dialect."""

    @pytest.mark.parametrize(
        "sql,keyword",
        [
            ("BEGIN TRANSACTION", "BEGIN"),
            ("COMMIT", "COMMIT"),
            ("ROLLBACK", "ROLLBACK"),
            ("ALTER TABLE t ADD COLUMN x INTEGER", "ALTER"),
        ],
    )
    def test_unsupported_keywords(self, sql: str, keyword: str) -> None:
        """Transactions and ALTER are rejected by keyword."""
        with pytest.raises(UnsupportedStatementError) as exc_info:
            parse_statement(sql)
        assert exc_info.value.keyword == keyword

    def test_empty_statement(self) -> None:
        """An empty statement is a syntax error."""
        with pytest.raises(StatementSyntaxError):
            parse_statement("   ")
