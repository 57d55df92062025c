"""
Statement parsing for XDB.

The dialect is a small subset of SQL:
- SELECT with WHERE, ORDER BY and LIMIT over a single table
- INSERT of one row, UPDATE and DELETE with WHERE
- CREATE TABLE, CREATE [UNIQUE] INDEX and DROP TABLE

Statements are tokenized (lexer), parsed by recursive descent (parser)
into frozen dataclasses (ast). Transactions, ALTER and joins raise
UnsupportedStatementError.
"""

from xdb.sql.ast import (
    Assignment,
    ComparisonOperator,
    Condition,
    CreateIndexStatement,
    CreateTableStatement,
    DeleteStatement,
    DropTableStatement,
    InsertStatement,
    OrderTerm,
    SelectStatement,
    Statement,
    UpdateStatement,
    WhereClause,
    is_mutating,
)
from xdb.sql.lexer import Token, TokenType, tokenize
from xdb.sql.parser import parse_statement

__all__ = [
    "Assignment",
    "ComparisonOperator",
    "Condition",
    "CreateIndexStatement",
    "CreateTableStatement",
    "DeleteStatement",
    "DropTableStatement",
    "InsertStatement",
    "OrderTerm",
    "SelectStatement",
    "Statement",
    "Token",
    "TokenType",
    "UpdateStatement",
    "WhereClause",
    "is_mutating",
    "parse_statement",
    "tokenize",
]
