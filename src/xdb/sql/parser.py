"""
Recursive-descent parser for the XDB dialect.

Grammar (keywords case-insensitive):

    select  := SELECT ('*' | ident {',' ident}) FROM ident
               [WHERE where] [ORDER BY ident [ASC|DESC] {',' ...}] [LIMIT int]
    insert  := INSERT INTO ident ['(' ident {',' ident} ')']
               VALUES '(' value {',' value} ')'
    update  := UPDATE ident SET ident '=' value {',' ...} [WHERE where]
    delete  := DELETE FROM ident [WHERE where]
    create  := CREATE TABLE [IF NOT EXISTS] ident '(' element {',' element} ')'
             | CREATE [UNIQUE] INDEX [IF NOT EXISTS] ident ON ident '(' ident {',' ident} ')'
    drop    := DROP TABLE [IF EXISTS] ident
    where   := cond {AND cond} {OR cond {AND cond}}
    cond    := ident op value | ident LIKE value | ident IN '(' value {',' value} ')'
             | ident IS [NOT] NULL

A trailing semicolon is allowed. Parentheses in WHERE are not.

BOOL and BOOLEAN columns are INTEGER columns: TRUE is stored as 1, and
since equality never crosses kinds, filter them with `= 1`, not `= TRUE`.
"""

from xdb.errors import SchemaError, StatementSyntaxError, UnsupportedStatementError
from xdb.schema import Column, ColumnType
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
)
from xdb.sql.lexer import Token, TokenType, tokenize
from xdb.values import Value, coerce_to_column, parse_literal, parse_number

JOIN_WORDS = frozenset({"JOIN", "INNER", "LEFT", "RIGHT", "FULL", "CROSS", "OUTER", "NATURAL"})

# Words that can never be used unquoted as a table or column name.
RESERVED_WORDS = frozenset({
    "SELECT", "FROM", "WHERE", "AND", "OR", "NOT", "NULL", "INSERT", "INTO",
    "VALUES", "UPDATE", "SET", "DELETE", "CREATE", "TABLE", "DROP", "ORDER",
    "BY", "LIMIT", "IN", "IS", "LIKE", "ON", "PRIMARY", "CONSTRAINT",
}) | JOIN_WORDS

TYPE_ALIASES: dict[str, ColumnType] = {
    "INT": ColumnType.INTEGER,
    "INTEGER": ColumnType.INTEGER,
    "TINYINT": ColumnType.INTEGER,
    "SMALLINT": ColumnType.INTEGER,
    "MEDIUMINT": ColumnType.INTEGER,
    "BIGINT": ColumnType.INTEGER,
    "BOOL": ColumnType.INTEGER,
    "BOOLEAN": ColumnType.INTEGER,
    "REAL": ColumnType.REAL,
    "FLOAT": ColumnType.REAL,
    "DOUBLE": ColumnType.REAL,
    "NUMERIC": ColumnType.REAL,
    "DECIMAL": ColumnType.REAL,
    "TEXT": ColumnType.TEXT,
    "CHAR": ColumnType.TEXT,
    "VARCHAR": ColumnType.TEXT,
    "NCHAR": ColumnType.TEXT,
    "NVARCHAR": ColumnType.TEXT,
    "CLOB": ColumnType.TEXT,
    "STRING": ColumnType.TEXT,
    "DATE": ColumnType.TEXT,
    "DATETIME": ColumnType.TEXT,
    "TIMESTAMP": ColumnType.TEXT,
    "BLOB": ColumnType.BLOB,
}

OPERATOR_MAP: dict[str, ComparisonOperator] = {
    "=": ComparisonOperator.EQ,
    "!=": ComparisonOperator.NE,
    "<>": ComparisonOperator.NE,
    ">": ComparisonOperator.GT,
    "<": ComparisonOperator.LT,
    ">=": ComparisonOperator.GE,
    "<=": ComparisonOperator.LE,
}


def parse_statement(sql: str) -> Statement:
    """
    Parse one statement.

    Args:
        sql: Statement text

    Returns:
        The statement tree

    Raises:
        StatementSyntaxError: If the text does not match the grammar
        UnsupportedStatementError: For keywords outside the dialect or joins
        SchemaError: For duplicate or unknown columns in CREATE TABLE
    """
    return Parser(sql).parse()


class Parser:
    """Single-use parser over one statement's tokens."""

    def __init__(self, sql: str):
        self.sql = sql
        self.tokens = tokenize(sql)
        self.pos = 0

    # -------------------------------------------------------------------------
    # Token helpers
    # -------------------------------------------------------------------------

    def peek(self) -> Token:
        return self.tokens[self.pos]

    def advance(self) -> Token:
        token = self.tokens[self.pos]
        if token.type != TokenType.EOF:
            self.pos += 1
        return token

    def error(self, message: str, token: Token | None = None) -> StatementSyntaxError:
        token = token or self.peek()
        return StatementSyntaxError(
            message=message,
            statement=self.sql,
            position=token.position,
        )

    def accept_word(self, *words: str) -> bool:
        if self.peek().is_word(*words):
            self.advance()
            return True
        return False

    def expect_word(self, *words: str) -> Token:
        token = self.peek()
        if not token.is_word(*words):
            raise self.error(f"Expected {' or '.join(words)}, found {_describe(token)}")
        return self.advance()

    def accept_punct(self, char: str) -> bool:
        if self.peek().is_punct(char):
            self.advance()
            return True
        return False

    def expect_punct(self, char: str) -> None:
        if not self.accept_punct(char):
            raise self.error(f"Expected '{char}', found {_describe(self.peek())}")

    def identifier(self, what: str = "identifier") -> str:
        token = self.peek()
        if token.type == TokenType.IDENTIFIER:
            self.advance()
            return token.value
        if token.type == TokenType.WORD and token.upper not in RESERVED_WORDS:
            self.advance()
            return token.text
        raise self.error(f"Expected {what}, found {_describe(token)}")

    def identifier_list(self, what: str = "column name") -> list[str]:
        names = [self.identifier(what)]
        while self.accept_punct(","):
            names.append(self.identifier(what))
        return names

    def value(self) -> Value:
        token = self.advance()
        if token.type in (TokenType.STRING, TokenType.BLOB, TokenType.IDENTIFIER):
            return token.value
        if token.type == TokenType.NUMBER:
            return parse_number(token.text)
        if token.type == TokenType.WORD:
            return parse_literal(token.text)
        raise self.error(f"Expected a value, found {_describe(token)}", token)

    def value_list(self) -> list[Value]:
        self.expect_punct("(")
        values = [self.value()]
        while self.accept_punct(","):
            values.append(self.value())
        self.expect_punct(")")
        return values

    # -------------------------------------------------------------------------
    # Statements
    # -------------------------------------------------------------------------

    def parse(self) -> Statement:
        token = self.peek()
        if token.type == TokenType.EOF:
            raise self.error("Empty statement")
        if token.type != TokenType.WORD:
            raise self.error(f"Expected a statement keyword, found {_describe(token)}")

        handlers = {
            "SELECT": self._select,
            "INSERT": self._insert,
            "UPDATE": self._update,
            "DELETE": self._delete,
            "CREATE": self._create,
            "DROP": self._drop,
        }
        handler = handlers.get(token.upper)
        if handler is None:
            raise UnsupportedStatementError(statement=self.sql, keyword=token.upper)

        statement = handler()
        self.accept_punct(";")
        if self.peek().type != TokenType.EOF:
            raise self.error(f"Unexpected {_describe(self.peek())} after end of statement")
        return statement

    def _select(self) -> SelectStatement:
        self.expect_word("SELECT")
        columns = None if self.accept_punct("*") else tuple(self.identifier_list())
        self.expect_word("FROM")
        table = self.identifier("table name")
        self._reject_join()

        where = self._where() if self.accept_word("WHERE") else None

        order_by: tuple[OrderTerm, ...] = ()
        if self.accept_word("ORDER"):
            self.expect_word("BY")
            order_by = self._order_terms()

        limit = None
        if self.accept_word("LIMIT"):
            token = self.advance()
            number = parse_number(token.text) if token.type == TokenType.NUMBER else None
            if not isinstance(number, int) or number < 0:
                raise self.error("LIMIT expects a non-negative integer", token)
            limit = number

        return SelectStatement(
            table=table,
            columns=columns,
            where=where,
            order_by=order_by,
            limit=limit,
        )

    def _reject_join(self) -> None:
        token = self.peek()
        if token.is_word(*JOIN_WORDS) or token.is_punct(","):
            raise UnsupportedStatementError(
                message="Joins are not supported",
                statement=self.sql,
                keyword="JOIN",
            )

    def _order_terms(self) -> tuple[OrderTerm, ...]:
        terms = []
        while True:
            column = self.identifier("column name")
            descending = False
            if self.accept_word("DESC"):
                descending = True
            else:
                self.accept_word("ASC")
            terms.append(OrderTerm(column=column, descending=descending))
            if not self.accept_punct(","):
                return tuple(terms)

    def _insert(self) -> InsertStatement:
        self.expect_word("INSERT")
        self.expect_word("INTO")
        table = self.identifier("table name")

        columns = None
        if self.accept_punct("("):
            columns = tuple(self.identifier_list())
            self.expect_punct(")")

        self.expect_word("VALUES")
        values = tuple(self.value_list())
        if self.peek().is_punct(","):
            raise self.error("Only one row of VALUES is supported per INSERT")

        return InsertStatement(table=table, columns=columns, values=values)

    def _update(self) -> UpdateStatement:
        self.expect_word("UPDATE")
        table = self.identifier("table name")
        self.expect_word("SET")

        assignments = []
        while True:
            column = self.identifier("column name")
            token = self.advance()
            if token.type != TokenType.OPERATOR or token.text != "=":
                raise self.error(f"Expected '=' after '{column}'", token)
            assignments.append(Assignment(column=column, value=self.value()))
            if not self.accept_punct(","):
                break

        where = self._where() if self.accept_word("WHERE") else None
        return UpdateStatement(table=table, assignments=tuple(assignments), where=where)

    def _delete(self) -> DeleteStatement:
        self.expect_word("DELETE")
        self.expect_word("FROM")
        table = self.identifier("table name")
        where = self._where() if self.accept_word("WHERE") else None
        return DeleteStatement(table=table, where=where)

    def _drop(self) -> DropTableStatement:
        self.expect_word("DROP")
        token = self.peek()
        if token.type == TokenType.WORD and not token.is_word("TABLE"):
            raise UnsupportedStatementError(statement=self.sql, keyword=f"DROP {token.upper}")
        self.expect_word("TABLE")
        if_exists = False
        if self.accept_word("IF"):
            self.expect_word("EXISTS")
            if_exists = True
        return DropTableStatement(table=self.identifier("table name"), if_exists=if_exists)

    # -------------------------------------------------------------------------
    # WHERE
    # -------------------------------------------------------------------------

    def _where(self) -> WhereClause:
        branches = []
        while True:
            branch = [self._condition()]
            while self.accept_word("AND"):
                branch.append(self._condition())
            branches.append(tuple(branch))
            if not self.accept_word("OR"):
                return WhereClause(branches=tuple(branches))

    def _condition(self) -> Condition:
        if self.peek().is_punct("("):
            raise self.error("Parentheses are not supported in WHERE")

        column = self.identifier("column name")
        token = self.advance()

        if token.type == TokenType.OPERATOR:
            return Condition(column, OPERATOR_MAP[token.text], self.value())
        if token.is_word("LIKE"):
            return Condition(column, ComparisonOperator.LIKE, self.value())
        if token.is_word("IN"):
            return Condition(column, ComparisonOperator.IN, tuple(self.value_list()))
        if token.is_word("IS"):
            negated = self.accept_word("NOT")
            self.expect_word("NULL")
            operator = ComparisonOperator.IS_NOT_NULL if negated else ComparisonOperator.IS_NULL
            return Condition(column, operator)

        raise self.error(f"Expected a comparison after '{column}', found {_describe(token)}", token)

    # -------------------------------------------------------------------------
    # CREATE
    # -------------------------------------------------------------------------

    def _create(self) -> CreateTableStatement | CreateIndexStatement:
        self.expect_word("CREATE")
        unique = self.accept_word("UNIQUE")

        if self.accept_word("INDEX"):
            return self._create_index(unique)
        if unique:
            raise self.error("Expected INDEX after CREATE UNIQUE")

        token = self.peek()
        if token.is_word("VIEW", "TRIGGER", "VIRTUAL", "SCHEMA", "DATABASE"):
            raise UnsupportedStatementError(statement=self.sql, keyword=f"CREATE {token.upper}")
        self.expect_word("TABLE")
        return self._create_table()

    def _if_not_exists(self) -> bool:
        if self.accept_word("IF"):
            self.expect_word("NOT")
            self.expect_word("EXISTS")
            return True
        return False

    def _create_index(self, unique: bool) -> CreateIndexStatement:
        if_not_exists = self._if_not_exists()
        name = self.identifier("index name")
        self.expect_word("ON")
        table = self.identifier("table name")
        self.expect_punct("(")
        columns = tuple(self.identifier_list())
        self.expect_punct(")")
        return CreateIndexStatement(
            name=name,
            table=table,
            columns=columns,
            unique=unique,
            if_not_exists=if_not_exists,
        )

    def _create_table(self) -> CreateTableStatement:
        if_not_exists = self._if_not_exists()
        table = self.identifier("table name")
        self.expect_punct("(")

        columns: list[Column] = []
        table_key: list[str] | None = None

        while True:
            if self.accept_word("CONSTRAINT"):
                self.identifier("constraint name")

            token = self.peek()
            if token.is_word("PRIMARY"):
                self.advance()
                self.expect_word("KEY")
                self.expect_punct("(")
                if table_key is not None:
                    raise self.error("Table has more than one PRIMARY KEY clause", token)
                table_key = self.identifier_list()
                self.expect_punct(")")
            elif token.is_word("UNIQUE", "CHECK", "FOREIGN"):
                self._skip_table_constraint()
            else:
                columns.append(self._column_definition(table))

            if self.accept_punct(")"):
                break
            self.expect_punct(",")

        if not columns:
            raise self.error("CREATE TABLE needs at least one column")

        seen: set[str] = set()
        for column in columns:
            if column.name in seen:
                raise SchemaError(
                    message=f"Duplicate column name '{column.name}'",
                    table=table,
                    column=column.name,
                )
            seen.add(column.name)

        flagged = [c.name for c in columns if c.primary_key]
        if len(flagged) > 1 or (flagged and table_key is not None):
            raise self.error(f"Table '{table}' has more than one primary key")

        if table_key is not None:
            for name in table_key:
                if name not in seen:
                    raise SchemaError(
                        message=f"PRIMARY KEY column '{name}' is not defined",
                        table=table,
                        column=name,
                    )
            columns = [
                c.model_copy(update={"primary_key": True}) if c.name in table_key else c
                for c in columns
            ]
            primary_key = tuple(table_key)
        else:
            primary_key = tuple(flagged)

        return CreateTableStatement(
            table=table,
            columns=tuple(columns),
            primary_key=primary_key,
            if_not_exists=if_not_exists,
        )

    def _skip_table_constraint(self) -> None:
        """Skip a table constraint the engine does not record."""
        depth = 0
        while True:
            token = self.peek()
            if token.type == TokenType.EOF:
                raise self.error("Unterminated table constraint")
            if depth == 0 and (token.is_punct(",") or token.is_punct(")")):
                return
            if token.is_punct("("):
                depth += 1
            elif token.is_punct(")"):
                depth -= 1
            self.advance()

    def _column_definition(self, table: str) -> Column:
        name = self.identifier("column name")

        type_token = self.advance()
        column_type = (
            TYPE_ALIASES.get(type_token.upper) if type_token.type == TokenType.WORD else None
        )
        if column_type is None:
            raise self.error(
                f"Unsupported type {_describe(type_token)} for column '{name}'", type_token
            )

        # Size arguments such as VARCHAR(255) or DECIMAL(10, 2) are ignored.
        if self.accept_punct("("):
            while not self.accept_punct(")"):
                token = self.advance()
                if token.type not in (TokenType.NUMBER, TokenType.PUNCTUATION) or token.is_punct("("):
                    raise self.error(f"Invalid size for column '{name}'", token)

        primary_key = False
        not_null = False
        default: Value = None

        while self.peek().type == TokenType.WORD:
            token = self.peek()
            if self.accept_word("PRIMARY"):
                self.expect_word("KEY")
                if not self.accept_word("DESC"):
                    self.accept_word("ASC")
                self.accept_word("AUTOINCREMENT")
                primary_key = True
            elif self.accept_word("NOT"):
                self.expect_word("NULL")
                not_null = True
            elif self.accept_word("NULL", "UNIQUE", "AUTOINCREMENT"):
                pass
            elif self.accept_word("DEFAULT"):
                if self.accept_punct("("):
                    default = self.value()
                    self.expect_punct(")")
                else:
                    default = self.value()
            else:
                raise self.error(f"Unknown constraint {_describe(token)} on column '{name}'")

        return Column(
            name=name,
            type=column_type,
            primary_key=primary_key,
            not_null=not_null,
            default=coerce_to_column(default, column_type, column=name),
        )


def _describe(token: Token) -> str:
    if token.type == TokenType.EOF:
        return "end of statement"
    return repr(token.text)
