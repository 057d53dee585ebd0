"""
tenantsql/parser.py

Recursive-descent parser for the tenantsql SQL dialect.

Responsibilities:
- Convert token sequences into AST nodes (see tenantsql/ast.py)
- Provide clear syntax errors with line/column positions
- Support the SQL surface of the engine:
    - CREATE TABLE [IF NOT EXISTS] / DROP TABLE [IF EXISTS] / ALTER TABLE
    - INSERT (VALUES lists or SELECT), UPDATE, DELETE, all with RETURNING
    - SELECT with joins, WHERE, GROUP BY/HAVING, DISTINCT, ORDER BY, LIMIT/OFFSET,
      window functions, subqueries, set operations and WITH [RECURSIVE]
- Recognize statement kinds the engine refuses (TRUNCATE, GRANT, REVOKE,
  administrative verbs) as AST nodes, so the safety gate can reject them by type

Notes:
- Operator precedence, lowest first: OR, AND, NOT, predicates (comparison,
  IS, LIKE, BETWEEN, IN), ||, + -, * / %, unary sign, postfix (:: -> ->>).
- INTERSECT binds tighter than UNION/EXCEPT; a trailing ORDER BY/LIMIT applies to
  the whole set operation.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from .ast import (
    AddColumn,
    AdminStatement,
    AlterAction,
    AlterTable,
    ArrayLiteral,
    Assignment,
    Between,
    BinaryOp,
    Case,
    Cast,
    ColumnDef,
    ColumnRef,
    CommonTableExpr,
    CreateTable,
    Delete,
    DerivedTable,
    DropColumn,
    DropTable,
    Exists,
    Expr,
    FrameBound,
    FrameSpec,
    FuncCall,
    Grant,
    InList,
    InSubquery,
    Insert,
    IsDistinct,
    IsTest,
    Join,
    JsonAccess,
    Like,
    Literal,
    OrderItem,
    Quantified,
    Query,
    RenameColumn,
    RenameTable,
    Revoke,
    Select,
    SelectItem,
    SetOperation,
    Star,
    Statement,
    SubqueryExpr,
    TableConstraint,
    TableRef,
    Truncate,
    TypeSpec,
    UnaryOp,
    Update,
    WhenClause,
    WindowSpec,
    WithClause,
)
from .errors import Position, SqlSyntaxError
from .lexer import KEYWORDS, Token, TokenType, tokenize

COMPARISON_OPS: dict[TokenType, str] = {
    TokenType.EQ: "=",
    TokenType.NEQ: "<>",
    TokenType.LT: "<",
    TokenType.LTE: "<=",
    TokenType.GT: ">",
    TokenType.GTE: ">=",
}

# Leading words of statements outside the virtual-table model.
ADMIN_VERBS = {
    "VACUUM", "ANALYZE", "COPY", "REINDEX", "CLUSTER", "LOCK", "COMMENT", "DISCARD",
    "REFRESH", "LISTEN", "NOTIFY", "CHECKPOINT", "REASSIGN", "SECURITY", "IMPORT",
    "BEGIN", "COMMIT", "ROLLBACK", "SAVEPOINT", "RELEASE", "START", "END", "CALL",
    "DO", "EXECUTE", "PREPARE", "DEALLOCATE", "SHOW", "RESET", "LOAD", "EXPLAIN",
}

# Functions callable without parentheses.
NILADIC_FUNCTIONS = {"CURRENT_DATE", "CURRENT_TIMESTAMP", "CURRENT_TIME", "LOCALTIMESTAMP", "LOCALTIME"}

# Two-word type names.
MULTIWORD_TYPES = {
    "DOUBLE": "PRECISION",
    "CHARACTER": "VARYING",
}


@dataclass
class Parser:
    """
    Stateful parser over a token list.

    Attributes:
        tokens: List of Token.
        i: Current token index.
    """
    tokens: list[Token]
    i: int = 0

    def peek(self, offset: int = 0) -> Token:
        """Return the token at current index + offset without consuming."""
        j = self.i + offset
        if j >= len(self.tokens):
            return self.tokens[-1]
        return self.tokens[j]

    def at(self, typ: TokenType) -> bool:
        """Check whether current token is of a specific type."""
        return self.peek().typ == typ

    def at_word(self, word: str, offset: int = 0) -> bool:
        """Check whether the token at offset is the unquoted non-reserved word `word`."""
        t = self.peek(offset)
        return t.typ == TokenType.IDENT and not t.quoted and str(t.value).upper() == word

    def consume(self) -> Token:
        """Consume and return the current token."""
        t = self.peek()
        self.i += 1
        return t

    def expect(self, typ: TokenType, msg: str) -> Token:
        """Consume a token of the expected type, otherwise raise syntax error."""
        t = self.peek()
        if t.typ != typ:
            raise SqlSyntaxError(f"{msg}, got {t.lexeme or 'end of input'!r}", t.pos)
        return self.consume()

    def match(self, typ: TokenType) -> bool:
        """If current token matches typ, consume it and return True."""
        if self.at(typ):
            self.consume()
            return True
        return False

    def match_word(self, word: str) -> bool:
        """If current token is the non-reserved word `word`, consume it and return True."""
        if self.at_word(word):
            self.consume()
            return True
        return False

    def expect_word(self, word: str) -> Token:
        """Consume the non-reserved word `word`, otherwise raise syntax error."""
        if not self.at_word(word):
            t = self.peek()
            raise SqlSyntaxError(f"Expected {word}, got {t.lexeme or 'end of input'!r}", t.pos)
        return self.consume()

    def expect_ident(self, msg: str) -> str:
        """Consume an identifier and return its name."""
        return str(self.expect(TokenType.IDENT, msg).value)

    def error(self, msg: str) -> SqlSyntaxError:
        """Build a syntax error located at the current token."""
        t = self.peek()
        return SqlSyntaxError(f"{msg}, got {t.lexeme or 'end of input'!r}", t.pos)

    # ---------------- entry points ----------------

    def parse_script(self) -> list[Statement]:
        """
        Parse one or more statements separated by semicolons.

        Returns:
            List of Statement AST nodes.

        Notes:
            Trailing semicolons and empty statements (e.g., ";;") are allowed.
        """
        stmts: list[Statement] = []
        while not self.at(TokenType.EOF):
            if self.match(TokenType.SEMI):
                continue
            stmts.append(self.parse_statement())
            if not self.at(TokenType.EOF):
                self.expect(TokenType.SEMI, "Expected ';' between statements")
        return stmts

    def parse_one(self) -> Statement:
        """
        Parse exactly one statement.

        Returns:
            A single Statement.

        Raises:
            SqlSyntaxError if input is empty or contains multiple statements.
        """
        stmts = self.parse_script()
        if not stmts:
            raise SqlSyntaxError("Empty input", Position(1, 1))
        if len(stmts) > 1:
            raise SqlSyntaxError("Expected a single statement", self.peek().pos)
        return stmts[0]

    # ---------------- statement dispatch ----------------

    def parse_statement(self) -> Statement:
        """Dispatch based on the first keyword token."""
        t = self.peek()
        if t.typ == TokenType.WITH:
            return self.parse_with_statement()
        if t.typ in (TokenType.SELECT, TokenType.LPAREN):
            return self.parse_query()
        if t.typ == TokenType.CREATE:
            return self.parse_create()
        if t.typ == TokenType.DROP:
            return self.parse_drop()
        if t.typ == TokenType.ALTER:
            return self.parse_alter()
        if t.typ == TokenType.INSERT:
            return self.parse_insert()
        if t.typ == TokenType.UPDATE:
            return self.parse_update()
        if t.typ == TokenType.DELETE:
            return self.parse_delete()
        if t.typ == TokenType.TRUNCATE:
            return self.parse_truncate()
        if t.typ == TokenType.GRANT:
            self.consume()
            return Grant(text=self.skip_statement())
        if t.typ == TokenType.REVOKE:
            self.consume()
            return Revoke(text=self.skip_statement())
        if t.typ == TokenType.SET:
            self.consume()
            self.skip_statement()
            return AdminStatement(verb="SET")
        if t.typ in (TokenType.IDENT, TokenType.END) and not t.quoted and str(t.value).upper() in ADMIN_VERBS:
            verb = str(self.consume().value).upper()
            self.skip_statement()
            return AdminStatement(verb=verb)
        raise SqlSyntaxError(f"Unexpected token: {t.lexeme!r}", t.pos)

    def skip_statement(self) -> str:
        """Consume tokens up to the end of the current statement and return their text."""
        depth = 0
        parts: list[str] = []
        while not self.at(TokenType.EOF):
            if self.at(TokenType.SEMI) and depth == 0:
                break
            t = self.consume()
            if t.typ == TokenType.LPAREN:
                depth += 1
            elif t.typ == TokenType.RPAREN:
                depth -= 1
            parts.append(t.lexeme)
        return " ".join(parts)

    def parse_with_statement(self) -> Statement:
        """WITH ... followed by SELECT, INSERT, UPDATE or DELETE."""
        with_ = self.parse_with()
        if self.at(TokenType.INSERT):
            return replace(self.parse_insert(), with_=with_)
        if self.at(TokenType.UPDATE):
            return replace(self.parse_update(), with_=with_)
        if self.at(TokenType.DELETE):
            return replace(self.parse_delete(), with_=with_)
        return replace(self.parse_query_body(), with_=with_)

    # ---------------- names ----------------

    def parse_table_name(self) -> tuple[str | None, str]:
        """
        Parse:
          IDENT | IDENT '.' IDENT

        Returns:
            (schema or None, table name). The default schema `public` is dropped.
        """
        first = self.expect_ident("Expected table name")
        if self.match(TokenType.DOT):
            second = self.expect_ident("Expected table name after '.'")
            if first.lower() == "public":
                return None, second
            return first, second
        return None, first

    def parse_qualified_table_name(self) -> str:
        """Table name for DDL targets; non-default schemas stay in the name (`pg_catalog.x`)."""
        schema, name = self.parse_table_name()
        return f"{schema}.{name}" if schema else name

    def parse_optional_alias(self) -> str | None:
        """Parse `[AS] alias`; an implicit alias must be a plain identifier."""
        if self.match(TokenType.AS):
            return self.parse_alias_name()
        if self.at(TokenType.IDENT) and not self.at_word("FETCH"):
            return str(self.consume().value)
        return None

    def parse_alias_name(self) -> str:
        """Alias after AS: any identifier, keyword or string literal."""
        t = self.peek()
        if t.typ in (TokenType.IDENT, TokenType.STRING):
            return str(self.consume().value)
        if t.typ in _KEYWORD_TYPES:
            return str(self.consume().lexeme)
        raise self.error("Expected alias")

    def parse_ident_list(self) -> list[str]:
        """Parse '(' IDENT (',' IDENT)* ')'."""
        self.expect(TokenType.LPAREN, "Expected '('")
        names = [self.expect_ident("Expected column name")]
        while self.match(TokenType.COMMA):
            names.append(self.expect_ident("Expected column name"))
        self.expect(TokenType.RPAREN, "Expected ')'")
        return names

    # ---------------- CREATE ----------------

    def parse_create(self) -> Statement:
        """
        CREATE statement dispatcher:
          - CREATE TABLE ...
          - anything else (DATABASE, SCHEMA, INDEX, USER, ...) is administrative
        """
        self.expect(TokenType.CREATE, "Expected CREATE")

        if self.match(TokenType.TABLE):
            return self.parse_create_table_after_keyword()

        words: list[str] = []
        while self.at(TokenType.IDENT) or self.at(TokenType.UNIQUE) or self.at(TokenType.OR):
            words.append(str(self.consume().lexeme).upper())
            if words[-1] not in ("OR", "REPLACE", "UNIQUE", "TEMP", "TEMPORARY", "GLOBAL", "LOCAL"):
                break
        if words and words[-1] in ("TEMP", "TEMPORARY") and self.match(TokenType.TABLE):
            return self.parse_create_table_after_keyword()
        if not words:
            raise self.error("Expected TABLE after CREATE")
        self.skip_statement()
        return AdminStatement(verb="CREATE " + " ".join(words))

    def parse_create_table_after_keyword(self) -> CreateTable:
        """
        Parse:
          CREATE TABLE [IF NOT EXISTS] <name> ( <coldef | table constraint>, ... )
        """
        if_not_exists = False
        if self.match(TokenType.IF):
            self.expect(TokenType.NOT, "Expected NOT after IF")
            self.expect(TokenType.EXISTS, "Expected EXISTS after IF NOT")
            if_not_exists = True

        table = self.parse_qualified_table_name()
        self.expect(TokenType.LPAREN, "Expected '(' after table name")

        cols: list[ColumnDef] = []
        constraints: list[TableConstraint] = []
        while True:
            constraint = self.parse_table_constraint()
            if constraint is not None:
                if constraint.columns:
                    constraints.append(constraint)
            else:
                cols.append(self.parse_column_def())
            if not self.match(TokenType.COMMA):
                break

        self.expect(TokenType.RPAREN, "Expected ')' after column definitions")
        if not cols:
            raise SqlSyntaxError("CREATE TABLE needs at least one column", self.peek().pos)
        return CreateTable(
            table_name=table,
            columns=cols,
            constraints=constraints,
            if_not_exists=if_not_exists,
        )

    def parse_table_constraint(self) -> TableConstraint | None:
        """
        Parse a table-level constraint if one starts here:
          [CONSTRAINT name] PRIMARY KEY (cols) | UNIQUE (cols)
          | FOREIGN KEY (cols) REFERENCES t [(cols)] | CHECK (expr)

        Foreign keys and CHECK constraints are accepted and not enforced; they are
        returned as a constraint with no columns.
        """
        if self.match(TokenType.CONSTRAINT):
            self.expect_ident("Expected constraint name")
        if self.at(TokenType.PRIMARY):
            self.consume()
            self.expect_word("KEY")
            return TableConstraint(kind="PRIMARY KEY", columns=self.parse_ident_list())
        if self.at(TokenType.UNIQUE) and self.peek(1).typ == TokenType.LPAREN:
            self.consume()
            return TableConstraint(kind="UNIQUE", columns=self.parse_ident_list())
        if self.at_word("FOREIGN") and self.at_word("KEY", 1):
            self.consume()
            self.consume()
            self.parse_ident_list()
            self.parse_references()
            return TableConstraint(kind="FOREIGN KEY", columns=[])
        if self.at(TokenType.CHECK):
            self.consume()
            self.parse_parenthesized_expr()
            return TableConstraint(kind="CHECK", columns=[])
        return None

    def parse_references(self) -> None:
        """REFERENCES t [(cols)] [ON DELETE|UPDATE action]... (parsed, not enforced)."""
        self.expect(TokenType.REFERENCES, "Expected REFERENCES")
        self.parse_table_name()
        if self.at(TokenType.LPAREN):
            self.parse_ident_list()
        while self.at(TokenType.ON) and self.peek(1).typ in (TokenType.DELETE, TokenType.UPDATE):
            self.consume()
            self.consume()
            if self.at(TokenType.SET):
                self.consume()
                self.consume()
            elif self.match_word("NO"):
                self.expect_word("ACTION")
            else:
                self.consume()

    def parse_parenthesized_expr(self) -> Expr:
        self.expect(TokenType.LPAREN, "Expected '('")
        e = self.parse_expr()
        self.expect(TokenType.RPAREN, "Expected ')'")
        return e

    def parse_column_def(self) -> ColumnDef:
        """
        Parse:
          <colname> <type> [NOT NULL | NULL | UNIQUE | PRIMARY KEY | DEFAULT expr
                            | REFERENCES ... | CHECK (...)]*
        Constraints may appear in any order.
        """
        col_name = self.expect_ident("Expected column name")
        typ = self.parse_type_spec()

        not_null = False
        unique = False
        primary_key = False
        default: Expr | None = None

        while True:
            if self.match(TokenType.CONSTRAINT):
                self.expect_ident("Expected constraint name")
                continue
            if self.match(TokenType.NOT):
                self.expect(TokenType.NULL, "Expected NULL after NOT")
                not_null = True
                continue
            if self.match(TokenType.NULL):
                continue
            if self.match(TokenType.UNIQUE):
                unique = True
                continue
            if self.match(TokenType.PRIMARY):
                self.expect_word("KEY")
                primary_key = True
                continue
            if self.match(TokenType.DEFAULT):
                default = self.parse_concat()
                continue
            if self.at(TokenType.REFERENCES):
                self.parse_references()
                continue
            if self.match(TokenType.CHECK):
                self.parse_parenthesized_expr()
                continue
            break

        return ColumnDef(
            name=col_name,
            typ=typ,
            not_null=not_null or primary_key,
            unique=unique or primary_key,
            primary_key=primary_key,
            default=default,
        )

    def parse_type_spec(self) -> TypeSpec:
        """
        Parse:
          TYPE := IDENT [IDENT] [ '(' NUMBER (',' NUMBER)* ')' ] [WITH[OUT] TIME ZONE] ['[' ']']*

        Examples:
          INTEGER
          VARCHAR(255)
          DOUBLE PRECISION
          TIMESTAMP WITH TIME ZONE
          TEXT[]
        """
        type_name = self.expect_ident("Expected type name").upper()
        follow = MULTIWORD_TYPES.get(type_name)
        if follow and self.match_word(follow):
            type_name = f"{type_name} {follow}"

        params: list[int] = []
        if self.match(TokenType.LPAREN):
            params.append(int(self.expect(TokenType.NUMBER, "Expected integer type parameter").value))
            while self.match(TokenType.COMMA):
                params.append(int(self.expect(TokenType.NUMBER, "Expected integer type parameter").value))
            self.expect(TokenType.RPAREN, "Expected ')' after type parameters")

        if type_name in ("TIMESTAMP", "TIME"):
            if self.at(TokenType.WITH) and self.at_word("TIME", 1):
                self.consume()
                self.consume()
                self.expect_word("ZONE")
                type_name += "TZ"
            elif self.at_word("WITHOUT") and self.at_word("TIME", 1):
                self.consume()
                self.consume()
                self.expect_word("ZONE")

        array = False
        while self.at(TokenType.LBRACKET):
            self.consume()
            self.expect(TokenType.RBRACKET, "Expected ']' in array type")
            array = True
        if self.match_word("ARRAY"):
            array = True

        return TypeSpec(name=type_name, params=params, array=array)

    # ---------------- DROP / ALTER / TRUNCATE ----------------

    def parse_drop(self) -> Statement:
        """
        Parse:
          DROP TABLE [IF EXISTS] a [, b ...] [CASCADE | RESTRICT]
        Other DROP targets (DATABASE, SCHEMA, INDEX, ...) are administrative.
        """
        self.expect(TokenType.DROP, "Expected DROP")
        if not self.match(TokenType.TABLE):
            t = self.peek()
            if t.typ == TokenType.EOF:
                raise self.error("Expected TABLE after DROP")
            self.consume()
            self.skip_statement()
            return AdminStatement(verb=f"DROP {t.lexeme.upper()}")

        if_exists = False
        if self.match(TokenType.IF):
            self.expect(TokenType.EXISTS, "Expected EXISTS after IF")
            if_exists = True

        names = [self.parse_qualified_table_name()]
        while self.match(TokenType.COMMA):
            names.append(self.parse_qualified_table_name())
        if not self.match_word("CASCADE"):
            self.match_word("RESTRICT")
        return DropTable(table_names=names, if_exists=if_exists)

    def parse_alter(self) -> Statement:
        """
        Parse:
          ALTER TABLE <name> action [, action ...]

        action:
          ADD [COLUMN] [IF NOT EXISTS] <coldef>
          DROP [COLUMN] [IF EXISTS] <name> [CASCADE]
          RENAME [COLUMN] <old> TO <new>
          RENAME TO <new>
        """
        self.expect(TokenType.ALTER, "Expected ALTER")
        if not self.match(TokenType.TABLE):
            t = self.peek()
            if t.typ == TokenType.EOF:
                raise self.error("Expected TABLE after ALTER")
            self.consume()
            self.skip_statement()
            return AdminStatement(verb=f"ALTER {t.lexeme.upper()}")

        table = self.parse_qualified_table_name()
        actions: list[AlterAction] = [self.parse_alter_action()]
        while self.match(TokenType.COMMA):
            actions.append(self.parse_alter_action())
        return AlterTable(table_name=table, actions=actions)

    def parse_alter_action(self) -> AlterAction:
        if self.match_word("ADD"):
            if self.at(TokenType.CONSTRAINT) or self.at(TokenType.PRIMARY) or self.at(TokenType.UNIQUE):
                raise self.error("ALTER TABLE ADD CONSTRAINT is not supported")
            self.match(TokenType.COLUMN)
            if_not_exists = False
            if self.match(TokenType.IF):
                self.expect(TokenType.NOT, "Expected NOT after IF")
                self.expect(TokenType.EXISTS, "Expected EXISTS after IF NOT")
                if_not_exists = True
            return AddColumn(column=self.parse_column_def(), if_not_exists=if_not_exists)

        if self.match(TokenType.DROP):
            self.match(TokenType.COLUMN)
            if_exists = False
            if self.match(TokenType.IF):
                self.expect(TokenType.EXISTS, "Expected EXISTS after IF")
                if_exists = True
            name = self.expect_ident("Expected column name")
            if not self.match_word("CASCADE"):
                self.match_word("RESTRICT")
            return DropColumn(name=name, if_exists=if_exists)

        if self.match(TokenType.RENAME):
            if self.match(TokenType.TO):
                _schema, new = self.parse_table_name()
                return RenameTable(new=new)
            self.match(TokenType.COLUMN)
            old = self.expect_ident("Expected column name")
            self.expect(TokenType.TO, "Expected TO in RENAME COLUMN")
            new = self.expect_ident("Expected new column name")
            return RenameColumn(old=old, new=new)

        raise self.error("Expected ADD, DROP or RENAME in ALTER TABLE")

    def parse_truncate(self) -> Truncate:
        """TRUNCATE [TABLE] a [, b ...] [options]."""
        self.expect(TokenType.TRUNCATE, "Expected TRUNCATE")
        self.match(TokenType.TABLE)
        names = [self.parse_qualified_table_name()]
        while self.match(TokenType.COMMA):
            names.append(self.parse_qualified_table_name())
        self.skip_statement()
        return Truncate(table_names=names)

    # ---------------- INSERT / UPDATE / DELETE ----------------

    def parse_target_table(self) -> TableRef:
        schema, name = self.parse_table_name()
        alias = None
        if self.match(TokenType.AS):
            alias = self.expect_ident("Expected alias")
        elif self.at(TokenType.IDENT) and not self.at_word("DEFAULT"):
            alias = str(self.consume().value)
        return TableRef(name=name, alias=alias, schema=schema)

    def parse_returning(self) -> list[SelectItem]:
        if self.match(TokenType.RETURNING):
            return self.parse_select_items()
        return []

    def parse_insert(self) -> Insert:
        """
        Parse:
          INSERT INTO table [(c1, c2, ...)] VALUES (v1, ...) [, (...)]* [RETURNING ...]
          INSERT INTO table [(c1, c2, ...)] SELECT ... [RETURNING ...]
          INSERT INTO table DEFAULT VALUES [RETURNING ...]
        """
        self.expect(TokenType.INSERT, "Expected INSERT")
        self.expect(TokenType.INTO, "Expected INTO after INSERT")
        schema, name = self.parse_table_name()
        alias = None
        if self.match(TokenType.AS):
            alias = self.expect_ident("Expected alias")
        table = TableRef(name=name, alias=alias, schema=schema)

        cols: list[str] = []
        if self.at(TokenType.LPAREN) and self.peek(1).typ not in (TokenType.SELECT, TokenType.WITH):
            cols = self.parse_ident_list()

        rows: list[list[Expr]] | None = None
        query: Query | None = None
        if self.match(TokenType.VALUES):
            rows = [self.parse_values_row()]
            while self.match(TokenType.COMMA):
                rows.append(self.parse_values_row())
        elif self.match(TokenType.DEFAULT):
            self.expect(TokenType.VALUES, "Expected VALUES after DEFAULT")
            rows = [[]]
        elif self.at(TokenType.SELECT) or self.at(TokenType.WITH) or self.at(TokenType.LPAREN):
            query = self.parse_query()
        else:
            raise self.error("Expected VALUES or SELECT")

        if self.at(TokenType.ON) and self.at_word("CONFLICT", 1):
            raise self.error("ON CONFLICT is not supported")

        return Insert(table=table, columns=cols, rows=rows, query=query, returning=self.parse_returning())

    def parse_values_row(self) -> list[Expr]:
        self.expect(TokenType.LPAREN, "Expected '(' before values")
        vals = [self.parse_value_or_default()]
        while self.match(TokenType.COMMA):
            vals.append(self.parse_value_or_default())
        self.expect(TokenType.RPAREN, "Expected ')' after values")
        return vals

    def parse_value_or_default(self) -> Expr:
        if self.match(TokenType.DEFAULT):
            return FuncCall(name="DEFAULT")
        return self.parse_expr()

    def parse_update(self) -> Update:
        """
        Parse:
          UPDATE <table> [[AS] alias] SET c=expr [,c=expr]* [WHERE ...] [RETURNING ...]
        """
        self.expect(TokenType.UPDATE, "Expected UPDATE")
        table = self.parse_target_table()
        self.expect(TokenType.SET, "Expected SET")

        assignments = [self.parse_assignment()]
        while self.match(TokenType.COMMA):
            assignments.append(self.parse_assignment())

        where = None
        if self.match(TokenType.WHERE):
            where = self.parse_expr()

        return Update(table=table, assignments=assignments, where=where, returning=self.parse_returning())

    def parse_assignment(self) -> Assignment:
        """
        Parse:
          <ident> = <expr>   (a qualifier `t.col` is accepted and dropped)
        """
        col = self.expect_ident("Expected column name")
        if self.match(TokenType.DOT):
            col = self.expect_ident("Expected column name after '.'")
        self.expect(TokenType.EQ, "Expected '=' in assignment")
        return Assignment(column=col, value=self.parse_value_or_default())

    def parse_delete(self) -> Delete:
        """
        Parse:
          DELETE FROM <table> [[AS] alias] [WHERE ...] [RETURNING ...]
        """
        self.expect(TokenType.DELETE, "Expected DELETE")
        self.expect(TokenType.FROM, "Expected FROM after DELETE")
        table = self.parse_target_table()

        where = None
        if self.match(TokenType.WHERE):
            where = self.parse_expr()

        return Delete(table=table, where=where, returning=self.parse_returning())

    # ---------------- queries ----------------

    def parse_with(self) -> WithClause:
        """
        Parse:
          WITH [RECURSIVE] name [(cols)] AS ( query ) [, ...]
        """
        self.expect(TokenType.WITH, "Expected WITH")
        recursive = self.match(TokenType.RECURSIVE)
        ctes: list[CommonTableExpr] = []
        while True:
            name = self.expect_ident("Expected CTE name")
            columns: list[str] = []
            if self.at(TokenType.LPAREN):
                columns = self.parse_ident_list()
            self.expect(TokenType.AS, "Expected AS after CTE name")
            if self.match_word("MATERIALIZED"):
                pass
            elif self.at(TokenType.NOT) and self.at_word("MATERIALIZED", 1):
                self.consume()
                self.consume()
            self.expect(TokenType.LPAREN, "Expected '(' before CTE query")
            query = self.parse_query()
            self.expect(TokenType.RPAREN, "Expected ')' after CTE query")
            ctes.append(CommonTableExpr(name=name, query=query, columns=columns))
            if not self.match(TokenType.COMMA):
                break
        return WithClause(ctes=ctes, recursive=recursive)

    def parse_query(self) -> Query:
        """Parse a full query: [WITH ...] set-expression [ORDER BY] [LIMIT] [OFFSET]."""
        if self.at(TokenType.WITH):
            with_ = self.parse_with()
            return replace(self.parse_query_body(), with_=with_)
        return self.parse_query_body()

    def parse_query_body(self) -> Query:
        body = self.parse_set_expr()

        order_by: list[OrderItem] = []
        if self.at(TokenType.ORDER):
            order_by = self.parse_order_by()
        limit, offset = self.parse_limit_offset()

        changes: dict[str, object] = {}
        if order_by:
            changes["order_by"] = order_by
        if limit is not None:
            changes["limit"] = limit
        if offset is not None:
            changes["offset"] = offset
        if changes:
            body = replace(body, **changes)
        return body

    def parse_limit_offset(self) -> tuple[Expr | None, Expr | None]:
        limit: Expr | None = None
        offset: Expr | None = None
        for _ in range(2):
            if self.match(TokenType.LIMIT):
                if self.match(TokenType.ALL):
                    continue
                limit = self.parse_concat()
            elif self.match(TokenType.OFFSET):
                offset = self.parse_concat()
                if not self.match_word("ROWS"):
                    self.match_word("ROW")
            elif self.match_word("FETCH"):
                if not self.match_word("FIRST"):
                    self.expect_word("NEXT")
                limit = Literal(1)
                if not (self.at_word("ROW") or self.at_word("ROWS")):
                    limit = self.parse_concat()
                if not self.match_word("ROWS"):
                    self.expect_word("ROW")
                self.expect_word("ONLY")
        return limit, offset

    def parse_set_expr(self) -> Query:
        """UNION / EXCEPT level (left associative)."""
        left = self.parse_set_term()
        while self.at(TokenType.UNION) or self.at(TokenType.EXCEPT):
            op = str(self.consume().value)
            is_all = self.match(TokenType.ALL)
            if not is_all:
                self.match(TokenType.DISTINCT)
            right = self.parse_set_term()
            left = SetOperation(op=op, left=left, right=right, all=is_all)
        return left

    def parse_set_term(self) -> Query:
        """INTERSECT level (binds tighter than UNION/EXCEPT)."""
        left = self.parse_set_primary()
        while self.at(TokenType.INTERSECT):
            self.consume()
            is_all = self.match(TokenType.ALL)
            if not is_all:
                self.match(TokenType.DISTINCT)
            right = self.parse_set_primary()
            left = SetOperation(op="INTERSECT", left=left, right=right, all=is_all)
        return left

    def parse_set_primary(self) -> Query:
        if self.at(TokenType.LPAREN):
            self.consume()
            q = self.parse_query()
            self.expect(TokenType.RPAREN, "Expected ')' after subquery")
            return q
        if self.at(TokenType.VALUES):
            return self.parse_values_query()
        return self.parse_select_core()

    def parse_values_query(self) -> Select:
        """
        VALUES (a, b), (c, d) as a query: a UNION ALL chain of one-row SELECTs with
        columns named column1, column2, ...
        """
        self.expect(TokenType.VALUES, "Expected VALUES")
        rows = [self.parse_values_row()]
        while self.match(TokenType.COMMA):
            rows.append(self.parse_values_row())
        query: Query | None = None
        for row in rows:
            sel = Select(items=[SelectItem(expr=e, alias=f"column{i + 1}") for i, e in enumerate(row)])
            query = sel if query is None else SetOperation(op="UNION", left=query, right=sel, all=True)
        return query  # type: ignore[return-value]

    def parse_select_core(self) -> Select:
        """
        Parse:
          SELECT [DISTINCT | ALL] <items> [FROM sources [joins]] [WHERE e]
                 [GROUP BY e, ...] [HAVING e]
        """
        self.expect(TokenType.SELECT, "Expected SELECT")
        distinct = False
        if self.match(TokenType.DISTINCT):
            distinct = True
        else:
            self.match(TokenType.ALL)

        items = self.parse_select_items()

        sources: list[TableRef | DerivedTable] = []
        joins: list[Join] = []
        if self.match(TokenType.FROM):
            sources.append(self.parse_source())
            while True:
                if self.match(TokenType.COMMA):
                    sources.append(self.parse_source())
                    continue
                join = self.parse_join()
                if join is None:
                    break
                joins.append(join)

        where = None
        if self.match(TokenType.WHERE):
            where = self.parse_expr()

        group_by: list[Expr] = []
        if self.at(TokenType.GROUP):
            self.consume()
            self.expect(TokenType.BY, "Expected BY after GROUP")
            group_by.append(self.parse_expr())
            while self.match(TokenType.COMMA):
                group_by.append(self.parse_expr())

        having = None
        if self.match(TokenType.HAVING):
            having = self.parse_expr()

        return Select(
            items=items,
            from_=sources,
            joins=joins,
            where=where,
            group_by=group_by,
            having=having,
            distinct=distinct,
        )

    def parse_select_items(self) -> list[SelectItem]:
        """
        Parse:
          item (',' item)*   where item := '*' | IDENT '.' '*' | expr [[AS] alias]
        """
        items = [self.parse_select_item()]
        while self.match(TokenType.COMMA):
            items.append(self.parse_select_item())
        return items

    def parse_select_item(self) -> SelectItem:
        if self.match(TokenType.STAR):
            return SelectItem(expr=Star())
        if (
            self.at(TokenType.IDENT)
            and self.peek(1).typ == TokenType.DOT
            and self.peek(2).typ == TokenType.STAR
        ):
            table = str(self.consume().value)
            self.consume()
            self.consume()
            return SelectItem(expr=Star(table=table))
        expr = self.parse_expr()
        return SelectItem(expr=expr, alias=self.parse_optional_alias())

    def parse_source(self) -> TableRef | DerivedTable:
        """
        Parse a FROM source:
          <table> [[AS] alias] | ( query ) [AS] alias [(col, ...)]
        """
        if self.at(TokenType.LPAREN):
            self.consume()
            query = self.parse_query()
            self.expect(TokenType.RPAREN, "Expected ')' after derived table")
            alias = self.parse_optional_alias() or "subquery"
            column_aliases: list[str] = []
            if self.at(TokenType.LPAREN):
                column_aliases = self.parse_ident_list()
            return DerivedTable(query=query, alias=alias, column_aliases=column_aliases)
        schema, name = self.parse_table_name()
        return TableRef(name=name, alias=self.parse_optional_alias(), schema=schema)

    def parse_join(self) -> Join | None:
        """
        Parse one JOIN clause, or return None when none starts here:
          [INNER] JOIN | LEFT [OUTER] JOIN | RIGHT [OUTER] JOIN | FULL [OUTER] JOIN
          | CROSS JOIN, followed by a source and ON expr / USING (cols)
        """
        t = self.peek()
        if t.typ == TokenType.JOIN:
            kind = "INNER"
        elif t.typ == TokenType.INNER:
            kind = "INNER"
        elif t.typ in (TokenType.LEFT, TokenType.RIGHT, TokenType.FULL):
            kind = str(t.value)
        elif t.typ == TokenType.CROSS:
            kind = "CROSS"
        elif t.typ == TokenType.NATURAL:
            raise self.error("NATURAL JOIN is not supported")
        else:
            return None

        if t.typ != TokenType.JOIN:
            self.consume()
            if kind in ("LEFT", "RIGHT", "FULL"):
                self.match(TokenType.OUTER)
        self.expect(TokenType.JOIN, "Expected JOIN")

        source = self.parse_source()
        if kind == "CROSS":
            return Join(kind=kind, source=source)
        if self.match(TokenType.ON):
            return Join(kind=kind, source=source, condition=self.parse_expr())
        if self.match(TokenType.USING):
            return Join(kind=kind, source=source, using=self.parse_ident_list())
        raise self.error("Expected ON or USING in JOIN clause")

    def parse_order_by(self) -> list[OrderItem]:
        """
        Parse:
          ORDER BY expr [ASC|DESC] [NULLS FIRST|LAST] (',' ...)*
        """
        self.expect(TokenType.ORDER, "Expected ORDER")
        self.expect(TokenType.BY, "Expected BY after ORDER")
        items = [self.parse_order_item()]
        while self.match(TokenType.COMMA):
            items.append(self.parse_order_item())
        return items

    def parse_order_item(self) -> OrderItem:
        expr = self.parse_expr()
        descending = False
        if self.match(TokenType.DESC):
            descending = True
        else:
            self.match(TokenType.ASC)
        nulls_first: bool | None = None
        if self.match(TokenType.NULLS):
            if self.match_word("FIRST"):
                nulls_first = True
            else:
                self.expect_word("LAST")
                nulls_first = False
        return OrderItem(expr=expr, descending=descending, nulls_first=nulls_first)

    # ---------------- expressions ----------------

    def parse_expr(self) -> Expr:
        """Parse a full expression (lowest precedence: OR)."""
        return self.parse_or()

    def parse_or(self) -> Expr:
        left = self.parse_and()
        while self.match(TokenType.OR):
            left = BinaryOp(op="OR", left=left, right=self.parse_and())
        return left

    def parse_and(self) -> Expr:
        left = self.parse_not()
        while self.match(TokenType.AND):
            left = BinaryOp(op="AND", left=left, right=self.parse_not())
        return left

    def parse_not(self) -> Expr:
        if self.match(TokenType.NOT):
            return UnaryOp(op="NOT", operand=self.parse_not())
        return self.parse_predicate()

    def parse_predicate(self) -> Expr:
        """
        Comparison-level predicates:
          a <op> b | a <op> ANY|SOME|ALL (subquery) | a IS [NOT] NULL|TRUE|FALSE
          | a IS [NOT] DISTINCT FROM b | a [NOT] LIKE|ILIKE b | a [NOT] BETWEEN x AND y
          | a [NOT] IN (list | subquery)
        """
        left = self.parse_concat()
        while True:
            t = self.peek()
            if t.typ in COMPARISON_OPS:
                op = COMPARISON_OPS[self.consume().typ]
                if self.at(TokenType.ANY) or self.at(TokenType.SOME) or self.at(TokenType.ALL):
                    quant = "ALL" if self.consume().typ == TokenType.ALL else "ANY"
                    self.expect(TokenType.LPAREN, f"Expected '(' after {quant}")
                    query = self.parse_query()
                    self.expect(TokenType.RPAREN, "Expected ')' after subquery")
                    left = Quantified(op=op, operand=left, quantifier=quant, query=query)
                else:
                    left = BinaryOp(op=op, left=left, right=self.parse_concat())
                continue

            if t.typ == TokenType.IS:
                self.consume()
                negated = self.match(TokenType.NOT)
                if self.match(TokenType.NULL):
                    left = IsTest(operand=left, what="NULL", negated=negated)
                elif self.at(TokenType.BOOL):
                    what = "TRUE" if self.consume().value else "FALSE"
                    left = IsTest(operand=left, what=what, negated=negated)
                elif self.match(TokenType.DISTINCT):
                    self.expect(TokenType.FROM, "Expected FROM after IS DISTINCT")
                    left = IsDistinct(left=left, right=self.parse_concat(), negated=negated)
                elif self.match_word("UNKNOWN"):
                    left = IsTest(operand=left, what="NULL", negated=negated)
                else:
                    raise self.error("Expected NULL, TRUE, FALSE or DISTINCT FROM after IS")
                continue

            negated = False
            if t.typ == TokenType.NOT and self.peek(1).typ in (
                TokenType.LIKE, TokenType.ILIKE, TokenType.BETWEEN, TokenType.IN,
            ):
                self.consume()
                negated = True
                t = self.peek()

            if t.typ in (TokenType.LIKE, TokenType.ILIKE):
                self.consume()
                pattern = self.parse_concat()
                left = Like(
                    operand=left,
                    pattern=pattern,
                    negated=negated,
                    case_insensitive=t.typ == TokenType.ILIKE,
                )
                continue

            if t.typ == TokenType.BETWEEN:
                self.consume()
                self.match_word("SYMMETRIC")
                low = self.parse_concat()
                self.expect(TokenType.AND, "Expected AND in BETWEEN")
                high = self.parse_concat()
                left = Between(operand=left, low=low, high=high, negated=negated)
                continue

            if t.typ == TokenType.IN:
                self.consume()
                self.expect(TokenType.LPAREN, "Expected '(' after IN")
                if self.at(TokenType.SELECT) or self.at(TokenType.WITH):
                    query = self.parse_query()
                    self.expect(TokenType.RPAREN, "Expected ')' after subquery")
                    left = InSubquery(operand=left, query=query, negated=negated)
                else:
                    items = [self.parse_expr()]
                    while self.match(TokenType.COMMA):
                        items.append(self.parse_expr())
                    self.expect(TokenType.RPAREN, "Expected ')' after IN list")
                    left = InList(operand=left, items=items, negated=negated)
                continue

            return left

    def parse_concat(self) -> Expr:
        left = self.parse_additive()
        while self.match(TokenType.CONCAT):
            left = BinaryOp(op="||", left=left, right=self.parse_additive())
        return left

    def parse_additive(self) -> Expr:
        left = self.parse_multiplicative()
        while self.at(TokenType.PLUS) or self.at(TokenType.MINUS):
            op = "+" if self.consume().typ == TokenType.PLUS else "-"
            left = BinaryOp(op=op, left=left, right=self.parse_multiplicative())
        return left

    def parse_multiplicative(self) -> Expr:
        left = self.parse_unary()
        while self.at(TokenType.STAR) or self.at(TokenType.SLASH) or self.at(TokenType.PERCENT):
            typ = self.consume().typ
            op = {TokenType.STAR: "*", TokenType.SLASH: "/", TokenType.PERCENT: "%"}[typ]
            left = BinaryOp(op=op, left=left, right=self.parse_unary())
        return left

    def parse_unary(self) -> Expr:
        if self.match(TokenType.MINUS):
            operand = self.parse_unary()
            if isinstance(operand, Literal) and isinstance(operand.value, (int, float)) \
                    and not isinstance(operand.value, bool):
                return Literal(-operand.value)
            return UnaryOp(op="-", operand=operand)
        if self.match(TokenType.PLUS):
            return UnaryOp(op="+", operand=self.parse_unary())
        return self.parse_postfix()

    def parse_postfix(self) -> Expr:
        expr = self.parse_primary()
        while True:
            if self.match(TokenType.DCOLON):
                expr = Cast(operand=expr, typ=self.parse_type_spec())
            elif self.at(TokenType.ARROW) or self.at(TokenType.ARROW_TEXT):
                as_text = self.consume().typ == TokenType.ARROW_TEXT
                expr = JsonAccess(operand=expr, key=self.parse_primary(), as_text=as_text)
            else:
                return expr

    def parse_primary(self) -> Expr:
        """Literals, column references, function calls, CASE, CAST, EXISTS, subqueries."""
        t = self.peek()

        if t.typ in (TokenType.NUMBER, TokenType.STRING, TokenType.BOOL):
            self.consume()
            return Literal(t.value)
        if t.typ == TokenType.NULL:
            self.consume()
            return Literal(None)

        if t.typ == TokenType.LPAREN:
            self.consume()
            if self.at(TokenType.SELECT) or self.at(TokenType.WITH):
                query = self.parse_query()
                self.expect(TokenType.RPAREN, "Expected ')' after subquery")
                return SubqueryExpr(query=query)
            expr = self.parse_expr()
            self.expect(TokenType.RPAREN, "Expected ')'")
            return expr

        if t.typ == TokenType.CASE:
            return self.parse_case()

        if t.typ == TokenType.CAST:
            self.consume()
            self.expect(TokenType.LPAREN, "Expected '(' after CAST")
            operand = self.parse_expr()
            self.expect(TokenType.AS, "Expected AS in CAST")
            typ = self.parse_type_spec()
            self.expect(TokenType.RPAREN, "Expected ')' after CAST")
            return Cast(operand=operand, typ=typ)

        if t.typ == TokenType.EXISTS:
            self.consume()
            self.expect(TokenType.LPAREN, "Expected '(' after EXISTS")
            query = self.parse_query()
            self.expect(TokenType.RPAREN, "Expected ')' after subquery")
            return Exists(query=query)

        if t.typ in (TokenType.LEFT, TokenType.RIGHT) and self.peek(1).typ == TokenType.LPAREN:
            self.consume()
            return self.parse_function_call(str(t.value))

        if t.typ == TokenType.IDENT:
            if not t.quoted:
                special = self.parse_special_form(str(t.value).upper())
                if special is not None:
                    return special
            self.consume()
            name = str(t.value)
            if self.peek().typ == TokenType.LPAREN and not t.quoted:
                return self.parse_function_call(name.upper())
            if self.match(TokenType.DOT):
                col = self.peek()
                if col.typ == TokenType.IDENT or col.typ in _KEYWORD_TYPES:
                    self.consume()
                    return ColumnRef(column=str(col.value) if col.typ == TokenType.IDENT else col.lexeme,
                                     table=name)
                raise self.error("Expected column name after '.'")
            return ColumnRef(column=name)

        raise SqlSyntaxError(f"Unexpected token: {t.lexeme or 'end of input'!r}", t.pos)

    def parse_special_form(self, word: str) -> Expr | None:
        """Functions with keyword-separated arguments and parenthesis-free functions."""
        if word in NILADIC_FUNCTIONS and self.peek(1).typ != TokenType.LPAREN:
            self.consume()
            return FuncCall(name=word)

        if word == "ARRAY" and self.peek(1).typ == TokenType.LBRACKET:
            self.consume()
            self.consume()
            items: list[Expr] = []
            if not self.at(TokenType.RBRACKET):
                items.append(self.parse_expr())
                while self.match(TokenType.COMMA):
                    items.append(self.parse_expr())
            self.expect(TokenType.RBRACKET, "Expected ']' after ARRAY elements")
            return ArrayLiteral(items=items)

        if word == "INTERVAL" and self.peek(1).typ == TokenType.STRING:
            self.consume()
            return FuncCall(name="INTERVAL", args=[Literal(self.consume().value)])

        if self.peek(1).typ != TokenType.LPAREN:
            return None

        if word == "EXTRACT":
            self.consume()
            self.consume()
            field_tok = self.consume()
            field_name = str(field_tok.value if field_tok.typ == TokenType.STRING else field_tok.lexeme).upper()
            self.expect(TokenType.FROM, "Expected FROM in EXTRACT")
            source = self.parse_expr()
            self.expect(TokenType.RPAREN, "Expected ')' after EXTRACT")
            return FuncCall(name="EXTRACT", args=[Literal(field_name), source])

        if word == "POSITION":
            self.consume()
            self.consume()
            needle = self.parse_concat()
            if self.match(TokenType.IN):
                haystack = self.parse_concat()
                self.expect(TokenType.RPAREN, "Expected ')' after POSITION")
                return FuncCall(name="POSITION", args=[needle, haystack])
            self.expect(TokenType.COMMA, "Expected IN in POSITION")
            haystack = self.parse_expr()
            self.expect(TokenType.RPAREN, "Expected ')' after POSITION")
            return FuncCall(name="POSITION", args=[needle, haystack])

        if word in ("SUBSTRING", "SUBSTR"):
            self.consume()
            self.consume()
            args = [self.parse_expr()]
            if self.match(TokenType.FROM):
                args.append(self.parse_expr())
                if self.match_word("FOR"):
                    args.append(self.parse_expr())
            elif self.match_word("FOR"):
                args.append(Literal(1))
                args.append(self.parse_expr())
            else:
                while self.match(TokenType.COMMA):
                    args.append(self.parse_expr())
            self.expect(TokenType.RPAREN, "Expected ')' after SUBSTRING")
            return FuncCall(name="SUBSTRING", args=args)

        if word == "TRIM":
            self.consume()
            self.consume()
            name = "TRIM"
            if self.match_word("LEADING"):
                name = "LTRIM"
            elif self.match_word("TRAILING"):
                name = "RTRIM"
            else:
                self.match_word("BOTH")
            if self.match(TokenType.FROM):
                source = self.parse_expr()
                self.expect(TokenType.RPAREN, "Expected ')' after TRIM")
                return FuncCall(name=name, args=[source])
            first = self.parse_expr()
            if self.match(TokenType.FROM):
                source = self.parse_expr()
                self.expect(TokenType.RPAREN, "Expected ')' after TRIM")
                return FuncCall(name=name, args=[source, first])
            args = [first]
            while self.match(TokenType.COMMA):
                args.append(self.parse_expr())
            self.expect(TokenType.RPAREN, "Expected ')' after TRIM")
            return FuncCall(name=name, args=args)

        return None

    def parse_function_call(self, name: str) -> FuncCall:
        """
        Parse (after the name):
          '(' [*] | [DISTINCT] expr (',' expr)* [ORDER BY ...] ')'
          [FILTER '(' WHERE expr ')'] [OVER '(' window ')']
        """
        name = name.upper()
        self.expect(TokenType.LPAREN, "Expected '(' after function name")
        args: list[Expr] = []
        distinct = False
        star = False
        order_by: list[OrderItem] = []

        if self.match(TokenType.STAR):
            star = True
        elif not self.at(TokenType.RPAREN):
            if self.match(TokenType.DISTINCT):
                distinct = True
            else:
                self.match(TokenType.ALL)
            args.append(self.parse_expr())
            while self.match(TokenType.COMMA):
                args.append(self.parse_expr())
            if self.at(TokenType.ORDER):
                order_by = self.parse_order_by()
        self.expect(TokenType.RPAREN, f"Expected ')' after arguments of {name}")

        filter_: Expr | None = None
        if self.match(TokenType.FILTER):
            self.expect(TokenType.LPAREN, "Expected '(' after FILTER")
            self.expect(TokenType.WHERE, "Expected WHERE in FILTER")
            filter_ = self.parse_expr()
            self.expect(TokenType.RPAREN, "Expected ')' after FILTER")

        over: WindowSpec | None = None
        if self.match(TokenType.OVER):
            over = self.parse_window_spec()

        return FuncCall(
            name=name,
            args=args,
            distinct=distinct,
            star=star,
            order_by=order_by,
            filter=filter_,
            over=over,
        )

    def parse_window_spec(self) -> WindowSpec:
        """
        Parse:
          '(' [PARTITION BY e, ...] [ORDER BY ...] [ROWS|RANGE frame] ')'
        """
        self.expect(TokenType.LPAREN, "Expected '(' after OVER")
        partition_by: list[Expr] = []
        if self.match(TokenType.PARTITION):
            self.expect(TokenType.BY, "Expected BY after PARTITION")
            partition_by.append(self.parse_expr())
            while self.match(TokenType.COMMA):
                partition_by.append(self.parse_expr())
        order_by: list[OrderItem] = []
        if self.at(TokenType.ORDER):
            order_by = self.parse_order_by()
        frame: FrameSpec | None = None
        if self.at_word("ROWS") or self.at_word("RANGE"):
            mode = str(self.consume().value).upper()
            if self.match(TokenType.BETWEEN):
                start = self.parse_frame_bound()
                self.expect(TokenType.AND, "Expected AND in frame clause")
                end = self.parse_frame_bound()
            else:
                start = self.parse_frame_bound()
                end = FrameBound(kind="CURRENT_ROW")
            frame = FrameSpec(mode=mode, start=start, end=end)
        self.expect(TokenType.RPAREN, "Expected ')' after window specification")
        return WindowSpec(partition_by=partition_by, order_by=order_by, frame=frame)

    def parse_frame_bound(self) -> FrameBound:
        if self.match_word("UNBOUNDED"):
            if self.match_word("PRECEDING"):
                return FrameBound(kind="UNBOUNDED_PRECEDING")
            self.expect_word("FOLLOWING")
            return FrameBound(kind="UNBOUNDED_FOLLOWING")
        if self.match_word("CURRENT"):
            self.expect_word("ROW")
            return FrameBound(kind="CURRENT_ROW")
        offset = self.expect(TokenType.NUMBER, "Expected frame offset")
        if self.match_word("PRECEDING"):
            return FrameBound(kind="PRECEDING", offset=int(offset.value))
        self.expect_word("FOLLOWING")
        return FrameBound(kind="FOLLOWING", offset=int(offset.value))

    def parse_case(self) -> Case:
        """
        Parse:
          CASE [operand] WHEN e THEN r [WHEN ...] [ELSE r] END
        """
        self.expect(TokenType.CASE, "Expected CASE")
        operand = None
        if not self.at(TokenType.WHEN):
            operand = self.parse_expr()
        whens: list[WhenClause] = []
        while self.match(TokenType.WHEN):
            cond = self.parse_expr()
            self.expect(TokenType.THEN, "Expected THEN in CASE")
            whens.append(WhenClause(condition=cond, result=self.parse_expr()))
        if not whens:
            raise self.error("Expected WHEN in CASE")
        else_ = None
        if self.match(TokenType.ELSE):
            else_ = self.parse_expr()
        self.expect(TokenType.END, "Expected END after CASE")
        return Case(operand=operand, whens=whens, else_=else_)


_KEYWORD_TYPES = set(KEYWORDS.values())


# ---------- public helpers ----------

def parse_sql(sql: str) -> Statement:
    """
    Parse exactly one SQL statement.

    Args:
        sql: SQL string.

    Returns:
        AST Statement.

    Raises:
        SqlSyntaxError: if parsing fails or multiple statements provided.
    """
    tokens = tokenize(sql)
    return Parser(tokens).parse_one()


def parse_script(sql: str) -> list[Statement]:
    """
    Parse one or more SQL statements separated by semicolons.

    Args:
        sql: SQL script string.

    Returns:
        List of AST Statements.
    """
    tokens = tokenize(sql)
    return Parser(tokens).parse_script()
