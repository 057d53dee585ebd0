"""
tenantsql/lexer.py

SQL tokenizer (lexer) for the tenantsql engine.

Responsibilities:
- Convert an input SQL string into a list of tokens with line/column positions
- Recognize reserved keywords, identifiers, literals, operators and punctuation
- Provide reliable error messages for unexpected characters and unterminated literals

Notes:
- String literals use single quotes, with '' as the escaped quote: 'it''s'
- Double-quoted text is a quoted identifier: "Order Items"
- Comments: -- to end of line, and /* ... */ blocks
- Only reserved words become keyword tokens. Words that are also common column
  names (KEY, FIRST, ROWS, CURRENT, ...) stay IDENT and the parser checks them
  with `at_word()`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto

from .errors import Position, SqlSyntaxError


class TokenType(Enum):
    """Token categories recognized by the lexer."""
    EOF = auto()

    # Identifiers + literals
    IDENT = auto()
    NUMBER = auto()
    STRING = auto()
    BOOL = auto()
    NULL = auto()

    # Symbols
    LPAREN = auto()     # (
    RPAREN = auto()     # )
    LBRACKET = auto()   # [
    RBRACKET = auto()   # ]
    COMMA = auto()      # ,
    SEMI = auto()       # ;
    DOT = auto()        # .
    STAR = auto()       # *
    PLUS = auto()       # +
    MINUS = auto()      # -
    SLASH = auto()      # /
    PERCENT = auto()    # %
    EQ = auto()         # =
    NEQ = auto()        # <> or !=
    LT = auto()         # <
    LTE = auto()        # <=
    GT = auto()         # >
    GTE = auto()        # >=
    CONCAT = auto()     # ||
    DCOLON = auto()     # ::
    ARROW = auto()      # ->
    ARROW_TEXT = auto() # ->>

    # Keywords (reserved)
    ALL = auto()
    ALTER = auto()
    AND = auto()
    ANY = auto()
    AS = auto()
    ASC = auto()
    BETWEEN = auto()
    BY = auto()
    CASE = auto()
    CAST = auto()
    CHECK = auto()
    COLUMN = auto()
    CONSTRAINT = auto()
    CREATE = auto()
    CROSS = auto()
    DEFAULT = auto()
    DELETE = auto()
    DESC = auto()
    DISTINCT = auto()
    DROP = auto()
    ELSE = auto()
    END = auto()
    EXCEPT = auto()
    EXISTS = auto()
    FILTER = auto()
    FROM = auto()
    FULL = auto()
    GRANT = auto()
    GROUP = auto()
    HAVING = auto()
    IF = auto()
    ILIKE = auto()
    IN = auto()
    INNER = auto()
    INSERT = auto()
    INTERSECT = auto()
    INTO = auto()
    IS = auto()
    JOIN = auto()
    LEFT = auto()
    LIKE = auto()
    LIMIT = auto()
    NATURAL = auto()
    NOT = auto()
    NULLS = auto()
    OFFSET = auto()
    ON = auto()
    OR = auto()
    ORDER = auto()
    OUTER = auto()
    OVER = auto()
    PARTITION = auto()
    PRIMARY = auto()
    RECURSIVE = auto()
    REFERENCES = auto()
    RENAME = auto()
    RETURNING = auto()
    REVOKE = auto()
    RIGHT = auto()
    SELECT = auto()
    SET = auto()
    SOME = auto()
    TABLE = auto()
    THEN = auto()
    TO = auto()
    TRUNCATE = auto()
    UNION = auto()
    UNIQUE = auto()
    UPDATE = auto()
    USING = auto()
    VALUES = auto()
    WHEN = auto()
    WHERE = auto()
    WITH = auto()


KEYWORDS: dict[str, TokenType] = {
    name: TokenType[name]
    for name in (
        "ALL", "ALTER", "AND", "ANY", "AS", "ASC", "BETWEEN", "BY", "CASE", "CAST",
        "CHECK", "COLUMN", "CONSTRAINT", "CREATE", "CROSS", "DEFAULT", "DELETE", "DESC",
        "DISTINCT", "DROP", "ELSE", "END", "EXCEPT", "EXISTS", "FILTER", "FROM", "FULL",
        "GRANT", "GROUP", "HAVING", "IF", "ILIKE", "IN", "INNER", "INSERT", "INTERSECT",
        "INTO", "IS", "JOIN", "LEFT", "LIKE", "LIMIT", "NATURAL", "NOT", "NULLS", "OFFSET",
        "ON", "OR", "ORDER", "OUTER", "OVER", "PARTITION", "PRIMARY", "RECURSIVE",
        "REFERENCES", "RENAME", "RETURNING", "REVOKE", "RIGHT", "SELECT", "SET", "SOME",
        "TABLE", "THEN", "TO", "TRUNCATE", "UNION", "UNIQUE", "UPDATE", "USING", "VALUES",
        "WHEN", "WHERE", "WITH",
    )
}

# Longest operators first so "->>" wins over "->" and "<=" over "<".
OPERATORS: list[tuple[str, TokenType]] = [
    ("->>", TokenType.ARROW_TEXT),
    ("->", TokenType.ARROW),
    ("<>", TokenType.NEQ),
    ("!=", TokenType.NEQ),
    ("<=", TokenType.LTE),
    (">=", TokenType.GTE),
    ("||", TokenType.CONCAT),
    ("::", TokenType.DCOLON),
    ("(", TokenType.LPAREN),
    (")", TokenType.RPAREN),
    ("[", TokenType.LBRACKET),
    ("]", TokenType.RBRACKET),
    (",", TokenType.COMMA),
    (";", TokenType.SEMI),
    (".", TokenType.DOT),
    ("*", TokenType.STAR),
    ("+", TokenType.PLUS),
    ("-", TokenType.MINUS),
    ("/", TokenType.SLASH),
    ("%", TokenType.PERCENT),
    ("=", TokenType.EQ),
    ("<", TokenType.LT),
    (">", TokenType.GT),
]


@dataclass(frozen=True)
class Token:
    """
    A lexical token.

    Attributes:
        typ: TokenType
        lexeme: The original text fragment
        value: Parsed value for literals/idents:
               - IDENT -> str (quoted identifiers keep their exact case)
               - NUMBER -> int | float
               - STRING -> str (without quotes, '' unescaped)
               - BOOL -> bool
               - NULL -> None
               - keywords -> uppercased word
        pos: Position in input (line/col)
        quoted: True for "double quoted" identifiers
    """
    typ: TokenType
    lexeme: str
    value: object | None
    pos: Position
    quoted: bool = False


def tokenize(sql: str) -> list[Token]:
    """
    Tokenize a SQL string into a list of Token objects.

    Args:
        sql: Raw SQL input string.

    Returns:
        List of Token, always terminated with EOF token.

    Raises:
        SqlSyntaxError: for unexpected characters or unterminated strings/comments.
    """
    tokens: list[Token] = []
    i = 0
    line = 1
    col = 1
    n = len(sql)

    def cur_pos() -> Position:
        return Position(line=line, col=col)

    def peek(offset: int = 0) -> str:
        j = i + offset
        if j >= n:
            return ""
        return sql[j]

    def advance(count: int = 1) -> None:
        """Advance the cursor by count characters while tracking line/column."""
        nonlocal i, line, col
        for _ in range(count):
            if i >= n:
                return
            ch = sql[i]
            i += 1
            if ch == "\n":
                line += 1
                col = 1
            else:
                col += 1

    while i < n:
        ch = peek(0)

        # Skip whitespace
        if ch.isspace():
            advance(1)
            continue

        # Comments
        if ch == "-" and peek(1) == "-":
            while i < n and peek(0) != "\n":
                advance(1)
            continue
        if ch == "/" and peek(1) == "*":
            start = cur_pos()
            advance(2)
            while True:
                if i >= n:
                    raise SqlSyntaxError("Unterminated block comment", start)
                if peek(0) == "*" and peek(1) == "/":
                    advance(2)
                    break
                advance(1)
            continue

        # String literal: '...'
        if ch == "'":
            start = cur_pos()
            j = i + 1
            buf: list[str] = []
            while True:
                if j >= n:
                    raise SqlSyntaxError("Unterminated string literal", start)
                c = sql[j]
                if c == "'":
                    if j + 1 < n and sql[j + 1] == "'":
                        buf.append("'")
                        j += 2
                        continue
                    j += 1
                    break
                buf.append(c)
                j += 1
            lex = sql[i:j]
            tokens.append(Token(TokenType.STRING, lex, "".join(buf), start))
            advance(j - i)
            continue

        # Quoted identifier: "..."
        if ch == '"':
            start = cur_pos()
            j = i + 1
            buf = []
            while True:
                if j >= n:
                    raise SqlSyntaxError("Unterminated quoted identifier", start)
                c = sql[j]
                if c == '"':
                    if j + 1 < n and sql[j + 1] == '"':
                        buf.append('"')
                        j += 2
                        continue
                    j += 1
                    break
                buf.append(c)
                j += 1
            name = "".join(buf)
            if not name:
                raise SqlSyntaxError("Zero-length quoted identifier", start)
            tokens.append(Token(TokenType.IDENT, sql[i:j], name, start, quoted=True))
            advance(j - i)
            continue

        # Numeric literal: 12, 3.5, .5, 1e3
        if ch.isdigit() or (ch == "." and peek(1).isdigit()):
            start = cur_pos()
            j = i
            while j < n and sql[j].isdigit():
                j += 1
            is_float = False
            if j < n and sql[j] == "." and not (j + 1 < n and sql[j + 1] == "."):
                is_float = True
                j += 1
                while j < n and sql[j].isdigit():
                    j += 1
            if j < n and sql[j] in "eE":
                k = j + 1
                if k < n and sql[k] in "+-":
                    k += 1
                if k < n and sql[k].isdigit():
                    is_float = True
                    j = k
                    while j < n and sql[j].isdigit():
                        j += 1
            lex = sql[i:j]
            value: int | float = float(lex) if is_float else int(lex)
            tokens.append(Token(TokenType.NUMBER, lex, value, start))
            advance(j - i)
            continue

        # Identifier / keyword / boolean / NULL
        if ch.isalpha() or ch == "_":
            start = cur_pos()
            j = i
            while j < n and (sql[j].isalnum() or sql[j] in "_$"):
                j += 1

            lex = sql[i:j]
            upper = lex.upper()

            if upper == "TRUE":
                tokens.append(Token(TokenType.BOOL, lex, True, start))
            elif upper == "FALSE":
                tokens.append(Token(TokenType.BOOL, lex, False, start))
            elif upper == "NULL":
                tokens.append(Token(TokenType.NULL, lex, None, start))
            elif upper in KEYWORDS:
                tokens.append(Token(KEYWORDS[upper], lex, upper, start))
            else:
                tokens.append(Token(TokenType.IDENT, lex, lex, start))

            advance(j - i)
            continue

        # Operators and punctuation
        for text, typ in OPERATORS:
            if sql.startswith(text, i):
                tokens.append(Token(typ, text, None, cur_pos()))
                advance(len(text))
                break
        else:
            raise SqlSyntaxError(f"Unexpected character: {ch!r}", cur_pos())

    tokens.append(Token(TokenType.EOF, "", None, Position(line=line, col=col)))
    return tokens
