"""
tenantsql/messages.py

Localized error/status messages.

Responsibilities:
- Hold the English and Portuguese text for every user-visible message
- Track the active locale for the statement being executed (a ContextVar, so
  concurrent executions on different threads never see each other's locale)

Error messages for the failure classes callers branch on always contain the
stable substrings "does not exist" / "não existe", "already exists" / "já existe"
and "not supported" / "não suportada".
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

DEFAULT_LOCALE = "en"
SUPPORTED_LOCALES = ("en", "pt")

_current_locale: ContextVar[str] = ContextVar("tenantsql_locale", default=DEFAULT_LOCALE)

MESSAGES: dict[str, dict[str, str]] = {
    "en": {
        "table_not_found": 'Table "{table}" does not exist',
        "column_not_found": 'Column "{column}" does not exist in table "{table}"',
        "table_exists": 'Table "{table}" already exists',
        "column_exists": 'Column "{column}" already exists in table "{table}"',
        "not_supported": (
            "SQL operation not supported: {operation}. "
            "This operation is not supported on virtual tables."
        ),
        "system_namespace": 'Access to system namespace "{name}" is not supported',
        "empty_sql": "SQL text is empty",
        "owner_required": "An owner id is required",
        "sql_too_long": "SQL text exceeds the maximum length of {limit} characters",
        "unresolved_variable": "Variable {{{{{name}}}}} was not provided",
        "not_null": 'Column "{column}" of table "{table}" cannot be NULL',
        "unique": 'Duplicate value {value} for unique column "{column}" of table "{table}"',
        "type_mismatch": 'Invalid value {value} for column "{column}" of type {type}',
        "too_many_values": "INSERT has more values than target columns",
        "column_count_mismatch": "Number of columns ({columns}) does not match number of values ({values})",
        "max_tables": "Maximum number of tables ({limit}) reached",
        "subquery_depth": "Subquery nesting exceeds the maximum depth of {limit}",
        "join_limit": "Query joins more than {limit} tables",
        "join_rows": "Join produces more than {limit} intermediate rows",
        "division_by_zero": "Division by zero",
        "scalar_subquery_rows": "More than one row returned by a subquery used as an expression",
        "subquery_columns": "Subquery must return only one column",
        "window_context": "Window function {name} is only allowed in SELECT list and ORDER BY",
        "aggregate_context": "Aggregate function {name} is not allowed here",
        "invalid_json": "Invalid input syntax for type json: {value}",
        "invalid_number": "Invalid input syntax for type numeric: {value}",
        "invalid_argument": "Invalid argument for {name}: {value}",
        "unknown_function": "Function {name} does not exist",
        "set_op_columns": "Each {op} query must have the same number of columns",
        "order_position": "ORDER BY position {position} is not in select list",
        "group_position": "GROUP BY position {position} is not in select list",
        "cte_columns": 'WITH query "{name}" has {actual} columns available but {expected} columns specified',
        "internal_error": "Internal error: {detail}",
        "table_created": 'Table "{table}" created',
        "table_create_skipped": 'Table "{table}" already exists, skipping',
        "table_dropped": 'Table "{table}" dropped',
        "table_drop_skipped": 'Table "{table}" does not exist, skipping',
        "table_altered": 'Table "{table}" altered',
    },
    "pt": {
        "table_not_found": 'Tabela "{table}" não existe',
        "column_not_found": 'Coluna "{column}" não existe na tabela "{table}"',
        "table_exists": 'Tabela "{table}" já existe',
        "column_exists": 'Coluna "{column}" já existe na tabela "{table}"',
        "not_supported": (
            "Operação SQL não suportada: {operation}. "
            "Esta operação não é permitida em tabelas virtuais."
        ),
        "system_namespace": 'Operação não suportada: acesso ao namespace de sistema "{name}"',
        "empty_sql": "O texto SQL está vazio",
        "owner_required": "É necessário informar o id do proprietário",
        "sql_too_long": "O texto SQL excede o tamanho máximo de {limit} caracteres",
        "unresolved_variable": "A variável {{{{{name}}}}} não foi informada",
        "not_null": 'A coluna "{column}" da tabela "{table}" não pode ser NULL',
        "unique": 'Valor duplicado {value} para a coluna única "{column}" da tabela "{table}"',
        "type_mismatch": 'Valor inválido {value} para a coluna "{column}" do tipo {type}',
        "too_many_values": "O INSERT possui mais valores do que colunas de destino",
        "column_count_mismatch": "O número de colunas ({columns}) não corresponde ao número de valores ({values})",
        "max_tables": "Número máximo de tabelas ({limit}) atingido",
        "subquery_depth": "O aninhamento de subconsultas excede a profundidade máxima de {limit}",
        "join_limit": "A consulta une mais de {limit} tabelas",
        "join_rows": "A junção produz mais de {limit} linhas intermediárias",
        "division_by_zero": "Divisão por zero",
        "scalar_subquery_rows": "Mais de uma linha retornada por uma subconsulta usada como expressão",
        "subquery_columns": "A subconsulta deve retornar apenas uma coluna",
        "window_context": "A função de janela {name} só é permitida na lista do SELECT e no ORDER BY",
        "aggregate_context": "A função de agregação {name} não é permitida aqui",
        "invalid_json": "Sintaxe de entrada inválida para o tipo json: {value}",
        "invalid_number": "Sintaxe de entrada inválida para o tipo numérico: {value}",
        "invalid_argument": "Argumento inválido para {name}: {value}",
        "unknown_function": "A função {name} não existe",
        "set_op_columns": "Cada consulta {op} deve ter o mesmo número de colunas",
        "order_position": "A posição {position} do ORDER BY não está na lista do SELECT",
        "group_position": "A posição {position} do GROUP BY não está na lista do SELECT",
        "cte_columns": 'A consulta WITH "{name}" possui {actual} colunas mas {expected} foram especificadas',
        "internal_error": "Erro interno: {detail}",
        "table_created": 'Tabela "{table}" criada',
        "table_create_skipped": 'Tabela "{table}" já existe, ignorando',
        "table_dropped": 'Tabela "{table}" removida',
        "table_drop_skipped": 'Tabela "{table}" não existe, ignorando',
        "table_altered": 'Tabela "{table}" alterada',
    },
}


def current_locale() -> str:
    """Return the locale active for the current execution context."""
    return _current_locale.get()


@contextmanager
def use_locale(locale: str) -> Iterator[None]:
    """
    Activate a locale for the duration of a block.

    Args:
        locale: "en" or "pt". Unknown locales fall back to English.
    """
    token = _current_locale.set(locale if locale in SUPPORTED_LOCALES else DEFAULT_LOCALE)
    try:
        yield
    finally:
        _current_locale.reset(token)


def t(key: str, **params: object) -> str:
    """
    Format the message `key` in the active locale.

    Args:
        key: Message key from MESSAGES.
        **params: Values interpolated into the template.

    Returns:
        The formatted message (English text if the key is missing for the locale).
    """
    table = MESSAGES.get(current_locale(), MESSAGES[DEFAULT_LOCALE])
    template = table.get(key) or MESSAGES[DEFAULT_LOCALE][key]
    return template.format(**params)
