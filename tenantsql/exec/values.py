"""
tenantsql/exec/values.py

Runtime value semantics.

Responsibilities:
- Three-valued logic helpers (NULL is None; unknown truth values are None)
- Comparison and ordering across the JSON value model (numbers, text, booleans,
  arrays, objects) with numeric coercion of numeric text
- Arithmetic, including date +/- days and date +/- INTERVAL
- CAST / :: conversions
- Hashable keys for GROUP BY, DISTINCT and set operations

Value model:
- Values are plain JSON-compatible Python objects: None, bool, int, float, str,
  list, dict. Dates and timestamps are ISO-8601 text.
- Interval is the only internal type; it is rendered as text on output.
"""

from __future__ import annotations

import calendar
import datetime as dt
import json
import math
import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from ..ast import TypeSpec
from ..errors import ExecutionError
from ..messages import t

# ---------- intervals ----------

_INTERVAL_PART_RE = re.compile(
    r"([+-]?\d+(?:\.\d+)?)\s*(years?|yrs?|y|mons?|months?|weeks?|w|days?|d|hours?|hrs?|h|"
    r"minutes?|mins?|m|seconds?|secs?|s|milliseconds?|ms)\b",
    re.IGNORECASE,
)
_INTERVAL_CLOCK_RE = re.compile(r"([+-])?(\d+):(\d{2})(?::(\d{2}(?:\.\d+)?))?")


@dataclass(frozen=True)
class Interval:
    """
    A PostgreSQL-style interval.

    Attributes:
        months: Whole months (years are 12 months).
        days: Whole days.
        seconds: Seconds (may be fractional).
    """
    months: int = 0
    days: int = 0
    seconds: float = 0.0

    @classmethod
    def parse(cls, text: str) -> "Interval":
        """Parse '1 day', '2 hours 30 minutes', '1 year 2 mons', '01:30:00'."""
        months = 0
        days = 0
        seconds = 0.0
        matched = False
        for m in _INTERVAL_PART_RE.finditer(text):
            matched = True
            qty = float(m.group(1))
            unit = m.group(2).lower()
            if unit.startswith("y"):
                months += int(qty * 12)
            elif unit.startswith("mo"):
                months += int(qty)
            elif unit.startswith("w"):
                days += int(qty * 7)
            elif unit.startswith("d"):
                days += int(qty)
            elif unit.startswith("h"):
                seconds += qty * 3600
            elif unit in ("ms", "millisecond", "milliseconds"):
                seconds += qty / 1000
            elif unit.startswith("mi") or unit == "m":
                seconds += qty * 60
            else:
                seconds += qty
        clock = _INTERVAL_CLOCK_RE.search(text)
        if clock:
            matched = True
            sign = -1 if clock.group(1) == "-" else 1
            seconds += sign * (int(clock.group(2)) * 3600 + int(clock.group(3)) * 60 + float(clock.group(4) or 0))
        if not matched:
            raise ExecutionError(t("invalid_argument", name="INTERVAL", value=repr(text)))
        return cls(months=months, days=days, seconds=seconds)

    def negate(self) -> "Interval":
        return Interval(-self.months, -self.days, -self.seconds)

    def __str__(self) -> str:
        parts: list[str] = []
        years, months = divmod(abs(self.months), 12)
        sign = "-" if self.months < 0 else ""
        if years:
            parts.append(f"{sign}{years} year{'s' if years != 1 else ''}")
        if months:
            parts.append(f"{sign}{months} mon{'s' if months != 1 else ''}")
        if self.days:
            parts.append(f"{self.days} day{'s' if abs(self.days) != 1 else ''}")
        if self.seconds or not parts:
            total = abs(self.seconds)
            h, rem = divmod(total, 3600)
            mi, s = divmod(rem, 60)
            clock = f"{int(h):02d}:{int(mi):02d}:{int(s):02d}"
            if s != int(s):
                clock += f"{s - int(s):.6f}"[1:].rstrip("0")
            parts.append(("-" if self.seconds < 0 else "") + clock)
        return " ".join(parts)


# ---------- type predicates ----------

def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def parse_number(text: str) -> int | float | None:
    """Parse numeric text; None when it is not a number."""
    s = text.strip()
    try:
        return int(s)
    except ValueError:
        pass
    try:
        f = float(s)
    except ValueError:
        return None
    return None if math.isnan(f) or math.isinf(f) else f


def to_number(value: Any) -> int | float | None:
    """
    Coerce a value for arithmetic.

    Raises:
        ExecutionError: for text that is not numeric and for arrays/objects.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, Decimal):
        return normalize_number(value)
    if isinstance(value, str):
        number = parse_number(value)
        if number is not None:
            return number
    raise ExecutionError(t("invalid_number", value=repr(value)))


def normalize_number(value: Any) -> Any:
    """Decimal -> int/float; other values unchanged."""
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    return value


def to_bool(value: Any) -> bool | None:
    """SQL truth value of `value` (None = unknown)."""
    if value is None or isinstance(value, bool):
        return value
    if is_number(value):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("t", "true", "yes", "y", "on", "1"):
            return True
        if lowered in ("f", "false", "no", "n", "off", "0"):
            return False
        return None
    return bool(value)


def format_number(value: int | float) -> str:
    if isinstance(value, float) and value.is_integer() and abs(value) < 1e16:
        return str(int(value))
    return str(value)


def to_text(value: Any) -> str | None:
    """Text rendering used by string functions, || and ::text."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if is_number(value):
        return format_number(value)
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def to_output(value: Any) -> Any:
    """Convert an internal value to the JSON-compatible value returned to callers."""
    if isinstance(value, Interval):
        return str(value)
    if isinstance(value, Decimal):
        return normalize_number(value)
    if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
        return None
    return value


# ---------- dates ----------

def parse_datetime(value: Any) -> dt.datetime | None:
    """Parse a date or timestamp value; None when it is not one."""
    if isinstance(value, dt.datetime):
        return value
    if isinstance(value, dt.date):
        return dt.datetime(value.year, value.month, value.day)
    if not isinstance(value, str):
        return None
    s = value.strip()
    if len(s) < 8 or not s[:4].isdigit():
        return None
    try:
        return dt.datetime.fromisoformat(s.replace("Z", "+00:00").replace(" ", "T", 1))
    except ValueError:
        return None


def is_date_only(value: Any) -> bool:
    if isinstance(value, dt.date) and not isinstance(value, dt.datetime):
        return True
    return isinstance(value, str) and len(value.strip()) == 10 and parse_datetime(value) is not None


def format_datetime(value: dt.datetime, date_only: bool = False) -> str:
    if date_only:
        return value.date().isoformat()
    return value.isoformat()


def add_months(value: dt.datetime, months: int) -> dt.datetime:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def shift_date(value: Any, interval: Interval) -> str | None:
    """date/timestamp + interval."""
    moment = parse_datetime(value)
    if moment is None:
        return None
    moment = add_months(moment, interval.months)
    moment = moment + dt.timedelta(days=interval.days, seconds=interval.seconds)
    keep_date = is_date_only(value) and not interval.seconds
    return format_datetime(moment, date_only=keep_date)


# ---------- comparison ----------

_TYPE_RANK = {"number": 0, "string": 1, "boolean": 2, "array": 3, "object": 4, "other": 5}


def _type_name(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if is_number(value):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return "other"


def _cmp(a: Any, b: Any) -> int:
    return (a > b) - (a < b)


def compare(a: Any, b: Any) -> int | None:
    """
    Three-way comparison; None when either side is NULL.

    Numbers compare with numeric text numerically ('10' = 10). Values of
    unrelated types are ordered by type (number < text < boolean < array < object).
    """
    if a is None or b is None:
        return None
    ta, tb = _type_name(a), _type_name(b)
    if ta == tb:
        if ta in ("array", "object"):
            return _cmp(json.dumps(a, sort_keys=True), json.dumps(b, sort_keys=True))
        if isinstance(a, Interval) and isinstance(b, Interval):
            return _cmp((a.months, a.days, a.seconds), (b.months, b.days, b.seconds))
        if ta == "other":
            return _cmp(str(a), str(b))
        return _cmp(a, b)
    if ta == "number" and tb == "string":
        nb = parse_number(b)
        if nb is not None:
            return _cmp(a, nb)
    if ta == "string" and tb == "number":
        na = parse_number(a)
        if na is not None:
            return _cmp(na, b)
    if ta == "boolean" and tb == "string":
        bb = to_bool(b)
        if bb is not None:
            return _cmp(a, bb)
    if ta == "string" and tb == "boolean":
        ba = to_bool(a)
        if ba is not None:
            return _cmp(ba, b)
    if {ta, tb} == {"boolean", "number"}:
        return _cmp(to_number(a), to_number(b))
    return _cmp(_TYPE_RANK[ta], _TYPE_RANK[tb])


def sql_equals(a: Any, b: Any) -> bool | None:
    c = compare(a, b)
    return None if c is None else c == 0


def compare_op(op: str, a: Any, b: Any) -> bool | None:
    """Evaluate a comparison operator with NULL propagation."""
    c = compare(a, b)
    if c is None:
        return None
    if op == "=":
        return c == 0
    if op == "<>":
        return c != 0
    if op == "<":
        return c < 0
    if op == "<=":
        return c <= 0
    if op == ">":
        return c > 0
    if op == ">=":
        return c >= 0
    raise ExecutionError(f"Unknown comparison operator: {op}")


def hashable(value: Any) -> Any:
    """
    Key for grouping/deduplication: NULLs group together, 1 and 1.0 are equal,
    booleans never merge with numbers, arrays/objects compare structurally.
    """
    if value is None:
        return ("null",)
    if isinstance(value, bool):
        return ("bool", value)
    if is_number(value):
        return ("num", value)
    if isinstance(value, str):
        return ("str", value)
    if isinstance(value, (dict, list)):
        return ("json", json.dumps(value, sort_keys=True, ensure_ascii=False))
    return ("other", str(value))


def row_key(values: list[Any] | tuple[Any, ...]) -> tuple[Any, ...]:
    return tuple(hashable(v) for v in values)


# ---------- arithmetic ----------

def round_half_up(value: float | int, digits: int = 0) -> int | float:
    """ROUND(): half away from zero, as SQL does (2.5 -> 3, -2.5 -> -3)."""
    if isinstance(value, int) and digits >= 0:
        return value
    try:
        quantum = Decimal(1).scaleb(-digits)
        result = Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return value
    if digits <= 0:
        return int(result)
    return float(result)


def arithmetic(op: str, a: Any, b: Any) -> Any:
    """
    Evaluate + - * / % on two values.

    Division of two integers returns an int when exact and a float otherwise.

    Raises:
        ExecutionError: on division by zero or non-numeric operands.
    """
    if a is None or b is None:
        return None

    if op in ("+", "-"):
        if isinstance(b, Interval) and not isinstance(a, Interval):
            shifted = shift_date(a, b if op == "+" else b.negate())
            if shifted is not None:
                return shifted
        if isinstance(a, Interval) and op == "+" and not isinstance(b, Interval):
            shifted = shift_date(b, a)
            if shifted is not None:
                return shifted
        if isinstance(a, Interval) and isinstance(b, Interval):
            other = b if op == "+" else b.negate()
            return Interval(a.months + other.months, a.days + other.days, a.seconds + other.seconds)
        if isinstance(a, str) and parse_number(a) is None and is_number(b):
            # date +/- integer days
            moment = parse_datetime(a)
            if moment is not None:
                days = b if op == "+" else -b
                return format_datetime(moment + dt.timedelta(days=days), date_only=is_date_only(a))
        if op == "-" and isinstance(a, str) and isinstance(b, str) \
                and parse_number(a) is None and parse_number(b) is None:
            da, db = parse_datetime(a), parse_datetime(b)
            if da is not None and db is not None:
                if is_date_only(a) and is_date_only(b):
                    return (da - db).days
                if (da.tzinfo is None) != (db.tzinfo is None):
                    da, db = da.replace(tzinfo=None), db.replace(tzinfo=None)
                delta = da - db
                return Interval(days=delta.days, seconds=float(delta.seconds) + delta.microseconds / 1e6)

    x = to_number(a)
    y = to_number(b)
    if op == "+":
        return x + y
    if op == "-":
        return x - y
    if op == "*":
        return x * y
    if op == "/":
        if y == 0:
            raise ExecutionError(t("division_by_zero"))
        if isinstance(x, int) and isinstance(y, int) and x % y == 0:
            return x // y
        return x / y
    if op == "%":
        if y == 0:
            raise ExecutionError(t("division_by_zero"))
        if isinstance(x, int) and isinstance(y, int):
            return int(math.fmod(x, y))
        return math.fmod(x, y)
    raise ExecutionError(f"Unknown arithmetic operator: {op}")


def negate(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, Interval):
        return value.negate()
    return -to_number(value)


def concat(a: Any, b: Any) -> Any:
    """The || operator: text concatenation, array concatenation, object merge."""
    if a is None or b is None:
        return None
    if isinstance(a, list) and isinstance(b, list):
        return a + b
    if isinstance(a, list):
        return a + [b]
    if isinstance(b, list):
        return [a] + b
    if isinstance(a, dict) and isinstance(b, dict):
        return {**a, **b}
    return to_text(a) + to_text(b)


# ---------- LIKE ----------

_LIKE_CACHE: dict[tuple[str, bool], re.Pattern[str]] = {}


def like_regex(pattern: str, case_insensitive: bool) -> re.Pattern[str]:
    """Translate a LIKE pattern (% and _ wildcards, backslash escape) to a regex."""
    key = (pattern, case_insensitive)
    cached = _LIKE_CACHE.get(key)
    if cached is not None:
        return cached
    out: list[str] = []
    i = 0
    while i < len(pattern):
        ch = pattern[i]
        if ch == "\\" and i + 1 < len(pattern):
            out.append(re.escape(pattern[i + 1]))
            i += 2
            continue
        if ch == "%":
            out.append(".*")
        elif ch == "_":
            out.append(".")
        else:
            out.append(re.escape(ch))
        i += 1
    regex = re.compile("".join(out), re.DOTALL | (re.IGNORECASE if case_insensitive else 0))
    if len(_LIKE_CACHE) < 1024:
        _LIKE_CACHE[key] = regex
    return regex


def like(value: Any, pattern: Any, case_insensitive: bool = False) -> bool | None:
    if value is None or pattern is None:
        return None
    return like_regex(to_text(pattern), case_insensitive).fullmatch(to_text(value)) is not None


# ---------- CAST ----------

INTEGER_CASTS = {"INT", "INTEGER", "BIGINT", "SMALLINT", "INT2", "INT4", "INT8", "SERIAL", "BIGSERIAL"}
FLOAT_CASTS = {"NUMERIC", "DECIMAL", "REAL", "FLOAT", "FLOAT4", "FLOAT8", "DOUBLE", "DOUBLE PRECISION", "MONEY"}
TEXT_CASTS = {"TEXT", "VARCHAR", "CHAR", "CHARACTER", "CHARACTER VARYING", "STRING", "NAME", "BPCHAR", "CITEXT"}
BOOL_CASTS = {"BOOL", "BOOLEAN"}
JSON_CASTS = {"JSON", "JSONB"}
DATE_CASTS = {"DATE"}
TIMESTAMP_CASTS = {"TIMESTAMP", "TIMESTAMPTZ", "DATETIME"}
TIME_CASTS = {"TIME", "TIMETZ"}


def _parse_array_text(text: str) -> list[Any] | None:
    s = text.strip()
    if s.startswith("["):
        try:
            value = json.loads(s)
        except ValueError:
            return None
        return value if isinstance(value, list) else None
    if s.startswith("{") and s.endswith("}"):
        body = s[1:-1].strip()
        if not body:
            return []
        return [item.strip().strip('"') for item in body.split(",")]
    return None


def cast(value: Any, typ: TypeSpec) -> Any:
    """
    Convert `value` to the type named by `typ`.

    Text that is not a valid integer/number/boolean becomes NULL instead of an error;
    invalid JSON text is an error.
    """
    if value is None:
        return None
    name = typ.name.upper()

    if typ.array:
        if isinstance(value, list):
            element = TypeSpec(name=name, params=typ.params)
            return [cast(v, element) for v in value]
        if isinstance(value, str):
            return _parse_array_text(value)
        return [value]

    if name in INTEGER_CASTS:
        if isinstance(value, bool):
            return int(value)
        if is_number(value):
            return round_half_up(value) if isinstance(value, float) else value
        if isinstance(value, str):
            number = parse_number(value)
            if number is None:
                return None
            return round_half_up(number) if isinstance(number, float) else number
        return None

    if name in FLOAT_CASTS:
        if isinstance(value, bool):
            return int(value)
        number = value if is_number(value) else (parse_number(value) if isinstance(value, str) else None)
        if number is None:
            return None
        if len(typ.params) == 2 and name in ("NUMERIC", "DECIMAL"):
            return round_half_up(number, typ.params[1])
        if name in ("REAL", "FLOAT", "FLOAT4", "FLOAT8", "DOUBLE", "DOUBLE PRECISION"):
            return float(number)
        return number

    if name in BOOL_CASTS:
        return to_bool(value)

    if name in TEXT_CASTS or name == "UUID":
        text = to_text(value)
        if name in ("VARCHAR", "CHAR", "CHARACTER", "CHARACTER VARYING") and typ.params and text is not None:
            text = text[: typ.params[0]]
        return text

    if name in JSON_CASTS:
        if isinstance(value, str):
            try:
                return json.loads(value)
            except ValueError:
                raise ExecutionError(t("invalid_json", value=repr(value))) from None
        return value

    if name in DATE_CASTS:
        moment = parse_datetime(value)
        return None if moment is None else moment.date().isoformat()

    if name in TIMESTAMP_CASTS:
        moment = parse_datetime(value)
        return None if moment is None else moment.isoformat()

    if name in TIME_CASTS:
        moment = parse_datetime(value)
        if moment is not None:
            return moment.time().isoformat()
        if isinstance(value, str):
            try:
                return dt.time.fromisoformat(value.strip()).isoformat()
            except ValueError:
                return None
        return None

    if name == "INTERVAL":
        if isinstance(value, Interval):
            return value
        return Interval.parse(to_text(value))

    if name == "ARRAY":
        if isinstance(value, list):
            return value
        return _parse_array_text(value) if isinstance(value, str) else [value]

    return value
