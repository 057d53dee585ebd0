"""
tenantsql/exec/functions.py

Scalar SQL functions.

Responsibilities:
- Registry of scalar functions by uppercase name (SCALAR_FUNCTIONS)
- String, math, date, JSON/array and conversion functions

Conventions:
- Every function receives its already-evaluated arguments as a list.
- Most functions return NULL when a required argument is NULL; CONCAT, CONCAT_WS,
  GREATEST and LEAST skip NULLs instead.
- Functions that depend on the statement (NOW(), CURRENT_DATE, ...) and lazily
  evaluated ones (COALESCE) are handled by the expression evaluator.
"""

from __future__ import annotations

import datetime as dt
import hashlib
import json
import math
import random
import uuid
from typing import Any, Callable

from ..errors import ExecutionError
from ..messages import t
from .values import (
    Interval,
    compare,
    format_datetime,
    is_date_only,
    parse_datetime,
    round_half_up,
    sql_equals,
    to_number,
    to_text,
)

ScalarFunction = Callable[[list[Any]], Any]

SCALAR_FUNCTIONS: dict[str, ScalarFunction] = {}


def register(*names: str) -> Callable[[ScalarFunction], ScalarFunction]:
    def wrap(fn: ScalarFunction) -> ScalarFunction:
        for name in names:
            SCALAR_FUNCTIONS[name] = fn
        return fn
    return wrap


def call_scalar(name: str, args: list[Any]) -> Any:
    """
    Call a scalar function by name.

    Raises:
        ExecutionError: for unknown functions and invalid arguments.
    """
    fn = SCALAR_FUNCTIONS.get(name)
    if fn is None:
        raise ExecutionError(t("unknown_function", name=name.lower()))
    try:
        return fn(args)
    except IndexError:
        raise ExecutionError(t("invalid_argument", name=name.lower(), value=f"{len(args)} argument(s)")) from None


def _int(value: Any, name: str) -> int:
    number = to_number(value)
    if number is None:
        raise ExecutionError(t("invalid_argument", name=name, value="NULL"))
    return int(number)


# ---------- string functions ----------

@register("UPPER")
def fn_upper(args: list[Any]) -> Any:
    s = to_text(args[0])
    return None if s is None else s.upper()


@register("LOWER")
def fn_lower(args: list[Any]) -> Any:
    s = to_text(args[0])
    return None if s is None else s.lower()


@register("LENGTH", "CHAR_LENGTH", "CHARACTER_LENGTH", "LEN")
def fn_length(args: list[Any]) -> Any:
    if args[0] is None:
        return None
    if isinstance(args[0], list):
        return len(args[0])
    return len(to_text(args[0]))


@register("CONCAT")
def fn_concat(args: list[Any]) -> Any:
    return "".join(to_text(a) for a in args if a is not None)


@register("CONCAT_WS")
def fn_concat_ws(args: list[Any]) -> Any:
    sep = to_text(args[0])
    if sep is None:
        return None
    return sep.join(to_text(a) for a in args[1:] if a is not None)


@register("SUBSTRING", "SUBSTR")
def fn_substring(args: list[Any]) -> Any:
    """SUBSTRING(s, start [, count]) with 1-based start; start < 1 shortens the count."""
    s = to_text(args[0])
    if s is None or args[1] is None:
        return None
    start = _int(args[1], "substring")
    if len(args) > 2:
        if args[2] is None:
            return None
        count = _int(args[2], "substring")
        if count < 0:
            raise ExecutionError(t("invalid_argument", name="substring", value=count))
        end = start + count
    else:
        end = len(s) + 1
    begin = max(start, 1)
    if end <= begin:
        return ""
    return s[begin - 1:end - 1]


@register("TRIM", "BTRIM")
def fn_trim(args: list[Any]) -> Any:
    s = to_text(args[0])
    if s is None:
        return None
    chars = to_text(args[1]) if len(args) > 1 else None
    return s.strip(chars) if chars is not None else s.strip()


@register("LTRIM")
def fn_ltrim(args: list[Any]) -> Any:
    s = to_text(args[0])
    if s is None:
        return None
    chars = to_text(args[1]) if len(args) > 1 else None
    return s.lstrip(chars) if chars is not None else s.lstrip()


@register("RTRIM")
def fn_rtrim(args: list[Any]) -> Any:
    s = to_text(args[0])
    if s is None:
        return None
    chars = to_text(args[1]) if len(args) > 1 else None
    return s.rstrip(chars) if chars is not None else s.rstrip()


@register("REPLACE")
def fn_replace(args: list[Any]) -> Any:
    if any(a is None for a in args[:3]):
        return None
    return to_text(args[0]).replace(to_text(args[1]), to_text(args[2]))


@register("LEFT")
def fn_left(args: list[Any]) -> Any:
    s = to_text(args[0])
    if s is None or args[1] is None:
        return None
    n = _int(args[1], "left")
    return s[:n] if n >= 0 else s[:max(len(s) + n, 0)]


@register("RIGHT")
def fn_right(args: list[Any]) -> Any:
    s = to_text(args[0])
    if s is None or args[1] is None:
        return None
    n = _int(args[1], "right")
    if n >= 0:
        return s[len(s) - n:] if n else ""
    return s[-n:]


@register("POSITION")
def fn_position(args: list[Any]) -> Any:
    """POSITION(needle IN haystack): 1-based, 0 when absent."""
    needle, haystack = to_text(args[0]), to_text(args[1])
    if needle is None or haystack is None:
        return None
    return haystack.find(needle) + 1


@register("STRPOS", "INSTR")
def fn_strpos(args: list[Any]) -> Any:
    return fn_position([args[1], args[0]])


@register("REVERSE")
def fn_reverse(args: list[Any]) -> Any:
    s = to_text(args[0])
    return None if s is None else s[::-1]


@register("INITCAP")
def fn_initcap(args: list[Any]) -> Any:
    s = to_text(args[0])
    if s is None:
        return None
    out: list[str] = []
    boundary = True
    for ch in s:
        out.append(ch.upper() if boundary else ch.lower())
        boundary = not ch.isalnum()
    return "".join(out)


def _pad(args: list[Any], left: bool) -> Any:
    s = to_text(args[0])
    if s is None or args[1] is None:
        return None
    length = _int(args[1], "lpad" if left else "rpad")
    fill = to_text(args[2]) if len(args) > 2 else " "
    if fill is None:
        return None
    if length <= len(s):
        return s[:max(length, 0)]
    if not fill:
        return s
    padding = (fill * (length - len(s)))[: length - len(s)]
    return padding + s if left else s + padding


@register("LPAD")
def fn_lpad(args: list[Any]) -> Any:
    return _pad(args, left=True)


@register("RPAD")
def fn_rpad(args: list[Any]) -> Any:
    return _pad(args, left=False)


@register("SPLIT_PART")
def fn_split_part(args: list[Any]) -> Any:
    s, delim = to_text(args[0]), to_text(args[1])
    if s is None or delim is None or args[2] is None:
        return None
    n = _int(args[2], "split_part")
    parts = s.split(delim) if delim else [s]
    if n == 0:
        raise ExecutionError(t("invalid_argument", name="split_part", value=0))
    index = n - 1 if n > 0 else len(parts) + n
    return parts[index] if 0 <= index < len(parts) else ""


@register("REPEAT")
def fn_repeat(args: list[Any]) -> Any:
    s = to_text(args[0])
    if s is None or args[1] is None:
        return None
    return s * max(_int(args[1], "repeat"), 0)


@register("MD5")
def fn_md5(args: list[Any]) -> Any:
    s = to_text(args[0])
    return None if s is None else hashlib.md5(s.encode("utf-8")).hexdigest()


# ---------- math functions ----------

def _numeric_args(args: list[Any], count: int) -> list[Any] | None:
    values = [to_number(a) for a in args[:count]]
    if len(values) < count:
        raise IndexError(count)
    return None if any(v is None for v in values) else values


@register("ROUND")
def fn_round(args: list[Any]) -> Any:
    x = to_number(args[0])
    if x is None:
        return None
    digits = 0
    if len(args) > 1:
        if args[1] is None:
            return None
        digits = _int(args[1], "round")
    return round_half_up(x, digits)


@register("TRUNC", "TRUNCATE")
def fn_trunc(args: list[Any]) -> Any:
    x = to_number(args[0])
    if x is None:
        return None
    digits = _int(args[1], "trunc") if len(args) > 1 and args[1] is not None else 0
    factor = 10 ** digits
    result = math.trunc(x * factor) / factor
    return int(result) if digits <= 0 else result


@register("ABS")
def fn_abs(args: list[Any]) -> Any:
    x = to_number(args[0])
    return None if x is None else abs(x)


@register("CEIL", "CEILING")
def fn_ceil(args: list[Any]) -> Any:
    x = to_number(args[0])
    return None if x is None else math.ceil(x)


@register("FLOOR")
def fn_floor(args: list[Any]) -> Any:
    x = to_number(args[0])
    return None if x is None else math.floor(x)


@register("POWER", "POW")
def fn_power(args: list[Any]) -> Any:
    values = _numeric_args(args, 2)
    if values is None:
        return None
    base, exponent = values
    try:
        result = math.pow(base, exponent)
    except (OverflowError, ValueError):
        raise ExecutionError(t("invalid_argument", name="power", value=f"{base}, {exponent}")) from None
    if isinstance(base, int) and isinstance(exponent, int) and exponent >= 0:
        return base ** exponent
    return result


@register("SQRT")
def fn_sqrt(args: list[Any]) -> Any:
    x = to_number(args[0])
    if x is None:
        return None
    if x < 0:
        raise ExecutionError(t("invalid_argument", name="sqrt", value=x))
    return math.sqrt(x)


@register("CBRT")
def fn_cbrt(args: list[Any]) -> Any:
    x = to_number(args[0])
    if x is None:
        return None
    return math.copysign(abs(x) ** (1 / 3), x)


@register("MOD")
def fn_mod(args: list[Any]) -> Any:
    values = _numeric_args(args, 2)
    if values is None:
        return None
    x, y = values
    if y == 0:
        raise ExecutionError(t("division_by_zero"))
    if isinstance(x, int) and isinstance(y, int):
        return int(math.fmod(x, y))
    return math.fmod(x, y)


@register("SIGN")
def fn_sign(args: list[Any]) -> Any:
    x = to_number(args[0])
    if x is None:
        return None
    return (x > 0) - (x < 0)


@register("EXP")
def fn_exp(args: list[Any]) -> Any:
    x = to_number(args[0])
    return None if x is None else math.exp(x)


@register("LN")
def fn_ln(args: list[Any]) -> Any:
    x = to_number(args[0])
    if x is None:
        return None
    if x <= 0:
        raise ExecutionError(t("invalid_argument", name="ln", value=x))
    return math.log(x)


@register("LOG", "LOG10")
def fn_log(args: list[Any]) -> Any:
    """LOG(x) is base 10; LOG(b, x) is base b."""
    if len(args) > 1:
        values = _numeric_args(args, 2)
        if values is None:
            return None
        base, x = values
    else:
        base, x = 10, to_number(args[0])
        if x is None:
            return None
    if x <= 0 or base <= 0 or base == 1:
        raise ExecutionError(t("invalid_argument", name="log", value=x))
    return math.log(x, base) if base != 10 else math.log10(x)


@register("PI")
def fn_pi(args: list[Any]) -> Any:
    return math.pi


@register("RANDOM", "RAND")
def fn_random(args: list[Any]) -> Any:
    return random.random()


@register("GREATEST")
def fn_greatest(args: list[Any]) -> Any:
    best = None
    for a in args:
        if a is not None and (best is None or compare(a, best) > 0):
            best = a
    return best


@register("LEAST")
def fn_least(args: list[Any]) -> Any:
    best = None
    for a in args:
        if a is not None and (best is None or compare(a, best) < 0):
            best = a
    return best


@register("NULLIF")
def fn_nullif(args: list[Any]) -> Any:
    return None if sql_equals(args[0], args[1]) else args[0]


@register("TO_NUMBER")
def fn_to_number(args: list[Any]) -> Any:
    s = to_text(args[0])
    if s is None:
        return None
    cleaned = "".join(ch for ch in s if ch.isdigit() or ch in ".-")
    try:
        return to_number(cleaned)
    except ExecutionError:
        return None


@register("GEN_RANDOM_UUID", "UUID_GENERATE_V4", "UUID")
def fn_uuid(args: list[Any]) -> Any:
    return str(uuid.uuid4())


# ---------- date functions ----------

DATE_FIELDS = {
    "YEAR", "MONTH", "DAY", "HOUR", "MINUTE", "SECOND", "DOW", "ISODOW", "DOY",
    "WEEK", "QUARTER", "EPOCH", "MILLISECOND", "MICROSECOND", "DECADE", "CENTURY",
}


def _moment(value: Any, name: str) -> dt.datetime | None:
    if value is None:
        return None
    moment = parse_datetime(value)
    if moment is None:
        raise ExecutionError(t("invalid_argument", name=name, value=repr(value)))
    return moment


def extract_field(field_name: str, value: Any) -> Any:
    """EXTRACT(field FROM value) / DATE_PART('field', value)."""
    field_name = field_name.upper().rstrip("S") if field_name.upper() not in ("DOW", "ISODOW", "DOY") else field_name.upper()
    if isinstance(value, Interval):
        if field_name == "EPOCH":
            return value.months * 30 * 86400 + value.days * 86400 + value.seconds
        if field_name == "DAY":
            return value.days
        if field_name == "MONTH":
            return value.months % 12
        if field_name == "YEAR":
            return value.months // 12
        if field_name == "HOUR":
            return int(value.seconds // 3600)
        if field_name == "MINUTE":
            return int(value.seconds % 3600 // 60)
        if field_name == "SECOND":
            return value.seconds % 60
        raise ExecutionError(t("invalid_argument", name="extract", value=field_name))
    moment = _moment(value, "extract")
    if moment is None:
        return None
    if field_name == "YEAR":
        return moment.year
    if field_name == "MONTH":
        return moment.month
    if field_name == "DAY":
        return moment.day
    if field_name == "HOUR":
        return moment.hour
    if field_name == "MINUTE":
        return moment.minute
    if field_name == "SECOND":
        return moment.second + moment.microsecond / 1e6 if moment.microsecond else moment.second
    if field_name == "DOW":
        return (moment.weekday() + 1) % 7
    if field_name == "ISODOW":
        return moment.isoweekday()
    if field_name == "DOY":
        return moment.timetuple().tm_yday
    if field_name == "WEEK":
        return moment.isocalendar()[1]
    if field_name == "QUARTER":
        return (moment.month - 1) // 3 + 1
    if field_name == "EPOCH":
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=dt.timezone.utc)
        return moment.timestamp()
    if field_name == "MILLISECOND":
        return moment.second * 1000 + moment.microsecond // 1000
    if field_name == "MICROSECOND":
        return moment.second * 1_000_000 + moment.microsecond
    if field_name == "DECADE":
        return moment.year // 10
    if field_name == "CENTURY":
        return (moment.year - 1) // 100 + 1
    raise ExecutionError(t("invalid_argument", name="extract", value=field_name))


@register("DATE_PART")
def fn_date_part(args: list[Any]) -> Any:
    field_name = to_text(args[0])
    if field_name is None or args[1] is None:
        return None
    return extract_field(field_name, args[1])


@register("DATE_TRUNC")
def fn_date_trunc(args: list[Any]) -> Any:
    unit = to_text(args[0])
    moment = _moment(args[1], "date_trunc")
    if unit is None or moment is None:
        return None
    unit = unit.lower()
    if unit == "year":
        moment = moment.replace(month=1, day=1, hour=0, minute=0, second=0, microsecond=0)
    elif unit == "quarter":
        month = (moment.month - 1) // 3 * 3 + 1
        moment = moment.replace(month=month, day=1, hour=0, minute=0, second=0, microsecond=0)
    elif unit == "month":
        moment = moment.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    elif unit == "week":
        moment = (moment - dt.timedelta(days=moment.weekday())).replace(hour=0, minute=0, second=0, microsecond=0)
    elif unit == "day":
        moment = moment.replace(hour=0, minute=0, second=0, microsecond=0)
    elif unit == "hour":
        moment = moment.replace(minute=0, second=0, microsecond=0)
    elif unit == "minute":
        moment = moment.replace(second=0, microsecond=0)
    elif unit == "second":
        moment = moment.replace(microsecond=0)
    else:
        raise ExecutionError(t("invalid_argument", name="date_trunc", value=unit))
    return format_datetime(moment)


def _shift_days(args: list[Any], sign: int, name: str) -> Any:
    moment = _moment(args[0], name)
    if moment is None or args[1] is None:
        return None
    amount = args[1]
    if isinstance(amount, Interval):
        moment = moment + dt.timedelta(days=sign * amount.days, seconds=sign * amount.seconds)
        return format_datetime(moment, date_only=is_date_only(args[0]) and not amount.seconds)
    days = to_number(amount)
    return format_datetime(moment + dt.timedelta(days=sign * days), date_only=is_date_only(args[0]))


@register("DATE_ADD", "ADDDATE")
def fn_date_add(args: list[Any]) -> Any:
    return _shift_days(args, 1, "date_add")


@register("DATE_SUB", "SUBDATE")
def fn_date_sub(args: list[Any]) -> Any:
    return _shift_days(args, -1, "date_sub")


@register("DATEDIFF")
def fn_datediff(args: list[Any]) -> Any:
    """DATEDIFF(end, start): whole days from start to end."""
    end, start = _moment(args[0], "datediff"), _moment(args[1], "datediff")
    if end is None or start is None:
        return None
    return (end.date() - start.date()).days


_TO_CHAR_TOKENS = [
    ("YYYY", lambda m: f"{m.year:04d}"),
    ("HH24", lambda m: f"{m.hour:02d}"),
    ("HH12", lambda m: f"{(m.hour % 12) or 12:02d}"),
    ("MONTH", lambda m: m.strftime("%B").upper()),
    ("Month", lambda m: m.strftime("%B")),
    ("MON", lambda m: m.strftime("%b").upper()),
    ("Mon", lambda m: m.strftime("%b")),
    ("DAY", lambda m: m.strftime("%A").upper()),
    ("Day", lambda m: m.strftime("%A")),
    ("YY", lambda m: f"{m.year % 100:02d}"),
    ("MM", lambda m: f"{m.month:02d}"),
    ("DD", lambda m: f"{m.day:02d}"),
    ("HH", lambda m: f"{(m.hour % 12) or 12:02d}"),
    ("MI", lambda m: f"{m.minute:02d}"),
    ("SS", lambda m: f"{m.second:02d}"),
    ("MS", lambda m: f"{m.microsecond // 1000:03d}"),
    ("AM", lambda m: "AM" if m.hour < 12 else "PM"),
    ("PM", lambda m: "AM" if m.hour < 12 else "PM"),
    ("Q", lambda m: str((m.month - 1) // 3 + 1)),
]


@register("TO_CHAR")
def fn_to_char(args: list[Any]) -> Any:
    """TO_CHAR(date, format) with YYYY/YY/MM/DD/HH24/HH12/MI/SS/MS/Mon/Month/Day/AM tokens."""
    if args[0] is None or args[1] is None:
        return None
    fmt = to_text(args[1])
    value = args[0]
    moment = parse_datetime(value) if not isinstance(value, (int, float)) or isinstance(value, bool) else None
    if moment is None:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            decimals = fmt.split(".")[1].count("0") + fmt.split(".")[1].count("9") if "." in fmt else 0
            return f"{round_half_up(value, decimals):.{decimals}f}"
        return to_text(value)
    out: list[str] = []
    i = 0
    while i < len(fmt):
        for token, render in _TO_CHAR_TOKENS:
            if fmt.startswith(token, i):
                out.append(render(moment))
                i += len(token)
                break
        else:
            out.append(fmt[i])
            i += 1
    return "".join(out)


@register("TO_DATE")
def fn_to_date(args: list[Any]) -> Any:
    text = to_text(args[0])
    if text is None:
        return None
    fmt = to_text(args[1]) if len(args) > 1 else None
    if fmt:
        py_fmt = fmt.replace("YYYY", "%Y").replace("MM", "%m").replace("DD", "%d")
        try:
            return dt.datetime.strptime(text, py_fmt).date().isoformat()
        except ValueError:
            raise ExecutionError(t("invalid_argument", name="to_date", value=repr(text))) from None
    moment = _moment(text, "to_date")
    return moment.date().isoformat()


@register("MAKE_DATE")
def fn_make_date(args: list[Any]) -> Any:
    values = _numeric_args(args, 3)
    if values is None:
        return None
    try:
        return dt.date(int(values[0]), int(values[1]), int(values[2])).isoformat()
    except ValueError:
        raise ExecutionError(t("invalid_argument", name="make_date", value=values)) from None


@register("AGE")
def fn_age(args: list[Any]) -> Any:
    end = _moment(args[0], "age")
    start = _moment(args[1], "age") if len(args) > 1 else None
    if end is None or (len(args) > 1 and start is None):
        return None
    if start is None:
        start, end = end, dt.datetime.now(end.tzinfo)
    if (start.tzinfo is None) != (end.tzinfo is None):
        start, end = start.replace(tzinfo=None), end.replace(tzinfo=None)
    months = (end.year - start.year) * 12 + (end.month - start.month)
    days = end.day - start.day
    if days < 0:
        months -= 1
        previous = (end.replace(day=1) - dt.timedelta(days=1))
        days += previous.day
    return Interval(months=months, days=days)


# ---------- JSON / array functions ----------

@register("JSON_BUILD_OBJECT", "JSONB_BUILD_OBJECT")
def fn_json_build_object(args: list[Any]) -> Any:
    if len(args) % 2:
        raise ExecutionError(t("invalid_argument", name="json_build_object", value=f"{len(args)} argument(s)"))
    return {to_text(args[i]): args[i + 1] for i in range(0, len(args), 2)}


@register("JSON_BUILD_ARRAY", "JSONB_BUILD_ARRAY")
def fn_json_build_array(args: list[Any]) -> Any:
    return list(args)


def _json_value(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError:
            raise ExecutionError(t("invalid_json", value=repr(value))) from None
    return value


@register("JSON_ARRAY_LENGTH", "JSONB_ARRAY_LENGTH")
def fn_json_array_length(args: list[Any]) -> Any:
    if args[0] is None:
        return None
    value = _json_value(args[0])
    if not isinstance(value, list):
        raise ExecutionError(t("invalid_argument", name="jsonb_array_length", value=repr(args[0])))
    return len(value)


@register("JSON_TYPEOF", "JSONB_TYPEOF")
def fn_json_typeof(args: list[Any]) -> Any:
    value = args[0]
    if value is None:
        return None
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    return "object"


@register("TO_JSON", "TO_JSONB")
def fn_to_json(args: list[Any]) -> Any:
    return args[0]


@register("JSON_EXTRACT_PATH", "JSONB_EXTRACT_PATH")
def fn_json_extract_path(args: list[Any]) -> Any:
    current = _json_value(args[0])
    for key in args[1:]:
        if isinstance(current, dict):
            current = current.get(to_text(key))
        elif isinstance(current, list):
            try:
                current = current[int(to_text(key))]
            except (ValueError, IndexError):
                return None
        else:
            return None
    return current


@register("JSON_EXTRACT_PATH_TEXT", "JSONB_EXTRACT_PATH_TEXT")
def fn_json_extract_path_text(args: list[Any]) -> Any:
    return to_text(fn_json_extract_path(args))


@register("JSONB_OBJECT_KEYS", "JSON_OBJECT_KEYS")
def fn_json_object_keys(args: list[Any]) -> Any:
    value = _json_value(args[0])
    return list(value.keys()) if isinstance(value, dict) else None


@register("ARRAY_LENGTH", "CARDINALITY")
def fn_array_length(args: list[Any]) -> Any:
    value = args[0]
    if value is None:
        return None
    if not isinstance(value, list):
        raise ExecutionError(t("invalid_argument", name="array_length", value=repr(value)))
    return len(value) or None


@register("ARRAY_TO_STRING")
def fn_array_to_string(args: list[Any]) -> Any:
    value, sep = args[0], to_text(args[1])
    if value is None or sep is None:
        return None
    return sep.join(to_text(v) for v in value if v is not None)


@register("STRING_TO_ARRAY")
def fn_string_to_array(args: list[Any]) -> Any:
    s, sep = to_text(args[0]), to_text(args[1])
    if s is None:
        return None
    if sep is None:
        return list(s)
    return s.split(sep) if s else []


@register("ARRAY_APPEND")
def fn_array_append(args: list[Any]) -> Any:
    return (list(args[0]) if args[0] is not None else []) + [args[1]]


@register("ARRAY_POSITION")
def fn_array_position(args: list[Any]) -> Any:
    if args[0] is None:
        return None
    for i, v in enumerate(args[0]):
        if sql_equals(v, args[1]):
            return i + 1
    return None
