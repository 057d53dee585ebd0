"""
tenantsql/exec/window.py

Window function computation.

Responsibilities:
- Partition rows by PARTITION BY (partitions keep first-seen order)
- Order each partition by the window's ORDER BY (stable sort)
- Compute ranking, offset, value and aggregate window functions per row
- Store results in each row environment's `windows` map, keyed by call id

Frames:
- No ORDER BY: the frame is the whole partition.
- ORDER BY without a frame clause: RANGE BETWEEN UNBOUNDED PRECEDING AND
  CURRENT ROW, i.e. up to and including the current row's peers.
- ROWS frames count rows; RANGE frames treat CURRENT ROW as the peer group.
  A RANGE frame with a numeric offset is evaluated like ROWS.

Windows run after WHERE/GROUP BY/HAVING and before DISTINCT/ORDER BY/LIMIT.
"""

from __future__ import annotations

from functools import cmp_to_key
from typing import Any

from ..ast import FrameBound, FrameSpec, FuncCall, WindowSpec
from ..errors import ExecutionError
from ..messages import t
from .aggregates import AGGREGATE_FUNCTIONS, compute_aggregate
from .expressions import Env, Evaluator, compare_keys
from .values import row_key, to_number

_DEFAULT_ORDERED_FRAME = FrameSpec(
    mode="RANGE",
    start=FrameBound(kind="UNBOUNDED_PRECEDING"),
    end=FrameBound(kind="CURRENT_ROW"),
)


def _peer_bounds(keys: list[list[Any]], items: list) -> list[tuple[int, int]]:
    """(first, last) index of each row's peer group in an ordered partition."""
    bounds: list[tuple[int, int]] = [(0, 0)] * len(keys)
    start = 0
    for i in range(1, len(keys) + 1):
        if i == len(keys) or compare_keys(keys[i], keys[start], items) != 0:
            for j in range(start, i):
                bounds[j] = (start, i - 1)
            start = i
    return bounds


def _frame_edge(bound: FrameBound, i: int, peers: tuple[int, int], n: int, rows_mode: bool, is_start: bool) -> int:
    kind = bound.kind
    if kind == "UNBOUNDED_PRECEDING":
        return 0
    if kind == "UNBOUNDED_FOLLOWING":
        return n - 1
    if kind == "CURRENT_ROW":
        if rows_mode:
            return i
        return peers[0] if is_start else peers[1]
    offset = bound.offset or 0
    if kind == "PRECEDING":
        return i - offset
    return i + offset


def _frame(frame: FrameSpec, i: int, peers: tuple[int, int], n: int) -> tuple[int, int]:
    """Inclusive frame bounds of row i (start > end means an empty frame)."""
    rows_mode = frame.mode == "ROWS" or any(
        b.kind in ("PRECEDING", "FOLLOWING") for b in (frame.start, frame.end)
    )
    start = max(_frame_edge(frame.start, i, peers, n, rows_mode, True), 0)
    end = min(_frame_edge(frame.end, i, peers, n, rows_mode, False), n - 1)
    return start, end


def compute_windows(envs: list[Env], calls: list[FuncCall], evaluator: Evaluator) -> None:
    """
    Compute every window call for every row environment.

    Args:
        envs: One environment per row (after grouping, if any).
        calls: Window FuncCalls found in the select list and ORDER BY.
        evaluator: Evaluator of the current query.
    """
    for env in envs:
        if env.windows is None:
            env.windows = {}
    for call in calls:
        if call.over is not None:
            _compute_one(envs, call, call.over, evaluator)


def _compute_one(envs: list[Env], call: FuncCall, spec: WindowSpec, evaluator: Evaluator) -> None:
    partitions: dict[tuple[Any, ...], list[Env]] = {}
    for env in envs:
        key = row_key([evaluator.eval(e, env) for e in spec.partition_by])
        partitions.setdefault(key, []).append(env)

    for members in partitions.values():
        keyed = [([evaluator.eval(o.expr, env) for o in spec.order_by], env) for env in members]
        if spec.order_by:
            keyed.sort(key=cmp_to_key(lambda a, b: compare_keys(a[0], b[0], spec.order_by)))
        ordered = [env for _keys, env in keyed]
        keys = [k for k, _env in keyed]
        peers = _peer_bounds(keys, spec.order_by)
        frame = spec.frame
        if frame is None and spec.order_by:
            frame = _DEFAULT_ORDERED_FRAME
        values = _partition_values(call, ordered, peers, frame, evaluator)
        for env, value in zip(ordered, values):
            env.windows[id(call)] = value


def _arg(call: FuncCall, index: int, env: Env, evaluator: Evaluator, default: Any = None) -> Any:
    if len(call.args) <= index:
        return default
    return evaluator.eval(call.args[index], env)


def _partition_values(
    call: FuncCall,
    rows: list[Env],
    peers: list[tuple[int, int]],
    frame: FrameSpec | None,
    evaluator: Evaluator,
) -> list[Any]:
    name = call.name
    n = len(rows)

    if name == "ROW_NUMBER":
        return list(range(1, n + 1))

    if name == "RANK":
        return [peers[i][0] + 1 for i in range(n)]

    if name == "DENSE_RANK":
        out: list[Any] = []
        dense = 0
        previous = None
        for i in range(n):
            if peers[i] != previous:
                dense += 1
                previous = peers[i]
            out.append(dense)
        return out

    if name == "PERCENT_RANK":
        return [0.0 if n <= 1 else peers[i][0] / (n - 1) for i in range(n)]

    if name == "CUME_DIST":
        return [(peers[i][1] + 1) / n for i in range(n)]

    if name == "NTILE":
        buckets = to_number(_arg(call, 0, rows[0], evaluator)) if rows else 1
        if buckets is None or int(buckets) <= 0:
            raise ExecutionError(t("invalid_argument", name="ntile", value=buckets))
        buckets = int(buckets)
        base, extra = divmod(n, buckets)
        out = []
        for bucket in range(buckets):
            size = base + (1 if bucket < extra else 0)
            out.extend([bucket + 1] * size)
        return out

    if name in ("LAG", "LEAD"):
        out = []
        for i, env in enumerate(rows):
            offset = to_number(_arg(call, 1, env, evaluator, 1))
            offset = 1 if offset is None else int(offset)
            target = i - offset if name == "LAG" else i + offset
            if 0 <= target < n:
                out.append(_arg(call, 0, rows[target], evaluator))
            else:
                out.append(_arg(call, 2, env, evaluator))
        return out

    whole = FrameSpec(
        mode="ROWS",
        start=FrameBound(kind="UNBOUNDED_PRECEDING"),
        end=FrameBound(kind="UNBOUNDED_FOLLOWING"),
    )
    frame = frame or whole
    out = []
    for i, env in enumerate(rows):
        start, end = _frame(frame, i, peers[i], n)
        members = rows[start:end + 1] if start <= end else []
        if name == "FIRST_VALUE":
            out.append(_arg(call, 0, members[0], evaluator) if members else None)
        elif name == "LAST_VALUE":
            out.append(_arg(call, 0, members[-1], evaluator) if members else None)
        elif name == "NTH_VALUE":
            nth = to_number(_arg(call, 1, env, evaluator))
            if nth is None or int(nth) <= 0:
                raise ExecutionError(t("invalid_argument", name="nth_value", value=nth))
            nth = int(nth)
            out.append(_arg(call, 0, members[nth - 1], evaluator) if nth <= len(members) else None)
        elif name in AGGREGATE_FUNCTIONS:
            out.append(compute_aggregate(call, members, evaluator.eval))
        else:
            raise ExecutionError(t("unknown_function", name=name.lower()))
    return out
