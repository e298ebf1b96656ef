"""
Small structured query builder.

Clauses are plain values (SELECT list, CTE list, JOIN list, WHERE predicate tree)
and are only rendered to text by `Query.render()`. Rendering emits `(tab)`
indentation markers and runs every block through `trim_query`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Union

from tlmquery.errors import InvalidRequest
from tlmquery.query.trim import TAB, trim_query

_IDENT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_TABLE_PATH_RE = re.compile(r"^[A-Za-z0-9_\-]+(\.[A-Za-z0-9_\-]+)*$")


def ident(name: str) -> str:
    """Validate a bare SQL identifier (column, table or CTE name)."""
    s = str(name or "").strip()
    if not _IDENT_RE.match(s):
        raise InvalidRequest(f"Invalid SQL identifier: {name!r}")
    return s


def table_path(path: str) -> str:
    """Validate and backtick-quote a dotted warehouse table path."""
    s = str(path or "").strip().strip("`")
    if not _TABLE_PATH_RE.match(s):
        raise InvalidRequest(f"Invalid table path: {path!r}")
    return f"`{s}`"


def literal(value: object) -> str:
    if isinstance(value, bool):
        return "True" if value else "False"
    if isinstance(value, (int, float)):
        return repr(value)
    s = str(value).replace("'", "''")
    return f"'{s}'"


@dataclass(frozen=True)
class Compare:
    column: str
    op: str
    value: object

    def render(self) -> str:
        return f"{self.column} {self.op} {literal(self.value)}"


@dataclass(frozen=True)
class Between:
    column: str
    low: object
    high: object

    def render(self) -> str:
        return f"{self.column} BETWEEN {literal(self.low)} AND {literal(self.high)}"


@dataclass(frozen=True)
class AnyOf:
    terms: tuple["Predicate", ...]

    def render(self) -> str:
        return "(" + " OR ".join(t.render() for t in self.terms) + ")"


@dataclass(frozen=True)
class AllOf:
    terms: tuple["Predicate", ...]

    def render(self) -> str:
        return " AND ".join(t.render() for t in self.terms)

    def lines(self) -> list[str]:
        out: list[str] = []
        for i, t in enumerate(self.terms):
            out.append(t.render() if i == 0 else f"AND {t.render()}")
        return out


Predicate = Union[Compare, Between, AnyOf, AllOf]


def _where_lines(where: Predicate) -> list[str]:
    if isinstance(where, AllOf):
        return where.lines()
    return [where.render()]


@dataclass(frozen=True)
class Join:
    kind: str
    target: str
    left: str
    right: str


@dataclass(frozen=True)
class Select:
    columns: tuple[str, ...]
    source: str
    where: Predicate | None = None
    order_by: str | None = None
    distinct: bool = False
    joins: tuple[Join, ...] = ()

    def body_lines(self, depth: int = 0) -> list[str]:
        pad = TAB * depth
        head = "SELECT DISTINCT" if self.distinct else "SELECT"
        out = [f"{pad}{head}"]
        out += [f"{pad}{TAB}{c}," for c in self.columns]
        out[-1] = out[-1].rstrip(",")
        out.append(f"{pad}FROM {self.source}")
        if self.where is not None:
            out.append(f"{pad}WHERE")
            out += [f"{pad}{TAB}{s}" for s in _where_lines(self.where)]
        for j in self.joins:
            out.append(f"{pad}{j.kind} {j.target}")
            out.append(f"{pad}{TAB}ON {j.left} = {j.right}")
        if self.order_by:
            out.append(f"{pad}ORDER BY {self.order_by}")
        return out


@dataclass(frozen=True)
class Cte:
    name: str
    select: Select


@dataclass(frozen=True)
class Query:
    ctes: tuple[Cte, ...]
    select: Select

    def render(self) -> str:
        blocks: list[str] = []
        if self.ctes:
            with_lines = ["WITH"]
            for cte in self.ctes:
                with_lines.append(f"{TAB}{cte.name} AS (")
                with_lines += cte.select.body_lines(depth=2)
                with_lines.append(f"{TAB}),")
            blocks.append(trim_query("\n".join(with_lines)))
        blocks.append(trim_query("\n".join(self.select.body_lines())))
        return "\n".join(blocks)

    @property
    def join_count(self) -> int:
        return len(self.select.joins)
