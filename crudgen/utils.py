# File: crudgen/utils.py
"""
crudgen - Utility Functions & Helpers
======================================
Naming transformations, the key-combination enumerator and small metric
helpers used throughout the generation pipeline.

Naming strategy:
- Generated identifiers are derived from database names by splitting on
  underscores and capitalising each word, with ``id`` rendered as ``ID``
  (``user_id`` -> ``UserID``).
- All string-conversion functions are decorated with
  ``@lru_cache(maxsize=None)``; the same column names are converted many
  times while a single unit is synthesised.
"""

from __future__ import annotations

import functools
import hashlib
import itertools
import json
import logging
import re
import time
from typing import FrozenSet, List, Optional, Sequence, Tuple, TypeVar

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("crudgen.utils")

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Pre-compiled regex patterns (compiled once at module load)
# ---------------------------------------------------------------------------

_NON_ALPHANUM_RE: re.Pattern[str] = re.compile(r"[^a-zA-Z0-9]+")
_TS_IDENTIFIER_RE: re.Pattern[str] = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")
_SQL_PLAIN_IDENTIFIER_RE: re.Pattern[str] = re.compile(r"^[a-z_][a-z0-9_$]*$")

# TypeScript reserved words that cannot be used as parameter names
_TS_RESERVED_WORDS: FrozenSet[str] = frozenset({
    "break", "case", "catch", "class", "const", "continue", "debugger",
    "default", "delete", "do", "else", "enum", "export", "extends",
    "false", "finally", "for", "function", "if", "import", "in",
    "instanceof", "new", "null", "return", "super", "switch", "this",
    "throw", "true", "try", "typeof", "var", "void", "while", "with",
    "implements", "interface", "let", "package", "private", "protected",
    "public", "static", "yield", "await", "arguments", "eval",
})

# SQL words that must be quoted when used as identifiers
_SQL_RESERVED_WORDS: FrozenSet[str] = frozenset({
    "all", "analyse", "analyze", "and", "any", "array", "as", "asc",
    "asymmetric", "both", "case", "cast", "check", "collate", "column",
    "constraint", "create", "current_catalog", "current_date",
    "current_role", "current_time", "current_timestamp", "current_user",
    "default", "deferrable", "desc", "distinct", "do", "else", "end",
    "except", "false", "fetch", "for", "foreign", "from", "grant",
    "group", "having", "in", "initially", "intersect", "into", "lateral",
    "leading", "limit", "localtime", "localtimestamp", "not", "null",
    "offset", "on", "only", "or", "order", "placing", "primary",
    "references", "returning", "select", "session_user", "some",
    "symmetric", "table", "then", "to", "trailing", "true", "union",
    "unique", "user", "using", "variadic", "when", "where", "window",
    "with",
})

# Plural endings and their singular replacements, longest first
_SINGULAR_ENDINGS: Tuple[Tuple[str, str], ...] = (
    ("ves", "fe"),
    ("ies", "y"),
    ("zes", "ze"),
    ("ses", "s"),
    ("es", "e"),
    ("i", "us"),
    ("s", ""),
)

# Words that end like a plural but are singular already
_SINGULAR_SUFFIXES: Tuple[str, ...] = ("ss", "us", "is")


# ---------------------------------------------------------------------------
# Cached string transformation functions
# ---------------------------------------------------------------------------


@functools.lru_cache(maxsize=None)
def _split_words(name: str) -> Tuple[str, ...]:
    """Split a database identifier into its underscore-separated words."""
    return tuple(w for w in _NON_ALPHANUM_RE.split(name) if w)


@functools.lru_cache(maxsize=None)
def beautify_name(name: str) -> str:
    """
    Turn a database identifier into a human-readable title.

    Examples:
        >>> beautify_name("user_id")
        'User ID'
        >>> beautify_name("created_at")
        'Created At'
    """
    words: List[str] = []
    for word in _split_words(name):
        word = word[0].upper() + word[1:]
        words.append("ID" if word == "Id" else word)
    return " ".join(words)


@functools.lru_cache(maxsize=None)
def to_pascal_case(name: str) -> str:
    """
    Convert a database identifier to PascalCase.

    Examples:
        >>> to_pascal_case("order_items")
        'OrderItems'
        >>> to_pascal_case("user_id")
        'UserID'
    """
    result: str = beautify_name(name).replace(" ", "")
    if not result:
        return "Unnamed"
    if result[0].isdigit():
        result = f"T{result}"
    return result


@functools.lru_cache(maxsize=None)
def to_camel_case(name: str) -> str:
    """Convert a database identifier to camelCase (``order_items`` -> ``orderItems``)."""
    pascal: str = to_pascal_case(name)
    if pascal.isupper():
        return pascal.lower()
    return pascal[0].lower() + pascal[1:]


@functools.lru_cache(maxsize=None)
def to_singular(name: str) -> str:
    """
    Naive English singularisation of the last word of *name*.

    Examples:
        >>> to_singular("Users")
        'User'
        >>> to_singular("Categories")
        'Category'
        >>> to_singular("Status")
        'Status'
    """
    if not name:
        return ""
    lower: str = name.lower()
    if lower.endswith(_SINGULAR_SUFFIXES):
        return name
    for ending, replacement in _SINGULAR_ENDINGS:
        if lower.endswith(ending) and len(name) > len(ending):
            return name[: -len(ending)] + replacement
    return name


@functools.lru_cache(maxsize=None)
def ts_identifier(name: str) -> str:
    """
    Return a safe TypeScript identifier for a column name.

    Invalid characters become underscores, a leading digit gets an
    underscore prefix and reserved words get an underscore suffix.
    """
    result: str = _NON_ALPHANUM_RE.sub("_", name) or "_unnamed"
    if result[0].isdigit():
        result = f"_{result}"
    if result in _TS_RESERVED_WORDS:
        result = f"{result}_"
    return result


@functools.lru_cache(maxsize=None)
def ts_property(name: str) -> str:
    """Property key for a column name: bare when it is an identifier, quoted otherwise."""
    if _TS_IDENTIFIER_RE.match(name):
        return name
    return json.dumps(name)


def ts_member(target: str, name: str) -> str:
    """Member access expression: ``target.name`` or ``target["na-me"]``."""
    if _TS_IDENTIFIER_RE.match(name):
        return f"{target}.{name}"
    return f"{target}[{json.dumps(name)}]"


@functools.lru_cache(maxsize=None)
def sql_identifier(name: str) -> str:
    """Quote an SQL identifier unless it is a plain lower-case, non-reserved word."""
    if _SQL_PLAIN_IDENTIFIER_RE.match(name) and name not in _SQL_RESERVED_WORDS:
        return name
    escaped: str = name.replace('"', '""')
    return f'"{escaped}"'


def qualified_table(schema_name: str, table_name: str) -> str:
    """``schema.table`` with each part quoted as needed."""
    return f"{sql_identifier(schema_name)}.{sql_identifier(table_name)}"


# ---------------------------------------------------------------------------
# Key-combination enumerator
# ---------------------------------------------------------------------------


def key_combinations(items: Sequence[T]) -> List[Tuple[T, ...]]:
    """
    Return every non-empty subset of *items*, sorted ascending by size.

    Subsets of equal size keep the input order (``itertools.combinations``
    yields them lexicographically by position), so ordinal-ordered input
    produces ordinal-ordered subsets. The result has ``2**n - 1`` entries.

    Example:
        >>> key_combinations(["id", "email"])
        [('id',), ('email',), ('id', 'email')]
    """
    pool: Tuple[T, ...] = tuple(items)
    result: List[Tuple[T, ...]] = []
    for size in range(1, len(pool) + 1):
        result.extend(itertools.combinations(pool, size))
    return result


def capped_key_combinations(
    items: Sequence[T],
    cap: int,
    label: str = "columns",
) -> List[Tuple[T, ...]]:
    """
    ``key_combinations`` bounded by *cap*: larger inputs only yield the
    single-item subsets and a warning is logged.
    """
    if len(items) > cap:
        logger.warning(
            "%s has %d entries (cap %d); emitting single-column variants only.",
            label,
            len(items),
            cap,
        )
        return [(item,) for item in items]
    return key_combinations(items)


# ---------------------------------------------------------------------------
# SQL formatting
# ---------------------------------------------------------------------------


def align_keywords(clauses: Sequence[Tuple[str, str]]) -> List[str]:
    """
    Right-align SQL keywords so clause bodies line up.

    Example:
        >>> align_keywords([("SELECT", "*"), ("FROM", "users")])
        ['SELECT *', '  FROM users']
    """
    if not clauses:
        return []
    width: int = max(len(keyword) for keyword, _ in clauses)
    lines: List[str] = []
    for keyword, body in clauses:
        line: str = keyword.rjust(width)
        if body:
            line = f"{line} {body}"
        lines.append(line)
    return lines


# ---------------------------------------------------------------------------
# Checksum & metrics
# ---------------------------------------------------------------------------


def sha256_hex(content: str) -> str:
    """Return SHA-256 hex digest of a string."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def count_lines(content: str) -> int:
    """Count the number of lines in a string."""
    if not content:
        return 0
    return content.count("\n") + (1 if not content.endswith("\n") else 0)


# ---------------------------------------------------------------------------
# Timer context manager
# ---------------------------------------------------------------------------


class Timer:
    """
    Simple context-manager timer for profiling pipeline steps.

    Usage:
        with Timer("introspect") as t:
            ...
        print(t.elapsed)
    """

    __slots__ = ("label", "start_time", "end_time", "elapsed")

    def __init__(self, label: str = "operation") -> None:
        self.label: str = label
        self.start_time: float = 0.0
        self.end_time: float = 0.0
        self.elapsed: float = 0.0

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[object],
    ) -> None:
        self.end_time = time.perf_counter()
        self.elapsed = self.end_time - self.start_time
        logger.debug("Timer [%s]: %.4f seconds", self.label, self.elapsed)

    def __repr__(self) -> str:
        return f"<Timer {self.label}: {self.elapsed:.4f}s>"


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "beautify_name",
    "to_pascal_case",
    "to_camel_case",
    "to_singular",
    "ts_identifier",
    "ts_property",
    "ts_member",
    "sql_identifier",
    "qualified_table",
    "key_combinations",
    "capped_key_combinations",
    "align_keywords",
    "sha256_hex",
    "count_lines",
    "Timer",
]

logger.debug("crudgen.utils loaded with %d public symbols.", len(__all__))
