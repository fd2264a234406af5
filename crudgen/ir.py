# File: crudgen/ir.py
"""
crudgen - Intermediate Representation & Import Resolver
========================================================
Generated modules are assembled as structured declarations rather than
concatenated text. Each declaration carries the import requests of the
code it contains; an ``ImportTable`` pass groups and de-duplicates them
and the printer emits one consolidated import block per unit, followed by
the database-client import every unit needs.

``resolve_imports`` is the text-level counterpart of the same pass for
already-rendered modules. It shares the table and renderer, is idempotent,
and for any unit ``resolve_imports(unit.render()) == unit.render()``.
"""

from __future__ import annotations

import contextlib
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("crudgen.ir")

DEFAULT_CLIENT_MODULE: str = "pg"
CLIENT_NAMESPACE: str = "pg"

_IMPORT_LINE_RE: re.Pattern[str] = re.compile(
    r'^\s*import\s+(\{[^}]*\}|[A-Za-z_$][\w$]*)\s+from\s+"([^"]+)";\s*$'
)
_CLIENT_BINDING_RE: re.Pattern[str] = re.compile(
    r"^\s*const\s+\{\s*Client\s*\}\s*=\s*pg;\s*$"
)

# (depth, text) pairs; depth is the indentation level of the line
Line = Tuple[int, str]


# ---------------------------------------------------------------------------
# Import requests & table
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ImportRequest:
    """A symbol needed from another module, named (``{x}``) or default."""

    module: str
    symbol: str
    default: bool = False


class ImportTable:
    """
    Collects import requests, grouped by module and by named-vs-default
    style, de-duplicated, in first-seen order.

    Requests for the unit's own module are dropped, as are the client
    namespace import and the ``Client`` binding, which ``render`` always
    emits. Other imports from the client module are kept.
    """

    __slots__ = ("client_module", "self_module", "_groups")

    def __init__(
        self,
        client_module: str = DEFAULT_CLIENT_MODULE,
        self_module: Optional[str] = None,
    ) -> None:
        self.client_module: str = client_module
        self.self_module: Optional[str] = self_module
        self._groups: Dict[Tuple[str, bool], List[str]] = {}

    def is_client_import(self, request: ImportRequest) -> bool:
        """True for the ``pg`` default import and the ``Client`` binding emitted by ``render``."""
        if request.module != self.client_module:
            return False
        return request.symbol == (CLIENT_NAMESPACE if request.default else "Client")

    def add(self, request: ImportRequest) -> None:
        if request.module == self.self_module or self.is_client_import(request):
            return
        symbols: List[str] = self._groups.setdefault((request.module, request.default), [])
        if request.symbol not in symbols:
            symbols.append(request.symbol)

    def extend(self, requests: Sequence[ImportRequest]) -> None:
        for request in requests:
            self.add(request)

    @property
    def modules(self) -> List[str]:
        seen: List[str] = []
        for module, _default in self._groups:
            if module not in seen:
                seen.append(module)
        return seen

    def __len__(self) -> int:
        return sum(len(symbols) for symbols in self._groups.values())

    def import_lines(self) -> List[str]:
        lines: List[str] = []
        for (module, default), symbols in self._groups.items():
            if default:
                lines.extend(f'import {symbol} from "{module}";' for symbol in symbols)
            else:
                lines.append(f'import {{{", ".join(symbols)}}} from "{module}";')
        return lines

    def render(self) -> str:
        """Consolidated import block plus the client import, ending in a blank line."""
        parts: List[str] = []
        lines: List[str] = self.import_lines()
        if lines:
            parts.append("\n".join(lines) + "\n\n")
        parts.append(f'import {CLIENT_NAMESPACE} from "{self.client_module}";\n\n')
        parts.append(f"const {{Client}} = {CLIENT_NAMESPACE};\n\n")
        return "".join(parts)


def parse_import_line(line: str) -> Optional[List[ImportRequest]]:
    """Parse one import declaration, or return ``None`` for any other line."""
    match: Optional[re.Match[str]] = _IMPORT_LINE_RE.match(line)
    if match is None:
        return None
    clause, module = match.group(1), match.group(2)
    if clause.startswith("{"):
        symbols: List[str] = [s.strip() for s in clause[1:-1].split(",") if s.strip()]
        return [ImportRequest(module, symbol) for symbol in symbols]
    return [ImportRequest(module, clause, default=True)]


def resolve_imports(text: str, client_module: str = DEFAULT_CLIENT_MODULE) -> str:
    """
    Consolidate the import declarations found anywhere in *text*.

    Every import line (and the client binding) is removed from the body,
    grouped through an ``ImportTable`` and re-emitted as one block at the
    top, followed by the client import. Running it twice yields the same
    result as running it once.
    """
    table: ImportTable = ImportTable(client_module=client_module)
    body: List[str] = []
    for line in text.split("\n"):
        requests: Optional[List[ImportRequest]] = parse_import_line(line)
        if requests is not None:
            table.extend(requests)
            continue
        if _CLIENT_BINDING_RE.match(line):
            continue
        body.append(line)

    while body and not body[0].strip():
        body.pop(0)

    logger.debug("resolve_imports: %d symbol(s) from %d module(s).", len(table), len(table.modules))
    return table.render() + "\n".join(body)


# ---------------------------------------------------------------------------
# Declarations
# ---------------------------------------------------------------------------


class CodeWriter:
    """
    Accumulates ``(depth, text)`` lines for one declaration.

    Usage:
        w = CodeWriter()
        with w.block("export function f() {"):
            w.line("return 1;")
    """

    __slots__ = ("_lines", "_depth")

    def __init__(self) -> None:
        self._lines: List[Line] = []
        self._depth: int = 0

    def line(self, text: str = "") -> None:
        self._lines.append((self._depth if text else 0, text))

    def extend(self, texts: Sequence[str]) -> None:
        for text in texts:
            self.line(text)

    @contextlib.contextmanager
    def indented(self) -> Iterator[None]:
        self._depth += 1
        try:
            yield
        finally:
            self._depth -= 1

    @contextlib.contextmanager
    def block(self, opener: str, closer: str = "}") -> Iterator[None]:
        self.line(opener)
        with self.indented():
            yield
        self.line(closer)

    @property
    def lines(self) -> List[Line]:
        return list(self._lines)


@dataclass
class Declaration:
    """One top-level construct of a unit (enum, class, interface, function...)."""

    kind: str
    name: str
    lines: List[Line] = field(default_factory=list)
    imports: List[ImportRequest] = field(default_factory=list)

    def render(self, indent_unit: str) -> str:
        return "\n".join(
            (indent_unit * depth + text) if text else "" for depth, text in self.lines
        )


@dataclass
class GeneratedUnit:
    """The output for one table: its declarations plus a path and printer."""

    schema_name: str
    table_name: str
    declarations: List[Declaration] = field(default_factory=list)
    client_module: str = DEFAULT_CLIENT_MODULE
    module_extension: str = ".js"
    file_extension: str = ".ts"
    indent_size: int = 4

    @property
    def relative_path(self) -> str:
        return f"{self.schema_name}/{self.table_name}{self.file_extension}"

    @property
    def module_specifier(self) -> str:
        """Specifier other units in the same schema use to import this one."""
        return f"./{self.table_name}{self.module_extension}"

    def add(self, declaration: Declaration) -> None:
        self.declarations.append(declaration)

    def find(self, name: str) -> Optional[Declaration]:
        for declaration in self.declarations:
            if declaration.name == name:
                return declaration
        return None

    def import_table(self) -> ImportTable:
        table: ImportTable = ImportTable(
            client_module=self.client_module, self_module=self.module_specifier
        )
        for declaration in self.declarations:
            table.extend(declaration.imports)
        return table

    def render(self) -> str:
        indent_unit: str = " " * self.indent_size
        body: str = "\n\n".join(d.render(indent_unit) for d in self.declarations)
        return self.import_table().render() + body + "\n"

    def __repr__(self) -> str:
        return f"<GeneratedUnit {self.relative_path} ({len(self.declarations)} declarations)>"


def module_specifier(
    from_schema: str,
    to_schema: str,
    to_table: str,
    module_extension: str = ".js",
) -> str:
    """Relative import specifier from a unit in *from_schema* to another unit."""
    if from_schema == to_schema:
        return f"./{to_table}{module_extension}"
    return f"../{to_schema}/{to_table}{module_extension}"


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "DEFAULT_CLIENT_MODULE",
    "ImportRequest",
    "ImportTable",
    "parse_import_line",
    "resolve_imports",
    "CodeWriter",
    "Declaration",
    "GeneratedUnit",
    "module_specifier",
]

logger.debug("crudgen.ir loaded with %d public symbols.", len(__all__))
