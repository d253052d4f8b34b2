"""Token-level scanner that turns query text into a scope tree.

The scanner is not a grammar. It masks comments and string literals, walks the
parentheses to find subquery and CTE bodies, then scans the tokens each scope owns
for ``FROM``/``JOIN``/``INTO``/``UPDATE``/``TABLE`` followed by
``[db.]table [[AS] alias]``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from typing import Iterator, NamedTuple

from .catalog import is_keyword
from .models import (
    CTEDefinition,
    Scope,
    ScopeKind,
    StatementKind,
    TableOrigin,
    TableReference,
)

LOG = logging.getLogger(__name__)

_FILLER = "#"
_MASKED = re.compile(r"--[^\n]*|/\*.*?(?:\*/|\Z)|'(?:[^']|'')*(?:'|\Z)", re.DOTALL)
_TOKEN = re.compile(
    r"`(?P<backtick>[^`]*)`?|\"(?P<quoted>[^\"]*)\"?|\[(?P<bracket>[^\]]*)\]?"
    r"|(?P<word>\w+)|(?P<punct>[.,;()])|(?P<other>\S)"
)
_CTE_HEAD = re.compile(
    r"(?P<lead>\bWITH\s+(?:RECURSIVE\s+)?|,\s*)[`\"]?(?P<name>\w+)[`\"]?"
    r"(?:\s*\([^()]*\))?\s+AS\s*\Z",
    re.IGNORECASE,
)
_SUBQUERY_HEAD = re.compile(r"\s*(?:SELECT|WITH)\b", re.IGNORECASE)
_CURRENT_WORD = re.compile(r"[\w.`]+\Z")
_WORD_BEFORE_DOT = re.compile(r"(\w+)\.\Z")

_LOOKBEHIND = 256
_TABLE_KEYWORDS = frozenset({"FROM", "JOIN", "INTO", "UPDATE", "TABLE"})
_LIST_KEYWORDS = frozenset({"FROM", "UPDATE"})
_STATEMENTS = {
    "SELECT": StatementKind.SELECT,
    "WITH": StatementKind.SELECT,
    "INSERT": StatementKind.INSERT,
    "REPLACE": StatementKind.INSERT,
    "UPDATE": StatementKind.UPDATE,
    "DELETE": StatementKind.DELETE,
    "CREATE": StatementKind.DDL,
    "ALTER": StatementKind.DDL,
    "DROP": StatementKind.DDL,
    "TRUNCATE": StatementKind.DDL,
}


class _Token(NamedTuple):
    value: str
    position: int
    identifier: bool
    quoted: bool

    @property
    def upper(self) -> str:
        return self.value.upper()

    @property
    def bare_keyword(self) -> bool:
        return self.identifier and not self.quoted and is_keyword(self.value)


class ScopeTree:
    """Arena of scopes; index 0 is the root and parents are referenced by index."""

    def __init__(self, scopes: list[Scope] | None = None) -> None:
        self._scopes = scopes or [Scope(index=0, kind=ScopeKind.ROOT, start=0, end=0)]

    @classmethod
    def empty(cls) -> "ScopeTree":
        return cls()

    @property
    def root(self) -> Scope:
        return self._scopes[0]

    @property
    def scopes(self) -> tuple[Scope, ...]:
        return tuple(self._scopes)

    @property
    def is_empty(self) -> bool:
        return len(self._scopes) == 1 and not self.root.tables and not self.root.ctes

    def scope(self, index: int) -> Scope:
        return self._scopes[index]

    def parent(self, scope: Scope) -> Scope | None:
        if scope.parent is None:
            return None
        return self._scopes[scope.parent]

    def ancestors(self, scope: Scope) -> Iterator[Scope]:
        parent = self.parent(scope)
        while parent is not None:
            yield parent
            parent = self.parent(parent)

    def scope_at(self, offset: int) -> Scope:
        """Innermost scope containing ``offset``."""

        current = self.root
        descended = True
        while descended:
            descended = False
            for child_idx in current.children:
                child = self._scopes[child_idx]
                if child.contains(offset):
                    current = child
                    descended = True
                    break
        return current

    def visible_ctes(self, offset: int) -> list[CTEDefinition]:
        scope = self.scope_at(offset)
        ctes: list[CTEDefinition] = []
        seen: set[str] = set()
        for owner in (scope, *self.ancestors(scope)):
            for cte in owner.ctes:
                key = cte.name.lower()
                if key not in seen:
                    seen.add(key)
                    ctes.append(cte)
        return ctes

    def visible_tables(self, offset: int) -> list[TableReference]:
        """Tables of the scope at ``offset`` followed by ancestors' tables flagged ``inherited``."""

        scope = self.scope_at(offset)
        tables: list[TableReference] = []
        seen: set[tuple[str, str, str]] = set()
        for owner in (scope, *self.ancestors(scope)):
            inherited = owner is not scope
            for ref in owner.tables:
                key = ((ref.database or "").lower(), ref.table.lower(), (ref.alias or "").lower())
                if key in seen:
                    continue
                seen.add(key)
                tables.append(replace(ref, inherited=True) if inherited else ref)
        return tables

    def all_tables(self) -> list[TableReference]:
        return [ref for scope in self._scopes for ref in scope.tables]

    def resolve(self, identifier: str, offset: int) -> TableReference | None:
        """Resolve an alias, table name, ``db.table`` name or CTE name at ``offset``."""

        if not identifier:
            return None
        scope = self.scope_at(offset)
        chain = (scope, *self.ancestors(scope))
        visited = {owner.index for owner in chain}
        for owner in chain:
            ref = owner.lookup_alias(identifier) or _by_table_name(owner.tables, identifier)
            if ref is not None:
                return ref
        for cte in self.visible_ctes(offset):
            if cte.name.lower() == identifier.lower():
                return TableReference(table=cte.name, alias=cte.name, origin=TableOrigin.CTE, position=cte.offset)
        for owner in self._scopes:
            if owner.index in visited:
                continue
            ref = owner.lookup_alias(identifier) or _by_table_name(owner.tables, identifier)
            if ref is not None:
                return ref
        return None


def _by_table_name(tables: list[TableReference], identifier: str) -> TableReference | None:
    for ref in tables:
        if ref.matches(identifier):
            return ref
    return None


@dataclass(slots=True)
class ScopeParser:
    """Builds a :class:`ScopeTree`; never raises."""

    lookbehind: int = _LOOKBEHIND

    def parse(self, text: str) -> ScopeTree:
        if not text or not text.strip():
            return ScopeTree.empty()
        try:
            return self._parse(text)
        except Exception:  # pragma: no cover - completion must never block typing
            LOG.exception("Scope parsing failed", extra={"length": len(text)})
            return ScopeTree.empty()

    def _parse(self, text: str) -> ScopeTree:
        masked = mask_literals(text)
        scopes = self._build_scopes(masked)
        for scope in scopes:
            owned = _owned_text(masked, scope, scopes)
            tokens = _tokenize(owned, scope.start)
            scope.statement = _statement_kind(tokens)
            self._collect_tables(scope, tokens)
        tree = ScopeTree(scopes)
        _mark_cte_references(tree)
        return tree

    def _build_scopes(self, masked: str) -> list[Scope]:
        scopes = [Scope(index=0, kind=ScopeKind.ROOT, start=0, end=len(masked))]
        stack: list[int | None] = []
        current = 0
        for idx, char in enumerate(masked):
            if char == "(":
                opened = self._open_scope(masked, idx, current, scopes)
                stack.append(opened)
                if opened is not None:
                    current = opened
            elif char == ")" and stack:
                opened = stack.pop()
                if opened is not None:
                    scopes[opened].end = idx
                    current = scopes[opened].parent or 0
        return scopes

    def _open_scope(self, masked: str, idx: int, current: int, scopes: list[Scope]) -> int | None:
        head = masked[max(0, idx - self.lookbehind) : idx]
        cte = _CTE_HEAD.search(head)
        owner = scopes[current]
        if cte and not is_keyword(cte.group("name")):
            leads_with_comma = cte.group("lead").startswith(",")
            if not leads_with_comma or owner.ctes:
                scope = _child_scope(scopes, current, ScopeKind.CTE, idx + 1, len(masked))
                scope.name = cte.group("name")
                owner.ctes.append(CTEDefinition(name=scope.name, offset=scope.start, scope=scope.index))
                return scope.index
        if _SUBQUERY_HEAD.match(masked, idx + 1):
            return _child_scope(scopes, current, ScopeKind.SUBQUERY, idx + 1, len(masked)).index
        return None

    def _collect_tables(self, scope: Scope, tokens: list[_Token]) -> None:
        depth = 0
        idx = 0
        while idx < len(tokens):
            token = tokens[idx]
            if token.value == "(":
                depth += 1
            elif token.value == ")":
                depth = max(0, depth - 1)
            elif depth == 0 and token.identifier and not token.quoted and token.upper in _TABLE_KEYWORDS:
                idx = self._read_table_list(scope, tokens, idx + 1, token.upper)
                continue
            idx += 1

    def _read_table_list(self, scope: Scope, tokens: list[_Token], idx: int, keyword: str) -> int:
        while True:
            ref, idx = _read_table_ref(tokens, idx, keyword)
            if ref is not None:
                _add_reference(scope, ref)
            if keyword in _LIST_KEYWORDS and idx < len(tokens) and tokens[idx].value == ",":
                idx += 1
                continue
            return idx


def _child_scope(scopes: list[Scope], parent: int, kind: ScopeKind, start: int, end: int) -> Scope:
    scope = Scope(index=len(scopes), kind=kind, start=start, end=end, parent=parent)
    scopes.append(scope)
    scopes[parent].children.append(scope.index)
    return scope


def _read_table_ref(tokens: list[_Token], idx: int, keyword: str) -> tuple[TableReference | None, int]:
    if idx >= len(tokens) or not tokens[idx].identifier or tokens[idx].bare_keyword:
        return None, idx
    first = tokens[idx]
    database: str | None = None
    table = first.value
    idx += 1
    while idx + 1 < len(tokens) and tokens[idx].value == "." and tokens[idx + 1].identifier:
        database, table = table, tokens[idx + 1].value
        idx += 2

    alias: str | None = None
    if idx < len(tokens) and tokens[idx].identifier and not tokens[idx].quoted and tokens[idx].upper == "AS":
        idx += 1
    if idx < len(tokens) and tokens[idx].identifier and not tokens[idx].bare_keyword:
        alias = tokens[idx].value
        idx += 1
    if alias and alias.lower() == table.lower():
        alias = None
    ref = TableReference(table=table, database=database, alias=alias, keyword=keyword, position=first.position)
    return ref, idx


def _add_reference(scope: Scope, ref: TableReference) -> None:
    scope.tables.append(ref)
    if ref.alias:
        # Later aliases shadow earlier ones.
        scope.aliases[ref.alias.lower()] = len(scope.tables) - 1


def _mark_cte_references(tree: ScopeTree) -> None:
    for scope in tree.scopes:
        names = {
            cte.name.lower()
            for owner in (scope, *tree.ancestors(scope))
            for cte in owner.ctes
        }
        if not names:
            continue
        for ref in scope.tables:
            if ref.database is None and ref.table.lower() in names:
                ref.origin = TableOrigin.CTE


def _owned_text(masked: str, scope: Scope, scopes: list[Scope]) -> str:
    chars = list(masked[scope.start : scope.end])
    for child_idx in scope.children:
        child = scopes[child_idx]
        low = max(child.start - 1, scope.start)
        high = min(child.end + 1, scope.end)
        for pos in range(low, high):
            chars[pos - scope.start] = _FILLER
    return "".join(chars)


def _tokenize(text: str, base: int) -> list[_Token]:
    tokens: list[_Token] = []
    for match in _TOKEN.finditer(text):
        kind = match.lastgroup
        position = base + match.start()
        if kind in {"backtick", "quoted", "bracket"}:
            tokens.append(_Token(match.group(kind), position, identifier=True, quoted=True))
        elif kind == "word":
            tokens.append(_Token(match.group(kind), position, identifier=True, quoted=False))
        else:
            tokens.append(_Token(match.group(0), position, identifier=False, quoted=False))
    return tokens


def _statement_kind(tokens: list[_Token]) -> StatementKind:
    for token in tokens:
        if token.identifier and not token.quoted:
            kind = _STATEMENTS.get(token.upper)
            if kind is not None and token.upper != "WITH":
                return kind
    for token in tokens:
        if token.identifier and token.upper == "WITH":
            return StatementKind.SELECT
    return StatementKind.UNKNOWN


def mask_literals(text: str) -> str:
    """Blank out comments and string literals, preserving offsets and newlines."""

    def _blank(match: re.Match[str]) -> str:
        return "".join("\n" if char == "\n" else " " for char in match.group(0))

    return _MASKED.sub(_blank, text)


def current_word(text: str, cursor: int) -> str:
    """Partial token immediately before the cursor (dots kept, backticks dropped)."""

    match = _CURRENT_WORD.search(text[:cursor])
    return match.group(0).replace("`", "") if match else ""


def word_before_dot(text: str, cursor: int) -> str:
    match = _WORD_BEFORE_DOT.search(text[:cursor])
    return match.group(1) if match else ""


def previous_word(text: str, cursor: int) -> str | None:
    """Whitespace-delimited word before the one being typed."""

    words = text[:cursor].strip().split()
    return words[-2] if len(words) >= 2 else None


__all__ = [
    "ScopeParser",
    "ScopeTree",
    "current_word",
    "mask_literals",
    "previous_word",
    "word_before_dot",
]
