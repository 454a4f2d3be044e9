"""
Batch splitting for SQL dumps.

Turns a text blob (typically the output of ``sqlite3 .dump``) into an
ordered list of :class:`BatchItem` values: statements, plus markers for the
explicit transaction blocks that the execution engine must honour.

Normally statements are terminated by ``;`` but this is complicated by
trigger statements, whose bodies include one or more statements with their
own ``;`` between the ``BEGIN`` and ``END``.

Processing is line oriented:

- comments are stripped first (``/* ... */`` then ``-- ...``),
- lines are trimmed and blank lines skipped,
- a ``CREATE TRIGGER`` line without ``;`` opens a trigger body that only a
  line equal to ``END;`` closes,
- ``BEGIN TRANSACTION`` opens a transaction block (the line itself is not a
  statement), ``COMMIT;`` closes it,
- a line starting with ``.`` between statements is a shell-style dot
  command (``.tables``, ``.schema``, ``.print``, ``.echo``),
- any other line containing ``;`` completes the statement accumulated so
  far.

Trigger and transaction state are independent: a trigger may be defined
inside a transaction block, and while a trigger body is open every line,
``COMMIT;`` included, belongs to the body.

Input that ends inside a trigger body, a transaction block or an
unterminated statement is a :class:`~dqlited.core.errors.ParseError`.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass, field

from dqlited.core.errors import ParseError
from dqlited.sql.statement import Statement, is_trigger_start, starts_with

COMMENT_C = re.compile(r"/\*.*?\*/", re.DOTALL)
COMMENT_SQL = re.compile(r"[ \t]*--.*")
_COMMIT = re.compile(r"^COMMIT(\s+TRANSACTION)?\s*;$", re.IGNORECASE)
_TRIGGER_END = "END;"
DOT_COMMANDS = frozenset({".tables", ".schema", ".print", ".echo"})


@dataclass(frozen=True)
class BeginTransaction:
    """Open a transaction; subsequent writes run inside it."""

    line: int = 0


@dataclass(frozen=True)
class CommitTransaction:
    """Commit the transaction opened by the matching :class:`BeginTransaction`."""

    line: int = 0


@dataclass(frozen=True)
class DotCommand:
    """A ``.name args`` shell command line."""

    text: str
    line: int = 0

    @property
    def name(self) -> str:
        return self.text.split(None, 1)[0].lower()

    @property
    def argument(self) -> str:
        parts = self.text.split(None, 1)
        return parts[1].strip() if len(parts) > 1 else ""


BatchItem = Statement | BeginTransaction | CommitTransaction | DotCommand


def clean_text(text: str) -> str:
    """Remove C-style and SQL-style comments.

    Block comments are replaced by the newlines they contained so that line
    numbers in parse errors still match the input.
    """
    clean = COMMENT_C.sub(lambda m: "\n" * m.group(0).count("\n"), text)
    return COMMENT_SQL.sub("", clean)


@dataclass
class BatchContext:
    """Mutable parse state for one batch."""

    buffer: list[str] = field(default_factory=list)
    start_line: int = 0
    in_trigger: bool = False
    trigger_line: int = 0
    in_transaction: bool = False
    transaction_line: int = 0

    def append(self, line: str, lineno: int) -> None:
        if not self.buffer:
            self.start_line = lineno
        self.buffer.append(line)

    def flush(self) -> Statement:
        stmt = Statement.of("\n".join(self.buffer), line=self.start_line)
        self.buffer.clear()
        return stmt


def iter_split(text: str) -> Iterator[BatchItem]:
    """Lazily split ``text`` into batch items.

    Parse errors for unterminated blocks are only raised once the input is
    exhausted; use :func:`split` to validate the whole batch up front.
    """
    ctx = BatchContext()
    for lineno, raw in enumerate(clean_text(text).split("\n"), start=1):
        line = raw.strip()
        if not line:
            continue

        if ctx.in_trigger:
            ctx.append(line, lineno)
            if line.upper() == _TRIGGER_END:
                ctx.in_trigger = False
                yield ctx.flush()
            continue

        if line.startswith(".") and not ctx.buffer:
            command = DotCommand(line, line=lineno)
            if command.name not in DOT_COMMANDS:
                raise ParseError(f"unknown command: {command.name}", line=lineno)
            yield command
            continue

        if starts_with(line, "BEGIN TRANSACTION"):
            if ctx.in_transaction:
                raise ParseError(
                    "nested BEGIN TRANSACTION",
                    line=lineno,
                    context={"opened_at": ctx.transaction_line},
                )
            if ctx.buffer:
                raise ParseError("unterminated statement before BEGIN TRANSACTION", line=ctx.start_line)
            ctx.in_transaction = True
            ctx.transaction_line = lineno
            yield BeginTransaction(line=lineno)
            continue

        if ctx.in_transaction and _COMMIT.match(line):
            if ctx.buffer:
                raise ParseError("unterminated statement before COMMIT", line=ctx.start_line)
            ctx.in_transaction = False
            yield CommitTransaction(line=lineno)
            continue

        if is_trigger_start(line) and ";" not in line:
            ctx.in_trigger = True
            ctx.trigger_line = lineno
            ctx.append(line, lineno)
            continue

        ctx.append(line, lineno)
        if ";" in line:
            yield ctx.flush()

    if ctx.in_trigger:
        raise ParseError("unterminated trigger block", line=ctx.trigger_line)
    if ctx.in_transaction:
        raise ParseError("unterminated transaction block", line=ctx.transaction_line)
    if ctx.buffer:
        raise ParseError("unterminated statement", line=ctx.start_line)


def split(text: str) -> list[BatchItem]:
    """Split ``text`` into batch items, validating the whole input first."""
    return list(iter_split(text))


def statements(text: str) -> list[Statement]:
    """Only the statements of ``text``, without transaction markers."""
    return [item for item in split(text) if isinstance(item, Statement)]
