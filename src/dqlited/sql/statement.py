"""Statement verbs and classification.

A statement's verb is computed once, from its leading keywords, and is
consumed everywhere else through the :class:`Verb` enum.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum


class Verb(str, Enum):
    """What a statement does, as far as routing is concerned."""

    SELECT = "SELECT"
    PRAGMA_READ = "PRAGMA_READ"
    PRAGMA_WRITE = "PRAGMA_WRITE"
    DML = "DML"                  # INSERT / UPDATE / DELETE / REPLACE
    DDL = "DDL"                  # CREATE / DROP / ALTER
    TRANSACTION = "TRANSACTION"  # BEGIN / COMMIT / ROLLBACK / END
    TRIGGER = "TRIGGER"          # CREATE [TEMP] TRIGGER ... END;
    OTHER = "OTHER"

    @property
    def is_read(self) -> bool:
        """Reads go to the query path and are never retried."""
        return self in (Verb.SELECT, Verb.PRAGMA_READ)


_WORD = re.compile(r"[A-Za-z_]+")
_TRIGGER = re.compile(r"^CREATE\s+(?:TEMP\s+|TEMPORARY\s+)?TRIGGER\b", re.IGNORECASE)
_CTE_WRITE = re.compile(r"\b(?:INSERT|UPDATE|DELETE|REPLACE)\b", re.IGNORECASE)

_FIRST_WORD_VERBS = {
    "SELECT": Verb.SELECT,
    "INSERT": Verb.DML,
    "UPDATE": Verb.DML,
    "DELETE": Verb.DML,
    "REPLACE": Verb.DML,
    "CREATE": Verb.DDL,
    "DROP": Verb.DDL,
    "ALTER": Verb.DDL,
    "BEGIN": Verb.TRANSACTION,
    "COMMIT": Verb.TRANSACTION,
    "ROLLBACK": Verb.TRANSACTION,
    "END": Verb.TRANSACTION,
}


def starts_with(text: str, prefix: str) -> bool:
    """Case-insensitive prefix test ignoring surrounding whitespace."""
    return text.strip().upper().startswith(prefix.upper())


def is_trigger_start(text: str) -> bool:
    return bool(_TRIGGER.match(text.strip()))


def classify(sql: str) -> Verb:
    """Classify ``sql`` by its leading keyword(s)."""
    text = sql.strip()
    match = _WORD.match(text)
    if match is None:
        return Verb.OTHER
    word = match.group(0).upper()
    if word == "PRAGMA":
        # some pragmas write, others read...
        return Verb.PRAGMA_WRITE if "=" in text else Verb.PRAGMA_READ
    if word == "EXPLAIN":
        return Verb.SELECT
    if word == "WITH":
        # a CTE feeding INSERT/UPDATE/DELETE is a write
        return Verb.DML if _CTE_WRITE.search(text) else Verb.SELECT
    if word == "CREATE" and is_trigger_start(text):
        return Verb.TRIGGER
    return _FIRST_WORD_VERBS.get(word, Verb.OTHER)


@dataclass(frozen=True)
class Statement:
    """One logical SQL statement with its verb.

    Attributes:
        text: Raw SQL, possibly spanning several lines
        verb: Routing classification
        line: First line of the statement in the cleaned batch text
    """

    text: str
    verb: Verb
    line: int = field(default=0, compare=False)

    @classmethod
    def of(cls, text: str, line: int = 0) -> Statement:
        return cls(text=text, verb=classify(text), line=line)

    @property
    def is_read(self) -> bool:
        return self.verb.is_read

    def __str__(self) -> str:
        return self.text
