"""SQL text handling: verb classification and batch splitting."""

from dqlited.sql.splitter import (
    BatchContext,
    BatchItem,
    BeginTransaction,
    CommitTransaction,
    DotCommand,
    clean_text,
    iter_split,
    split,
    statements,
)
from dqlited.sql.statement import Statement, Verb, classify

__all__ = [
    "BatchContext",
    "BatchItem",
    "BeginTransaction",
    "CommitTransaction",
    "DotCommand",
    "Statement",
    "Verb",
    "classify",
    "clean_text",
    "iter_split",
    "split",
    "statements",
]
