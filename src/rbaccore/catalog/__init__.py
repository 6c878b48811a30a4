"""Catalog adapters, typed mutation requests and topology inspection."""

from .statements import MutationRequest, Statement, quote_identifier, quote_literal, render
from .inspector import inspect_topology
from .memory import ERRNO_ALREADY_EXISTS, ERRNO_DOES_NOT_EXIST, InMemoryCatalog
from .sql import SqlAlchemyCatalog, sanitize_url

__all__ = [
    "ERRNO_ALREADY_EXISTS",
    "ERRNO_DOES_NOT_EXIST",
    "InMemoryCatalog",
    "MutationRequest",
    "SqlAlchemyCatalog",
    "Statement",
    "inspect_topology",
    "quote_identifier",
    "quote_literal",
    "render",
    "sanitize_url",
]
