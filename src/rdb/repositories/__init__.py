"""Repository façades and the CRUD primitives behind them."""

from .executor import EngineExecutor, Executor, TransactionExecutor, render_query
from .repo import Repo, Tx

__all__ = [
    "EngineExecutor",
    "Executor",
    "Repo",
    "TransactionExecutor",
    "Tx",
    "render_query",
]
