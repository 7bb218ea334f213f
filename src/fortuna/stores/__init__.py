"""Store interfaces and in-memory implementations."""

from fortuna.stores.base import (
    AccountDirectory,
    TemplateStore,
    TransactionStore,
    WorkspaceDirectory,
)
from fortuna.stores.memory import (
    InMemoryAccountDirectory,
    InMemoryTemplateStore,
    InMemoryTransactionStore,
    InMemoryWorkspaceDirectory,
)

__all__ = [
    # Protocols
    "TemplateStore",
    "TransactionStore",
    "WorkspaceDirectory",
    "AccountDirectory",
    # In-memory implementations
    "InMemoryTemplateStore",
    "InMemoryTransactionStore",
    "InMemoryWorkspaceDirectory",
    "InMemoryAccountDirectory",
]
