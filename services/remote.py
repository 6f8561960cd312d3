"""Contract of the remote store the sync engine talks to.

Implementations raise (any exception, preferably ``NetworkFailure``) when the
store is unreachable or rejects the request; the engine treats every raise as
a signal to fall back to the local store.
"""
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Protocol


class RemoteStore(Protocol):
    async def create(self, table: str, row: Mapping[str, Any]) -> Dict[str, Any]:
        ...

    async def read(self, table: str, filters: Mapping[str, Any]) -> List[Dict[str, Any]]:
        ...

    async def update(self, table: str, record_id: Any, patch: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        ...

    async def delete(self, table: str, record_id: Any) -> None:
        ...


__all__ = ["RemoteStore"]
