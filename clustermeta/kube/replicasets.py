"""Record of which controller owns each replica set."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Optional

REPLICA_SET_KIND = "ReplicaSet"


@dataclass(frozen=True)
class Controller:
    """The workload controlling a replica set."""

    name: str = ""
    kind: str = ""
    api_version: str = ""


class ReplicaSetMap:
    """Thread-safe map from "<namespace>/<name>" to the owning controller."""

    def __init__(self) -> None:
        self.info: dict[str, Controller] = {}
        self._lock = threading.RLock()

    def put(self, key: str, owner: Controller) -> None:
        with self._lock:
            self.info[key] = owner

    def get_owner_reference(self, key: str) -> Optional[Controller]:
        with self._lock:
            return self.info.get(key)

    def delete_owner_reference(self, key: str) -> None:
        with self._lock:
            self.info.pop(key, None)