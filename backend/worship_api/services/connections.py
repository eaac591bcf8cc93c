"""Registry of live admin websocket connections"""
from typing import Any, Dict, List, Set

from worship_api.utils.logger import logger


class ConnectionRegistry:
    """Tracks every open notification channel per admin username.

    One admin may hold several connections (tabs, devices); all of them are
    tracked and all receive pushes. The registry is in-process only: admins
    connected to another process never see pushes from this one.
    """

    def __init__(self) -> None:
        self._connections: Dict[str, Set[Any]] = {}

    def register(self, username: str, websocket: Any) -> None:
        self._connections.setdefault(username, set()).add(websocket)
        logger.info(f"Admin {username} connected to notifications", extra={"username": username})

    def unregister(self, username: str, websocket: Any) -> None:
        sockets = self._connections.get(username)
        if not sockets:
            return
        sockets.discard(websocket)
        if not sockets:
            self._connections.pop(username, None)
        logger.info(f"Admin {username} disconnected from notifications", extra={"username": username})

    def connections_for(self, username: str) -> List[Any]:
        return list(self._connections.get(username, ()))

    def is_online(self, username: str) -> bool:
        return bool(self._connections.get(username))

    @property
    def connection_count(self) -> int:
        return sum(len(sockets) for sockets in self._connections.values())
