# repositories/json_store.py
from __future__ import annotations
import json
import os
import threading
from typing import Any, Callable, TypeVar

from utils.errors import PersistenceError
from utils.logger import logger_manager

logger = logger_manager.setup_logger(__name__)

T = TypeVar("T")

_EMPTY = {"users": [], "trades": []}

# Un lock por fichero: los repositorios comparten el mismo JSON
_LOCKS: dict[str, threading.RLock] = {}
_LOCKS_GUARD = threading.Lock()


def _lock_for(path: str) -> threading.RLock:
    with _LOCKS_GUARD:
        return _LOCKS.setdefault(os.path.abspath(path), threading.RLock())


class JsonStore:
    """
    Fichero JSON plano con dos colecciones: ``users`` y ``trades``.
    - Cada lectura-modificación-escritura va bajo un lock del proceso.
    - La escritura es atómica (fichero temporal + os.replace).
    """
    def __init__(self, path: str) -> None:
        self.path = path
        self._lock = _lock_for(path)

    def _read(self) -> dict[str, Any]:
        if not os.path.exists(self.path):
            return {k: list(v) for k, v in _EMPTY.items()}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"No se pudo leer {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise PersistenceError(f"Formato inválido en {self.path}")
        for key in _EMPTY:
            data.setdefault(key, [])
        return data

    def _write(self, data: dict[str, Any]) -> None:
        folder = os.path.dirname(os.path.abspath(self.path))
        tmp_path = f"{self.path}.tmp"
        try:
            os.makedirs(folder, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise PersistenceError(f"No se pudo escribir {self.path}: {e}") from e

    def load(self) -> dict[str, Any]:
        with self._lock:
            return self._read()

    def update(self, fn: Callable[[dict[str, Any]], T], *, only_if_changed: bool = False) -> T:
        """
        Aplica ``fn`` sobre los datos y persiste el resultado.
        Con ``only_if_changed`` no se escribe nada si ``fn`` devuelve un valor falso.
        """
        with self._lock:
            data = self._read()
            result = fn(data)
            if only_if_changed and not result:
                return result
            self._write(data)
            return result
