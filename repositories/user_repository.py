# repositories/user_repository.py
from __future__ import annotations
from typing import Optional

from pydantic import ValidationError as ModelValidationError

from models.trade import utc_now_iso
from models.user import UserProfile
from repositories.json_store import JsonStore
from utils.errors import PersistenceError
from utils.logger import log_function


class UserRepository:
    """Perfiles de usuario (una fila por chat de Telegram). Nunca se borran."""

    def __init__(self, db_path: str) -> None:
        self.store = JsonStore(db_path)

    def _parse(self, row: dict) -> UserProfile:
        try:
            return UserProfile(**row)
        except ModelValidationError as e:
            raise PersistenceError(f"Usuario corrupto en la base de datos: {e}") from e

    def get(self, user_id: str) -> Optional[UserProfile]:
        for row in self.store.load()["users"]:
            if row.get("user_id") == user_id:
                return self._parse(row)
        return None

    @log_function
    def upsert(self, user: UserProfile) -> UserProfile:
        """Inserta o reemplaza el perfil, refrescando ``last_active``."""
        user.last_active = utc_now_iso()
        row = user.model_dump(mode="json")

        def _apply(data: dict) -> None:
            users = data["users"]
            for idx, existing in enumerate(users):
                if existing.get("user_id") == user.user_id:
                    users[idx] = row
                    return
            users.append(row)

        self.store.update(_apply)
        return user

    def touch(self, user_id: str) -> bool:
        """Refresca ``last_active``. Devuelve False si el usuario no existe."""
        def _apply(data: dict) -> bool:
            for row in data["users"]:
                if row.get("user_id") == user_id:
                    row["last_active"] = utc_now_iso()
                    return True
            return False

        return self.store.update(_apply, only_if_changed=True)

    def count(self) -> int:
        return len(self.store.load()["users"])
