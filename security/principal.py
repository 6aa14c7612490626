from __future__ import annotations

from typing import Literal

from pydantic import BaseModel


class AuthPrincipal(BaseModel):
    user_id: str
    role: Literal['customer', 'vendor', 'admin']
    jwt_token: str
    issued_at: int | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def can_act_for(self, user_id: str) -> bool:
        return self.is_admin or self.user_id == user_id
