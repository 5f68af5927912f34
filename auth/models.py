"""
auth/models.py -- Domain dataclass for the authenticated principal.

Pattern: Data class (pure data container, zero logic). Mirrors
market/models.py -- dataclasses own domain shape; stores and routes do the work.

Layer rule: no imports from api/, core/, or market/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """A registered marketplace account.

    email is unique and always stored lower-cased (see UserStore).
    hashed_password is the bcrypt verifier; the raw password is never stored
    and the verifier is never serialized into an API response.

    id is None before the record is written to the store.
    """

    username: str
    email: str
    hashed_password: str
    role: str = "user"  # "user" | "admin"
    status: str = "active"  # "active" | "inactive"
    id: str | None = None
    created_at: str = ""
    updated_at: str = ""

    @property
    def is_active(self) -> bool:
        return self.status == "active"
