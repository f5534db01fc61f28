# portfolio_engine/auth.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Header


@dataclass(frozen=True)
class Actor:
    """
    Opaque caller identity. Authentication happens in front of this service;
    the id is recorded on audit rows and workflow events, nothing more.
    """

    actor_id: Optional[str] = None


def get_actor(x_actor_id: Optional[str] = Header(default=None, alias="X-Actor-Id")) -> Actor:
    v = (x_actor_id or "").strip()
    return Actor(actor_id=v[:64] or None)
