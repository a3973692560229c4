"""Repeatable resource identifiers."""

from __future__ import annotations

import logging
from uuid import UUID, uuid4, uuid5

SEED_NAMESPACE_ID = UUID("18daddcf-a234-4f59-808a-dbf6a42e17bb")

logger = logging.getLogger(__name__)


def make_seed_id(seed: str | None) -> UUID:
    """Return the process-wide seed id for a configured seed string.

    Without a seed a random id is used, so resource ids will not survive a
    restart.
    """

    if seed is None or not seed.strip():
        logger.warning("No seed configured; resource ids will change on restart.")
        return uuid4()
    return uuid5(SEED_NAMESPACE_ID, seed)


def make_id(seed_id: UUID, kind: str, internal_id: str = "") -> str:
    """Derive the resource id for a kind and caller-supplied internal id."""

    return str(uuid5(seed_id, f"/x-nmos/node/{kind}/{internal_id}"))


__all__ = ["SEED_NAMESPACE_ID", "make_id", "make_seed_id"]
