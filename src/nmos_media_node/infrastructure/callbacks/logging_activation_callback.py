"""Activation callback that only logs."""

from __future__ import annotations

import logging

from nmos_media_node.domain.ports import ActivationCallback

logger = logging.getLogger(__name__)


class LoggingActivationCallback(ActivationCallback):
    """Default callback for nodes without an activation webhook."""

    def __call__(self, internal_id: str, sdp: str | None) -> None:
        if sdp is None:
            logger.info("'%s' deactivated.", internal_id)
            return
        logger.info("'%s' activated:\n%s", internal_id, sdp)


__all__ = ["LoggingActivationCallback"]
