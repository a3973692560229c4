"""Activation callback implementations."""

from nmos_media_node.infrastructure.callbacks.http_activation_notifier import (
    ActivationNotifierError,
    HttpActivationNotifier,
)
from nmos_media_node.infrastructure.callbacks.logging_activation_callback import (
    LoggingActivationCallback,
)

__all__ = [
    "ActivationNotifierError",
    "HttpActivationNotifier",
    "LoggingActivationCallback",
]
