"""MQTT node event publisher."""

from __future__ import annotations

import json
import logging
import time
from datetime import UTC, datetime
from typing import Any

from nmos_media_node.domain.events import NodeChangeEvent
from nmos_media_node.domain.ports import NodeEventPublisher

logger = logging.getLogger(__name__)


class MqttNodeEventPublisher(NodeEventPublisher):
    """Publish node change events to `<prefix>/<node id>/<operation>` topics."""

    def __init__(
        self,
        node_id: str,
        broker_host: str,
        broker_port: int = 1883,
        topic_prefix: str = "nmos/node",
        qos: int = 0,
        username: str | None = None,
        password: str | None = None,
        node_href: str | None = None,
        client: Any | None = None,
    ) -> None:
        if not broker_host.strip():
            raise ValueError("broker_host cannot be empty.")
        if qos not in {0, 1, 2}:
            raise ValueError("qos must be one of 0, 1, 2.")

        self._node_id = node_id
        self._node_href = node_href
        self._topic_prefix = topic_prefix.strip().strip("/")
        self._qos = qos

        if client is None:
            client = self._create_client(node_id)
        if username is not None:
            client.username_pw_set(username=username, password=password)
        self._connect_with_retry(
            client=client,
            broker_host=broker_host,
            broker_port=broker_port,
        )
        client.loop_start()
        self._client = client
        logger.info(
            "Publishing node events to MQTT broker %s:%s under '%s'.",
            broker_host,
            broker_port,
            self._topic_prefix,
        )

    def publish_change(self, event: NodeChangeEvent) -> None:
        payload: dict[str, object] = {
            "eventType": event.operation.value,
            "timestamp": self._timestamp(),
            "nodeId": self._node_id,
            "resourceType": event.resource_type.value,
            "resourceId": event.resource_id,
            "internalId": event.internal_id,
            "version": event.version,
        }
        if self._node_href is not None:
            payload["nodeUrl"] = self._node_href

        topic = f"{self._topic_prefix}/{self._node_id}/{event.operation.value}"
        message = json.dumps(payload, separators=(",", ":"))
        self._client.publish(topic, message, self._qos)

    def close(self) -> None:
        self._client.loop_stop()
        self._client.disconnect()

    def _create_client(self, node_id: str) -> Any:
        try:
            import paho.mqtt.client as mqtt  # type: ignore[import-untyped]
        except ModuleNotFoundError as exc:
            raise RuntimeError(
                "paho-mqtt is required for MQTT node events. "
                "Install project dependencies first."
            ) from exc

        try:
            return mqtt.Client(
                callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
                client_id=f"nmos-node-{node_id}",
            )
        except (AttributeError, TypeError):
            return mqtt.Client(client_id=f"nmos-node-{node_id}")

    def _timestamp(self) -> str:
        return datetime.now(tz=UTC).isoformat()

    def _connect_with_retry(
        self,
        client: Any,
        broker_host: str,
        broker_port: int,
        max_attempts: int = 20,
    ) -> None:
        """Connect to MQTT broker with bounded retry/backoff."""

        delay_seconds = 0.5
        last_error: Exception | None = None
        for attempt in range(1, max_attempts + 1):
            try:
                client.connect(host=broker_host, port=broker_port, keepalive=60)
                return
            except Exception as exc:  # noqa: BLE001
                last_error = exc
                if attempt == max_attempts:
                    break
                logger.debug(
                    "MQTT connect attempt %s/%s failed: %s", attempt, max_attempts, exc
                )
                time.sleep(delay_seconds)
                delay_seconds = min(3.0, delay_seconds * 1.5)

        raise RuntimeError(
            f"Failed to connect to MQTT broker {broker_host}:{broker_port} "
            f"after {max_attempts} attempts."
        ) from last_error


__all__ = ["MqttNodeEventPublisher"]
