"""Application settings."""

import json
import logging
from typing import Annotated

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "NMOS Media Node"
    api_prefix: str = ""
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"
    host_name: str | None = None
    host_addresses: Annotated[list[str], NoDecode] = Field(default_factory=list)
    seed: str | None = None
    label: str = ""
    description: str = ""
    asset_manufacturer: str | None = None
    asset_product: str | None = None
    asset_instance_id: str | None = None
    asset_functions: Annotated[list[str], NoDecode] = Field(default_factory=list)
    activation_webhook_url: str | None = None
    activation_webhook_timeout_seconds: float = 5.0
    node_events_mqtt_enabled: bool = False
    node_events_mqtt_host: str | None = None
    node_events_mqtt_port: int = 1883
    node_events_mqtt_username: str | None = None
    node_events_mqtt_password: str | None = None
    node_events_mqtt_topic_prefix: str = "nmos/node"
    node_events_mqtt_qos: int = 0

    @field_validator("host_addresses", "asset_functions", mode="before")
    @classmethod
    def parse_csv_list(cls, value: object) -> object:
        """Support comma-separated env var values in addition to JSON arrays."""

        if not isinstance(value, str):
            return value
        if value.lstrip().startswith("["):
            return json.loads(value)
        return [item.strip() for item in value.split(",") if item.strip()]

    @property
    def has_asset_tags(self) -> bool:
        return self.asset_manufacturer is not None

    @model_validator(mode="after")
    def validate_node_settings(self) -> "Settings":
        """Ensure cross-field settings are valid."""

        asset_fields = (
            self.asset_manufacturer,
            self.asset_product,
            self.asset_instance_id,
            self.asset_functions or None,
        )
        if any(value is not None for value in asset_fields) and None in asset_fields:
            raise ValueError(
                "NMOS_NODE_ASSET_MANUFACTURER, NMOS_NODE_ASSET_PRODUCT, "
                "NMOS_NODE_ASSET_INSTANCE_ID and NMOS_NODE_ASSET_FUNCTIONS "
                "must be set together."
            )
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ValueError(f"NMOS_NODE_LOG_LEVEL '{self.log_level}' is not a logging level.")
        if not 1 <= self.port <= 65535:
            raise ValueError("NMOS_NODE_PORT must be between 1 and 65535.")
        if self.activation_webhook_timeout_seconds <= 0:
            raise ValueError("NMOS_NODE_ACTIVATION_WEBHOOK_TIMEOUT_SECONDS must be > 0.")
        if self.node_events_mqtt_enabled and not self.node_events_mqtt_host:
            raise ValueError(
                "NMOS_NODE_NODE_EVENTS_MQTT_HOST is required when "
                "NMOS_NODE_NODE_EVENTS_MQTT_ENABLED=true."
            )
        if self.node_events_mqtt_port < 1:
            raise ValueError("NMOS_NODE_NODE_EVENTS_MQTT_PORT must be >= 1.")
        if self.node_events_mqtt_qos not in {0, 1, 2}:
            raise ValueError("NMOS_NODE_NODE_EVENTS_MQTT_QOS must be one of 0, 1, 2.")
        return self

    model_config = SettingsConfigDict(env_prefix="NMOS_NODE_", extra="ignore")


__all__ = ["Settings"]
