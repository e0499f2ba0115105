"""Configuration loader for the alert engine."""

from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineConfig(BaseModel):
    interval_seconds: float = 30
    error_backoff_seconds: float = 10
    fetch_timeout_seconds: float = 10
    repository_timeout_seconds: float = 15
    tenant_concurrency: int = 1


class EscalationConfig(BaseModel):
    repeat: bool = True  # False = escalate once per alert


class QueryApiConfig(BaseModel):
    url: str = ""
    timeout: float = 10.0


class EmailConfig(BaseModel):
    enabled: bool = True
    smtp_server: str = "localhost"
    smtp_port: int = 587
    from_address: str = "alerts@localhost"
    from_name: str = "Alert Engine"
    username: str = ""
    password: str = ""
    use_tls: bool = False
    start_tls: bool = True


class WebhookConfig(BaseModel):
    timeout_seconds: float = 30
    max_retries: int = 3
    retry_delay_seconds: float = 1.0


class SmsConfig(BaseModel):
    account_sid: str = ""
    auth_token: str = ""
    from_number: str = ""


class InAppConfig(BaseModel):
    channel_prefix: str = "alertengine:inapp"


class NotificationsConfig(BaseModel):
    send_timeout_seconds: float = 30
    email: EmailConfig = EmailConfig()
    webhook: WebhookConfig = WebhookConfig()
    sms: SmsConfig = SmsConfig()
    inapp: InAppConfig = InAppConfig()


class AppConfig(BaseModel):
    engine: EngineConfig = EngineConfig()
    escalation: EscalationConfig = EscalationConfig()
    query_api: QueryApiConfig = QueryApiConfig()
    notifications: NotificationsConfig = NotificationsConfig()


class Settings(BaseSettings):
    """Environment-based settings."""

    model_config = SettingsConfigDict(
        env_prefix="ALERTENGINE_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    redis_url: str = "redis://localhost:6379"
    dev_mode: bool = True
    store: str = "memory"  # memory | redis
    log_level: str = "INFO"
    config_path: str = "../config/config.yaml"
    rules_path: str = "../config/rules.yaml"
    devices_path: str = "../config/devices.yaml"


def load_yaml_config(path: str) -> dict[str, Any]:
    """Load a YAML configuration file."""
    config_path = Path(path)
    if not config_path.is_absolute():
        config_path = Path(__file__).parent.parent / path

    if not config_path.exists():
        return {}

    with open(config_path) as f:
        return yaml.safe_load(f) or {}


def get_config(settings: Optional[Settings] = None) -> AppConfig:
    """Load and return the application configuration."""
    settings = settings or Settings()
    yaml_config = load_yaml_config(settings.config_path)
    return AppConfig(**yaml_config)


# Singleton instances
settings = Settings()
