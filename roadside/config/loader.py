# roadside/config/loader.py
"""
Загрузчик конфигурации проекта.
Единственный источник истины: config/config.json.
Секретные данные переопределяются из переменных окружения.
"""

from __future__ import annotations

import json
import os
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# =============================================================================
# ОПРЕДЕЛЕНИЕ ПУТЕЙ
# =============================================================================

def get_project_root() -> Path:
    """Возвращает корневую директорию проекта."""
    return Path(__file__).parent.parent.parent


def get_config_path() -> Path:
    """Возвращает путь к файлу конфигурации."""
    return get_project_root() / "config" / "config.json"


def load_config_json() -> dict[str, Any]:
    """Загружает config.json и возвращает словарь."""
    config_path = get_config_path()
    if not config_path.exists():
        raise FileNotFoundError(f"Файл конфигурации не найден: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        return json.load(f)


# =============================================================================
# PYDANTIC МОДЕЛИ КОНФИГУРАЦИИ
# =============================================================================

class SystemSettings(BaseModel):
    """Системные настройки."""
    PROJECT_NAME: str = "roadside_dispatch"
    VERSION: str = "0.1.0"
    DEBUG: bool = True
    LOG_LEVEL: str = "DEBUG"
    ENVIRONMENT: str = "development"
    RUN_DEV_MODE: bool = True


class DeploymentSettings(BaseModel):
    """Настройки развертывания API."""
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8080


class LoggingSettings(BaseModel):
    """Настройки логирования."""
    LOG_LEVEL: str = "DEBUG"
    LOG_TO_FILE: bool = False
    LOG_FILE_PATH: str = "logs/roadside.log"
    LOG_FORMAT: str = "colored"
    LOG_MAX_BYTES: int = 10485760
    LOG_BACKUP_COUNT: int = 5


class DomainSettings(BaseModel):
    """Настройки домена: часовой пояс для тарифа и валюта."""
    TIMEZONE: str = "America/Sao_Paulo"
    CURRENCY: str = "BRL"


class DatabaseSettings(BaseModel):
    """Настройки PostgreSQL."""
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_NAME: str = "roadside"
    DB_USER: str = "postgres"
    DB_PASSWORD: str = ""
    DB_MIN_POOL_SIZE: int = 5
    DB_MAX_POOL_SIZE: int = 20
    DB_COMMAND_TIMEOUT: int = 60

    @field_validator("DB_PASSWORD", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Получает пароль из переменных окружения."""
        if not v:
            return os.getenv("DB_PASSWORD", "")
        return v

    @property
    def dsn(self) -> str:
        """Возвращает DSN для подключения к PostgreSQL."""
        return (
            f"postgresql://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )


class RedisSettings(BaseModel):
    """Настройки Redis."""
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str = ""
    REDIS_NAMESPACE: str = "roadside"
    REDIS_MAX_CONNECTIONS: int = 50

    @property
    def url(self) -> str:
        """Возвращает URL для подключения к Redis."""
        auth = f":{self.REDIS_PASSWORD}@" if self.REDIS_PASSWORD else ""
        return f"redis://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"


class RedisTTLSettings(BaseModel):
    """TTL сессий и присутствия."""
    SESSION_TTL: int = 604800
    PRESENCE_TTL: int = 300
    PROFILE_TTL: int = 300


class RabbitMQSettings(BaseModel):
    """Настройки RabbitMQ."""
    RABBITMQ_HOST: str = "localhost"
    RABBITMQ_PORT: int = 5672
    RABBITMQ_USER: str = "guest"
    RABBITMQ_PASSWORD: str = "guest"
    RABBITMQ_VHOST: str = "/"
    RABBITMQ_EXCHANGE: str = "roadside.events"
    RABBITMQ_PREFETCH_COUNT: int = 10

    @property
    def url(self) -> str:
        """Возвращает URL для подключения к RabbitMQ."""
        return (
            f"amqp://{self.RABBITMQ_USER}:{self.RABBITMQ_PASSWORD}"
            f"@{self.RABBITMQ_HOST}:{self.RABBITMQ_PORT}{self.RABBITMQ_VHOST}"
        )


class PaymentSettings(BaseModel):
    """Настройки платёжного шлюза."""
    PAYMENT_PROVIDER: str = "simulated"  # simulated, mercadopago
    MERCADOPAGO_ACCESS_TOKEN: str = ""
    MERCADOPAGO_API_URL: str = "https://api.mercadopago.com"
    PAYMENT_TIMEOUT: float = 15.0
    REFUND_FAILURE_POLICY: str = "proceed"  # proceed, block

    @field_validator("REFUND_FAILURE_POLICY")
    @classmethod
    def check_policy(cls, v: str) -> str:
        """Проверяет допустимое значение политики возврата."""
        if v not in ("proceed", "block"):
            raise ValueError(f"Неизвестная политика возврата: {v}")
        return v


class PricingSettings(BaseModel):
    """Настройки тарифа."""
    DAY_BASE_FEE: Decimal = Decimal("50.00")
    AFTER_HOURS_BASE_FEE: Decimal = Decimal("100.00")
    AFTER_HOURS_START_HOUR: int = 18
    AFTER_HOURS_END_HOUR: int = 6
    PLATFORM_FEE_PERCENT: Decimal = Decimal("20")


class DispatchSettings(BaseModel):
    """Настройки диспетчеризации и расчётов."""
    PENDING_RADIUS_KM: float = 50.0
    EARNINGS_HOLD_HOURS: int = 12


# =============================================================================
# ГЛАВНЫЙ КЛАСС НАСТРОЕК
# =============================================================================

class Settings(BaseSettings):
    """
    Главный класс настроек приложения.
    Агрегирует все секции конфигурации.
    """
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    system: SystemSettings = Field(default_factory=SystemSettings)
    deployment: DeploymentSettings = Field(default_factory=DeploymentSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    domain: DomainSettings = Field(default_factory=DomainSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    redis_ttl: RedisTTLSettings = Field(default_factory=RedisTTLSettings)
    rabbitmq: RabbitMQSettings = Field(default_factory=RabbitMQSettings)
    payments: PaymentSettings = Field(default_factory=PaymentSettings)
    pricing: PricingSettings = Field(default_factory=PricingSettings)
    dispatch: DispatchSettings = Field(default_factory=DispatchSettings)

    @classmethod
    def from_config_json(cls) -> "Settings":
        """
        Создаёт объект Settings из config.json.
        Секреты и адреса переопределяются из переменных окружения.
        """
        config_data = load_config_json()

        # Фильтруем комментарии (ключи, начинающиеся с _comment_)
        data = {k: v for k, v in config_data.items() if not k.startswith("_comment_")}

        return cls(
            system=SystemSettings(
                PROJECT_NAME=data.get("PROJECT_NAME", "roadside_dispatch"),
                VERSION=data.get("VERSION", "0.1.0"),
                DEBUG=data.get("DEBUG", True),
                LOG_LEVEL=data.get("LOG_LEVEL", "DEBUG"),
                ENVIRONMENT=os.getenv("ENVIRONMENT", data.get("ENVIRONMENT", "development")),
                RUN_DEV_MODE=data.get("RUN_DEV_MODE", True),
            ),
            deployment=DeploymentSettings(
                API_HOST=os.getenv("API_HOST", data.get("API_HOST", "0.0.0.0")),
                API_PORT=int(os.getenv("API_PORT", data.get("API_PORT", 8080))),
            ),
            logging=LoggingSettings(
                LOG_LEVEL=data.get("LOG_LEVEL", "DEBUG"),
                LOG_TO_FILE=data.get("LOG_TO_FILE", False),
                LOG_FILE_PATH=data.get("LOG_FILE_PATH", "logs/roadside.log"),
                LOG_FORMAT=data.get("LOG_FORMAT", "colored"),
                LOG_MAX_BYTES=data.get("LOG_MAX_BYTES", 10485760),
                LOG_BACKUP_COUNT=data.get("LOG_BACKUP_COUNT", 5),
            ),
            domain=DomainSettings(
                TIMEZONE=data.get("TIMEZONE", "America/Sao_Paulo"),
                CURRENCY=data.get("CURRENCY", "BRL"),
            ),
            database=DatabaseSettings(
                DB_HOST=os.getenv("DB_HOST", data.get("DB_HOST", "localhost")),
                DB_PORT=int(os.getenv("DB_PORT", data.get("DB_PORT", 5432))),
                DB_NAME=os.getenv("DB_NAME", data.get("DB_NAME", "roadside")),
                DB_USER=os.getenv("DB_USER", data.get("DB_USER", "postgres")),
                DB_PASSWORD=os.getenv("DB_PASSWORD", data.get("DB_PASSWORD", "")),
                DB_MIN_POOL_SIZE=data.get("DB_MIN_POOL_SIZE", 5),
                DB_MAX_POOL_SIZE=data.get("DB_MAX_POOL_SIZE", 20),
                DB_COMMAND_TIMEOUT=data.get("DB_COMMAND_TIMEOUT", 60),
            ),
            redis=RedisSettings(
                REDIS_HOST=os.getenv("REDIS_HOST", data.get("REDIS_HOST", "localhost")),
                REDIS_PORT=int(os.getenv("REDIS_PORT", data.get("REDIS_PORT", 6379))),
                REDIS_DB=data.get("REDIS_DB", 0),
                REDIS_PASSWORD=os.getenv("REDIS_PASSWORD", data.get("REDIS_PASSWORD", "")),
                REDIS_NAMESPACE=data.get("REDIS_NAMESPACE", "roadside"),
                REDIS_MAX_CONNECTIONS=data.get("REDIS_MAX_CONNECTIONS", 50),
            ),
            redis_ttl=RedisTTLSettings(
                SESSION_TTL=data.get("SESSION_TTL", 604800),
                PRESENCE_TTL=data.get("PRESENCE_TTL", 300),
                PROFILE_TTL=data.get("PROFILE_TTL", 300),
            ),
            rabbitmq=RabbitMQSettings(
                RABBITMQ_HOST=os.getenv("RABBITMQ_HOST", data.get("RABBITMQ_HOST", "localhost")),
                RABBITMQ_PORT=int(os.getenv("RABBITMQ_PORT", data.get("RABBITMQ_PORT", 5672))),
                RABBITMQ_USER=os.getenv("RABBITMQ_USER", data.get("RABBITMQ_USER", "guest")),
                RABBITMQ_PASSWORD=os.getenv("RABBITMQ_PASSWORD", data.get("RABBITMQ_PASSWORD", "guest")),
                RABBITMQ_VHOST=data.get("RABBITMQ_VHOST", "/"),
                RABBITMQ_EXCHANGE=data.get("RABBITMQ_EXCHANGE", "roadside.events"),
                RABBITMQ_PREFETCH_COUNT=data.get("RABBITMQ_PREFETCH_COUNT", 10),
            ),
            payments=PaymentSettings(
                PAYMENT_PROVIDER=os.getenv("PAYMENT_PROVIDER", data.get("PAYMENT_PROVIDER", "simulated")),
                MERCADOPAGO_ACCESS_TOKEN=os.getenv(
                    "MERCADOPAGO_ACCESS_TOKEN", data.get("MERCADOPAGO_ACCESS_TOKEN", "")
                ),
                MERCADOPAGO_API_URL=data.get("MERCADOPAGO_API_URL", "https://api.mercadopago.com"),
                PAYMENT_TIMEOUT=data.get("PAYMENT_TIMEOUT", 15.0),
                REFUND_FAILURE_POLICY=data.get("REFUND_FAILURE_POLICY", "proceed"),
            ),
            pricing=PricingSettings(
                DAY_BASE_FEE=Decimal(str(data.get("DAY_BASE_FEE", "50.00"))),
                AFTER_HOURS_BASE_FEE=Decimal(str(data.get("AFTER_HOURS_BASE_FEE", "100.00"))),
                AFTER_HOURS_START_HOUR=data.get("AFTER_HOURS_START_HOUR", 18),
                AFTER_HOURS_END_HOUR=data.get("AFTER_HOURS_END_HOUR", 6),
                PLATFORM_FEE_PERCENT=Decimal(str(data.get("PLATFORM_FEE_PERCENT", "20"))),
            ),
            dispatch=DispatchSettings(
                PENDING_RADIUS_KM=data.get("PENDING_RADIUS_KM", 50.0),
                EARNINGS_HOLD_HOURS=data.get("EARNINGS_HOLD_HOURS", 12),
            ),
        )


@lru_cache()
def get_settings() -> Settings:
    """
    Возвращает синглтон настроек приложения.
    Использует кэширование для производительности.
    """
    from dotenv import load_dotenv

    env_path = get_project_root() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    return Settings.from_config_json()


# Экспорт синглтона для удобного импорта
settings = get_settings()
