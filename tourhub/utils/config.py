"""
Configuration management with schema validation.

Settings are built once at process start (``load_settings``) and handed to
each component explicitly; nothing in the package reads the environment
after that.

Sources, lowest priority first:
    1. model defaults
    2. config/settings.yaml (``${VAR}`` / ``${VAR:default}`` substitution)
    3. environment variables (a .env file is loaded first)
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

from .exceptions import ConfigError

SETTINGS_FILE = Path("config") / "settings.yaml"

DEV_JWT_SECRET = "dev-secret-change-me"


class AppSettings(BaseModel):
    name: str = "Tourhub"
    version: str = "1.0.0"
    environment: str = "development"
    data_dir: Optional[str] = "data"
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


class AuthSettings(BaseModel):
    jwt_secret: str = DEV_JWT_SECRET
    jwt_expires_in_days: int = 90
    jwt_cookie_expires_in_days: int = 90
    bcrypt_rounds: int = 12
    reset_token_ttl_minutes: int = 10


class EmailSettings(BaseModel):
    backend: str = "console"  # console, smtp or sendgrid
    from_address: str = "hello@tourhub.io"
    from_name: str = "Tourhub"
    smtp_host: str = "localhost"
    smtp_port: int = 587
    smtp_username: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_use_tls: bool = True
    sendgrid_api_key: Optional[str] = None
    timeout_seconds: int = 30


class PaymentSettings(BaseModel):
    stripe_secret_key: Optional[str] = None
    api_base_url: str = "https://api.stripe.com/v1"
    currency: str = "usd"
    image_base_url: str = "https://www.tourhub.io/img/tours"
    timeout_seconds: int = 30
    max_retries: int = 3


class ImageSettings(BaseModel):
    cloud_name: Optional[str] = None
    api_key: Optional[str] = None
    api_secret: Optional[str] = None
    folder: str = "tourhub"

    @property
    def is_configured(self) -> bool:
        return bool(self.cloud_name and self.api_key and self.api_secret)


class LoggingSettings(BaseModel):
    level: str = "INFO"
    format: str = "json"
    file_path: Optional[str] = "logs/tourhub.log"
    max_bytes: int = 10485760
    backup_count: int = 5


class Settings(BaseModel):
    app: AppSettings = Field(default_factory=AppSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    email: EmailSettings = Field(default_factory=EmailSettings)
    payments: PaymentSettings = Field(default_factory=PaymentSettings)
    images: ImageSettings = Field(default_factory=ImageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


# (section, field) <- environment variable
ENV_OVERRIDES = {
    ("app", "environment"): "ENVIRONMENT",
    ("app", "data_dir"): "DATA_DIR",
    ("app", "cors_origins"): "CORS_ORIGINS",
    ("auth", "jwt_secret"): "JWT_SECRET",
    ("auth", "jwt_expires_in_days"): "JWT_EXPIRES_IN_DAYS",
    ("auth", "jwt_cookie_expires_in_days"): "JWT_COOKIE_EXPIRES_IN",
    ("auth", "bcrypt_rounds"): "BCRYPT_ROUNDS",
    ("email", "backend"): "EMAIL_BACKEND",
    ("email", "from_address"): "EMAIL_FROM",
    ("email", "smtp_host"): "EMAIL_HOST",
    ("email", "smtp_port"): "EMAIL_PORT",
    ("email", "smtp_username"): "EMAIL_USERNAME",
    ("email", "smtp_password"): "EMAIL_PASSWORD",
    ("email", "sendgrid_api_key"): "SENDGRID_API_KEY",
    ("payments", "stripe_secret_key"): "STRIPE_SECRET_KEY",
    ("images", "cloud_name"): "CLOUDINARY_CLOUD_NAME",
    ("images", "api_key"): "CLOUDINARY_API_KEY",
    ("images", "api_secret"): "CLOUDINARY_API_SECRET",
    ("logging", "level"): "LOG_LEVEL",
    ("logging", "file_path"): "LOG_FILE",
}


def _substitute_env_vars(value: Any) -> Any:
    """Recursively substitute ${VAR} and ${VAR:default} in YAML values"""
    if isinstance(value, str):
        if value.startswith("${") and value.endswith("}"):
            var_expr = value[2:-1]
            if ":" in var_expr:
                var_name, default = var_expr.split(":", 1)
                return os.getenv(var_name.strip(), default.strip())
            return os.getenv(var_expr, value)
    elif isinstance(value, dict):
        return {k: _substitute_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_substitute_env_vars(item) for item in value]
    return value


def _apply_env_overrides(raw: Dict[str, Any]) -> Dict[str, Any]:
    for (section, field), env_name in ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value is None or value == "":
            continue
        if field == "cors_origins":
            value = [v.strip() for v in value.split(",") if v.strip()]
        raw.setdefault(section, {})[field] = value
    return raw


def load_settings(path: Optional[Path] = None, load_env_file: bool = True) -> Settings:
    """Load and validate settings from YAML and the environment"""
    if load_env_file:
        load_dotenv()

    settings_path = Path(path) if path else SETTINGS_FILE
    raw: Dict[str, Any] = {}
    if settings_path.exists():
        try:
            with open(settings_path, "r", encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse {settings_path}: {str(e)}")
    elif path:
        raise ConfigError(f"Settings file not found: {settings_path}")

    raw = _apply_env_overrides(_substitute_env_vars(raw))
    try:
        settings = Settings(**raw)
    except ValueError as e:
        raise ConfigError(f"Invalid settings: {str(e)}")

    if settings.app.is_production and settings.auth.jwt_secret == DEV_JWT_SECRET:
        raise ConfigError("JWT_SECRET must be set in production")
    return settings
