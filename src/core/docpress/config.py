from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, Mapping

from core.constraint import API_PREFIX, DEFAULT_CONFIG_PATH, DEFAULT_TIMEZONE

if TYPE_CHECKING:
    from core.settings import Settings


@dataclass(slots=True)
class RuntimeConfig:
    temp_dir: Path = Path("temp")
    max_file_size_mb: int = 10
    timezone: str = DEFAULT_TIMEZONE
    environment: str = "development"
    api_prefix: str = API_PREFIX

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


@dataclass(slots=True)
class ImageConfig:
    optimization_enabled: bool = False
    max_width: int = 1920
    max_height: int = 1080
    quality: int = 85


@dataclass(slots=True)
class WordPressConfig:
    timeout_s: float = 30.0
    upload_timeout_s: float = 60.0


@dataclass(slots=True)
class NotificationConfig:
    allowed_domains: tuple[str, ...] = (
        "gmail.com",
        "hotmail.com",
        "yahoo.com",
        "outlook.com",
        "bonaventurecclub.com",
    )
    always_include_roles: tuple[str, ...] = ("administrator", "editor")
    send_delay_s: float = 0.1
    subject_prefix: str = "Comunicado de la Junta"
    settings_ttl_s: float = 300.0


@dataclass(slots=True)
class CommuniqueConfig:
    max_file_size_mb: int = 25
    post_status: str = "publish"


@dataclass(slots=True)
class APIConfig:
    host: str = "0.0.0.0"
    port: int = 6000


@dataclass(slots=True)
class AppConfig:
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)
    images: ImageConfig = field(default_factory=ImageConfig)
    wordpress: WordPressConfig = field(default_factory=WordPressConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    communiques: CommuniqueConfig = field(default_factory=CommuniqueConfig)
    api: APIConfig = field(default_factory=APIConfig)


def _read_toml(path: Path) -> Mapping[str, object]:
    if not path.exists():
        return {}
    with path.open("rb") as handle:
        return tomllib.load(handle)


def _section(raw: Mapping[str, object], name: str) -> Mapping[str, object]:
    value = raw.get(name)
    return value if isinstance(value, Mapping) else {}


def _tuple_of_strings(value: object | None, default: Iterable[str]) -> tuple[str, ...]:
    if not value:
        return tuple(default)
    if isinstance(value, str):
        return (value,)
    if isinstance(value, Iterable):
        return tuple(str(item) for item in value)
    raise TypeError(f"Unsupported list configuration: {value!r}")


def _build_runtime(data: Mapping[str, object]) -> RuntimeConfig:
    defaults = RuntimeConfig()
    return RuntimeConfig(
        temp_dir=Path(str(data.get("temp_dir", defaults.temp_dir))),
        max_file_size_mb=int(data.get("max_file_size_mb", defaults.max_file_size_mb)),
        timezone=str(data.get("timezone", defaults.timezone)),
        environment=str(data.get("environment", defaults.environment)),
        api_prefix=str(data.get("api_prefix", defaults.api_prefix)),
    )


def _build_images(data: Mapping[str, object]) -> ImageConfig:
    defaults = ImageConfig()
    return ImageConfig(
        optimization_enabled=bool(data.get("optimization_enabled", defaults.optimization_enabled)),
        max_width=int(data.get("max_width", defaults.max_width)),
        max_height=int(data.get("max_height", defaults.max_height)),
        quality=int(data.get("quality", defaults.quality)),
    )


def _build_wordpress(data: Mapping[str, object]) -> WordPressConfig:
    defaults = WordPressConfig()
    return WordPressConfig(
        timeout_s=float(data.get("timeout_s", defaults.timeout_s)),
        upload_timeout_s=float(data.get("upload_timeout_s", defaults.upload_timeout_s)),
    )


def _build_notifications(data: Mapping[str, object]) -> NotificationConfig:
    defaults = NotificationConfig()
    return NotificationConfig(
        allowed_domains=_tuple_of_strings(data.get("allowed_domains"), defaults.allowed_domains),
        always_include_roles=_tuple_of_strings(
            data.get("always_include_roles", defaults.always_include_roles), ()
        ),
        send_delay_s=float(data.get("send_delay_s", defaults.send_delay_s)),
        subject_prefix=str(data.get("subject_prefix", defaults.subject_prefix)),
        settings_ttl_s=float(data.get("settings_ttl_s", defaults.settings_ttl_s)),
    )


def _build_communiques(data: Mapping[str, object]) -> CommuniqueConfig:
    defaults = CommuniqueConfig()
    return CommuniqueConfig(
        max_file_size_mb=int(data.get("max_file_size_mb", defaults.max_file_size_mb)),
        post_status=str(data.get("post_status", defaults.post_status)),
    )


def _build_api(data: Mapping[str, object]) -> APIConfig:
    defaults = APIConfig()
    return APIConfig(host=str(data.get("host", defaults.host)), port=int(data.get("port", defaults.port)))


def apply_settings(config: AppConfig, settings: Settings) -> AppConfig:
    """Overlay environment settings on top of the TOML configuration."""

    if settings.environment:
        config.runtime.environment = settings.environment
    if settings.timezone:
        config.runtime.timezone = settings.timezone
    if settings.max_file_size_mb is not None:
        config.runtime.max_file_size_mb = settings.max_file_size_mb
    if settings.enable_image_optimization is not None:
        config.images.optimization_enabled = settings.enable_image_optimization
    return config


def load_config(path: Path | None = None) -> AppConfig:
    raw = _read_toml(path or DEFAULT_CONFIG_PATH)
    return AppConfig(
        runtime=_build_runtime(_section(raw, "runtime")),
        images=_build_images(_section(raw, "images")),
        wordpress=_build_wordpress(_section(raw, "wordpress")),
        notifications=_build_notifications(_section(raw, "notifications")),
        communiques=_build_communiques(_section(raw, "communiques")),
        api=_build_api(_section(raw, "api")),
    )


__all__ = [
    "APIConfig",
    "AppConfig",
    "CommuniqueConfig",
    "ImageConfig",
    "NotificationConfig",
    "RuntimeConfig",
    "WordPressConfig",
    "apply_settings",
    "load_config",
]
