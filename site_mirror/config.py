# === FILE: site_mirror/config.py ===
"""
Модуль для загрузки и валидации конфигурации SiteMirror.
Используется Pydantic для описания схемы и проверки данных.
"""
from __future__ import annotations

import errno
import json
import os
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    HttpUrl,
    field_validator,
)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class MirrorConfig(BaseModel):
    """Конфигурация для одного запуска зеркалирования."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    base_url: HttpUrl = Field(..., description="Стартовый URL (seed) зеркала.")
    output_dir: Path = Field(Path("dist"), description="Каталог для офлайн-копии.")
    max_depth: int = Field(5, ge=0, description="Максимальная глубина обхода ссылок.")
    max_concurrency: int = Field(10, ge=1, description="Число сессий рендеринга.")
    headless: bool = Field(True, description="Запускать браузер без окна.")
    prefix: Optional[str] = Field(None, description="Обходить только пути с этим префиксом.")
    navigation_timeout: float = Field(30.0, gt=0, description="Таймаут загрузки страницы (секунд).")
    asset_timeout: float = Field(15.0, gt=0, description="Таймаут загрузки ресурса (секунд).")
    settle_delay: float = Field(2.0, ge=0, description="Пауза для клиентского рендеринга (секунд).")
    batch_delay: float = Field(0.5, ge=0, description="Пауза между батчами (секунд).")
    retry_times: int = Field(3, ge=0, description="Число повторных попыток при 5xx/429.")
    init_retries: int = Field(2, ge=0, description="Повторные попытки запуска сессии браузера.")
    user_agent: str = Field(DEFAULT_USER_AGENT, min_length=1, description="Заголовок User-Agent.")

    @field_validator("prefix", mode="before")
    def _check_prefix(cls, v: Any) -> Any:
        if v is None or v == "":
            return None
        if isinstance(v, str) and not v.startswith("/"):
            raise ValueError("prefix must start with '/'")
        return v

    @property
    def seed_url(self) -> str:
        return str(self.base_url)


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Неправильный YAML в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень YAML должен быть mapping, получено {type(data).__name__}")
    return data


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8")) or {}
    except json.JSONDecodeError as exc:
        raise ValueError(f"Неправильный JSON в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень JSON должен быть mapping, получено {type(data).__name__}")
    return data


def read_config_file(path: Union[str, Path]) -> dict[str, Any]:
    """Читает YAML или JSON в словарь без валидации."""
    path_obj = Path(path).expanduser().resolve()
    if not path_obj.is_file():
        raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(path_obj))

    suffix = path_obj.suffix.lower()
    if suffix in (".yaml", ".yml"):
        return _read_yaml(path_obj)
    if suffix == ".json":
        return _read_json(path_obj)
    raise ValueError(f"Неподдерживаемый формат конфига: {suffix}")


def load_config(path: Union[str, Path, None] = None, **overrides: Any) -> MirrorConfig:
    """
    Читает YAML или JSON и возвращает проверенный объект MirrorConfig.

    Значения из *overrides* (например, флаги CLI) имеют приоритет над файлом;
    None означает «не задано». Без файла конфигурация строится только из overrides.
    """
    data: dict[str, Any] = read_config_file(path) if path is not None else {}
    data.update({k: v for k, v in overrides.items() if v is not None})
    return MirrorConfig(**data)
