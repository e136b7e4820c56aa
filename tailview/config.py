from __future__ import annotations

import configparser
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .query import LINES_DEFAULT, LINES_MAX, LINES_MIN

APP_NAME = "tailview"
BASE_URL_ENV = "TAILVIEW_BASE_URL"
DEFAULT_BASE_URL = "http://localhost:3000/api"
CHART_SOURCES = ("server", "derived")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

DEFAULT_SETTINGS_TEMPLATE = (
    "[tailview]\n"
    f"base_url = {DEFAULT_BASE_URL}\n"
    "request_timeout = 10\n"
    "refresh_interval = 5\n"
    "default_lines = 10000\n"
    "highlight_seconds = 1.5\n"
    "min_loading_ms = 300\n"
    "# terminal rows below the viewport that still count as following the tail\n"
    "near_bottom_threshold = 2\n"
    "chart_source = server\n"
    "chart_sample_lines = 10000\n"
    "log_level = INFO\n"
    "auto_cleanup = false\n"
    "delete_debug = false\n"
)


@dataclass
class TailConfig:
    base_url: str = DEFAULT_BASE_URL
    request_timeout: float = 10.0
    refresh_interval: float = 5.0
    default_lines: int = LINES_DEFAULT
    highlight_seconds: float = 1.5
    min_loading_ms: int = 300
    near_bottom_threshold: int = 2
    chart_source: str = "server"
    chart_sample_lines: int = LINES_DEFAULT
    log_level: str = "INFO"
    auto_cleanup: bool = False
    delete_debug: bool = False

    @property
    def min_loading(self) -> float:
        return self.min_loading_ms / 1000


def get_xdg_config_home() -> Path:
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg).expanduser()
    return Path.home() / ".config"


def get_xdg_cache_home() -> Path:
    xdg = os.environ.get("XDG_CACHE_HOME")
    if xdg:
        return Path(xdg).expanduser()
    return Path.home() / ".cache"


def get_config_file() -> Optional[Path]:
    """Ensure the per-user settings file exists; write template defaults if needed."""

    target = get_xdg_config_home() / APP_NAME / "settings.conf"
    if target.exists():
        return target
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(DEFAULT_SETTINGS_TEMPLATE, encoding="utf-8")
    except OSError:
        return None
    return target


def _clamp(value, *, default, minimum, maximum):
    if not isinstance(value, (int, float)) or value != value:
        return default
    return max(minimum, min(value, maximum))


def load_config(path: Optional[Path] = None) -> TailConfig:
    config = configparser.ConfigParser()
    path = path or get_config_file()
    if path:
        try:
            config.read(path, encoding="utf-8")
        except (configparser.Error, OSError):
            config = configparser.ConfigParser()
    section = config[APP_NAME] if APP_NAME in config else {}
    defaults = TailConfig()

    def _get_int(option: str, default: int) -> int:
        if hasattr(section, "getint"):
            try:
                return section.getint(option, default)
            except ValueError:
                return default
        return default

    def _get_float(option: str, default: float) -> float:
        if hasattr(section, "getfloat"):
            try:
                return section.getfloat(option, default)
            except ValueError:
                return default
        return default

    def _get_bool(option: str, default: bool) -> bool:
        if hasattr(section, "getboolean"):
            try:
                return section.getboolean(option, default)
            except ValueError:
                return default
        return default

    def _get_str(option: str, default: str) -> str:
        value = section.get(option, default) if hasattr(section, "get") else default
        value = (value or "").strip()
        return value or default

    base_url = os.environ.get(BASE_URL_ENV, "").strip() or _get_str("base_url", defaults.base_url)

    chart_source = _get_str("chart_source", defaults.chart_source).lower()
    if chart_source not in CHART_SOURCES:
        chart_source = defaults.chart_source

    log_level = _get_str("log_level", defaults.log_level).upper()
    if log_level not in LOG_LEVELS:
        log_level = defaults.log_level

    return TailConfig(
        base_url=base_url.rstrip("/"),
        request_timeout=_clamp(
            _get_float("request_timeout", defaults.request_timeout),
            default=defaults.request_timeout,
            minimum=1.0,
            maximum=120.0,
        ),
        refresh_interval=_clamp(
            _get_float("refresh_interval", defaults.refresh_interval),
            default=defaults.refresh_interval,
            minimum=1.0,
            maximum=3600.0,
        ),
        default_lines=_clamp(
            _get_int("default_lines", defaults.default_lines),
            default=defaults.default_lines,
            minimum=LINES_MIN,
            maximum=LINES_MAX,
        ),
        highlight_seconds=_clamp(
            _get_float("highlight_seconds", defaults.highlight_seconds),
            default=defaults.highlight_seconds,
            minimum=0.1,
            maximum=60.0,
        ),
        min_loading_ms=_clamp(
            _get_int("min_loading_ms", defaults.min_loading_ms),
            default=defaults.min_loading_ms,
            minimum=0,
            maximum=5000,
        ),
        near_bottom_threshold=_clamp(
            _get_int("near_bottom_threshold", defaults.near_bottom_threshold),
            default=defaults.near_bottom_threshold,
            minimum=0,
            maximum=1000,
        ),
        chart_source=chart_source,
        chart_sample_lines=_clamp(
            _get_int("chart_sample_lines", defaults.chart_sample_lines),
            default=defaults.chart_sample_lines,
            minimum=LINES_MIN,
            maximum=LINES_MAX,
        ),
        log_level=log_level,
        auto_cleanup=_get_bool("auto_cleanup", defaults.auto_cleanup),
        delete_debug=_get_bool("delete_debug", defaults.delete_debug),
    )
