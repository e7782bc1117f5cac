"""Configuration management via .env file."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


def _xdg_data_home() -> Path:
    return Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share"))


def _xdg_config_home() -> Path:
    return Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int_list(name: str, default: tuple[int, ...]) -> tuple[int, ...]:
    value = os.getenv(name)
    if not value:
        return default
    return tuple(int(part) for part in value.split(",") if part.strip())


@dataclass
class AppConfig:
    # Paths
    data_dir: Path = field(default_factory=lambda: _xdg_data_home() / "readfaster")
    config_dir: Path = field(
        default_factory=lambda: _xdg_config_home() / "readfaster"
    )
    db_path: Path = field(init=False)

    # Reading defaults
    default_font_size: int = 22  # px, typical range 18-26
    default_bionic_mode: bool = False

    # Target screen, in px
    viewport_width: int = 390
    viewport_height: int = 844

    # Section processing
    batch_size: int = 5  # sections processed between yields
    preprocess_font_sizes: tuple[int, ...] = (18, 22, 26)

    log_path: Path = field(init=False)

    def __post_init__(self) -> None:
        self.db_path = self.data_dir / "readfaster.db"
        self.log_path = self.data_dir / "readfaster.log"
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.config_dir.mkdir(parents=True, exist_ok=True)


def load_config(env_path: Optional[Path] = None) -> AppConfig:
    """Load config from .env file. Searches CWD then config dir."""
    search_paths = [
        env_path,
        Path.cwd() / ".env",
        _xdg_config_home() / "readfaster" / ".env",
        Path.home() / ".env",
    ]
    for p in search_paths:
        if p and p.exists():
            load_dotenv(p)
            break

    defaults = AppConfig()
    return AppConfig(
        default_font_size=int(
            os.getenv("READFASTER_FONT_SIZE", defaults.default_font_size)
        ),
        default_bionic_mode=_env_bool(
            "READFASTER_BIONIC_MODE", defaults.default_bionic_mode
        ),
        viewport_width=int(
            os.getenv("READFASTER_VIEWPORT_WIDTH", defaults.viewport_width)
        ),
        viewport_height=int(
            os.getenv("READFASTER_VIEWPORT_HEIGHT", defaults.viewport_height)
        ),
        batch_size=int(os.getenv("READFASTER_BATCH_SIZE", defaults.batch_size)),
        preprocess_font_sizes=_env_int_list(
            "READFASTER_PREPROCESS_FONT_SIZES", defaults.preprocess_font_sizes
        ),
    )
