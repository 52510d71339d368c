"""Configuration surface for the autocrop engine."""

from __future__ import annotations

import enum
import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping

from autocrop.errors import ConfigError
from autocrop.io_utils import load_yaml

LOGGER = logging.getLogger("autocrop.config")


class CropMode(enum.Enum):
    DISABLED = "disabled"
    ON_DEMAND = "on_demand"
    SINGLE = "single"
    AUTO_MANUAL = "auto_manual"
    AUTO_START = "auto_start"

    @property
    def is_periodic(self) -> bool:
        return self in (CropMode.AUTO_MANUAL, CropMode.AUTO_START)


# Option names used by the original player script -> AutocropConfig field names
LEGACY_KEYS: Dict[str, str] = {
    "enable": "enabled",
    "periodic_timer": "period_seconds",
    "start_delay": "start_delay_seconds",
    "width_pxl_margin": "width_pixel_margin",
    "height_pxl_margin": "height_pixel_margin",
    "height_pct_margin": "height_percent_margin",
    "detect_limit": "detect_sensitivity_limit",
    "detect_round": "detect_rounding_unit",
    "detect_seconds": "detect_window_seconds",
}


@dataclass
class AutocropConfig:
    enabled: bool = True
    mode: CropMode = CropMode.AUTO_START
    period_seconds: float = 0.0
    start_delay_seconds: float = 0.0
    # crop behavior
    min_aspect_ratio: float = 21.6 / 9
    max_aspect_ratio: float = 21.6 / 9
    width_pixel_margin: int = 4
    height_pixel_margin: int = 4
    height_percent_margin: float = 0.038
    fixed_width: bool = True
    # detector
    detect_sensitivity_limit: int = 24
    detect_rounding_unit: int = 2
    detect_window_seconds: float = 0.45
    sensitivity_step: int = 1
    # one-shot requests run this many cycles back to back
    oneshot_cycles: int = 2
    # notifications
    label: str = "autocrop"
    notify_seconds: float = 3.0

    def __post_init__(self) -> None:
        if not isinstance(self.mode, CropMode):
            try:
                self.mode = CropMode(str(self.mode).lower())
            except ValueError as exc:
                choices = ", ".join(m.value for m in CropMode)
                raise ConfigError(f"Unknown mode {self.mode!r} (expected one of: {choices})") from exc

    @property
    def active(self) -> bool:
        return self.enabled and self.mode is not CropMode.DISABLED

    def validate(self) -> "AutocropConfig":
        if not 0 <= self.detect_sensitivity_limit <= 255:
            raise ConfigError(
                f"detect_sensitivity_limit must be in [0, 255], got {self.detect_sensitivity_limit}"
            )
        unit = self.detect_rounding_unit
        if unit <= 0 or unit & (unit - 1) != 0:
            raise ConfigError(f"detect_rounding_unit must be a power of two, got {unit}")
        if not 0.0 <= self.height_percent_margin < 1.0:
            raise ConfigError(
                f"height_percent_margin must be in [0, 1), got {self.height_percent_margin}"
            )
        for name in ("period_seconds", "start_delay_seconds", "detect_window_seconds", "notify_seconds"):
            if getattr(self, name) < 0:
                raise ConfigError(f"{name} must be >= 0, got {getattr(self, name)}")
        for name in ("width_pixel_margin", "height_pixel_margin", "sensitivity_step"):
            if getattr(self, name) < 0:
                raise ConfigError(f"{name} must be >= 0, got {getattr(self, name)}")
        if self.min_aspect_ratio <= 0 or self.max_aspect_ratio <= 0:
            raise ConfigError("Aspect ratios must be positive")
        if self.oneshot_cycles < 1:
            raise ConfigError(f"oneshot_cycles must be >= 1, got {self.oneshot_cycles}")
        return self

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "AutocropConfig":
        """Build a config from option names, accepting the legacy script names too."""
        known = {f.name for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        for raw_key, value in data.items():
            key = str(raw_key).replace("-", "_")
            if key == "auto":
                # legacy bool: periodic or a single crop at start
                kwargs.setdefault("mode", CropMode.AUTO_START if value else CropMode.SINGLE)
                continue
            key = LEGACY_KEYS.get(key, key)
            if key not in known:
                LOGGER.warning("Ignoring unknown autocrop option %s", raw_key)
                continue
            kwargs[key] = value
        return cls(**kwargs).validate()

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["mode"] = self.mode.value
        return payload


def load_config(path: Path) -> AutocropConfig:
    """Load an :class:`AutocropConfig` from YAML (optionally nested under ``autocrop:``)."""
    data = load_yaml(path)
    section = data.get("autocrop", data)
    if not isinstance(section, dict):
        raise ConfigError(f"'autocrop' section of {path} must be a mapping")
    config = AutocropConfig.from_mapping(section)
    LOGGER.info("Loaded autocrop config %s mode=%s", path, config.mode.value)
    return config
