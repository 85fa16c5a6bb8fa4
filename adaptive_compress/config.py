# -*- coding: utf-8 -*-
"""
Session-level compression settings
"""

import os
from typing import Any, Dict, Mapping, Optional

from adaptive_compress.compression.config import (
    DEFAULT_PRESET,
    IMAGE_PRESETS,
    CompressionConfig,
    PresetOrConfig,
    merge_overrides,
    resolve_compression_config,
)
from adaptive_compress.log import logger

_UNSET = object()


class CompressionSettings:
    """Settings wrapper giving typed access to a plain settings dict"""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Args:
            config: settings dict, e.g. loaded from the app's preferences
        """
        self.config = config if config is not None else {}

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "CompressionSettings":
        """
        Build settings from ADAPTIVE_COMPRESS_ENABLED and ADAPTIVE_COMPRESS_PRESET
        """
        environ = os.environ if environ is None else environ
        config: Dict[str, Any] = {}

        enabled = environ.get("ADAPTIVE_COMPRESS_ENABLED")
        if enabled is not None:
            config["enabled"] = enabled.strip().lower() not in ("0", "false", "no", "off")

        preset = environ.get("ADAPTIVE_COMPRESS_PRESET")
        if preset:
            config["default_preset"] = preset.strip()

        return cls(config)

    def get(self, key: str, default: Any = None) -> Any:
        return self.config.get(key, default)

    @property
    def enabled(self) -> bool:
        """Whether compression is enabled at all"""
        return bool(self.get("enabled", True))

    @property
    def default_preset(self) -> str:
        """Preset used when a caller gives no options"""
        preset = self.get("default_preset", DEFAULT_PRESET)
        if preset not in IMAGE_PRESETS:
            logger.warning(f"Unknown default preset {preset!r}, using {DEFAULT_PRESET}")
            return DEFAULT_PRESET
        return preset

    @property
    def user_overrides(self) -> Optional[Dict[str, Any]]:
        """User preference overrides laid over every resolved config"""
        return self.get("user_overrides")

    def set_enabled(self, enabled: bool) -> None:
        self.config["enabled"] = enabled

    def set_default_preset(self, preset: str) -> None:
        self.config["default_preset"] = preset

    def set_user_overrides(self, overrides: Optional[Dict[str, Any]]) -> None:
        self.config["user_overrides"] = dict(overrides) if overrides else None

    def reset(self) -> None:
        self.config.clear()

    def resolve(self, options: PresetOrConfig = _UNSET) -> Optional[CompressionConfig]:
        """
        Resolve the configuration for one image

        Args:
            options: preset name, override mapping or config; None or "none"
                skips compression; omitted uses the default preset

        Returns:
            the configuration with user overrides applied, or None to skip compression
        """
        if not self.enabled:
            return None
        if options is None or options == "none":
            return None

        base = resolve_compression_config(
            self.default_preset if options is _UNSET else options
        )
        if base is None:
            return None

        overrides = self.user_overrides
        if not overrides:
            return base

        merged = merge_overrides(base, overrides, enforce_floor=False)
        # The floor never exceeds the quality the user asked for
        return merged.replace(min_quality=min(merged.min_quality, merged.quality))
