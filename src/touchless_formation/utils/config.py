"""
Centralized configuration manager.
Loads the YAML config, merges it over built-in defaults and provides
dotted-path access.

    - Schema validation for critical config fields (warnings, never fatal)
    - Type-safe access with warnings on invalid types
    - Reset support for testing
"""

import os
import copy
import yaml
import logging

logger = logging.getLogger(__name__)

_BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))
_CONFIG_DIR = os.path.join(_BASE_DIR, "config")

DEFAULTS = {
    "logging": {
        "level": "INFO",
        "file": None,
    },
    "capture": {
        "device_id": 0,
        "width": 1280,
        "height": 720,
        "fps": 30,
        "warmup_frames": 5,
        "reopen_after_failures": 30,
    },
    "detector": {
        "model_path": "",
        "delegate": "GPU",
        "min_detection_confidence": 0.5,
        "min_presence_confidence": 0.5,
        "min_tracking_confidence": 0.5,
    },
    "tracking": {
        "finger_tolerance": 0.15,
        "thumb_tolerance": 0.1,
        "mirror_x": True,
        "thumb_pointing": True,
    },
    "formation": {
        "spread_floor": 0.35,
        "spread_span": 0.65,
        "min_sample_interval_ms": 100,
        "cooldown_ms": 800,
        "expand_velocity": 2.0,
        "contract_velocity": -1.0,
    },
    "particles": {
        "count": 4500,
        "tree_height": 40.0,
        "tree_radius": 16.0,
        "blend_rate": 0.03,
        "wobble_amplitude": 0.1,
        "global_scale": 0.5,
        "seed": None,
        "text_lines": ["MERRY", "CHRISTMAS"],
    },
    "camera_steering": {
        "initial_position": [0.0, 20.0, 90.0],
        "far_radius": 200.0,
        "zoom_span": 145.0,
        "easing": 0.1,
        "auto_rotate_speed": 0.8,
    },
    "visualization": {
        "show_skeleton": True,
        "show_status": True,
        "show_particles": True,
        "preview_size": [480, 480],
    },
}

# Schema: sections and the expected types of their critical fields
_CONFIG_SCHEMA = {
    "capture": {
        "device_id": int,
        "width": int,
        "height": int,
        "fps": int,
        "warmup_frames": int,
        "reopen_after_failures": int,
    },
    "tracking": {
        "finger_tolerance": float,
        "thumb_tolerance": float,
    },
    "formation": {
        "spread_floor": float,
        "spread_span": float,
        "min_sample_interval_ms": int,
        "cooldown_ms": int,
        "expand_velocity": float,
        "contract_velocity": float,
    },
    "particles": {
        "count": int,
        "blend_rate": float,
        "global_scale": float,
        "text_lines": list,
    },
    "camera_steering": {
        "far_radius": float,
        "zoom_span": float,
        "easing": float,
    },
}


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base dict."""
    merged = base.copy()
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class Config:
    """Singleton configuration manager."""

    _instance = None
    _data = {}

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._data = copy.deepcopy(DEFAULTS)
        return cls._instance

    def load(self, config_path=None):
        """Load configuration from a YAML file, merged over the defaults."""
        config_path = config_path or os.path.join(_CONFIG_DIR, "config.yaml")

        try:
            with open(config_path, "r") as f:
                loaded = yaml.safe_load(f) or {}
            logger.info("Loaded config from %s", config_path)
        except FileNotFoundError:
            logger.warning("Config file not found: %s, using defaults", config_path)
            loaded = {}

        if not isinstance(loaded, dict):
            logger.warning("Config root should be a mapping, got %s; using defaults",
                           type(loaded).__name__)
            loaded = {}

        self._data = _deep_merge(copy.deepcopy(DEFAULTS), loaded)
        self._validate()
        return self

    def load_dict(self, data: dict):
        """Load configuration from an already-parsed dict (tests, embedding)."""
        self._data = _deep_merge(copy.deepcopy(DEFAULTS), data or {})
        self._validate()
        return self

    def _validate(self):
        """Validate critical config fields against schema."""
        warnings = []
        for section_name, fields in _CONFIG_SCHEMA.items():
            section = self._data.get(section_name)
            if not isinstance(section, dict):
                warnings.append(f"Section '{section_name}' should be a dict, got {type(section).__name__}")
                continue
            for field_name, expected_type in fields.items():
                if field_name in section:
                    value = section[field_name]
                    # Allow int where float is expected
                    if expected_type is float and isinstance(value, (int, float)) \
                            and not isinstance(value, bool):
                        continue
                    if not isinstance(value, expected_type):
                        warnings.append(
                            f"{section_name}.{field_name}: expected {expected_type.__name__}, "
                            f"got {type(value).__name__} ({value!r})"
                        )

        if warnings:
            for w in warnings:
                logger.warning("Config validation: %s", w)
        else:
            logger.debug("Config validation passed")
        return warnings

    def get(self, key_path: str, default=None):
        """Get nested config value using dot notation: 'formation.cooldown_ms'."""
        keys = key_path.split(".")
        value = self._data
        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default
        return value

    def set(self, key_path: str, value):
        """Override a nested value (CLI flags): set('capture.device_id', 1)."""
        keys = key_path.split(".")
        node = self._data
        for key in keys[:-1]:
            if not isinstance(node.get(key), dict):
                node[key] = {}
            node = node[key]
        node[keys[-1]] = value

    def get_section(self, section: str) -> dict:
        """Get an entire config section."""
        value = self._data.get(section, {})
        return value if isinstance(value, dict) else {}

    @property
    def logging(self) -> dict:
        return self.get_section("logging")

    @property
    def capture(self) -> dict:
        return self.get_section("capture")

    @property
    def detector(self) -> dict:
        return self.get_section("detector")

    @property
    def tracking(self) -> dict:
        return self.get_section("tracking")

    @property
    def formation(self) -> dict:
        return self.get_section("formation")

    @property
    def particles(self) -> dict:
        return self.get_section("particles")

    @property
    def camera_steering(self) -> dict:
        return self.get_section("camera_steering")

    @property
    def visualization(self) -> dict:
        return self.get_section("visualization")

    @classmethod
    def reset(cls):
        """Reset singleton instance (for testing)."""
        cls._instance = None
        cls._data = {}
