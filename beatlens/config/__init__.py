"""YAML configuration loader for BeatLens."""

import copy
import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
import logging

from ..models.audio import CaptureConstraints

logger = logging.getLogger(__name__)


DEFAULTS: Dict[str, Any] = {
    "audio": {
        "device_index": None,
        "frames_per_buffer": 1024,
        "timeslice_ms": 250,
        "tick_ms": 100,
    },
    "analysis": {
        "fft_size": 256,
        "smoothing": 0.8,
        "min_decibels": -100.0,
        "max_decibels": -30.0,
    },
    "visualizer": {
        "fps": 60,
        "size": 280,
        "bar_count": 72,
    },
    "match": {
        "url": None,
        "timeout_seconds": 30,
    },
    "output": {
        "directory": None,
    },
    "logging": {
        "level": "INFO",
        "file_path": "data/logs/beatlens.log",
        "console_output": True,
    },
}


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


class BeatLensConfig:
    """BeatLens configuration loader."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to YAML config file. If None, built-in defaults
                        are used unchanged.
        """
        self.config_file = Path(config_path) if config_path else None

        if self.config_file is not None and not self.config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_file}")

        self.config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load the YAML file over the defaults."""
        config = copy.deepcopy(DEFAULTS)
        if self.config_file is None:
            logger.debug("No configuration file given, using defaults")
            return config

        logger.info(f"Loading configuration from: {self.config_file}")
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                loaded = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}")

        if not loaded:
            raise ValueError("Configuration file is empty")
        if not isinstance(loaded, dict):
            raise ValueError("Configuration file must contain a mapping")

        _merge(config, loaded)
        self._resolve_paths(config)

        logger.info("Configuration loaded successfully")
        return config

    def _resolve_paths(self, config: Dict[str, Any]) -> None:
        """Resolve relative paths in configuration relative to config file location."""
        config_dir = self.config_file.parent

        log_path = config['logging'].get('file_path')
        if log_path and not os.path.isabs(log_path):
            config['logging']['file_path'] = str(config_dir / log_path)

        output_dir = config['output'].get('directory')
        if output_dir and not os.path.isabs(output_dir):
            config['output']['directory'] = str(config_dir / output_dir)

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'audio.timeslice_ms').

        Args:
            key_path: Dot-separated key path
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split('.')
        value = self.config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return default if value is None else value

    def set(self, key_path: str, value: Any) -> None:
        """Set configuration value using dot notation.

        Args:
            key_path: Dot-separated path to config value (e.g., 'match.url')
            value: Value to set
        """
        keys = key_path.split('.')
        config_dict = self.config

        for key in keys[:-1]:
            if key not in config_dict:
                config_dict[key] = {}
            config_dict = config_dict[key]

        config_dict[keys[-1]] = value
        logger.debug(f"Configuration key '{key_path}' set to: {value}")

    def get_capture_constraints(self) -> CaptureConstraints:
        """Capture format for the microphone. Rate, channels and sample size are fixed."""
        return CaptureConstraints(
            device_index=self.get('audio.device_index'),
            frames_per_buffer=int(self.get('audio.frames_per_buffer', 1024)),
        )

    def get_output_directory(self) -> Optional[str]:
        """Directory for saved query WAV files, if configured."""
        output_dir = self.get('output.directory')
        if not output_dir:
            return None
        return str(Path(output_dir).absolute())
