"""
Detector configuration.

Settings come from the `detector` section of config.json in the working
directory, then from MEDIA_DETECTOR_* environment variables (a .env file is
honoured via python-dotenv). Anything missing falls back to DEFAULTS.
"""

import json
import os
from pathlib import Path

from dotenv import load_dotenv

DEFAULTS = {
    'max_streams': 30,
    'min_size_bytes': 5000,
    'min_video_area': 10000,
    'weak_heuristic': True,
    'rules_file': None,
    'verbose': False,
    'notify_queue_size': 256,
    'user_agent': 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36',
    'request_timeout': 10,
}

ENV_PREFIX = 'MEDIA_DETECTOR_'

_warned_missing = False


def _coerce(value, default):
    """Convert an environment string to the type of the default value."""
    if isinstance(default, bool):
        return value.strip().lower() in ('1', 'true', 'yes', 'on')
    if isinstance(default, int):
        try:
            return int(value)
        except ValueError:
            print(f"[!] Ignoring non-integer setting value: {value!r}")
            return default
    return value


def load_config(config_path="config.json", use_env=True):
    """
    Load detector settings.

    Args:
        config_path: Path to a JSON config file with a `detector` section
        use_env: Apply MEDIA_DETECTOR_* environment overrides

    Returns:
        dict: Settings with every key from DEFAULTS present
    """
    global _warned_missing

    settings = dict(DEFAULTS)
    config_path = Path(config_path)

    if config_path.exists():
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                config = json.load(f)
            section = config.get('detector', {})
            for key in DEFAULTS:
                if key in section:
                    settings[key] = section[key]
        except (OSError, json.JSONDecodeError) as e:
            print(f"[!] Error loading config: {e}")
    elif not _warned_missing:
        _warned_missing = True
        print(f"[CONFIG] {config_path} not found, using default detector settings")

    if use_env:
        load_dotenv()
        for key, default in DEFAULTS.items():
            raw = os.environ.get(ENV_PREFIX + key.upper())
            if raw is None:
                continue
            settings[key] = _coerce(raw, default if default is not None else '')

    return settings
