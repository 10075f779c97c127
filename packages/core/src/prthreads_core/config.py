import os
from pathlib import Path
from typing import Optional

import yaml

DEFAULT_CONFIG: dict = {
    "cache_ttl": 5,  # minutes a pagination cache stays usable for a warm fetch
    "max_concurrency": 8,  # in-flight gh calls per fan-out
    "state_dir": "~/.cursor/reviews",
    "use_cache": True,
    "gh_path": "gh",
}


def load_config(config_path: str = ".prthreads.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .prthreads.yml in the current directory
      3. PRTHREADS_STATE_DIR environment variable
      4. CLI argument overrides
    """
    config = dict(DEFAULT_CONFIG)

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        config.update(file_config)

    state_dir = os.environ.get("PRTHREADS_STATE_DIR")
    if state_dir:
        config["state_dir"] = state_dir

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    if config["max_concurrency"] < 1:
        raise ValueError(f"max_concurrency must be at least 1, got {config['max_concurrency']!r}")
    if config["cache_ttl"] < 0:
        raise ValueError(f"cache_ttl must not be negative, got {config['cache_ttl']!r}")

    return config
