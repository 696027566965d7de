import json
import logging
from pathlib import Path
from typing import Any, Dict

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def load_config(path: str) -> Dict[str, Any]:
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    if config_path.suffix.lower() in {".json"}:
        with config_path.open("r", encoding="utf-8") as f:
            return json.load(f) or {}

    if config_path.suffix.lower() in {".yml", ".yaml"}:
        import yaml

        with config_path.open("r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}

    raise ValueError(f"Unsupported config format: {config_path.suffix}")


def configure_logging(config: Dict[str, Any]) -> None:
    level = str(config.get("logging", {}).get("level", "INFO")).upper()
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)
