# system/config.py
import json
import os
from dataclasses import dataclass, asdict
from pathlib import Path

CONFIG_DIR = Path("data")

DEFAULTS = {
    "env": "dev",
    "debug": True,
    "kv_provider": "file",
    "log_level": "INFO",
}


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes")


@dataclass
class Config:
    data_dir: Path
    env: str = "dev"
    debug: bool = True
    kv_provider: str = "file"
    log_level: str = "INFO"

    @classmethod
    def load(cls, config_dir: Path = None) -> "Config":
        if config_dir is None:
            config_dir = os.getenv("PORTAIS_DATA_DIR") or CONFIG_DIR
        config_dir = Path(config_dir)
        cfg_path = config_dir / "config.json"

        # Missing or empty config: write defaults
        if not cfg_path.exists() or cfg_path.stat().st_size == 0:
            config_dir.mkdir(parents=True, exist_ok=True)
            with cfg_path.open("w", encoding="utf-8") as f:
                json.dump(DEFAULTS, f, indent=2)
            raw = dict(DEFAULTS)
        else:
            try:
                with cfg_path.open("r", encoding="utf-8") as f:
                    raw = json.load(f)
            except (OSError, json.JSONDecodeError):
                raw = dict(DEFAULTS)
                with cfg_path.open("w", encoding="utf-8") as f:
                    json.dump(raw, f, indent=2)

        # Unknown keys in config.json are ignored
        values = {k: raw.get(k, v) for k, v in DEFAULTS.items()}

        # Environment wins over the file
        if os.getenv("PORTAIS_ENV"):
            values["env"] = os.environ["PORTAIS_ENV"]
        if os.getenv("PORTAIS_DEBUG"):
            values["debug"] = _env_bool(os.environ["PORTAIS_DEBUG"])
        if os.getenv("KV_PROVIDER"):
            values["kv_provider"] = os.environ["KV_PROVIDER"]
        if os.getenv("PORTAIS_LOG_LEVEL"):
            values["log_level"] = os.environ["PORTAIS_LOG_LEVEL"]

        return cls(data_dir=config_dir, **values)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["data_dir"] = str(self.data_dir)
        return data
