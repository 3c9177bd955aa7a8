from __future__ import annotations
import os
import yaml
from pathlib import Path
from typing import List
from midindex.core.types import RuntimeConfig, VenueConfig

CONFIG = Path(__file__).resolve().parents[1] / "config"


def config_dir() -> Path:
    return Path(os.environ.get("MIDINDEX_CONFIG_DIR", CONFIG))

def load_yaml(p: Path):
    return yaml.safe_load(p.read_text()) or {}

def load_runtime(root: Path | None = None) -> RuntimeConfig:
    d = load_yaml((root or config_dir()) / "runtime.yml").get("runtime", {})
    if os.environ.get("PORT"):
        d["http_port"] = int(os.environ["PORT"])
    return RuntimeConfig(**d)

def load_venues(root: Path | None = None) -> List[VenueConfig]:
    venues = load_yaml((root or config_dir()) / "venues.yml").get("venues", [])
    return [VenueConfig(**v) for v in venues if v.get("enabled", True)]
