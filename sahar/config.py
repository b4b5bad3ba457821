# sahar/config.py
from __future__ import annotations
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

CONFIG_FILE = Path(__file__).resolve().parent / "config.json"

log = logging.getLogger("sahar.config")


@dataclass
class PrinterConfig:
    enabled: bool = False
    host: str = "127.0.0.1"
    port: int = 9100
    logo_path: str = "sahar/static/logo.png"
    width_chars: int = 32


@dataclass
class PosConfig:
    # below this length the phone field is free text: no lookup, no customer write
    min_phone_length: int = 11
    walk_in_name: str = "Walk-in"
    unknown_name: str = "Unknown"
    sentinel_phone: str = "000000000"
    payment_methods: List[str] = field(default_factory=lambda: ["Cash", "Vodafone", "InstaPay"])
    default_payment: str = "Cash"
    deduct_stock: bool = True
    draft_expiry_hours: int = 24


@dataclass
class SessionConfig:
    ttl_hours: int = 24
    refresh_minutes: int = 60


@dataclass
class KitchenConfig:
    poll_seconds: int = 5


@dataclass
class ReportsConfig:
    best_sellers_top: int = 20
    vip_threshold: float = 5000
    recent_orders: int = 5


@dataclass
class AppConfig:
    # ⚠️ default_factory for mutable members
    printer: PrinterConfig = field(default_factory=PrinterConfig)
    pos: PosConfig = field(default_factory=PosConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    kitchen: KitchenConfig = field(default_factory=KitchenConfig)
    reports: ReportsConfig = field(default_factory=ReportsConfig)
    db_url: str = "sqlite:///sahar.db"
    secret_key: str = "change-me"
    log_level: str = "INFO"


def _merge(dst: dict, src: dict) -> dict:
    for k, v in src.items():
        if isinstance(v, dict) and isinstance(dst.get(k), dict):
            dst[k] = _merge(dst[k], v)
        else:
            dst[k] = v
    return dst


def _section(cls, data: dict):
    """Build a section dataclass, ignoring unknown keys."""
    known = set(cls.__dataclass_fields__)
    return cls(**{k: v for k, v in (data or {}).items() if k in known})


def load_config(path: Path = CONFIG_FILE) -> AppConfig:
    data: dict = {
        "printer": {},
        "pos": {},
        "session": {},
        "kitchen": {},
        "reports": {},
    }
    if path.exists():
        try:
            file_data = json.loads(path.read_text(encoding="utf-8"))
            data = _merge(data, file_data or {})
        except (ValueError, OSError) as e:
            # malformed file → keep defaults
            log.warning("config file %s ignored: %s", path, e)

    cfg = AppConfig(
        printer=_section(PrinterConfig, data["printer"]),
        pos=_section(PosConfig, data["pos"]),
        session=_section(SessionConfig, data["session"]),
        kitchen=_section(KitchenConfig, data["kitchen"]),
        reports=_section(ReportsConfig, data["reports"]),
        db_url=str(data.get("db_url", "sqlite:///sahar.db")),
        secret_key=str(data.get("secret_key", "change-me")),
        log_level=str(data.get("log_level", "INFO")),
    )

    # env wins over file
    cfg.db_url = os.getenv("SAHAR_DB_URL", cfg.db_url)
    cfg.secret_key = os.getenv("SAHAR_SECRET_KEY", cfg.secret_key)
    cfg.log_level = os.getenv("SAHAR_LOG_LEVEL", cfg.log_level).upper()
    return cfg


# singleton loaded at import
CONFIG = load_config()
