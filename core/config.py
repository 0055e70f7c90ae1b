from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Dict, List, Optional
import json
import os


BASE_DIR = Path(__file__).resolve().parents[1]


@dataclass
class BotConfig:
    token: str
    guild_ids: Optional[List[int]]
    owner_ids: Optional[List[int]]
    staff_role_ids: Optional[List[int]]
    log_channel_id: Optional[int]
    mute_role_id: Optional[int]
    mute_role_name: str = "Muted"
    database_path: Path = BASE_DIR / "penaltybox.db"
    mute_check_interval: float = 120.0
    ban_check_interval: float = 180.0
    max_concurrency: int = 5
    max_resolution_failures: Optional[int] = None
    log_level: str = "INFO"

    def sanitize(self) -> Dict[str, Any]:
        data = asdict(self)
        if "token" in data and data["token"]:
            data["token"] = "****"
        data["database_path"] = str(self.database_path)
        return data


def _parse_int_list(raw: Optional[str]) -> Optional[List[int]]:
    if not raw:
        return None
    values: List[int] = []
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            values.append(int(part))
        except ValueError:
            continue
    return values or None


def _normalize_list(source: Any) -> Optional[List[int]]:
    if source is None:
        return None
    if isinstance(source, list):
        result: List[int] = []
        for item in source:
            try:
                result.append(int(item))
            except (TypeError, ValueError):
                continue
        return result or None
    if isinstance(source, str):
        return _parse_int_list(source)
    return None


def _optional_int(raw: Any) -> Optional[int]:
    if raw is None or raw == "":
        return None
    return int(raw)


def _read_config_file(config_path: Path) -> Dict[str, Any]:
    if not config_path.exists():
        return {}
    text = config_path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    return json.loads(text)


def load_config(config_path: Optional[Path] = None) -> BotConfig:
    file_data = _read_config_file(config_path or BASE_DIR / "config.json")

    def pick(env_name: str, file_key: str) -> Any:
        return os.getenv(env_name) or file_data.get(file_key)

    token = pick("DISCORD_TOKEN", "token")
    if not token:
        raise RuntimeError("DISCORD_TOKEN environment variable or token in config.json is required")

    guild_ids = _normalize_list(pick("DISCORD_GUILD_IDS", "guild_ids"))
    owner_ids = _normalize_list(pick("DISCORD_OWNER_IDS", "owner_ids"))

    staff_roles_env = os.getenv("DISCORD_STAFF_ROLE_IDS")
    if staff_roles_env:
        staff_role_ids = _parse_int_list(staff_roles_env)
    else:
        staff_role_ids = _normalize_list(file_data.get("staff_role_ids"))

    database_raw = pick("PENALTYBOX_DATABASE", "database_path")
    database_path = Path(database_raw) if database_raw else BASE_DIR / "penaltybox.db"

    max_concurrency = _optional_int(pick("PENALTYBOX_MAX_CONCURRENCY", "max_concurrency"))
    max_resolution_failures = _optional_int(
        pick("PENALTYBOX_MAX_RESOLUTION_FAILURES", "max_resolution_failures")
    )
    mute_interval = pick("PENALTYBOX_MUTE_INTERVAL", "mute_check_interval")
    ban_interval = pick("PENALTYBOX_BAN_INTERVAL", "ban_check_interval")

    return BotConfig(
        token=token,
        guild_ids=guild_ids,
        owner_ids=owner_ids,
        staff_role_ids=staff_role_ids,
        log_channel_id=_optional_int(pick("DISCORD_LOG_CHANNEL_ID", "log_channel_id")),
        mute_role_id=_optional_int(pick("DISCORD_MUTE_ROLE_ID", "mute_role_id")),
        mute_role_name=pick("DISCORD_MUTE_ROLE_NAME", "mute_role_name") or "Muted",
        database_path=database_path,
        mute_check_interval=float(mute_interval) if mute_interval else 120.0,
        ban_check_interval=float(ban_interval) if ban_interval else 180.0,
        max_concurrency=max_concurrency if max_concurrency else 5,
        max_resolution_failures=max_resolution_failures or None,
        log_level=str(pick("PENALTYBOX_LOG_LEVEL", "log_level") or "INFO"),
    )
