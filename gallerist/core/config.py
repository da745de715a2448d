# gallerist/core/config.py
# Loads Gallerist settings from a TOML file (defaults + overrides + env).
# - Reads GALLERIST_CONFIG or searches for gallerist.toml
# - Environment variables from the classic deployment (.env style) win over TOML
# - Result is an immutable Settings object, built once and passed around explicitly

from __future__ import annotations
from pathlib import Path
import os
from typing import Mapping, Optional

import tomli as tomllib  # py3.11+: tomllib in stdlib; using tomli for compatibility
from pydantic import BaseModel, ConfigDict, Field


# -------------------- Defaults (used if TOML omits keys) --------------------
_DEFAULTS = {
    "server": {
        "host": "0.0.0.0",
        "port": 3000,
        "title": "Media Gallery",
    },
    "access": {
        "allowed_ip": "",
        "trust_proxy": True,
        "forwarded_header": "x-forwarded-for",
    },
    "upload": {
        "limit_mb": 700,
        "destinations": ["local"],
    },
    "catalog": {
        "extensions": [".png", ".jpg", ".jpeg", ".gif", ".webp", ".mp4", ".avi", ".mov"],
        "cache_ttl_seconds": 0,
    },
    "local": {
        "enabled": True,
        "root": "local_media",
    },
    "sftp": {
        "enabled": False,
        "host": "",
        "port": 22,
        "username": "",
        "password": "",
        "root": "/",
        "known_hosts": "",
        "timeout": 15.0,
    },
    "nextcloud": {
        "enabled": False,
        "url": "",
        "username": "",
        "password": "",
        "root": "/",
        "timeout": 30.0,
    },
    "logging": {
        "level": "INFO",
        "dir": "",
        "json": False,
    },
}

# env var -> (section, key); names match the original .env deployment
_ENV_OVERRIDES = {
    "PORT":                ("server", "port"),
    "UPLOAD_ALLOWED_IP":   ("access", "allowed_ip"),
    "UPLOAD_LIMIT_MB":     ("upload", "limit_mb"),
    "LOCAL_MEDIA_DIR":     ("local", "root"),
    "SFTP_HOST":           ("sftp", "host"),
    "SFTP_PORT":           ("sftp", "port"),
    "SFTP_USER":           ("sftp", "username"),
    "SFTP_PASSWORD":       ("sftp", "password"),
    "SFTP_DIR":            ("sftp", "root"),
    "NEXTCLOUD_URL":       ("nextcloud", "url"),
    "NEXTCLOUD_USER":      ("nextcloud", "username"),
    "NEXTCLOUD_PASSWORD":  ("nextcloud", "password"),
    "NEXTCLOUD_DIR":       ("nextcloud", "root"),
    "GALLERIST_LOG_LEVEL": ("logging", "level"),
}


# -------------------- Settings models --------------------
class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class ServerSettings(_Frozen):
    host: str = "0.0.0.0"
    port: int = 3000
    title: str = "Media Gallery"


class AccessSettings(_Frozen):
    """Single static-IP allow-list for mutating routes."""
    allowed_ip: str = ""
    trust_proxy: bool = True
    forwarded_header: str = "x-forwarded-for"


class UploadSettings(_Frozen):
    limit_mb: int = 700
    destinations: tuple[str, ...] = ("local",)

    @property
    def limit_bytes(self) -> int:
        return self.limit_mb * 1024 * 1024


class CatalogSettings(_Frozen):
    extensions: frozenset[str] = Field(default_factory=lambda: frozenset(_norm_ext_list(_DEFAULTS["catalog"]["extensions"])))
    cache_ttl_seconds: float = 0


class LocalSettings(_Frozen):
    enabled: bool = True
    root: Path = Path("local_media")


class SftpSettings(_Frozen):
    enabled: bool = False
    host: str = ""
    port: int = 22
    username: str = ""
    password: str = Field(default="", repr=False)
    root: str = "/"
    known_hosts: str = ""
    timeout: float = 15.0


class NextcloudSettings(_Frozen):
    enabled: bool = False
    url: str = ""
    username: str = ""
    password: str = Field(default="", repr=False)
    root: str = "/"
    timeout: float = 30.0


class LoggingSettings(_Frozen):
    level: str = "INFO"
    dir: str = ""
    json_lines: bool = Field(default=False, alias="json")

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)


class Settings(_Frozen):
    server: ServerSettings = Field(default_factory=ServerSettings)
    access: AccessSettings = Field(default_factory=AccessSettings)
    upload: UploadSettings = Field(default_factory=UploadSettings)
    catalog: CatalogSettings = Field(default_factory=CatalogSettings)
    local: LocalSettings = Field(default_factory=LocalSettings)
    sftp: SftpSettings = Field(default_factory=SftpSettings)
    nextcloud: NextcloudSettings = Field(default_factory=NextcloudSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


# -------------------- Read + merge TOML --------------------
def _find_config_path() -> Optional[Path]:
    """Find gallerist.toml without user input.
    Priority:
      1) GALLERIST_CONFIG
      2) ./gallerist.toml (CWD)
      3) ascend parents from CWD looking for gallerist.toml
      4) gallerist/gallerist.toml (package directory)
    """
    cfg_env = os.getenv("GALLERIST_CONFIG")
    if cfg_env:
        p = Path(cfg_env).expanduser()
        if p.exists():
            return p

    cur = Path.cwd()
    while True:
        candidate = cur / "gallerist.toml"
        if candidate.exists():
            return candidate
        if cur.parent == cur:
            break  # reached filesystem root
        cur = cur.parent

    pkg_default = Path(__file__).resolve().parents[1] / "gallerist.toml"
    if pkg_default.exists():
        return pkg_default

    return None


def _load_config_toml(path: Optional[Path]) -> dict:
    """Load TOML from the given path or return {} if there is none."""
    if path and path.exists():
        with path.open("rb") as f:
            return tomllib.load(f)
    return {}


def _norm_ext_list(exts: list[str]) -> set[str]:
    """
    Normalize extension strings: ensure leading dot and lowercase.
    Accepts 'jpg' or '.jpg' and returns '.jpg'.
    """
    out: set[str] = set()
    for e in exts:
        e = (e or "").strip().lower()
        if not e:
            continue
        if not e.startswith("."):
            e = "." + e
        out.add(e)
    return out


def _merge(cfg: dict) -> dict:
    """Section-wise merge of user config over _DEFAULTS."""
    merged: dict = {}
    for section, defaults in _DEFAULTS.items():
        merged[section] = {**defaults, **(cfg.get(section) or {})}
    return merged


def _apply_env(merged: dict, env: Mapping[str, str]) -> dict:
    for var, (section, key) in _ENV_OVERRIDES.items():
        val = env.get(var)
        if val is None or val == "":
            continue
        merged[section][key] = val

    # presence of a host/url in the environment switches the backend on
    if env.get("SFTP_HOST"):
        merged["sftp"]["enabled"] = True
    if env.get("NEXTCLOUD_URL"):
        merged["nextcloud"]["enabled"] = True
    return merged


def load_settings(path: Optional[Path] = None, env: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build the immutable Settings for this process.
    `path` overrides the config file search; `env` defaults to os.environ.
    """
    cfg = _load_config_toml(path if path is not None else _find_config_path())
    merged = _apply_env(_merge(cfg), os.environ if env is None else env)

    # configuration can narrow the media allow-list, never widen it
    allowed = _norm_ext_list(_DEFAULTS["catalog"]["extensions"])
    merged["catalog"]["extensions"] = frozenset(_norm_ext_list(list(merged["catalog"]["extensions"])) & allowed)
    merged["upload"]["destinations"] = tuple(merged["upload"]["destinations"])
    merged["local"]["root"] = Path(merged["local"]["root"]).expanduser()

    return Settings.model_validate(merged)
