from pathlib import Path

import pytest
from pydantic import ValidationError as PydanticValidationError

from gallerist.adapters.registry import build_adapters
from gallerist.core.config import load_settings


def _write(tmp_path: Path, text: str) -> Path:
    p = tmp_path / "gallerist.toml"
    p.write_text(text, encoding="utf-8")
    return p


def test_defaults_without_file(tmp_path):
    s = load_settings(tmp_path / "missing.toml", env={})
    assert s.server.port == 3000
    assert s.upload.limit_mb == 700
    assert s.upload.limit_bytes == 700 * 1024 * 1024
    assert s.access.allowed_ip == ""
    assert ".mov" in s.catalog.extensions
    assert s.sftp.enabled is False and s.nextcloud.enabled is False
    assert list(build_adapters(s)) == ["local"]


def test_toml_overrides_defaults(tmp_path):
    p = _write(tmp_path, """
[server]
port = 8080

[catalog]
extensions = ["JPG", ".Png", "", "mp4", "txt", ".exe"]

[local]
root = "/srv/media"

[logging]
json = true
""")
    s = load_settings(p, env={})
    assert s.server.port == 8080
    assert s.server.title == "Media Gallery"
    assert s.catalog.extensions == frozenset({".jpg", ".png", ".mp4"})
    assert s.local.root == Path("/srv/media")
    assert s.logging.json_lines is True


def test_environment_wins_over_toml(tmp_path):
    p = _write(tmp_path, """
[upload]
limit_mb = 100

[access]
allowed_ip = "10.0.0.1"
""")
    env = {
        "UPLOAD_LIMIT_MB": "5",
        "UPLOAD_ALLOWED_IP": "10.0.0.9",
        "PORT": "4000",
        "LOCAL_MEDIA_DIR": str(tmp_path / "media"),
        "SFTP_PASSWORD": "",
    }
    s = load_settings(p, env=env)
    assert s.upload.limit_mb == 5
    assert s.access.allowed_ip == "10.0.0.9"
    assert s.server.port == 4000
    assert s.local.root == tmp_path / "media"
    assert s.sftp.password == ""


def test_remote_backends_enabled_by_env(tmp_path):
    env = {
        "SFTP_HOST": "files.example.org",
        "SFTP_USER": "bob",
        "SFTP_DIR": "/uploads",
        "NEXTCLOUD_URL": "https://cloud.example.org",
        "NEXTCLOUD_USER": "bob",
    }
    s = load_settings(tmp_path / "missing.toml", env=env)
    assert s.sftp.enabled and s.sftp.host == "files.example.org" and s.sftp.root == "/uploads"
    assert s.nextcloud.enabled and s.nextcloud.url == "https://cloud.example.org"

    adapters = build_adapters(s)
    assert list(adapters) == ["sftp", "local", "nextcloud"]
    assert [a.url_prefix for a in adapters.values()] == ["/media", "/local", "/nextcloud"]


def test_enabled_remote_without_host_is_skipped(tmp_path):
    p = _write(tmp_path, """
[sftp]
enabled = true
""")
    assert list(build_adapters(load_settings(p, env={}))) == ["local"]


def test_settings_are_immutable(tmp_path):
    s = load_settings(tmp_path / "missing.toml", env={})
    with pytest.raises(PydanticValidationError):
        s.server.port = 1


def test_secrets_stay_out_of_repr(tmp_path):
    s = load_settings(tmp_path / "missing.toml", env={"SFTP_HOST": "h", "SFTP_PASSWORD": "hunter2"})
    assert "hunter2" not in repr(s)
