# gallerist/adapters/registry.py
# Builds the configured adapters, in catalog merge order: sftp, local, nextcloud.

from typing import Dict

from gallerist.adapters.base import BackendAdapter
from gallerist.adapters.local import LocalAdapter
from gallerist.adapters.sftp import SftpAdapter
from gallerist.adapters.webdav import WebDavAdapter
from gallerist.core.config import Settings


def build_adapters(settings: Settings) -> Dict[str, BackendAdapter]:
    adapters: Dict[str, BackendAdapter] = {}
    if settings.sftp.enabled and settings.sftp.host:
        adapters["sftp"] = SftpAdapter(settings.sftp)
    if settings.local.enabled:
        adapters["local"] = LocalAdapter(settings.local.root)
    if settings.nextcloud.enabled and settings.nextcloud.url:
        adapters["nextcloud"] = WebDavAdapter(settings.nextcloud)
    return adapters
