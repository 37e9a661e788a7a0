"""Apache virtual-host and module management."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from ..config import ApacheConfig
from ..utils import atomic_write
from ..sandbox import CommandRunner
from ..schemas import ExecutionContext

logger = logging.getLogger(__name__)

VHOST_TEMPLATE = """\
<VirtualHost *:80>
    ServerName {server_name}
    DocumentRoot {document_root}

    <Directory {document_root}>
        Options -Indexes +FollowSymLinks
        AllowOverride All
        Require all granted
    </Directory>

    ErrorLog {log_dir}/{app_name}-error.log
    CustomLog {log_dir}/{app_name}-access.log combined
</VirtualHost>
"""


class ApacheWebServer:
    """Debian-style Apache layout: sites-available, sites-enabled, a2en* helpers."""

    def __init__(self, runner: CommandRunner, config: Optional[ApacheConfig] = None) -> None:
        self._runner = runner
        self.config = config or ApacheConfig()

    def vhost_path(self, site: str) -> Path:
        return self.config.sites_available / f"{site}.conf"

    def render_vhost(self, ctx: ExecutionContext) -> str:
        return VHOST_TEMPLATE.format(
            server_name=ctx.server_name,
            document_root=ctx.document_root,
            app_name=ctx.app_name,
            log_dir=self.config.log_dir_variable,
        )

    def read_vhost(self, site: str) -> Optional[str]:
        path = self.vhost_path(site)
        if not path.is_file():
            return None
        return path.read_text(encoding="utf-8")

    def write_vhost(self, site: str, content: str) -> Path:
        path = self.vhost_path(site)
        atomic_write(path, content)
        logger.info("Wrote virtual host %s", path)
        return path

    def is_site_enabled(self, site: str) -> bool:
        return (self.config.sites_enabled / f"{site}.conf").exists()

    def enable_site(self, site: str) -> None:
        self._runner.run(["a2ensite", "-q", f"{site}.conf"], check=True)

    def disable_site(self, site: str) -> None:
        self._runner.run(["a2dissite", "-q", f"{site}.conf"], check=True)

    def is_module_enabled(self, module: str) -> bool:
        return (self.config.mods_enabled / f"{module}.load").exists()

    def enable_module(self, module: str) -> None:
        self._runner.run(["a2enmod", "-q", module], check=True)

    def config_test(self) -> None:
        """Fail with the server's own message when the configuration is invalid."""

        self._runner.run(["apache2ctl", "configtest"], check=True)
