"""Web server site and module actions."""
from __future__ import annotations

from typing import Callable, Iterable, Optional

from ..host.webserver import ApacheWebServer
from ..schemas import ExecutionContext
from .base import Action

SiteFn = Callable[[ExecutionContext], str]


class EnsureSiteEnabled(Action):
    def __init__(
        self,
        name: str,
        webserver: ApacheWebServer,
        site: SiteFn,
        depends_on: Iterable[str] = (),
        *,
        enabled: bool = True,
        **kwargs,
    ) -> None:
        super().__init__(name, depends_on, **kwargs)
        self._webserver = webserver
        self._site = site
        self.enabled = enabled

    def check(self, ctx: ExecutionContext) -> bool:
        return self._webserver.is_site_enabled(self._site(ctx)) == self.enabled

    def apply(self, ctx: ExecutionContext) -> Optional[str]:
        site = self._site(ctx)
        if self.enabled:
            self._webserver.enable_site(site)
            return f"enabled {site}"
        self._webserver.disable_site(site)
        return f"disabled {site}"


class EnsureModuleEnabled(Action):
    def __init__(self, name: str, webserver: ApacheWebServer, module: str, depends_on: Iterable[str] = (), **kwargs) -> None:
        super().__init__(name, depends_on, **kwargs)
        self._webserver = webserver
        self.module = module

    def check(self, ctx: ExecutionContext) -> bool:
        return self._webserver.is_module_enabled(self.module)

    def apply(self, ctx: ExecutionContext) -> Optional[str]:
        self._webserver.enable_module(self.module)
        return f"enabled module {self.module}"


class EnsureVhost(Action):
    """Keep the site's virtual host identical to the rendered template."""

    def __init__(self, name: str, webserver: ApacheWebServer, depends_on: Iterable[str] = (), **kwargs) -> None:
        super().__init__(name, depends_on, **kwargs)
        self._webserver = webserver

    def check(self, ctx: ExecutionContext) -> bool:
        return self._webserver.read_vhost(ctx.app_name) == self._webserver.render_vhost(ctx)

    def apply(self, ctx: ExecutionContext) -> Optional[str]:
        return str(self._webserver.write_vhost(ctx.app_name, self._webserver.render_vhost(ctx)))
