"""The built-in deployment plan: a PHP application behind Apache with MySQL."""
from __future__ import annotations

from pathlib import Path
from typing import Dict, List

from .actions import (
    Action,
    ApplyMigrations,
    CloneRepository,
    CopyFileIfMissing,
    EnsureBuildOutput,
    EnsureComposer,
    EnsureDatabase,
    EnsureDatabaseUser,
    EnsureGrant,
    EnsureKeyValues,
    EnsureModuleEnabled,
    EnsureOwnership,
    EnsurePackages,
    EnsureRepository,
    EnsureRootPassword,
    EnsureSiteEnabled,
    EnsureVhost,
    RequirePrivilege,
    RestartService,
    SeedDatabase,
)
from .config import Settings
from .host import Host
from .registry import StepRegistry
from .schemas import ExecutionContext

HINTS = (
    "Review the generated .env file and set APP_KEY and any mail/cache settings your application needs.",
    "Configure TLS for the site, for example with certbot --apache.",
    "Allow HTTP/HTTPS through the firewall, for example with ufw allow 'Apache Full'.",
)


def app_env_values(ctx: ExecutionContext) -> Dict[str, str]:
    return {
        "APP_ENV": "production",
        "APP_DEBUG": "false",
        "DB_HOST": "localhost",
        "DB_DATABASE": ctx.db_name,
        "DB_USERNAME": ctx.db_user,
        "DB_PASSWORD": ctx.db_password.get_secret_value(),
    }


def build_actions(host: Host, settings: Settings) -> List[Action]:
    """Every action of a deployment, in registration order."""

    packages = settings.packages
    apache = settings.apache
    webserver = host.webserver

    def vhost_path(ctx: ExecutionContext) -> Path:
        return webserver.vhost_path(ctx.app_name)

    return [
        RequirePrivilege("preflight.privileges", host.is_privileged),
        EnsurePackages(
            "system.base_packages",
            host.packages,
            packages.base,
            ["preflight.privileges"],
            refresh=True,
            upgrade=True,
        ),
        EnsureRepository("php.repository", host.packages, packages.php_repository, ["system.base_packages"]),
        EnsurePackages("php.packages", host.packages, settings.php_packages(), ["php.repository"]),
        EnsurePackages("webserver.packages", host.packages, packages.webserver, ["system.base_packages"]),
        EnsurePackages("database.packages", host.packages, packages.database, ["system.base_packages"]),
        EnsurePackages(
            "nodejs.packages",
            host.packages,
            ["nodejs"],
            ["system.base_packages"],
            setup_script=packages.nodesource_url.format(major=settings.node_major),
        ),
        EnsureComposer(
            "composer.binary",
            host.tooling,
            packages.composer_installer_url,
            packages.composer_path,
            ["php.packages"],
        ),
        EnsureRootPassword(
            "database.root_password",
            host.database,
            ["database.packages"],
            description="Require a password for the MySQL root account",
        ),
        EnsureDatabase(
            "database.create",
            host.database,
            ["database.root_password"],
            description="Create the application database",
        ),
        EnsureDatabaseUser(
            "database.user",
            host.database,
            ["database.root_password"],
            description="Create the application database user",
        ),
        EnsureGrant(
            "database.grant",
            host.database,
            ["database.create", "database.user"],
            description="Grant the application user access to its database",
        ),
        CloneRepository(
            "app.clone",
            host.vcs,
            ["system.base_packages"],
            description="Clone the application repository",
        ),
        EnsureBuildOutput(
            "app.composer_install",
            "vendor/autoload.php",
            host.tooling.composer_install,
            ["app.clone", "composer.binary"],
            description="Install PHP dependencies",
        ),
        EnsureBuildOutput(
            "app.npm_install",
            "node_modules",
            host.tooling.npm_install,
            ["app.clone", "nodejs.packages"],
            description="Install Node.js dependencies",
        ),
        EnsureBuildOutput(
            "app.build_assets",
            "public/build/manifest.json",
            host.tooling.npm_build,
            ["app.npm_install"],
            description="Build front-end assets",
        ),
        CopyFileIfMissing(
            "app.env_file",
            lambda ctx: Path(ctx.app_folder) / ".env.example",
            lambda ctx: Path(ctx.env_file),
            ["app.clone"],
            description="Create .env from .env.example",
        ),
        EnsureKeyValues(
            "app.env_settings",
            lambda ctx: Path(ctx.env_file),
            app_env_values,
            ["app.env_file"],
            description="Write production and database settings to .env",
        ),
        ApplyMigrations(
            "app.migrate",
            host.tooling,
            ["app.env_settings", "database.grant", "app.composer_install"],
            description="Run database migrations",
        ),
        SeedDatabase("app.seed", host.tooling, ["app.migrate"], description="Seed the database"),
        EnsureVhost(
            "webserver.vhost",
            webserver,
            ["webserver.packages", "app.clone"],
            description="Write the Apache virtual host",
        ),
        EnsureModuleEnabled(
            "webserver.rewrite_module",
            webserver,
            "rewrite",
            ["webserver.packages"],
            description="Enable mod_rewrite",
        ),
        EnsureSiteEnabled(
            "webserver.default_site",
            webserver,
            lambda ctx: apache.default_site,
            ["webserver.packages"],
            enabled=False,
            description=f"Disable the {apache.default_site} site",
        ),
        EnsureSiteEnabled(
            "webserver.enable_site",
            webserver,
            lambda ctx: ctx.app_name,
            ["webserver.vhost"],
            description="Enable the application site",
        ),
        EnsureOwnership(
            "app.permissions",
            host.tooling,
            lambda ctx: Path(ctx.app_folder),
            settings.web_user,
            settings.web_group,
            "755",
            ["app.build_assets", "app.migrate"],
            description=f"Hand the app folder to {settings.web_user}",
        ),
        RestartService(
            "webserver.restart",
            host.services,
            apache.service_name,
            lambda ctx: [vhost_path(ctx), Path(ctx.env_file)],
            [
                "webserver.enable_site",
                "webserver.rewrite_module",
                "webserver.default_site",
                "app.permissions",
            ],
            before_restart=webserver.config_test,
        ),
    ]


def build_deployment_plan(host: Host, settings: Settings) -> StepRegistry:
    registry = StepRegistry()
    registry.register_many(build_actions(host, settings))
    return registry


__all__ = ["HINTS", "app_env_values", "build_actions", "build_deployment_plan"]
