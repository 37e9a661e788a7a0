"""Actions applied by the provisioning engine."""

from .application import ApplyMigrations, CloneRepository, EnsureBuildOutput, SeedDatabase
from .base import Action, FunctionAction
from .database import EnsureDatabase, EnsureDatabaseUser, EnsureGrant, EnsureRootPassword
from .files import CopyFileIfMissing, EnsureKeyValues, EnsureOwnership
from .services import RestartService
from .system import EnsureComposer, EnsurePackages, EnsureRepository, RequirePrivilege
from .webserver import EnsureModuleEnabled, EnsureSiteEnabled, EnsureVhost

__all__ = [
    "Action",
    "FunctionAction",
    "ApplyMigrations",
    "CloneRepository",
    "CopyFileIfMissing",
    "EnsureBuildOutput",
    "EnsureComposer",
    "EnsureDatabase",
    "EnsureDatabaseUser",
    "EnsureGrant",
    "EnsureKeyValues",
    "EnsureModuleEnabled",
    "EnsureOwnership",
    "EnsurePackages",
    "EnsureRepository",
    "EnsureRootPassword",
    "EnsureSiteEnabled",
    "EnsureVhost",
    "RequirePrivilege",
    "RestartService",
    "SeedDatabase",
]
