"""Per-resource request builders for the Machines API."""

from .apps import AppsAPI
from .machines import MachinesAPI
from .secrets import SecretsAPI
from .volumes import VolumesAPI

__all__ = [
    "AppsAPI",
    "MachinesAPI",
    "SecretsAPI",
    "VolumesAPI",
]
