"""
Domain models, re-exported for convenient access:

    from toolsync.core.models import PackageReference, RegistryEntry, Outcome
"""

from toolsync.core.models.exposure import ExposureLink, RuntimeEnv
from toolsync.core.models.outcome import Outcome, Stage
from toolsync.core.models.package import (
    LATEST,
    DesiredPackage,
    LockEntry,
    LockfileData,
    PackageReference,
)
from toolsync.core.models.registry import (
    AssetDescriptor,
    ManyTargets,
    NamedBins,
    RegistryEntry,
    RegistrySource,
    SingleBin,
    SingleTarget,
)

__all__ = [
    "LATEST",
    "AssetDescriptor",
    "DesiredPackage",
    "ExposureLink",
    "LockEntry",
    "LockfileData",
    "ManyTargets",
    "NamedBins",
    "Outcome",
    "PackageReference",
    "RegistryEntry",
    "RegistrySource",
    "RuntimeEnv",
    "SingleBin",
    "SingleTarget",
    "Stage",
]
