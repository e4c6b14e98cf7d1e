# discovery.py
from __future__ import annotations

from pathlib import Path
from typing import Dict, List

from .collaborators import ManifestReader
from .collaborators.manifest import CONFIGURATION_MANIFEST, MODULE_MANIFEST, ConfigurationManifest, read_manifest
from .errors import InputError, MissingEnvironmentError
from .model import Configuration, RequiredModule

CONFIGURATIONS_DIR = "configurations"
MODULES_DIR = "modules"


def find_module_dirs(build_root: Path) -> List[Path]:
    """Every `<build_root>/modules/<name>/` holding a module manifest, sorted by name."""
    root = Path(build_root) / MODULES_DIR
    if not root.is_dir():
        return []
    return sorted(p for p in root.iterdir() if (p / MODULE_MANIFEST).is_file())


def load_required_modules(build_root: Path, reader: ManifestReader) -> List[RequiredModule]:
    """
    Collect the dependencies of every local module.

    A dependency declared by several modules is kept once; declaring it with
    two different version constraints is an input error.
    """
    seen: Dict[str, RequiredModule] = {}
    for module_dir in find_module_dirs(build_root):
        for dep in reader.required_modules(module_dir):
            prev = seen.get(dep.name)
            if prev is None:
                seen[dep.name] = dep
            elif prev.version != dep.version:
                raise InputError(
                    f"Module '{dep.name}' is required as both {prev.version or 'any'} "
                    f"and {dep.version or 'any'} (in {module_dir.name})"
                )
    return list(seen.values())


def load_configurations(build_root: Path) -> List[Configuration]:
    """Read every `<build_root>/configurations/<name>/configuration.json`."""
    root = Path(build_root) / CONFIGURATIONS_DIR
    if not root.is_dir():
        raise InputError(f"No configurations directory under {build_root}")

    configurations: List[Configuration] = []
    for d in sorted(p for p in root.iterdir() if p.is_dir()):
        manifest = read_manifest(d / CONFIGURATION_MANIFEST, ConfigurationManifest)
        name = manifest.name or d.name
        if not manifest.environments:
            raise InputError(f"Configuration '{name}' declares no target environments")
        if any(e is None or not e.strip() for e in manifest.environments):
            raise MissingEnvironmentError(name)
        configurations.append(
            Configuration(name=name, environments=tuple(manifest.environments), path=d)
        )

    if not configurations:
        raise InputError(f"No configurations found under {root}")

    names = [c.name for c in configurations]
    dupes = sorted({n for n in names if names.count(n) > 1})
    if dupes:
        raise InputError(f"Duplicate configuration names found: {dupes}")
    return configurations
