# collaborators/manifest.py
from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError

from ..errors import InputError
from ..model import RequiredModule

MODULE_MANIFEST = "module.json"
CONFIGURATION_MANIFEST = "configuration.json"


# -------------------- Schemas --------------------

class RequiredModuleEntry(BaseModel):
    name: str
    version: str = ""


class ModuleManifest(BaseModel):
    name: str
    version: str = ""
    required_modules: List[RequiredModuleEntry] = Field(default_factory=list)


class ConfigurationManifest(BaseModel):
    name: Optional[str] = None
    # null entries parse so that loading can reject them naming the configuration
    environments: List[Optional[str]] = Field(default_factory=list)


def read_manifest(path: Path, model: type[BaseModel]) -> BaseModel:
    """Parse a JSON manifest file into `model`, turning every failure into InputError."""
    if not path.is_file():
        raise InputError(f"Manifest not found: {path}")
    try:
        return model.model_validate_json(path.read_text(encoding="utf-8"))
    except ValidationError as e:
        raise InputError(f"Invalid manifest {path}:\n{e}") from e


class JsonManifestReader:
    """Reads `module.json` from a module directory."""

    def __init__(self, filename: str = MODULE_MANIFEST):
        self.filename = filename

    def required_modules(self, module_dir: Path) -> list[RequiredModule]:
        manifest = read_manifest(Path(module_dir) / self.filename, ModuleManifest)
        return [RequiredModule(name=m.name, version=m.version) for m in manifest.required_modules]
