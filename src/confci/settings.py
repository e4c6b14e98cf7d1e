# settings.py
from __future__ import annotations

import os
import uuid
from pathlib import Path
from typing import List, Mapping, Optional

from pydantic import BaseModel, Field, SecretStr, ValidationError, field_validator

from .errors import InputError
from .model import Credentials

ENV_PREFIX = "CONFCI_"


class PipelineSettings(BaseModel):
    """Everything the pipeline reads from its environment."""

    build_root: Path = Path(".")
    run_id: str = Field(default_factory=lambda: uuid.uuid4().hex[:8])

    app_id: str = ""
    app_secret: SecretStr = SecretStr("")
    tenant_id: str = ""
    authority: str = "https://login.microsoftonline.com"

    automation_url: str = "http://localhost:8080"
    report_destination: Optional[str] = None

    poll_interval: float = Field(15.0, gt=0)
    module_timeout: float = Field(900.0, ge=0)
    compilation_timeout: float = Field(900.0, ge=0)
    provision_timeout: float = Field(1800.0, ge=0)
    convergence_timeout: float = Field(3600.0, ge=0)

    tool_modules: List[str] = Field(default_factory=list)
    install_command: str = "python -m pip install {name}"
    tests_dir: str = "tests"

    @field_validator("tool_modules", mode="before")
    @classmethod
    def split_list(cls, v):
        if isinstance(v, str):
            return [s.strip() for s in v.split(",") if s.strip()]
        return v

    @property
    def credentials(self) -> Credentials:
        return Credentials(
            app_id=self.app_id,
            app_secret=self.app_secret.get_secret_value(),
            tenant_id=self.tenant_id,
        )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides) -> "PipelineSettings":
        """
        Build settings from CONFCI_* variables, e.g. CONFCI_APP_ID or
        CONFCI_POLL_INTERVAL. Keyword overrides win over the environment;
        overrides set to None are ignored.
        """
        environ = os.environ if environ is None else environ
        values = {}
        for name in cls.model_fields:
            key = ENV_PREFIX + name.upper()
            if key in environ:
                values[name] = environ[key]
        values.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return cls(**values)
        except ValidationError as e:
            raise InputError(f"Invalid settings:\n{e}") from e
