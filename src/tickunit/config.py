from __future__ import annotations

from pathlib import Path

import yaml
from expandvars import expandvars
from pydantic import BaseModel, ConfigDict, field_validator, model_validator


class CaseConfig(BaseModel):
    """One test case class and the methods to run on it, in order."""

    model_config = ConfigDict(extra="forbid")
    target: str
    methods: list[str]
    timeout: float | None = None

    @field_validator("target")
    @classmethod
    def target_must_name_module_and_class(cls, v: str) -> str:
        module, sep, name = v.partition(":")
        if not sep or not module.strip() or not name.strip():
            raise ValueError(f"target '{v}' must have the form 'package.module:ClassName'")
        return v

    @field_validator("methods")
    @classmethod
    def methods_must_not_be_empty(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("methods must not be empty")
        return v

    @field_validator("timeout")
    @classmethod
    def timeout_must_be_positive(cls, v: float | None) -> float | None:
        if v is not None and v <= 0:
            raise ValueError("timeout must be positive")
        return v

    @property
    def module(self) -> str:
        return self.target.partition(":")[0].strip()

    @property
    def class_name(self) -> str:
        return self.target.partition(":")[2].strip()


class SuiteConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    timeout: float | None = None
    paths: list[str] = []
    cases: list[CaseConfig]

    @model_validator(mode="after")
    def cases_must_not_be_empty(self) -> SuiteConfig:
        if not self.cases:
            raise ValueError("cases must not be empty")
        return self

    def timeout_for(self, case: CaseConfig) -> float | None:
        return case.timeout if case.timeout is not None else self.timeout


def load_config(path: Path) -> SuiteConfig:
    """Load and validate a suite config from a YAML file."""
    config_dir = path.parent.resolve()

    with open(path) as f:
        raw = yaml.safe_load(f)

    if not isinstance(raw, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")

    config = SuiteConfig(**raw)

    # Resolve sys.path entries relative to the suite file location
    resolved = []
    for entry in config.paths:
        entry_path = Path(expandvars(entry))
        if not entry_path.is_absolute():
            entry_path = (config_dir / entry_path).resolve()
        resolved.append(str(entry_path))
    config.paths = resolved or [str(config_dir)]

    return config
