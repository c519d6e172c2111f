from pathlib import Path

import yaml
from pydantic import ValidationError

from catalog_cd.errors import ConfigError
from catalog_cd.models.external import ExternalSpec, RepositorySpec


def load_external_spec(path: Path) -> ExternalSpec:
    try:
        with open(path, encoding="utf-8") as f:
            raw = yaml.safe_load(f)  # YAML → Python dict
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file {path}: {e}")
    try:
        return ExternalSpec.model_validate(raw or {})  # dict → Pydantic model
    except ValidationError as e:
        raise ConfigError(f"Config validation error in {path}: {format_validation_error(e)}")


def build_repository_spec(**fields) -> RepositorySpec:
    """Build a RepositorySpec from command-line values."""
    try:
        return RepositorySpec.model_validate(fields)
    except ValidationError as e:
        raise ConfigError(f"Invalid repository: {format_validation_error(e)}")


def format_validation_error(error: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(x) for x in err['loc'])}: {err['msg']}"
        for err in error.errors()
    )
