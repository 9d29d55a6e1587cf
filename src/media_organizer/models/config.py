"""Configuration model for media organizer."""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from ..exceptions import ConfigurationError

DEFAULT_SLOT_NAMES = ["student_file", "homework_file", "teacher_file", "ppt_file"]


@dataclass
class StorageConfig:
    """Object store connection settings."""
    bucket: Optional[str] = None
    region: Optional[str] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    endpoint_url: Optional[str] = None
    public_url_base: Optional[str] = None
    presign_expires: int = 3600


@dataclass
class DatabaseConfig:
    """Catalog database settings."""
    path: Optional[Path] = None


@dataclass
class ReorganizeConfig:
    """Behaviour of the batch reconciler."""
    slot_names: List[str] = field(default_factory=lambda: list(DEFAULT_SLOT_NAMES))
    published_only: bool = True
    append_hash_suffix: bool = False
    max_scan: int = 10_000
    verify_destination: bool = False
    concurrency: int = 1


@dataclass
class Config:
    """Main configuration model."""
    storage: StorageConfig = field(default_factory=StorageConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    reorganize: ReorganizeConfig = field(default_factory=ReorganizeConfig)
    journal_path: Optional[Path] = None

    @classmethod
    def default(cls) -> "Config":
        return cls()

    def missing_parameters(self) -> List[str]:
        """Names of required settings that are unset, in env var spelling."""
        missing = []
        if not self.storage.bucket:
            missing.append("AWS_BUCKET")
        if not self.storage.region:
            missing.append("AWS_REGION")
        if not self.storage.access_key_id:
            missing.append("AWS_ACCESS_KEY_ID")
        if not self.storage.secret_access_key:
            missing.append("AWS_ACCESS_SECRET")
        if not self.database.path:
            missing.append("DATABASE_PATH")
        return missing

    def validate(self) -> "Config":
        missing = self.missing_parameters()
        if missing:
            raise ConfigurationError(
                "Missing required configuration: " + ", ".join(missing),
                missing=missing,
            )
        if self.reorganize.concurrency < 1:
            raise ConfigurationError("reorganize.concurrency must be at least 1")
        if self.reorganize.max_scan < 1:
            raise ConfigurationError("reorganize.max_scan must be at least 1")
        return self


# Env var -> (section, attribute)
ENV_MAPPING: Dict[str, tuple] = {
    "AWS_BUCKET": ("storage", "bucket"),
    "AWS_REGION": ("storage", "region"),
    "AWS_ACCESS_KEY_ID": ("storage", "access_key_id"),
    "AWS_ACCESS_SECRET": ("storage", "secret_access_key"),
    "AWS_SECRET_ACCESS_KEY": ("storage", "secret_access_key"),
    "AWS_ENDPOINT_URL": ("storage", "endpoint_url"),
    "MEDIA_PUBLIC_URL_BASE": ("storage", "public_url_base"),
    "DATABASE_PATH": ("database", "path"),
    "DATABASE_FILENAME": ("database", "path"),
}


def _dataclass_to_dict(obj):
    """Convert dataclass to dict recursively."""
    from dataclasses import is_dataclass, asdict
    if is_dataclass(obj):
        result = {}
        for key, value in asdict(obj).items():
            result[key] = _dataclass_to_dict(value)
        return result
    elif isinstance(obj, Path):
        return str(obj)
    elif isinstance(obj, dict):
        return {key: _dataclass_to_dict(value) for key, value in obj.items()}
    elif isinstance(obj, list):
        return [_dataclass_to_dict(item) for item in obj]
    else:
        return obj


def _dict_to_dataclass(data, dataclass_type):
    """Convert dict to dataclass recursively."""
    from dataclasses import is_dataclass, fields
    if not is_dataclass(dataclass_type):
        return data

    field_types = {f.name: f.type for f in fields(dataclass_type)}

    kwargs = {}
    for field_name, field_type in field_types.items():
        if field_name in data:
            value = data[field_name]
            if hasattr(field_type, '__dataclass_fields__'):
                kwargs[field_name] = _dict_to_dataclass(value or {}, field_type)
            elif field_type in (Path, Optional[Path]) and value is not None:
                kwargs[field_name] = Path(value)
            else:
                kwargs[field_name] = value

    return dataclass_type(**kwargs)


def apply_environment(config: Config, environ: Optional[Mapping[str, str]] = None) -> Config:
    """Overlay environment variables onto ``config`` in place."""
    environ = os.environ if environ is None else environ
    for env_name, (section, attribute) in ENV_MAPPING.items():
        value = environ.get(env_name)
        if not value:
            continue
        target = getattr(config, section)
        setattr(target, attribute, Path(value) if section == "database" else value)

    journal = environ.get("MEDIA_ORGANIZER_JOURNAL")
    if journal:
        config.journal_path = Path(journal)
    return config


def load_config(config_path: Optional[Path] = None,
                environ: Optional[Mapping[str, str]] = None) -> Config:
    """Load configuration from an optional JSON file, then the environment."""
    if config_path:
        try:
            with open(config_path, 'r') as f:
                config_data = json.load(f)
        except (OSError, ValueError) as e:
            raise ConfigurationError(f"Cannot read configuration file {config_path}: {e}")
        config = _dict_to_dataclass(config_data, Config)
    else:
        config = Config.default()

    return apply_environment(config, environ)


def save_config(config: Config, config_path: Path) -> None:
    """Save configuration to JSON file."""
    config_dict = _dataclass_to_dict(config)

    with open(config_path, 'w') as f:
        json.dump(config_dict, f, indent=2)
