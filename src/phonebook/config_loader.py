from __future__ import annotations

import argparse
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml  # type: ignore[import-untyped]


@dataclass
class OutputsConfig:
    dir: Path


@dataclass
class StorageConfig:
    database: Optional[str] = None


@dataclass
class ParserConfig:
    enhanced: bool = False


@dataclass
class DedupeConfig:
    phone_weight: float = 0.4
    email_weight: float = 0.4
    name_weight: float = 0.3
    duplicate_threshold: float = 0.4
    exact_match_threshold: float = 0.8
    name_similarity_threshold: float = 0.7
    phone_similarity_threshold: float = 0.8
    email_local_similarity_threshold: float = 0.8


@dataclass
class ImportConfig:
    default_relationship_type: str = "Other"
    default_data_owner: Optional[str] = None
    csv_mapping: Dict[str, str] = field(default_factory=dict)


@dataclass
class LoggingConfig:
    level: str = "WARNING"


@dataclass
class PhonebookConfig:
    storage: StorageConfig = field(default_factory=StorageConfig)
    parser: ParserConfig = field(default_factory=ParserConfig)
    dedupe: DedupeConfig = field(default_factory=DedupeConfig)
    imports: ImportConfig = field(default_factory=ImportConfig)
    outputs: OutputsConfig = field(default_factory=lambda: OutputsConfig(dir=Path(os.getcwd())))
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _load_yaml(path: Optional[str]) -> Dict[str, Any]:
    if not path:
        return {}
    with open(path, "r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def _pick(
    args: argparse.Namespace, name: str, section: Dict[str, Any], key: str, default: Any
) -> Any:
    value = getattr(args, name, None)
    if value is not None:
        return value
    return section.get(key, default)


def load_pipeline_config(args: argparse.Namespace) -> PhonebookConfig:
    config_data = _load_yaml(getattr(args, "config", None))
    storage_cfg = config_data.get("storage", {}) or {}
    parser_cfg = config_data.get("parser", {}) or {}
    dedupe_cfg = config_data.get("dedupe", {}) or {}
    imports_cfg = config_data.get("imports", {}) or {}
    outputs_cfg = config_data.get("outputs", {}) or {}
    logging_cfg = config_data.get("logging", {}) or {}

    storage = StorageConfig(database=_pick(args, "database", storage_cfg, "database", None))

    parser = ParserConfig(enhanced=bool(_pick(args, "enhanced", parser_cfg, "enhanced", False)))

    defaults = DedupeConfig()

    def _dedupe_value(name: str) -> float:
        return float(_pick(args, name, dedupe_cfg, name, getattr(defaults, name)))

    dedupe = DedupeConfig(
        phone_weight=_dedupe_value("phone_weight"),
        email_weight=_dedupe_value("email_weight"),
        name_weight=_dedupe_value("name_weight"),
        duplicate_threshold=_dedupe_value("duplicate_threshold"),
        exact_match_threshold=_dedupe_value("exact_match_threshold"),
        name_similarity_threshold=_dedupe_value("name_similarity_threshold"),
        phone_similarity_threshold=_dedupe_value("phone_similarity_threshold"),
        email_local_similarity_threshold=_dedupe_value("email_local_similarity_threshold"),
    )

    imports = ImportConfig(
        default_relationship_type=_pick(
            args, "relationship_type", imports_cfg, "default_relationship_type", "Other"
        ),
        default_data_owner=_pick(args, "data_owner", imports_cfg, "default_data_owner", None),
        csv_mapping=dict(imports_cfg.get("csv_mapping", {}) or {}),
    )

    outputs_dir = Path(getattr(args, "out_dir", None) or outputs_cfg.get("dir") or os.getcwd())
    outputs = OutputsConfig(dir=outputs_dir)

    arg_level = getattr(args, "log_level", None)
    effective_level = (arg_level or logging_cfg.get("level") or "WARNING").upper()
    logging_config = LoggingConfig(level=effective_level)

    return PhonebookConfig(
        storage=storage,
        parser=parser,
        dedupe=dedupe,
        imports=imports,
        outputs=outputs,
        logging=logging_config,
    )
