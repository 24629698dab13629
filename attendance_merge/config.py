"""Static synonym and date-format configuration shared by the resolver, parser and engine."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

SUPPORTED_CONFIG_SUFFIXES = {".json", ".yml", ".yaml"}

ROLE_SUBJECT_ID = "subject_id"
ROLE_PERSON_NAME = "person_name"
ROLE_DATE = "date"
ROLE_ACTION = "action"
ROLE_TIME = "time"

ROLES = (ROLE_SUBJECT_ID, ROLE_PERSON_NAME, ROLE_DATE, ROLE_ACTION, ROLE_TIME)
REQUIRED_ROLES = (ROLE_SUBJECT_ID, ROLE_DATE, ROLE_ACTION)

DEFAULT_ROLE_SYNONYMS: Mapping[str, tuple[str, ...]] = MappingProxyType({
    ROLE_SUBJECT_ID: (
        "id number", "identifier", "id", "subject id", "national id",
        "tc kimlik no", "tckn", "kimlik no", "tc no", "tc", "vatandaşlık no",
        "t.c. kimlik no", "t.c kimlik no", "t.c. no", "tc kimlik numarası",
    ),
    ROLE_PERSON_NAME: (
        "name", "full name", "person", "employee",
        "ad soyad", "adı soyadı", "isim soyisim", "adsoyad", "isim", "personel", "çalışan",
    ),
    ROLE_DATE: (
        "date", "transaction date", "record date", "day",
        "tarih", "işlem tarihi", "kayıt tarihi", "gün",
    ),
    ROLE_ACTION: (
        "action", "description", "event type", "event", "movement type",
        "işlem", "açıklama", "işlem türü", "olay", "hareket tipi",
    ),
    ROLE_TIME: (
        "time", "transaction time", "record time",
        "saat", "işlem saati", "zaman", "giriş saati", "çıkış saati",
    ),
})

DEFAULT_ENTRY_SYNONYMS = ("giriş", "entry", "check-in", "checkin", "check in", "registration", "kayıt")
DEFAULT_EXIT_SYNONYMS = ("çıkış", "exit", "check-out", "checkout", "check out")
DEFAULT_DELETION_SYNONYMS = ("silme", "silindi", "deletion", "delete", "deleted", "removal", "removed")

# Tried in order; first match wins. Day-first families come before US month-first ones.
DEFAULT_DATE_FORMATS = (
    # dd.mm.yyyy
    "%d.%m.%Y %H:%M:%S", "%d.%m.%Y %H:%M", "%d.%m.%Y",
    "%d.%m.%y %H:%M:%S", "%d.%m.%y %H:%M", "%d.%m.%y",
    # dd/mm/yyyy
    "%d/%m/%Y %H:%M:%S", "%d/%m/%Y %H:%M", "%d/%m/%Y",
    "%d/%m/%y %H:%M:%S", "%d/%m/%y %H:%M", "%d/%m/%y",
    # ISO
    "%Y-%m-%d %H:%M:%S", "%Y-%m-%d %H:%M", "%Y-%m-%d",
    # US m/d/yy, m/d/yyyy
    "%m/%d/%y %H:%M:%S", "%m/%d/%y %H:%M", "%m/%d/%y",
    "%m/%d/%Y %H:%M:%S", "%m/%d/%Y %H:%M", "%m/%d/%Y",
    # US m-d-yy, m-d-yyyy
    "%m-%d-%y %H:%M:%S", "%m-%d-%y %H:%M", "%m-%d-%y",
    "%m-%d-%Y %H:%M:%S", "%m-%d-%Y %H:%M", "%m-%d-%Y",
)

DEFAULT_CHUNK_SIZE = 500


def _freeze_synonyms(mapping: Mapping[str, Any]) -> Mapping[str, tuple[str, ...]]:
    return MappingProxyType({str(role): tuple(str(s) for s in values) for role, values in mapping.items()})


@dataclass(frozen=True)
class ReconcileConfig:
    role_synonyms: Mapping[str, tuple[str, ...]] = field(default_factory=lambda: DEFAULT_ROLE_SYNONYMS)
    entry_synonyms: tuple[str, ...] = DEFAULT_ENTRY_SYNONYMS
    exit_synonyms: tuple[str, ...] = DEFAULT_EXIT_SYNONYMS
    deletion_synonyms: tuple[str, ...] = DEFAULT_DELETION_SYNONYMS
    date_formats: tuple[str, ...] = DEFAULT_DATE_FORMATS
    chunk_size: int = DEFAULT_CHUNK_SIZE

    def __post_init__(self) -> None:
        merged = dict(DEFAULT_ROLE_SYNONYMS)
        merged.update(self.role_synonyms)
        object.__setattr__(self, "role_synonyms", _freeze_synonyms(merged))
        for name in ("entry_synonyms", "exit_synonyms", "deletion_synonyms", "date_formats"):
            value = getattr(self, name)
            if isinstance(value, str):
                raise TypeError(f"{name} must be a sequence of strings, not a single string")
            object.__setattr__(self, name, tuple(str(item) for item in value))
        object.__setattr__(self, "chunk_size", int(self.chunk_size))
        if self.chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")

    def synonyms_for(self, role: str) -> tuple[str, ...]:
        if role not in self.role_synonyms:
            raise KeyError(f"Unknown column role: {role!r}. Known roles: {sorted(self.role_synonyms)}")
        return self.role_synonyms[role]


DEFAULT_CONFIG = ReconcileConfig()


def config_to_dict(config: ReconcileConfig = DEFAULT_CONFIG) -> dict[str, Any]:
    return {
        "role_synonyms": {role: list(values) for role, values in config.role_synonyms.items()},
        "entry_synonyms": list(config.entry_synonyms),
        "exit_synonyms": list(config.exit_synonyms),
        "deletion_synonyms": list(config.deletion_synonyms),
        "date_formats": list(config.date_formats),
        "chunk_size": config.chunk_size,
    }


def config_from_dict(payload: Mapping[str, Any], base: ReconcileConfig = DEFAULT_CONFIG) -> ReconcileConfig:
    known = {f.name for f in fields(ReconcileConfig)}
    unknown = sorted(set(payload) - known)
    if unknown:
        raise ValueError(f"Unknown configuration keys: {unknown}. Allowed: {sorted(known)}")
    role_synonyms = payload.get("role_synonyms")
    if role_synonyms is not None and not isinstance(role_synonyms, Mapping):
        raise ValueError("role_synonyms must be an object mapping role names to label lists")
    try:
        return replace(base, **payload)
    except TypeError as exc:
        raise ValueError(f"Invalid configuration: {exc}") from exc


def load_config(path: "str | Path") -> ReconcileConfig:
    """
    Load a JSON configuration file. Keys present in the file replace the
    defaults; ``role_synonyms`` replaces only the roles it names.

    Raises:
        FileNotFoundError  if the file does not exist.
        ValueError         if the file is not a JSON object or has unknown keys.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config not found: {path}")
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_CONFIG_SUFFIXES:
        raise ValueError("Config must be .json, .yml, or .yaml")
    if suffix in {".yml", ".yaml"}:
        raise ValueError("YAML configs are not supported yet. Use JSON for now.")
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Could not read config: {exc}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Config root must be a JSON object.")
    return config_from_dict(payload)
