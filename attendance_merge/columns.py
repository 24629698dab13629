from __future__ import annotations

import unicodedata
from typing import Any, Iterable, Mapping, Sequence

from attendance_merge.config import DEFAULT_CONFIG, ReconcileConfig

# Turkish casing: dotted capital I lowers to plain i, plain capital I to dotless ı.
_TURKISH_UPPER_MAP = str.maketrans({"İ": "i", "I": "ı"})


def fold_text(value: Any) -> str:
    """Case- and diacritic-insensitive form of a label (Turkish-aware)."""
    if value is None:
        return ""
    text = str(value).replace("\ufeff", "").translate(_TURKISH_UPPER_MAP).lower()
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    stripped = stripped.replace("ı", "i")
    return " ".join(stripped.split())


def fold_headers(headers: Iterable[Any]) -> list[str]:
    return [fold_text(header) for header in headers]


def _synonyms(role: str, synonyms: Mapping[str, Sequence[str]] | None) -> Sequence[str]:
    if synonyms is None:
        return DEFAULT_CONFIG.synonyms_for(role)
    if role not in synonyms:
        raise KeyError(f"Unknown column role: {role!r}. Known roles: {sorted(synonyms)}")
    return synonyms[role]


def resolve_column(
    headers: Sequence[Any],
    role: str,
    *,
    synonyms: Mapping[str, Sequence[str]] | None = None,
    warnings: list[str] | None = None,
) -> int | None:
    """
    Return the index of the first header matching any synonym of ``role``.

    Returns None when no header matches and, when ``warnings`` is given,
    appends a diagnostic naming the role, the synonyms and the headers seen.
    """
    accepted = _synonyms(role, synonyms)
    targets = {fold_text(label) for label in accepted}
    for idx, header in enumerate(headers):
        if fold_text(header) in targets:
            return idx
    if warnings is not None:
        warnings.append(
            f"Column for '{role}' not found. Looked for: [{', '.join(accepted)}] "
            f"in [{', '.join(str(h) for h in headers)}]"
        )
    return None


def resolve_columns(
    headers: Sequence[Any],
    roles: Iterable[str],
    *,
    config: ReconcileConfig | None = None,
    warnings: list[str] | None = None,
) -> dict[str, int | None]:
    config = config or DEFAULT_CONFIG
    return {
        role: resolve_column(headers, role, synonyms=config.role_synonyms, warnings=warnings)
        for role in roles
    }
