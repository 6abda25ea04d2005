from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence, Tuple

from .mapping import aliases_for, normalize_header
from .schema import CanonicalField, get_field_set, normalize_data_type

LOGGER = logging.getLogger(__name__)

EXACT = "exact"
FLEXIBLE = "flexible"
STRATEGIES: Tuple[str, ...] = (EXACT, FLEXIBLE)


class MappingError(ValueError):
    """A mapping refers to a header or canonical key that does not exist."""


@dataclass
class MappingStatus:
    mapped: int
    required: bool  # every required field is mapped
    total: int
    missing_required: int


def build_exact_mapping(field_set: Sequence[CanonicalField], headers: Iterable[str]) -> Dict[str, str]:
    """Map a field only when a header is identical (case-sensitive) to its label."""
    available = set(headers)
    return {f.key: f.label for f in field_set if f.label in available}


def build_flexible_mapping(field_set: Sequence[CanonicalField], headers: Iterable[str]) -> Dict[str, str]:
    """Exact label match first, then the field's synonyms compared after normalization."""
    headers = list(headers)
    available = set(headers)
    lookup = {normalize_header(h): h for h in headers}
    mapping: Dict[str, str] = {}
    for f in field_set:
        if f.label in available:
            mapping[f.key] = f.label
            continue
        for alias in aliases_for(f.key, f.label):
            match = lookup.get(normalize_header(alias))
            if match is not None:
                mapping[f.key] = match
                break
    return mapping


def build_mapping(
    field_set: Sequence[CanonicalField], headers: Iterable[str], strategy: str = FLEXIBLE
) -> Dict[str, str]:
    if strategy == EXACT:
        mapping = build_exact_mapping(field_set, headers)
    elif strategy == FLEXIBLE:
        mapping = build_flexible_mapping(field_set, headers)
    else:
        raise ValueError(f"Unknown mapping strategy: {strategy!r}; expected one of {', '.join(STRATEGIES)}")
    LOGGER.debug("Built %s mapping: %s", strategy, mapping)
    return mapping


def mapping_status(field_set: Sequence[CanonicalField], mapping: Dict[str, str]) -> MappingStatus:
    keys = {f.key for f in field_set}
    mapped = [k for k, header in mapping.items() if header and k in keys]
    missing = [f.key for f in field_set if f.required and not mapping.get(f.key)]
    return MappingStatus(
        mapped=len(mapped),
        required=not missing,
        total=len(field_set),
        missing_required=len(missing),
    )


class MappingSession:
    """Current mapping for one upload while the user corrects it.

    Owned by a single caller. Every header it hands out exists in ``headers``.
    """

    def __init__(self, headers: Sequence[str], data_type: str, strategy: str = FLEXIBLE) -> None:
        self.headers: List[str] = list(headers)
        self.data_type = normalize_data_type(data_type)
        self.mapping: Dict[str, str] = {}
        self.auto_map(strategy)

    @property
    def field_set(self) -> Tuple[CanonicalField, ...]:
        return get_field_set(self.data_type)

    def auto_map(self, strategy: str = FLEXIBLE) -> Dict[str, str]:
        self.mapping = build_mapping(self.field_set, self.headers, strategy)
        return dict(self.mapping)

    def switch_type(self, data_type: str, strategy: str = FLEXIBLE) -> Dict[str, str]:
        """Re-map the same headers against the other field set.

        The session is left untouched when the type or strategy is rejected.
        """
        data_type = normalize_data_type(data_type)
        mapping = build_mapping(get_field_set(data_type), self.headers, strategy)
        self.data_type = data_type
        self.mapping = mapping
        return dict(mapping)

    def set_field(self, key: str, header: str) -> None:
        if key not in {f.key for f in self.field_set}:
            raise MappingError(f"Unknown {self.data_type} field: {key}")
        if not header:
            self.clear_field(key)
            return
        if header not in self.headers:
            raise MappingError(f"Header not present in upload: {header}")
        self.mapping[key] = header

    def clear_field(self, key: str) -> None:
        self.mapping.pop(key, None)

    @property
    def status(self) -> MappingStatus:
        return mapping_status(self.field_set, self.mapping)

    @property
    def can_submit(self) -> bool:
        return self.status.required
