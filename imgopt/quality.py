"""Conditional quality rules and their resolution."""

from __future__ import annotations

import fnmatch
from pathlib import PurePath
from typing import Dict, Iterable, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .contracts import ImageMetadata

WILDCARDS = frozenset("*?")


class QualityRule(BaseModel):
    """Quality overrides applied to files matching every declared predicate."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    pattern: Optional[str] = None
    directory: Optional[str] = None
    min_width: Optional[int] = None
    min_height: Optional[int] = None
    max_width: Optional[int] = None
    max_height: Optional[int] = None
    quality: Dict[str, int] = Field(default_factory=dict)

    @field_validator("quality")
    @classmethod
    def _check_quality(cls, value: Dict[str, int]) -> Dict[str, int]:
        for fmt, q in value.items():
            if not 1 <= q <= 100:
                raise ValueError(f"Quality for {fmt} must be between 1 and 100")
        return value

    @property
    def has_size_predicate(self) -> bool:
        return any(
            v is not None
            for v in (self.min_width, self.min_height, self.max_width, self.max_height)
        )

    @property
    def specificity(self) -> float:
        """Score how narrowly the rule targets files; higher is more specific."""
        score = 0.0
        kinds = 0
        if self.pattern is not None:
            kinds += 1
            literal = sum(1 for ch in self.pattern if ch not in WILDCARDS)
            score += 4 + 0.1 * literal
        if self.directory is not None:
            kinds += 1
            score += 2 + 0.1 * len(_segments(self.directory))
        if self.has_size_predicate:
            kinds += 1
            score += 1
        if kinds > 1:
            score += 2 * (kinds - 1)
        return score

    def matches(self, path: str, metadata: Optional[ImageMetadata] = None) -> bool:
        normalized = _normalize(path)
        if self.pattern is not None:
            name = PurePath(normalized).name.lower()
            if not fnmatch.fnmatchcase(name, self.pattern.lower()):
                return False
        if self.directory is not None:
            if _normalize(self.directory) not in normalized:
                return False
        if self.has_size_predicate:
            if metadata is None:
                return False
            if self.min_width is not None and metadata.width < self.min_width:
                return False
            if self.min_height is not None and metadata.height < self.min_height:
                return False
            if self.max_width is not None and metadata.width > self.max_width:
                return False
            if self.max_height is not None and metadata.height > self.max_height:
                return False
        return True


def _normalize(path: str) -> str:
    return str(path).replace("\\", "/")


def _segments(directory: str) -> List[str]:
    return [part for part in _normalize(directory).split("/") if part]


def matching_rules(
    path: str, metadata: Optional[ImageMetadata], rules: Iterable[QualityRule]
) -> List[QualityRule]:
    """Return matching rules, least specific first.

    ``sorted`` is stable, so rules of equal specificity keep their
    declaration order.
    """
    matched = [rule for rule in rules if rule.matches(path, metadata)]
    return sorted(matched, key=lambda rule: rule.specificity)


def resolve(
    path: str,
    metadata: Optional[ImageMetadata],
    default_quality: Mapping[str, int],
    rules: Iterable[QualityRule],
) -> Dict[str, int]:
    """Merge matching rules onto ``default_quality``; the most specific wins."""
    merged = dict(default_quality)
    for rule in matching_rules(path, metadata, rules):
        merged.update(rule.quality)
    return merged


def needs_metadata(rules: Iterable[QualityRule]) -> bool:
    return any(rule.has_size_predicate for rule in rules)
