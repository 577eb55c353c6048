"""
Rule-set file indexing.

Turns a flat list of repository paths under one scope prefix (e.g. `geo/`)
into deduplicated, type-resolved RuleRecords with a deterministic order.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from manifestor.constants import (
    CATEGORY_ADDRESS,
    CATEGORY_DOMAIN,
    FORM_BINARY,
    FORM_SOURCE,
    RULE_CATEGORY_MARKERS,
    RULE_FORM_SUFFIXES,
    TYPE_ALL,
)

from .interfaces import RuleFile, RuleRecord


@dataclass
class _Accumulator:
    forms: Set[str] = field(default_factory=set)
    categories: Set[str] = field(default_factory=set)
    files: List[RuleFile] = field(default_factory=list)


def resolve_form(forms: Set[str]) -> str:
    """`all` when both binary and source files exist, else the single observed form."""
    if FORM_BINARY in forms and FORM_SOURCE in forms:
        return TYPE_ALL
    if FORM_SOURCE in forms:
        return FORM_SOURCE
    return FORM_BINARY


def resolve_category(categories: Set[str]) -> str:
    """
    `all` when both address and domain files exist, else the single observed category.

    A name whose files matched neither directory marker also resolves to `all`.
    """
    if CATEGORY_ADDRESS in categories and CATEGORY_DOMAIN in categories:
        return TYPE_ALL
    if CATEGORY_ADDRESS in categories:
        return CATEGORY_ADDRESS
    if CATEGORY_DOMAIN in categories:
        return CATEGORY_DOMAIN
    return TYPE_ALL


def classify_form(
    file_name: str, suffixes: Sequence[Tuple[str, str]] = RULE_FORM_SUFFIXES
) -> Optional[Tuple[str, str]]:
    """Return `(form, suffix)` for a recognized rule file name, else `None`."""
    for suffix, form in suffixes:
        if file_name.endswith(suffix):
            return form, suffix
    return None


def classify_category(
    segment: str, markers: Sequence[Tuple[str, str]] = RULE_CATEGORY_MARKERS
) -> Optional[str]:
    """Return the category whose marker occurs in `segment`, else `None`."""
    for marker, category in markers:
        if marker in segment:
            return category
    return None


def build_rules_index(
    paths: Iterable[str],
    prefix: str,
    suffixes: Sequence[Tuple[str, str]] = RULE_FORM_SUFFIXES,
    markers: Sequence[Tuple[str, str]] = RULE_CATEGORY_MARKERS,
) -> List[RuleRecord]:
    """
    Build the ordered rule records of one scope.

    Parameters:
        paths (Iterable[str]): Repository-relative file paths.
        prefix (str): Scope root, including its trailing slash (e.g. `geo-lite/`).
        suffixes: Ordered `(file suffix, form)` table.
        markers: Ordered `(directory marker, category)` table.

    Returns:
        List[RuleRecord]: Records sorted by name, each with files sorted by path.
            The result does not depend on the order of `paths`.
    """
    accumulated: Dict[str, _Accumulator] = {}

    for path in paths:
        if not path.startswith(prefix):
            continue
        classified = classify_form(path, suffixes)
        if classified is None:
            continue
        form, suffix = classified

        parts = path[len(prefix) :].split("/")
        if len(parts) < 2:
            continue

        file_name = parts[-1]
        name = file_name[: -len(suffix)]
        if not name:
            continue
        category = classify_category(parts[0], markers)

        entry = accumulated.setdefault(name, _Accumulator())
        entry.forms.add(form)
        # Files outside both known directories count towards the name but are not listed
        if category is not None:
            entry.categories.add(category)
            entry.files.append(RuleFile(path=path, form=form, category=category))

    records = [
        RuleRecord(
            name=name,
            form=resolve_form(entry.forms),
            category=resolve_category(entry.categories),
            files=sorted(entry.files, key=lambda rule_file: rule_file.path),
        )
        for name, entry in accumulated.items()
    ]
    records.sort(key=lambda record: record.name)
    return records


def paths_from_tree(tree_items: Any) -> List[str]:
    """Extract blob paths from a GitHub git-tree listing, ignoring malformed entries."""
    if not isinstance(tree_items, list):
        return []
    return [
        item["path"]
        for item in tree_items
        if isinstance(item, dict)
        and item.get("type") == "blob"
        and isinstance(item.get("path"), str)
    ]


def format_commit_time(iso_timestamp: str) -> str:
    """
    Normalize a commit timestamp into a compact version token.

    >>> format_commit_time("2024-05-01T12:30:45Z")
    '20240501123045'
    """
    return "".join(ch for ch in iso_timestamp if ch not in "-:TZ")
