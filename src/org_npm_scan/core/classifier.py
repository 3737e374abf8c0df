"""Tiered classification of compromised package references"""

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from semantic_version import Version, NpmSpec

from .compromised_index import CompromisedIndex
from .models import CautionFinding, CriticalFinding, DangerFinding, LockfilePin


# Number of known-bad versions shown alongside a caution finding
CAUTION_PREVIEW_SIZE = 3

# npm allows whitespace between an operator and its version (">= 1.2.3")
OPERATOR_SPACE_RE = re.compile(r"(<=|>=|<|>|=|\^|~)\s+")
WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class Classification:
    """Findings for one manifest location, grouped by tier"""

    critical: Tuple[CriticalFinding, ...] = ()
    danger: Tuple[DangerFinding, ...] = ()
    caution: Tuple[CautionFinding, ...] = ()


def parse_version(value: str) -> Optional[Version]:
    """
    Parse a strict semantic version

    A single leading ``v`` or ``=`` is tolerated, as npm does.

    Returns:
        Version, or None if the string is not a valid semantic version
    """
    value = str(value).strip()
    if value[:1] in ('v', '='):
        value = value[1:].strip()
    try:
        return Version(value)
    except ValueError:
        return None


def normalize_range(declared_range: str) -> str:
    """
    Rewrite an npm range into the compact form NpmSpec parses

    Whitespace after an operator is dropped and whitespace runs collapse
    to one space, so ``>= 16.8.0  <18`` becomes ``>=16.8.0 <18``. An empty
    range means any version.
    """
    normalized = WHITESPACE_RE.sub(' ', declared_range.strip())
    normalized = OPERATOR_SPACE_RE.sub(r'\1', normalized)
    return normalized or '*'


def parse_range(declared_range: str) -> Optional[NpmSpec]:
    """
    Parse an npm range expression

    Returns:
        NpmSpec, or None for anything npm semver would not accept
        (git URLs, dist-tags, file: links, malformed ranges)
    """
    if not isinstance(declared_range, str):
        return None
    try:
        return NpmSpec(normalize_range(declared_range))
    except ValueError:
        return None


def find_matching_version(declared_range: str, compromised_versions: Iterable[str]) -> Optional[str]:
    """
    First compromised version that satisfies the declared range

    Args:
        declared_range: Range from the manifest
        compromised_versions: Known-bad versions, in index order

    Returns:
        Matching version string as listed in the index, or None
    """
    spec = parse_range(declared_range)
    if spec is None:
        return None

    for candidate in compromised_versions:
        version = parse_version(candidate)
        if version is not None and version in spec:
            return candidate

    return None


def classify(declared_deps: Dict[str, str],
             lockfile_pins: Iterable[LockfilePin],
             index: CompromisedIndex) -> Classification:
    """
    Tier compromised package references for one manifest location

    - critical: a lockfile pins an exact compromised version
    - danger: the declared range could resolve to a compromised version
    - caution: the name is compromised but the range excludes every
      known-bad version (or is not a valid range)

    A name with a critical finding is not reported again as danger or caution.

    Args:
        declared_deps: Dependency name to declared range, from the manifest
        lockfile_pins: Exact pins from the lockfile
        index: Compromised package index

    Returns:
        Classification with the findings of each tier
    """
    critical: List[CriticalFinding] = []
    seen = set()
    for pin in lockfile_pins:
        key = (pin.name, pin.version)
        if key in seen or not index.is_compromised(pin.name, pin.version):
            continue
        seen.add(key)
        critical.append(CriticalFinding(name=pin.name, version=pin.version))

    installed = {finding.name for finding in critical}

    danger: List[DangerFinding] = []
    caution: List[CautionFinding] = []
    for name, declared_range in declared_deps.items():
        if name not in index or name in installed:
            continue

        bad_versions = index.versions(name)
        matched = find_matching_version(declared_range, bad_versions)

        if matched is not None:
            danger.append(DangerFinding(
                name=name, declared_range=str(declared_range), matched_version=matched))
        else:
            caution.append(CautionFinding(
                name=name,
                declared_range=str(declared_range),
                compromised_versions=', '.join(bad_versions[:CAUTION_PREVIEW_SIZE])))

    return Classification(critical=tuple(critical), danger=tuple(danger), caution=tuple(caution))
