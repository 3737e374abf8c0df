"""Compromised package index built from name@version specifiers"""

import csv
import io
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

import click


def parse_specifier(spec: str) -> Optional[Tuple[str, str]]:
    """
    Split a ``name@version`` specifier at its last ``@``

    Scoped names keep their leading ``@`` (``@scope/pkg@1.0.0``). Specifiers
    without a version part (``left-pad``, ``@scope/pkg``) are not valid.

    Args:
        spec: Specifier string

    Returns:
        (name, version) tuple, or None if there is no valid split
    """
    spec = spec.strip()
    at_index = spec.rfind('@')
    if at_index <= 0:
        return None

    name = spec[:at_index].strip()
    version = spec[at_index + 1:].strip()
    if not name or not version:
        return None

    return name, version


def split_specifier_text(text: str) -> List[str]:
    """
    Split newline- or comma-delimited specifier text into entries

    Blank entries and ``#`` comment lines are dropped.
    """
    entries = []
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith('#'):
            continue
        entries.extend(part.strip() for part in line.split(',') if part.strip())
    return entries


class CompromisedIndex:
    """
    Read-only lookup of compromised npm package versions

    Maps each package name to the versions known to be compromised. Versions
    keep the order in which they were first seen so that iteration (first
    match, preview) is deterministic across runs.
    """

    def __init__(self, packages: Optional[Dict[str, Iterable[str]]] = None):
        ordered: Dict[str, Dict[str, None]] = {}
        for name, versions in (packages or {}).items():
            bucket = ordered.setdefault(name, {})
            for version in versions:
                bucket.setdefault(version, None)

        self._ordered: Dict[str, Tuple[str, ...]] = {
            name: tuple(versions) for name, versions in ordered.items()
        }
        self._sets: Dict[str, FrozenSet[str]] = {
            name: frozenset(versions) for name, versions in self._ordered.items()
        }

    @classmethod
    def from_specs(cls, specs: Iterable[str]) -> 'CompromisedIndex':
        """
        Build the index from ``name@version`` specifiers

        Specifiers without a valid name/version split are skipped.
        Duplicate specifiers merge into one entry.
        """
        packages: Dict[str, List[str]] = {}
        for spec in specs:
            parsed = parse_specifier(spec)
            if parsed is None:
                continue
            name, version = parsed
            packages.setdefault(name, []).append(version)
        return cls(packages)

    def __contains__(self, name: str) -> bool:
        return name in self._sets

    def __len__(self) -> int:
        return len(self._sets)

    def versions(self, name: str) -> Tuple[str, ...]:
        """Compromised versions for a package, in first-seen order"""
        return self._ordered.get(name, ())

    def is_compromised(self, name: str, version: str) -> bool:
        """Exact string check of a package version"""
        return version in self._sets.get(name, frozenset())

    def names(self) -> List[str]:
        """Package names in the index, in first-seen order"""
        return list(self._ordered)

    def specifiers(self) -> List[str]:
        """All entries rendered back as ``name@version``"""
        return [f"{name}@{version}" for name, versions in self._ordered.items() for version in versions]

    def package_count(self) -> int:
        return len(self._ordered)

    def version_count(self) -> int:
        return sum(len(versions) for versions in self._ordered.values())

    def print_summary(self):
        """Print a summary of the loaded index"""
        if not self._ordered:
            click.echo(click.style("⚠️  Warning: Compromised package index is empty", fg='yellow', bold=True), err=True)
            return

        click.echo(click.style(
            f"✓ Compromised index: {self.package_count()} packages, {self.version_count()} versions",
            fg='green', bold=True))


def load_specifiers_from_text(text: str) -> List[str]:
    """
    Parse specifier text, reporting entries that will be skipped

    Args:
        text: Newline- or comma-delimited ``name@version`` entries

    Returns:
        Valid specifiers in input order
    """
    specs = []
    for entry in split_specifier_text(text):
        if parse_specifier(entry) is None:
            click.echo(click.style(
                f"⚠️  Warning: Skipping invalid specifier (expected name@version): {entry}",
                fg='yellow'), err=True)
            continue
        specs.append(entry)
    return specs


def load_specifiers_from_file(path: str) -> List[str]:
    """
    Load specifiers from a file

    Plain text files hold one ``name@version`` per line (commas also split).
    CSV files in the threat database format (``ecosystem,name,version``) are
    accepted too; only npm rows are kept.

    Args:
        path: File to read

    Returns:
        Valid specifiers in file order
    """
    text = Path(path).read_text(encoding='utf-8')

    first_line = next((line for line in text.splitlines() if line.strip() and not line.startswith('#')), '')
    headers = {h.strip().lower() for h in first_line.split(',')}
    if {'ecosystem', 'name', 'version'} <= headers:
        return _load_threat_csv(text, path)

    return load_specifiers_from_text(text)


def _load_threat_csv(text: str, path: str) -> List[str]:
    """Load npm rows from an ``ecosystem,name,version`` CSV"""
    lines = [line for line in text.splitlines() if not line.startswith('#')]
    reader = csv.DictReader(io.StringIO('\n'.join(lines)))
    reader.fieldnames = [h.strip().lower() for h in reader.fieldnames or []]

    specs = []
    for row_num, row in enumerate(reader, start=2):  # Start at 2 (header is line 1)
        ecosystem = (row.get('ecosystem') or '').strip().lower()
        name = (row.get('name') or '').strip()
        version = (row.get('version') or '').strip()

        if not ecosystem or not name or not version:
            click.echo(click.style(
                f"⚠️  Warning: Skipping row {row_num} of {path} with empty fields: {row}",
                fg='yellow'), err=True)
            continue

        if ecosystem != 'npm':
            continue

        specs.append(f"{name}@{version}")

    return specs
