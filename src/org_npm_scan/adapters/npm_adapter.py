"""NPM manifest and lockfile parsing for remote manifest locations"""

import json
import posixpath
from typing import Any, Callable, Dict, List, Optional

from org_npm_scan.core import CompromisedIndex, ScanResult
from org_npm_scan.core.classifier import classify
from org_npm_scan.core.models import LockfilePin


MANIFEST_FILENAME = 'package.json'
LOCKFILE_FILENAME = 'package-lock.json'
VENDOR_SEGMENT = 'node_modules/'

# Merged in this order; a later category replaces an earlier range for the same name
DEPENDENCY_TYPES = ('dependencies', 'devDependencies', 'optionalDependencies', 'peerDependencies')


class ManifestParseError(ValueError):
    """package.json content is not a JSON object"""


class LockfileParseError(ValueError):
    """package-lock.json content is not a JSON object"""


def is_manifest_path(path: str) -> bool:
    """True for package.json files outside any node_modules directory"""
    # Whole file name only: "my-package.json" ends with "package.json" but is not a manifest
    return posixpath.basename(path) == MANIFEST_FILENAME and VENDOR_SEGMENT not in path


def lockfile_path_for(manifest_path: str) -> str:
    """Path of the package-lock.json next to a manifest"""
    directory = posixpath.dirname(manifest_path)
    return posixpath.join(directory, LOCKFILE_FILENAME) if directory else LOCKFILE_FILENAME


def _load_json_object(text: str, error_cls):
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise error_cls(f"Invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise error_cls(f"Expected a JSON object, got {type(data).__name__}")
    return data


def parse_manifest(text: str) -> Dict[str, str]:
    """
    Collect declared dependencies from package.json content

    Args:
        text: Raw package.json content

    Returns:
        Dependency name to declared range, across all dependency types

    Raises:
        ManifestParseError: If the content is not a JSON object
    """
    package_data = _load_json_object(text, ManifestParseError)

    declared: Dict[str, str] = {}
    for dep_type in DEPENDENCY_TYPES:
        deps = package_data.get(dep_type)
        if not isinstance(deps, dict):
            continue
        declared.update(deps)

    return declared


def parse_lockfile(text: str) -> List[LockfilePin]:
    """
    Collect exact version pins from package-lock.json content

    Supports both lockfile layouts, unioning them when both are present:
    - lockfileVersion 2/3 flat ``packages`` map keyed by install path
    - lockfileVersion 1/2 nested ``dependencies`` tree

    Args:
        text: Raw package-lock.json content

    Returns:
        Unique pins in first-seen order

    Raises:
        LockfileParseError: If the content is not a JSON object
    """
    lock_data = _load_json_object(text, LockfileParseError)

    pins: List[LockfilePin] = []
    seen = set()

    def add(name: str, version: Any):
        if not name or not isinstance(version, str) or not version:
            return
        key = (name, version)
        if key not in seen:
            seen.add(key)
            pins.append(LockfilePin(name=name, version=version))

    packages = lock_data.get('packages')
    if isinstance(packages, dict):
        for package_path, package_info in packages.items():
            if not package_path or not isinstance(package_info, dict):  # Root package
                continue
            # node_modules/a/node_modules/@scope/b -> @scope/b
            package_name = package_path.rpartition(VENDOR_SEGMENT)[2]
            add(package_name, package_info.get('version'))

    dependencies = lock_data.get('dependencies')
    if isinstance(dependencies, dict):
        stack = [dependencies]
        while stack:
            deps = stack.pop()
            for package_name, package_info in deps.items():
                if not isinstance(package_info, dict):
                    continue
                add(package_name, package_info.get('version'))
                nested = package_info.get('dependencies')
                if isinstance(nested, dict):
                    stack.append(nested)

    return pins


class NpmAdapter:
    """
    Audits npm manifest locations fetched from a remote source

    For each location:
    1. Parse package.json for declared dependency ranges
    2. Parse the sibling package-lock.json (if any) for exact pins
    3. Classify references against the compromised index
    """

    def __init__(self, index: CompromisedIndex):
        self.index = index

    def scan_location(self, repo: str, branch: str, manifest_path: str,
                      fetch: Callable[[str], Optional[str]]) -> Optional[ScanResult]:
        """
        Audit one manifest location

        Args:
            repo: Repository name
            branch: Branch name
            manifest_path: Path of package.json within the branch
            fetch: Returns file content for a path, or None if absent

        Returns:
            ScanResult, or None if the manifest itself could not be fetched
        """
        content = fetch(manifest_path)
        if content is None:
            return None

        try:
            declared = parse_manifest(content)
        except ManifestParseError as e:
            return ScanResult(
                repo=repo, branch=branch, path=manifest_path,
                errors=(f"Failed to parse {manifest_path}: {e}",))

        errors = []
        lockfile_found = False
        pins: List[LockfilePin] = []

        lockfile_path = lockfile_path_for(manifest_path)
        lock_content = fetch(lockfile_path)
        if lock_content is not None:
            lockfile_found = True
            try:
                pins = parse_lockfile(lock_content)
            except LockfileParseError as e:
                errors.append(f"Failed to parse {lockfile_path}: {e}")

        classification = classify(declared, pins, self.index)

        return ScanResult(
            repo=repo,
            branch=branch,
            path=manifest_path,
            lockfile_found=lockfile_found,
            critical=classification.critical,
            danger=classification.danger,
            caution=classification.caution,
            errors=tuple(errors),
        )
