"""
Organization scan orchestration

Walks repositories, retained branches and manifest locations of a source,
auditing each location against the compromised package index. Results keep
enumeration order (repositories, then branches, then manifest paths) so
output diffs cleanly between runs.
"""

from typing import Callable, Iterable, List, Optional

from org_npm_scan.adapters.base import SourceAdapter
from org_npm_scan.adapters.npm_adapter import NpmAdapter
from org_npm_scan.core import CompromisedIndex, ProgressEvent, ScanResult


ProgressCallback = Callable[[ProgressEvent], None]


class OrgScanner:
    """
    Drives source enumeration and per-location auditing

    Args:
        source: Repository source (GitHub organization, test double, ...)
        index: Compromised package index, read-only
        adapter: Location auditor; defaults to an NpmAdapter over ``index``
    """

    def __init__(self, source: SourceAdapter, index: CompromisedIndex,
                 adapter: Optional[NpmAdapter] = None):
        self.source = source
        self.index = index
        self.adapter = adapter or NpmAdapter(index)

    def scan_location(self, repo: str, branch: str, manifest_path: str) -> Optional[ScanResult]:
        """Audit one manifest location; None if the manifest has vanished"""
        return self.adapter.scan_location(
            repo, branch, manifest_path,
            lambda path: self.source.get_file_content(repo, branch, path))

    def scan_branch(self, repo: str, branch: str) -> List[ScanResult]:
        """Audit every manifest location of a branch"""
        results = []
        for manifest_path in self.source.find_manifest_paths(repo, branch):
            result = self.scan_location(repo, branch, manifest_path)
            if result is not None:
                results.append(result)
        return results

    def scan_org(self, on_progress: Optional[ProgressCallback] = None) -> List[ScanResult]:
        """
        Audit every retained branch of every repository

        Args:
            on_progress: Called on repository and branch entry

        Returns:
            One result per audited manifest location, in enumeration order
        """
        results: List[ScanResult] = []

        for repo in self.source.list_repositories():
            if on_progress:
                on_progress(ProgressEvent(kind='repo', repo=repo.name))

            for branch in self.source.list_matching_branches(repo.name):
                if on_progress:
                    on_progress(ProgressEvent(kind='branch', repo=repo.name, branch=branch))

                results.extend(self.scan_branch(repo.name, branch))

        return results


def scan_org(source: SourceAdapter, specs: Iterable[str],
             on_progress: Optional[ProgressCallback] = None) -> List[ScanResult]:
    """
    Build the compromised index once and audit the whole organization

    Args:
        source: Repository source
        specs: ``name@version`` specifiers; invalid entries are skipped
        on_progress: Called on repository and branch entry

    Returns:
        Ordered scan results
    """
    index = CompromisedIndex.from_specs(specs)
    return OrgScanner(source, index).scan_org(on_progress)
