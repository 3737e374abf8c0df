"""Data models for organization scan results"""

from dataclasses import dataclass, field
from typing import Optional, Dict, Any, Tuple


# Finding tiers, highest severity first
TIERS = ('critical', 'danger', 'caution')


@dataclass(frozen=True)
class RepositoryRef:
    """Repository as listed by the source"""

    name: str
    full_name: Optional[str] = None
    private: bool = False
    archived: bool = False
    default_branch: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'RepositoryRef':
        """Build from a GitHub repository JSON object"""
        return cls(
            name=data['name'],
            full_name=data.get('full_name'),
            private=bool(data.get('private', False)),
            archived=bool(data.get('archived', False)),
            default_branch=data.get('default_branch'),
        )


@dataclass(frozen=True)
class LockfilePin:
    """An exact (name, version) pair resolved in a lockfile"""

    name: str
    version: str


@dataclass(frozen=True)
class CriticalFinding:
    """Lockfile pins an exact compromised version"""

    name: str
    version: str

    def to_dict(self) -> Dict[str, Any]:
        return {'name': self.name, 'version': self.version}


@dataclass(frozen=True)
class DangerFinding:
    """Declared range can resolve to a compromised version"""

    name: str
    declared_range: str
    matched_version: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'range': self.declared_range,
            'matched_version': self.matched_version,
        }


@dataclass(frozen=True)
class CautionFinding:
    """Package name is compromised but the declared range excludes known-bad versions"""

    name: str
    declared_range: str
    compromised_versions: str   # Preview of known-bad versions, comma separated

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'range': self.declared_range,
            'compromised_versions': self.compromised_versions,
        }


@dataclass(frozen=True)
class ScanResult:
    """Audit record for one (repository, branch, manifest location)"""

    repo: str
    branch: str
    path: str
    lockfile_found: bool = False
    critical: Tuple[CriticalFinding, ...] = ()
    danger: Tuple[DangerFinding, ...] = ()
    caution: Tuple[CautionFinding, ...] = ()
    errors: Tuple[str, ...] = ()

    def findings_count(self) -> int:
        """Total findings across all tiers"""
        return len(self.critical) + len(self.danger) + len(self.caution)

    def highest_tier(self) -> Optional[str]:
        """Most severe tier present in this record, or None if clean"""
        for tier in TIERS:
            if getattr(self, tier):
                return tier
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        return {
            'repo': self.repo,
            'branch': self.branch,
            'path': self.path,
            'lockfile_found': self.lockfile_found,
            'highest_tier': self.highest_tier(),
            'critical': [f.to_dict() for f in self.critical],
            'danger': [f.to_dict() for f in self.danger],
            'caution': [f.to_dict() for f in self.caution],
            'errors': list(self.errors),
        }


@dataclass(frozen=True)
class ProgressEvent:
    """Scan progress notification (repository or branch entry)"""

    kind: str                   # repo, branch
    repo: str
    branch: Optional[str] = None


@dataclass(frozen=True)
class RateLimitEvent:
    """Reported on every rate-limit retry decision"""

    kind: str                   # primary, secondary
    retry_after: float          # Seconds the server asked us to wait
    attempt: int                # 1-based count of rate-limit hits for this request
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False)
