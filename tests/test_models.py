"""Unit tests for result data models."""

from org_npm_scan.core.models import (
    CautionFinding,
    CriticalFinding,
    DangerFinding,
    RepositoryRef,
    ScanResult,
)


def test_repository_ref_from_api():
    """Test building a repository reference from a GitHub payload."""
    repo = RepositoryRef.from_api({
        'name': 'api',
        'full_name': 'acme/api',
        'private': True,
        'archived': False,
        'default_branch': 'main',
        'id': 123,
    })

    assert repo == RepositoryRef('api', 'acme/api', True, False, 'main')


def test_repository_ref_from_minimal_api():
    """Test missing optional fields fall back to defaults."""
    repo = RepositoryRef.from_api({'name': 'web'})

    assert repo.full_name is None
    assert repo.private is False
    assert repo.archived is False


def test_findings_are_hashable():
    """Test findings can be collected in sets."""
    findings = {CriticalFinding('a', '1.0.0'), CriticalFinding('a', '1.0.0')}
    assert len(findings) == 1


def test_scan_result_defaults():
    """Test a fresh result is clean."""
    result = ScanResult(repo='api', branch='main', path='package.json')

    assert result.lockfile_found is False
    assert result.findings_count() == 0
    assert result.highest_tier() is None


def test_scan_result_highest_tier():
    """Test the most severe populated tier wins."""
    caution = CautionFinding('a', '^1.0.0', '2.0.0')
    danger = DangerFinding('b', '^2.0.0', '2.0.1')

    assert ScanResult('r', 'main', 'package.json', caution=(caution,)).highest_tier() == 'caution'
    assert ScanResult('r', 'main', 'package.json', danger=(danger,), caution=(caution,)).highest_tier() == 'danger'
    assert ScanResult('r', 'main', 'package.json', critical=(CriticalFinding('c', '1.0.0'),),
                      danger=(danger,)).highest_tier() == 'critical'


def test_scan_result_to_dict():
    """Test JSON serialization of a result."""
    result = ScanResult(
        repo='api',
        branch='1.2',
        path='web/package.json',
        lockfile_found=True,
        critical=(CriticalFinding('left-pad', '1.3.0'),),
        danger=(DangerFinding('lodash', '^4.17.0', '4.17.20'),),
        caution=(CautionFinding('foo', '~1.0.0', '2.0.0, 2.0.1'),),
        errors=('Failed to parse web/package-lock.json: Invalid JSON',),
    )

    assert result.findings_count() == 3
    assert result.to_dict() == {
        'repo': 'api',
        'branch': '1.2',
        'path': 'web/package.json',
        'lockfile_found': True,
        'highest_tier': 'critical',
        'critical': [{'name': 'left-pad', 'version': '1.3.0'}],
        'danger': [{'name': 'lodash', 'range': '^4.17.0', 'matched_version': '4.17.20'}],
        'caution': [{'name': 'foo', 'range': '~1.0.0', 'compromised_versions': '2.0.0, 2.0.1'}],
        'errors': ['Failed to parse web/package-lock.json: Invalid JSON'],
    }
