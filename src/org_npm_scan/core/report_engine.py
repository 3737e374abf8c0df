"""Report generation for organization scans"""

import json
from typing import Any, Dict, List, Optional

import click

from .models import ScanResult, TIERS


TIER_STYLES = {
    'critical': {'fg': 'red', 'icon': '🚨', 'label': 'CRITICAL: compromised version pinned in lockfile'},
    'danger': {'fg': 'yellow', 'icon': '⚠️ ', 'label': 'DANGER: declared range can resolve to a compromised version'},
    'caution': {'fg': 'cyan', 'icon': '🔎', 'label': 'CAUTION: compromised package name, range excludes known-bad versions'},
}


class ReportEngine:
    """
    Aggregates scan results and generates reports

    Supports:
    - Console output with colored formatting, grouped by tier
    - JSON export
    - Summary statistics (coverage and per-tier counts)
    """

    def __init__(self, org: Optional[str] = None):
        self.org = org
        self.results: List[ScanResult] = []
        self.specifiers: List[str] = []  # Compromised specifiers scanned for

    def add_results(self, results: List[ScanResult]):
        """Add multiple results"""
        self.results.extend(results)

    def set_specifiers(self, specifiers: List[str]):
        """Set the compromised specifiers that were scanned for"""
        self.specifiers = list(specifiers)

    def get_results_count(self) -> int:
        """Number of manifest locations audited"""
        return len(self.results)

    def get_findings_count(self, tier: Optional[str] = None) -> int:
        """Total findings, optionally for one tier"""
        tiers = [tier] if tier else TIERS
        return sum(len(getattr(result, t)) for result in self.results for t in tiers)

    def has_actionable_findings(self) -> bool:
        """True if any critical or danger finding was recorded"""
        return self.get_findings_count('critical') > 0 or self.get_findings_count('danger') > 0

    def _generate_summary(self) -> Dict[str, Any]:
        """
        Generate summary statistics

        Returns:
            Dictionary of coverage counts and per-tier totals
        """
        summary = {
            'locations': self.get_results_count(),
            'flagged_locations': sum(1 for r in self.results if r.highest_tier()),
            'repositories': len({r.repo for r in self.results}),
            'branches': len({(r.repo, r.branch) for r in self.results}),
            'with_lockfile': sum(1 for r in self.results if r.lockfile_found),
            'with_errors': sum(1 for r in self.results if r.errors),
        }
        for tier in TIERS:
            summary[tier] = self.get_findings_count(tier)
        summary['unique_packages'] = len({
            finding.name for r in self.results for tier in TIERS for finding in getattr(r, tier)
        })
        return summary

    def to_report(self) -> Dict[str, Any]:
        """Build the JSON report structure"""
        return {
            'org': self.org,
            'specifiers': self.specifiers,
            'total_findings': self.get_findings_count(),
            'summary': self._generate_summary(),
            'results': [result.to_dict() for result in self.results],
        }

    def print_report(self):
        """Print formatted console report"""
        click.echo("\n" + click.style("=" * 80, fg='white', bold=True))
        click.echo(click.style("SCAN REPORT", fg='white', bold=True))
        click.echo(click.style("=" * 80, fg='white', bold=True))

        if self.org:
            click.echo(click.style(f"🏢 Organization: {self.org}", fg='cyan', bold=True))
        click.echo(click.style(
            f"🔎 Scanned {self.get_results_count()} manifest location(s) for "
            f"{len(self.specifiers)} compromised specifier(s)", fg='cyan'))

        self._print_errors()

        count = self.get_findings_count()
        if not count:
            click.echo(click.style("\n✓ No compromised packages found!", fg='green', bold=True))
            click.echo(click.style("   The scanned branches appear clean.\n", fg='green'))
            return

        click.echo(click.style("\n⚠️  THREAT DETECTED: ", fg='red', bold=True) +
                   click.style(f"Found {count} compromised package reference(s)\n", fg='yellow', bold=True))

        for tier in TIERS:
            flagged = [r for r in self.results if getattr(r, tier)]
            if flagged:
                self._print_tier(tier, flagged)

        self._print_summary()

    def _print_errors(self):
        """Print soft errors recorded while parsing"""
        errored = [r for r in self.results if r.errors]
        if not errored:
            return

        click.echo(click.style(f"\n⚠️  {len(errored)} location(s) could not be fully parsed:", fg='yellow', bold=True))
        for result in errored:
            for error in result.errors:
                click.echo(click.style(f"   • {result.repo}@{result.branch}: {error}", fg='yellow'))

    def _print_tier(self, tier: str, results: List[ScanResult]):
        """Print findings of one tier, grouped by location"""
        style = TIER_STYLES[tier]
        click.echo(click.style("─" * 80, fg=style['fg']))
        click.echo(click.style(f"{style['icon']} {style['label']}", fg=style['fg'], bold=True))
        click.echo(click.style("─" * 80, fg=style['fg']))

        for result in results:
            lockfile = "lockfile" if result.lockfile_found else "no lockfile"
            click.echo(f"\n  {result.repo}@{result.branch}: {result.path} ({lockfile})")
            for finding in getattr(result, tier):
                self._print_finding(tier, finding)

        click.echo()

    def _print_finding(self, tier: str, finding):
        """Print a single finding"""
        fg = TIER_STYLES[tier]['fg']
        if tier == 'critical':
            click.echo("    " + click.style(f"{finding.name}@{finding.version}", fg=fg, bold=True))
        elif tier == 'danger':
            click.echo("    " + click.style(finding.name, fg=fg, bold=True) +
                       f" {finding.declared_range} (matches {finding.matched_version})")
        else:
            click.echo("    " + click.style(finding.name, fg=fg, bold=True) +
                       f" {finding.declared_range} (known bad: {finding.compromised_versions})")

    def _print_summary(self):
        """Print overall summary"""
        summary = self._generate_summary()

        click.echo(click.style("=" * 80, fg='white', bold=True))
        click.echo(click.style("Total findings: ", fg='white', bold=True) +
                   click.style(f"{self.get_findings_count()}", fg='red', bold=True))
        click.echo(click.style("=" * 80, fg='white', bold=True))

        click.echo("\n" + click.style("📊 Summary:", fg='cyan', bold=True))
        click.echo("   • Critical (pinned in lockfile): " + click.style(str(summary['critical']), fg='red', bold=True))
        click.echo("   • Danger (range match): " + click.style(str(summary['danger']), fg='yellow', bold=True))
        click.echo("   • Caution (name only): " + click.style(str(summary['caution']), fg='cyan', bold=True))
        click.echo(f"   • Repositories with manifests: {summary['repositories']}, "
                   f"branches: {summary['branches']}, "
                   f"locations with lockfile: {summary['with_lockfile']}/{summary['locations']}")

        click.echo("\n" + click.style("💡 Next Steps:", fg='cyan', bold=True))
        click.echo(click.style("   1.", fg='cyan') + " Treat critical findings as installed: rotate secrets built with them")
        click.echo(click.style("   2.", fg='cyan') + " Tighten danger ranges to exclude compromised versions")
        click.echo(click.style("   3.", fg='cyan') + " Regenerate lockfiles and re-run the scan")

        click.echo()

    def save_report(self, output_file: str) -> bool:
        """
        Save results to a JSON file

        Args:
            output_file: Path to output file

        Returns:
            True if saved successfully, False otherwise
        """
        try:
            with open(output_file, 'w', encoding='utf-8') as f:
                json.dump(self.to_report(), f, indent=2)
            return True

        except OSError as e:
            click.echo(click.style(f"✗ Error saving report: {e}", fg='red', bold=True), err=True)
            return False
