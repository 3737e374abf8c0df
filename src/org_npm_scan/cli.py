#!/usr/bin/env python3
"""
Organization-wide npm Compromised Package Scanner

CLI usage:
    org-npm-scan --org my-org --file compromised.txt
    org-npm-scan --org my-org -p event-stream@3.3.6 -p @ctrl/tinycolor@4.1.1
    cat compromised.txt | org-npm-scan --org my-org --json
    npm-cache-check --base-url https://host/artifactory --repo npm-remote --file compromised.txt
"""

import json
import sys
from typing import List, Optional

import click
import requests

from org_npm_scan.core import CompromisedIndex, ReportEngine, RetryPolicy, parse_specifier
from org_npm_scan.core.compromised_index import load_specifiers_from_file, load_specifiers_from_text
from org_npm_scan.adapters import ArtifactoryClient, GitHubClient, GitHubSource, ProgressSpinner
from org_npm_scan.adapters.github_client import DEFAULT_API_URL, GitHubApiError
from org_npm_scan.scanner import OrgScanner


def collect_specifiers(packages: tuple, spec_file: Optional[str]) -> List[str]:
    """
    Gather compromised specifiers from options, a file, or stdin

    ``--package`` values and ``--file`` entries are combined; stdin is read
    only when neither was given and it is not a terminal.

    Returns:
        Valid specifiers in input order
    """
    specs: List[str] = []

    if packages:
        specs.extend(load_specifiers_from_text('\n'.join(packages)))

    if spec_file:
        specs.extend(load_specifiers_from_file(spec_file))

    if not packages and not spec_file:
        stdin = click.get_text_stream('stdin')
        if not stdin.isatty():
            specs.extend(load_specifiers_from_text(stdin.read()))

    return specs


def print_index(index: CompromisedIndex):
    """Formatted listing of the compromised index"""
    click.echo("\n" + click.style("=" * 80, fg='yellow', bold=True))
    click.echo(click.style("⚠️  COMPROMISED PACKAGES", fg='yellow', bold=True))
    click.echo(click.style("=" * 80, fg='yellow', bold=True))
    click.echo(f"   {index.package_count()} unique packages, {index.version_count()} versions\n")

    for name in sorted(index.names()):
        click.echo(f"  {click.style(name, fg='red', bold=True)}")
        for version in index.versions(name):
            click.echo(f"    └─ {version}")

    click.echo("\n" + click.style("=" * 80, fg='yellow', bold=True))


@click.command(name="org-npm-scan", help="Scan a GitHub organization for compromised npm packages")
@click.option(
    "--org",
    envvar="GITHUB_ORG",
    type=str,
    default=None,
    help="GitHub organization to scan [env: GITHUB_ORG]",
)
@click.option(
    "--token",
    envvar="GITHUB_TOKEN",
    type=str,
    default=None,
    help="GitHub token with repository read access [env: GITHUB_TOKEN]",
)
@click.option(
    "--api-url",
    envvar="GITHUB_API_URL",
    type=str,
    default=DEFAULT_API_URL,
    show_default=True,
    help="GitHub API root (GitHub Enterprise: https://host/api/v3) [env: GITHUB_API_URL]",
)
@click.option(
    "-p", "--package",
    "packages",
    type=str,
    multiple=True,
    help="Compromised specifier name@version (repeatable, comma-separated allowed)",
)
@click.option(
    "--file",
    "spec_file",
    type=click.Path(exists=True, file_okay=True, dir_okay=False, path_type=str),
    default=None,
    help="File with name@version per line, or an ecosystem,name,version CSV",
)
@click.option(
    "--output",
    "output_file",
    type=click.Path(writable=True, dir_okay=False, path_type=str),
    default="org_npm_scan_report.json",
    show_default=True,
    help="File to write JSON report",
)
@click.option("--no-save", is_flag=True, help="Do not write JSON report to disk")
@click.option("--json", "json_output", is_flag=True, help="Print the JSON report to stdout instead of the console report")
@click.option("--list-affected-packages", is_flag=True, help="Display the compromised package index and exit")
def cli(
    org: Optional[str],
    token: Optional[str],
    api_url: str,
    packages: tuple,
    spec_file: Optional[str],
    output_file: str,
    no_save: bool,
    json_output: bool,
    list_affected_packages: bool,
):
    """Organization compromised package scanner CLI"""

    specs = collect_specifiers(packages, spec_file)
    index = CompromisedIndex.from_specs(specs)

    if not len(index):
        click.echo(click.style(
            "✗ Error: No compromised specifiers provided. Use --package, --file, or pipe a list via stdin.",
            fg='red', bold=True), err=True)
        sys.exit(2)

    if list_affected_packages:
        print_index(index)
        sys.exit(0)

    if not org:
        raise click.UsageError("Missing --org (or GITHUB_ORG)")
    if not token:
        raise click.UsageError("Missing --token (or GITHUB_TOKEN)")

    if not json_output:
        click.echo(click.style("=" * 80, fg='cyan', bold=True))
        click.echo(click.style("🛡️  Organization npm Compromised Package Scanner", fg='cyan', bold=True))
        click.echo(click.style("=" * 80, fg='cyan', bold=True))
        click.echo(f"\n{click.style('Organization:', bold=True)} {org}")
        click.echo(f"{click.style('API:', bold=True)} {api_url}\n")
        index.print_summary()

    spinner = ProgressSpinner(enabled=not json_output)
    policy = RetryPolicy()
    policy.on_rate_limit = lambda event: spinner.report_rate_limit(event, policy.max_retries[event.kind])
    client = GitHubClient(token=token, api_url=api_url, retry_policy=policy)
    scanner = OrgScanner(GitHubSource(client, org), index)

    try:
        results = scanner.scan_org(on_progress=spinner.on_progress)
    except GitHubApiError as e:
        spinner.notice(f"✗ Error: GitHub API request failed: {e}", fg='red', bold=True)
        sys.exit(2)
    except requests.RequestException as e:
        spinner.notice(f"✗ Error: Could not reach GitHub: {e}", fg='red', bold=True)
        sys.exit(2)

    spinner.finish()

    report_engine = ReportEngine(org=org)
    report_engine.set_specifiers(index.specifiers())
    report_engine.add_results(results)

    if json_output:
        click.echo(json.dumps(report_engine.to_report(), indent=2))
    else:
        report_engine.print_report()

    if not no_save:
        if report_engine.save_report(output_file) and not json_output:
            click.echo(click.style(f"✓ Report saved to: {output_file}", fg='green', bold=True))

    sys.exit(1 if report_engine.has_actionable_findings() else 0)


@click.command(name="npm-cache-check", help="Check an Artifactory npm cache for compromised package versions")
@click.option("--base-url", envvar="ARTIFACTORY_BASE_URL", type=str, default=None,
              help="Artifactory base URL, e.g. https://host/artifactory [env: ARTIFACTORY_BASE_URL]")
@click.option("--repo", "repository", envvar="ARTIFACTORY_REPOSITORY", type=str, default=None,
              help="npm remote/virtual repository key [env: ARTIFACTORY_REPOSITORY]")
@click.option("--username", envvar="ARTIFACTORY_USERNAME", type=str, default=None,
              help="Artifactory username [env: ARTIFACTORY_USERNAME]")
@click.option("--password", envvar="ARTIFACTORY_PASSWORD", type=str, default=None,
              help="Artifactory password [env: ARTIFACTORY_PASSWORD]")
@click.option("--token", "access_token", envvar="ARTIFACTORY_ACCESS_TOKEN", type=str, default=None,
              help="Artifactory access token, preferred over username/password [env: ARTIFACTORY_ACCESS_TOKEN]")
@click.option("-p", "--package", "packages", type=str, multiple=True,
              help="Specifier name@version (repeatable, comma-separated allowed)")
@click.option("--file", "spec_file", type=click.Path(exists=True, dir_okay=False, path_type=str), default=None,
              help="File with name@version per line, or an ecosystem,name,version CSV")
@click.option("--json", "json_output", is_flag=True, help="Output JSON instead of a table")
def cache_cli(
    base_url: Optional[str],
    repository: Optional[str],
    username: Optional[str],
    password: Optional[str],
    access_token: Optional[str],
    packages: tuple,
    spec_file: Optional[str],
    json_output: bool,
):
    """Artifactory cache lookup CLI"""

    specs = collect_specifiers(packages, spec_file)
    if not specs:
        click.echo(click.style(
            "✗ Error: No specifiers provided. Use --package, --file, or pipe a list via stdin.",
            fg='red', bold=True), err=True)
        sys.exit(2)

    if not base_url or not repository:
        raise click.UsageError("--base-url and --repo are required to check the cache")

    client = ArtifactoryClient(base_url, repository, access_token=access_token,
                               username=username, password=password)

    statuses = []
    for spec in specs:
        name, version = parse_specifier(spec)
        statuses.append(client.check_cache(name, version))

    if json_output:
        click.echo(json.dumps([status.to_dict() for status in statuses], indent=2))
        return

    header = ['package', 'inCache', 'lastDownloaded', 'downloadCount', 'error']
    rows = [
        [
            f"{s.package}@{s.version}",
            'yes' if s.exists_in_cache else 'no',
            s.last_downloaded or '-',
            '-' if s.download_count is None else str(s.download_count),
            s.error or '-',
        ]
        for s in statuses
    ]
    widths = [max([len(header[i])] + [len(row[i]) for row in rows]) for i in range(len(header))]

    def format_row(cols):
        return '  '.join(col.ljust(width) for col, width in zip(cols, widths)).rstrip()

    click.echo(click.style(format_row(header), bold=True))
    click.echo('  '.join('-' * width for width in widths))
    for row in rows:
        line = format_row(row)
        click.echo(click.style(line, fg='red') if row[1] == 'yes' else line)


if __name__ == "__main__":
    cli()
