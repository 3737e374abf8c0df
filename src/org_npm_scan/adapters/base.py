"""Base source interface and progress display"""

import re
import sys
from abc import ABC, abstractmethod
from typing import List, Optional

import click

from org_npm_scan.core import ProgressEvent, RateLimitEvent, RepositoryRef


# Branches kept for scanning: long-lived names and MAJOR.MINOR release branches
DEFAULT_BRANCH_NAMES = frozenset({'main', 'master', 'dev'})
RELEASE_BRANCH_RE = re.compile(r'[0-9]+\.[0-9]+')


def branch_matches(name: str) -> bool:
    """True if a branch falls under the retention policy"""
    return name in DEFAULT_BRANCH_NAMES or RELEASE_BRANCH_RE.fullmatch(name) is not None


class ProgressSpinner:
    """
    Scan progress display

    On a terminal the current repository/branch is redrawn in place behind a
    spinner frame; when piped (CI logs) each step is printed on its own line.
    Notices such as rate-limit waits go to stderr and first wipe the spinner
    line so the two never interleave.
    """

    FRAMES = ('⠋', '⠙', '⠹', '⠸', '⠼', '⠴', '⠦', '⠧', '⠇', '⠏')
    MAX_MESSAGE_LENGTH = 100

    def __init__(self, enabled: bool = True, is_tty: Optional[bool] = None):
        self.enabled = enabled
        self.is_tty = sys.stdout.isatty() if is_tty is None else is_tty
        self.current_frame = 0
        self.last_line_length = 0
        self.repositories = 0
        self.branches = 0

    def update(self, message: str):
        """Show a progress message"""
        if not self.enabled:
            return

        if not self.is_tty:
            click.echo(f"  {message}")
            return

        frame = self.FRAMES[self.current_frame % len(self.FRAMES)]
        self.current_frame += 1

        if len(message) > self.MAX_MESSAGE_LENGTH:
            message = message[:self.MAX_MESSAGE_LENGTH - 3] + "..."

        visible_length = len(frame) + 1 + len(message)
        padding = " " * max(self.last_line_length - visible_length, 0)
        self.last_line_length = visible_length

        click.echo(f"\r{click.style(frame, fg='cyan')} {click.style(message, dim=True)}{padding}", nl=False)

    def clear(self):
        """Wipe the spinner line"""
        if not self.is_tty or self.last_line_length == 0:
            return

        click.echo("\r" + " " * self.last_line_length + "\r", nl=False)
        self.last_line_length = 0

    def on_progress(self, event: ProgressEvent):
        """Scanner progress callback"""
        if event.kind == 'repo':
            self.repositories += 1
            self.update(f"Repository {event.repo}")
        else:
            self.branches += 1
            self.update(f"Scanning {event.repo}@{event.branch}")

    def notice(self, message: str, fg: str = 'yellow', bold: bool = False):
        """Print a message to stderr, even when progress display is disabled"""
        self.clear()
        click.echo(click.style(message, fg=fg, bold=bold), err=True)

    def report_rate_limit(self, event: RateLimitEvent, max_retries: int):
        """Describe a rate-limit retry decision"""
        if event.attempt > max_retries:
            self.notice(f"⏳ {event.kind} rate limit still active after {event.attempt - 1} retries, giving up")
        else:
            self.notice(f"⏳ {event.kind} rate limit hit, waiting {event.retry_after:.0f}s "
                        f"(retry {event.attempt}/{max_retries})")

    def finish(self):
        """Clear the line and print totals"""
        self.clear()
        if self.enabled:
            click.echo(f"  Visited {self.repositories} repositories, {self.branches} matching branches")


class SourceAdapter(ABC):
    """
    Base class for repository sources

    A source is responsible for:
    1. Enumerating the organization's repositories
    2. Enumerating branches that fall under the retention policy
    3. Locating manifest files in a branch
    4. Fetching file content at a branch
    """

    @abstractmethod
    def list_repositories(self) -> List[RepositoryRef]:
        """
        List every repository of the organization

        Returns:
            Repositories in source order
        """
        pass

    @abstractmethod
    def list_matching_branches(self, repo: str) -> List[str]:
        """
        List branches of a repository that match the retention policy

        Empty or inaccessible repositories yield an empty list.

        Args:
            repo: Repository name

        Returns:
            Branch names in source order
        """
        pass

    @abstractmethod
    def find_manifest_paths(self, repo: str, branch: str) -> List[str]:
        """
        List manifest file paths in a branch, excluding vendored trees

        Args:
            repo: Repository name
            branch: Branch name

        Returns:
            Manifest paths in tree order
        """
        pass

    @abstractmethod
    def get_file_content(self, repo: str, branch: str, path: str) -> Optional[str]:
        """
        Fetch a file's text at a branch

        Args:
            repo: Repository name
            branch: Branch name
            path: File path within the branch

        Returns:
            Decoded content, or None if the file does not exist
        """
        pass
