"""Command line interface for lomad."""

import asyncio
import logging
import os
import sys
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import click
from rich.console import Console
from rich.table import Table

from . import __version__
from .api_clients.exceptions import APIClientError, TransportError
from .api_clients.git_data_client import GitDataAPIClient, RepositoryHandle
from .cli_error_display import CLIErrorDisplay
from .config import Config, ConfigManager
from .links.link_checker import LinkChecker, LinkCheckResult, ProbeStatus
from .mutation.content_mutator import ContentMutator, FileNotInTreeError
from .mutation.transforms import TRANSFORMS, VERSION_NUMBER_PATTERN
from .utils.exception_logger import ExceptionLogger

logger = logging.getLogger(__name__)

console = Console()

# Failures that are reported per repository instead of ending the run
OPERATION_ERRORS = (APIClientError, TransportError, FileNotInTreeError, ValueError)


def run_async(coro):
    """
    Run an async coroutine, handling both new event loops and existing ones.

    Args:
        coro: The coroutine to run

    Returns:
        The result of the coroutine
    """
    try:
        asyncio.get_running_loop()

        result = None
        exception = None

        def run_in_new_loop():
            nonlocal result, exception
            try:
                result = asyncio.run(coro)
            except Exception as e:
                exception = e

        thread = threading.Thread(target=run_in_new_loop)
        thread.start()
        thread.join()

        if exception:
            raise exception
        return result

    except RuntimeError:
        # No event loop running, we can use asyncio.run()
        return asyncio.run(coro)


@dataclass
class OperationFailure:
    operation: str
    error: Exception


@dataclass
class RepositoryReport:
    """Outcome of the requested operations on one repository."""

    repository: str
    completed: List[str] = field(default_factory=list)
    failures: List[OperationFailure] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.failures


@dataclass
class FileEdit:
    """One masterlist edit, applied through a named transform."""

    operation: str
    transform: str
    parameter: Any
    commit_message: str


def _create_client(config: Config, token: str, name: str) -> GitDataAPIClient:
    handle = RepositoryHandle(owner=config.github.owner, name=name)
    return GitDataAPIClient(
        handle,
        token,
        api_url=config.github.api_url,
        timeout=config.github.timeout,
    )


def _create_link_checker(config: Config) -> LinkChecker:
    return LinkChecker(
        timeout=config.link_check.timeout,
        max_concurrency=config.link_check.max_concurrency,
        user_agent=config.link_check.user_agent,
    )


def _resolve_token(token: Optional[str], config: Config) -> str:
    token = token or os.environ.get(config.github.token_env_var)
    if not token:
        raise click.UsageError(
            f"A GitHub token is required: pass --token or set "
            f"{config.github.token_env_var}"
        )
    return token


def _resolve_repositories(
    repositories: Tuple[str, ...], all_repositories: bool, config: Config
) -> List[str]:
    if all_repositories:
        return list(config.known_repositories)
    if not repositories:
        raise click.UsageError(
            "Specify at least one --repository or use --all-repositories"
        )
    # preserve order, drop repeats
    return list(dict.fromkeys(repositories))


def _report_failure(
    display: CLIErrorDisplay,
    repository: str,
    failure: OperationFailure,
    verbose: bool,
) -> None:
    display.display_operation_error(
        failure.error, repository, failure.operation, show_technical_details=verbose
    )
    exception_logger = ExceptionLogger.initialize()
    exception_logger.log_exception(
        failure.error,
        context={"repository": repository, "operation": failure.operation},
    )


async def _update_repository(
    config: Config,
    token: str,
    name: str,
    branch: Optional[str],
    default_branch: Optional[str],
    edits: Optional[List[FileEdit]],
) -> RepositoryReport:
    """Run the requested operations, in order, against one repository.

    A failed branch creation does not stop the later steps; a failed default
    branch change skips every file edit. Each file edit is its own commit.
    """
    edits = edits or []
    async with _create_client(config, token, name) as client:
        mutator = ContentMutator(client)
        report = RepositoryReport(repository=str(mutator.repository))

        if branch:
            operation = f"create branch '{branch}'"
            try:
                await mutator.create_branch_from_default(branch)
                report.completed.append(operation)
            except OPERATION_ERRORS as e:
                report.failures.append(OperationFailure(operation, e))

        if default_branch:
            operation = f"set default branch to '{default_branch}'"
            try:
                await mutator.set_default_branch(default_branch)
                report.completed.append(operation)
            except OPERATION_ERRORS as e:
                report.failures.append(OperationFailure(operation, e))
                report.skipped.extend(edit.operation for edit in edits)
                return report

        for edit in edits:
            try:
                sha = await mutator.update_file(
                    config.masterlist.filename,
                    edit.commit_message,
                    TRANSFORMS[edit.transform],
                    edit.parameter,
                )
                report.completed.append(f"{edit.operation} (commit {sha[:7]})")
            except OPERATION_ERRORS as e:
                report.failures.append(OperationFailure(edit.operation, e))

    return report


async def _isolated(name: str, config: Config, operation: str, coro):
    """Await ``coro``, turning an unexpected error into a failed report."""
    try:
        return await coro
    except Exception as e:
        logger.error(f"{config.github.owner}/{name}: unexpected error: {e}")
        report = RepositoryReport(repository=f"{config.github.owner}/{name}")
        report.failures.append(OperationFailure(operation, e))
        return report


async def _update_repositories(
    config: Config,
    token: str,
    repositories: List[str],
    branch: Optional[str],
    default_branch: Optional[str],
    edits: Optional[List[FileEdit]],
) -> List[RepositoryReport]:
    return list(
        await asyncio.gather(
            *(
                _isolated(
                    name,
                    config,
                    "update repository",
                    _update_repository(
                        config, token, name, branch, default_branch, edits
                    ),
                )
                for name in repositories
            )
        )
    )


async def _read_remote_files(
    config: Config, token: str, repositories: List[str], filename: str
) -> Tuple[List[Tuple[str, str]], List[RepositoryReport]]:
    """Read ``filename`` from the default branch of every repository."""
    contents: Dict[str, str] = {}

    async def read_one(name: str) -> RepositoryReport:
        async with _create_client(config, token, name) as client:
            mutator = ContentMutator(client)
            report = RepositoryReport(repository=str(mutator.repository))
            try:
                contents[report.repository] = await mutator.read_file(filename)
            except OPERATION_ERRORS as e:
                report.failures.append(OperationFailure(f"read {filename}", e))
            return report

    reports = await asyncio.gather(
        *(
            _isolated(name, config, f"read {filename}", read_one(name))
            for name in repositories
        )
    )
    sources = [
        (f"{report.repository}:{filename}", contents[report.repository])
        for report in reports
        if report.repository in contents
    ]
    return sources, list(reports)


async def _check_sources(
    config: Config, sources: List[Tuple[str, str]]
) -> List[Tuple[str, List[LinkCheckResult]]]:
    async with _create_link_checker(config) as checker:
        results = await asyncio.gather(
            *(checker.check_all(content) for _, content in sources)
        )
    return [(label, result) for (label, _), result in zip(sources, results)]


def _display_link_results(source: str, results: List[LinkCheckResult]) -> None:
    table = Table(title=f"Links in {source}", show_lines=False)
    table.add_column("URL", style="cyan", overflow="fold")
    table.add_column("Outcome")
    table.add_column("Detail", overflow="fold")

    styles = {
        ProbeStatus.OK: "green",
        ProbeStatus.REDIRECTED: "yellow",
        ProbeStatus.FAILED: "red",
    }
    for entry in results:
        outcome = entry.result.status
        detail = ""
        if outcome == ProbeStatus.REDIRECTED:
            detail = f"→ {entry.result.location or '(no Location header)'}"
        elif outcome == ProbeStatus.FAILED:
            detail = entry.result.detail or ""
        table.add_row(
            entry.url, f"[{styles[outcome]}]{outcome.value}[/{styles[outcome]}]", detail
        )

    console.print(table)


@click.group(invoke_without_command=False)
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Config file path (default: .lomad/config.json)",
)
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.version_option(version=__version__, prog_name="lomad")
@click.pass_context
def cli(ctx, config_path: Optional[Path], verbose: bool):
    """Maintenance operations for the LOOT masterlist repositories.

    \b
    EXAMPLES:
      lomad update -a -b v0.15 -d v0.15 -n 0.15.0
      lomad check-links --path masterlist.yaml
      lomad check-links -r skyrim
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose

    logging.basicConfig(
        level=logging.WARNING, format="%(levelname)s:%(name)s:%(message)s"
    )
    if verbose:
        logging.getLogger("lomad").setLevel(logging.DEBUG)
    else:
        logging.getLogger("httpx").setLevel(logging.WARNING)

    config_manager = ConfigManager(config_path)
    ctx.obj["config_manager"] = config_manager
    try:
        ctx.obj["config"] = config_manager.load()
    except ValueError as e:
        raise click.ClickException(str(e))


@cli.command("init-config")
@click.option("--force", "-f", is_flag=True, help="Overwrite an existing file")
@click.pass_context
def init_config(ctx, force: bool):
    """Write the current configuration (defaults if none) to the config file."""
    config_manager: ConfigManager = ctx.obj["config_manager"]

    if config_manager.config_path.exists() and not force:
        raise click.ClickException(
            f"{config_manager.config_path} already exists; use --force to overwrite"
        )
    config_manager.save(ctx.obj["config"])
    console.print(f"✅ Configuration written to {config_manager.config_path}")


@cli.command()
@click.option(
    "--token",
    "-t",
    help="GitHub Personal Access Token (default: $GITHUB_TOKEN)",
)
@click.option(
    "--repository",
    "-r",
    multiple=True,
    help="Repository to operate on (repeatable)",
)
@click.option(
    "--all-repositories",
    "-a",
    is_flag=True,
    help="Operate on all known repositories",
)
@click.option(
    "--branch",
    "-b",
    help="Create a new branch with the given name from the current default branch",
)
@click.option("--default-branch", "-d", help="Set the default branch")
@click.option(
    "--new-version",
    "-n",
    help='Update the "LOOT update available" message condition to this version',
)
@click.option(
    "--rewrite-url",
    "-u",
    nargs=2,
    type=str,
    default=None,
    metavar="OLD NEW",
    help="Replace every occurrence of URL OLD with NEW in the masterlist",
)
@click.pass_context
def update(
    ctx,
    token: Optional[str],
    repository: Tuple[str, ...],
    all_repositories: bool,
    branch: Optional[str],
    default_branch: Optional[str],
    new_version: Optional[str],
    rewrite_url: Optional[Tuple[str, str]],
):
    """Create branches, set the default branch and edit the masterlist.

    \b
    If a combination of -b, -d, -n and -u is given, they act in order:
      1. The branch is created
      2. The default branch is set
      3. The LOOT version condition is updated
      4. The URL is rewritten (e.g. a redirect reported by check-links)
    """
    config: Config = ctx.obj["config"]
    verbose: bool = ctx.obj["verbose"]

    if not (branch or default_branch or new_version or rewrite_url):
        raise click.UsageError(
            "Nothing to do: specify --branch, --default-branch, --new-version "
            "and/or --rewrite-url"
        )

    edits: List[FileEdit] = []
    if new_version:
        if not VERSION_NUMBER_PATTERN.match(new_version):
            raise click.BadParameter(
                f"'{new_version}' is not a version number",
                param_hint="--new-version",
            )
        edits.append(
            FileEdit(
                operation=f"update LOOT version to {new_version}",
                transform="loot-version",
                parameter=new_version,
                commit_message=config.masterlist.version_commit_message,
            )
        )
    if rewrite_url:
        old_url, new_url = rewrite_url
        if not old_url or old_url == new_url:
            raise click.BadParameter(
                "OLD must be non-empty and differ from NEW", param_hint="--rewrite-url"
            )
        edits.append(
            FileEdit(
                operation=f"replace {old_url} with {new_url}",
                transform="rewrite-url",
                parameter=(old_url, new_url),
                commit_message=config.masterlist.url_commit_message.format(
                    old_url=old_url, new_url=new_url
                ),
            )
        )

    token = _resolve_token(token, config)
    repositories = _resolve_repositories(repository, all_repositories, config)

    reports = run_async(
        _update_repositories(
            config, token, repositories, branch, default_branch, edits
        )
    )

    display = CLIErrorDisplay(console)
    for report in reports:
        for operation in report.completed:
            console.print(f"✅ {report.repository}: {operation}", style="green")
        for failure in report.failures:
            _report_failure(display, report.repository, failure, verbose)
        for operation in report.skipped:
            console.print(f"⏭️  {report.repository}: skipped {operation}", style="yellow")

    if not all(report.succeeded for report in reports):
        sys.exit(1)


@cli.command("check-links")
@click.option(
    "--path",
    "-p",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Check the links in a local file instead of remote repositories",
)
@click.option(
    "--token",
    "-t",
    help="GitHub Personal Access Token (default: $GITHUB_TOKEN)",
)
@click.option(
    "--repository",
    "-r",
    multiple=True,
    help="Repository whose masterlist to check (repeatable)",
)
@click.option(
    "--all-repositories",
    "-a",
    is_flag=True,
    help="Check all known repositories",
)
@click.option(
    "--file",
    "-f",
    "filename",
    help="File to read from each repository (default: the masterlist)",
)
@click.pass_context
def check_links(
    ctx,
    path: Optional[Path],
    token: Optional[str],
    repository: Tuple[str, ...],
    all_repositories: bool,
    filename: Optional[str],
):
    """Check that every link in a masterlist resolves.

    Links answering 200 pass. Redirects are reported with their target and
    count as problems, as do errors, timeouts and unsupported schemes.
    """
    config: Config = ctx.obj["config"]
    verbose: bool = ctx.obj["verbose"]
    read_failures: List[RepositoryReport] = []

    if path is not None:
        sources = [(str(path), path.read_text(encoding="utf-8"))]
    else:
        token = _resolve_token(token, config)
        repositories = _resolve_repositories(repository, all_repositories, config)
        sources, reports = run_async(
            _read_remote_files(
                config, token, repositories, filename or config.masterlist.filename
            )
        )
        read_failures = [report for report in reports if not report.succeeded]

    display = CLIErrorDisplay(console)
    for report in read_failures:
        for failure in report.failures:
            _report_failure(display, report.repository, failure, verbose)

    checked = run_async(_check_sources(config, sources)) if sources else []

    problems = 0
    for source, results in checked:
        _display_link_results(source, results)
        problems += sum(1 for r in results if r.result.status != ProbeStatus.OK)
        console.print(f"{len(results)} links checked in {source}")

    if problems:
        console.print(f"❌ {problems} problem link(s) found", style="red")
    if problems or read_failures:
        sys.exit(1)
    console.print("✅ All links OK", style="green")


def main():
    """Main entry point."""
    try:
        cli(obj={})
    except KeyboardInterrupt:
        console.print("\n❌ Interrupted by user", style="red")
        sys.exit(1)
    except Exception as e:
        console.print(f"❌ Unexpected error: {str(e)}", style="red", markup=False)
        sys.exit(1)


if __name__ == "__main__":
    main()
