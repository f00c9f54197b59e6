"""CLI entry point: depsight.

Subcommands:
    depsight repo github rust-lang cargo        # Analyze every crate in a repository
    depsight repo gitlab foo bar --path crates  # ...starting from a sub-directory
    depsight crate serde 1.0.0                  # Analyze one published release
    depsight crate serde                        # ...the latest release
    depsight popular                            # Popular repositories and crates
"""

from __future__ import annotations

import asyncio
import json
import sys
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import click

from depsight.core.config import Settings
from depsight.core.logging import setup_logging
from depsight.engine.engine import AnalyzeDependenciesOutcome, Engine
from depsight.errors import DepsightError, NotFoundError
from depsight.interactors.http import HttpClient
from depsight.models.crates import AnalyzedDependencies, AnalyzedDependency, CrateName, CratePath
from depsight.models.repo import RepoPath
from depsight.models.version import parse_version

T = TypeVar("T")


# ── serialization ────────────────────────────────────────────────────────


def _dependency_to_dict(dep: AnalyzedDependency) -> dict[str, Any]:
    return {
        "required": str(dep.required),
        "latest_that_matches": str(dep.latest_that_matches) if dep.latest_that_matches else None,
        "latest": str(dep.latest) if dep.latest else None,
        "outdated": dep.is_outdated(),
        "insecure": dep.is_insecure(),
        "advisories": [advisory.id for advisory in dep.vulnerabilities],
    }


def _deps_to_dict(deps: AnalyzedDependencies) -> dict[str, Any]:
    return {
        bucket: {str(name): _dependency_to_dict(dep) for name, dep in getattr(deps, bucket).items()}
        for bucket in ("main", "dev", "build")
    }


def outcome_to_dict(outcome: AnalyzeDependenciesOutcome) -> dict[str, Any]:
    outdated, total = outcome.outdated_ratio()
    return {
        "crates": {str(name): _deps_to_dict(deps) for name, deps in outcome.crates},
        "outdated": outdated,
        "total": total,
        "any_outdated": outcome.any_outdated(),
        "any_insecure": outcome.any_insecure(),
        "any_always_insecure": outcome.any_always_insecure(),
        "any_dev_issues": outcome.any_dev_issues(),
        "duration_ms": int(outcome.duration.total_seconds() * 1000),
    }


def _status(outcome: AnalyzeDependenciesOutcome) -> str:
    if outcome.any_always_insecure():
        return "insecure (no fix available)"
    if outcome.any_insecure():
        return "insecure"
    if outcome.any_outdated():
        return "outdated"
    return "up to date"


def _echo_outcome(title: str, outcome: AnalyzeDependenciesOutcome) -> None:
    outdated, total = outcome.outdated_ratio()
    click.echo(f"{title}: {_status(outcome)} ({outdated} of {total} outdated)")
    for name, deps in outcome.crates:
        click.echo(f"\n  {name}")
        for bucket in ("main", "build", "dev"):
            for dep_name, dep in getattr(deps, bucket).items():
                flags = []
                if dep.is_outdated():
                    flags.append(f"latest {dep.latest}")
                if dep.is_insecure():
                    flags.append("advisories: " + ", ".join(a.id for a in dep.vulnerabilities))
                suffix = f"  [{'; '.join(flags)}]" if flags else ""
                click.echo(f"    {bucket:<5} {dep_name} {dep.required}{suffix}")
    if outcome.any_dev_issues():
        click.echo("\n  (dev-dependencies have issues)")


# ── plumbing ─────────────────────────────────────────────────────────────


def _run(action: Callable[[Engine], Awaitable[T]]) -> T:
    """Build an engine for the duration of *action*, exiting 1 on DepsightError."""
    settings = Settings.from_env()

    async def _main() -> T:
        async with HttpClient.from_settings(settings) as http:
            return await action(Engine.from_settings(settings, http))

    try:
        return asyncio.run(_main())
    except DepsightError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging")
def main(verbose: bool) -> None:
    """depsight: dependency status for Rust crates and repositories."""
    setup_logging("DEBUG" if verbose else None)


@main.command("repo")
@click.argument("site")
@click.argument("qual")
@click.argument("name")
@click.option("--path", "sub_path", default=None, help="Directory to start crawling from")
@click.option("--json", "as_json", is_flag=True, help="Print JSON")
def repo(site: str, qual: str, name: str, sub_path: str | None, as_json: bool) -> None:
    """Analyze every crate reachable from a repository's Cargo.toml."""
    try:
        repo_path = RepoPath.from_parts(site, qual, name)
    except DepsightError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    outcome = _run(lambda engine: engine.analyze_repo_dependencies(repo_path, sub_path))
    if as_json:
        click.echo(json.dumps(outcome_to_dict(outcome), indent=2))
    else:
        _echo_outcome(str(repo_path), outcome)


@main.command("crate")
@click.argument("name")
@click.argument("version", required=False)
@click.option("--json", "as_json", is_flag=True, help="Print JSON")
def crate(name: str, version: str | None, as_json: bool) -> None:
    """Analyze one published crate release (default: the latest)."""
    try:
        crate_name = CrateName(name)
        parsed_version = parse_version(version) if version else None
    except DepsightError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    async def _analyze(engine: Engine) -> tuple[CratePath, AnalyzeDependenciesOutcome]:
        if parsed_version is not None:
            crate_path = CratePath(crate_name, parsed_version)
        else:
            latest = await engine.find_latest_crate_release(crate_name)
            if latest is None:
                raise NotFoundError(f"no releases found for crate {crate_name}")
            crate_path = CratePath(latest.name, latest.version)
        return crate_path, await engine.analyze_crate_dependencies(crate_path)

    crate_path, outcome = _run(_analyze)
    if as_json:
        click.echo(json.dumps({"crate": str(crate_path), **outcome_to_dict(outcome)}, indent=2))
    else:
        _echo_outcome(str(crate_path), outcome)


@main.command("popular")
@click.option("--json", "as_json", is_flag=True, help="Print JSON")
def popular(as_json: bool) -> None:
    """List popular Rust repositories and crates."""

    async def _fetch(engine: Engine) -> tuple[list, list]:
        repos, crates = await asyncio.gather(engine.get_popular_repos(), engine.get_popular_crates())
        return repos, crates

    repos, crates = _run(_fetch)
    if as_json:
        data = {
            "repos": [
                {"path": str(repo.path), "url": repo.path.url, "description": repo.description}
                for repo in repos
            ],
            "crates": [{"name": str(c.name), "version": str(c.version)} for c in crates],
        }
        click.echo(json.dumps(data, indent=2))
        return

    click.echo("Popular repositories:")
    for repo in repos:
        click.echo(f"  {repo.path}  {repo.description}".rstrip())
    click.echo("\nPopular crates:")
    for c in crates:
        click.echo(f"  {c}")


if __name__ == "__main__":
    main()
