"""Click CLI for the repository introspector."""

import click


def _setup_logging(verbose: bool) -> None:
    import logging

    if verbose:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.INFO)


def _load_settings(repo, include_tree: bool = True):
    """Load .introspector/config.toml, turning config errors into CLI errors."""
    import dataclasses
    import tomllib

    from repo_introspector.config import load_settings

    try:
        settings = load_settings(repo)
    except (ValueError, tomllib.TOMLDecodeError) as e:
        raise click.UsageError(f"Invalid .introspector/config.toml: {e}") from e
    if not include_tree:
        settings = dataclasses.replace(settings, include_tree=False)
    return settings


def _emit_summary(summary, output) -> None:
    from pathlib import Path

    from repo_introspector.indexer.orchestrator import save_summary

    if output:
        path = save_summary(summary, Path(output))
        click.echo(f"Wrote summary to {path}", err=True)
    else:
        click.echo(summary.to_json())


@click.group()
def cli():
    """introspect: structured summaries of a source tree."""


@cli.command()
@click.argument("repo_path", default=".", type=click.Path(exists=True, file_okay=False))
def init(repo_path):
    """Create .introspector/config.toml with default settings."""
    from pathlib import Path

    from repo_introspector.config import CONFIG_DIR_NAME, create_default_config

    repo = Path(repo_path).resolve()
    try:
        config_path = create_default_config(repo)
    except FileExistsError as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"Created {config_path}")

    # Keep .introspector/ out of version control
    gitignore = repo / ".gitignore"
    marker = f"{CONFIG_DIR_NAME}/"
    if gitignore.exists():
        content = gitignore.read_text()
        if marker not in content:
            with open(gitignore, "a") as f:
                f.write(f"\n{marker}\n")
            click.echo(f"Added {marker} to .gitignore")
    else:
        gitignore.write_text(f"{marker}\n")
        click.echo(f"Created .gitignore with {marker}")


@cli.command()
@click.argument("repo_path", default=".", type=click.Path(exists=True, file_okay=False))
@click.option("--only", "only_files", multiple=True, help="Restrict parsing to these paths (repeatable).")
@click.option("--baseline", default=None, help="Baseline revision for the changed-file list.")
@click.option("-o", "--output", type=click.Path(dir_okay=False), default=None, help="Write JSON here instead of stdout.")
@click.option("--no-tree", is_flag=True, help="Omit the file tree from the summary.")
@click.option("-v", "--verbose", is_flag=True, help="Verbose output.")
def analyze(repo_path, only_files, baseline, output, no_tree, verbose):
    """Analyze a repository and print its summary as JSON."""
    from pathlib import Path

    from repo_introspector.indexer.orchestrator import analyze as run_analyze

    _setup_logging(verbose)
    repo = Path(repo_path).resolve()
    settings = _load_settings(repo, include_tree=not no_tree)
    summary = run_analyze(
        repo,
        only_files=list(only_files) if only_files else None,
        baseline_revision=baseline,
        settings=settings,
    )
    _emit_summary(summary, output)


@cli.command()
@click.argument("repo_path", default=".", type=click.Path(exists=True, file_okay=False))
@click.option("--stats/--no-stats", default=True, help="Print directory/file counts after the tree.")
def tree(repo_path, stats):
    """Print the repository's file tree."""
    from pathlib import Path

    from repo_introspector.file_tree import build_file_tree, get_tree_stats, tree_to_string
    from repo_introspector.indexer.file_scanner import scan_repo

    repo = Path(repo_path).resolve()
    settings = _load_settings(repo)
    files = scan_repo(repo, settings.scanner)
    root = build_file_tree(files, root_name=repo.name or ".")
    click.echo(tree_to_string(root))

    if stats:
        tree_stats = get_tree_stats(root)
        click.echo("")
        click.echo(f"  Directories:     {tree_stats.directories}")
        click.echo(f"  Files:           {tree_stats.files}")
        for language, count in tree_stats.by_language.items():
            click.echo(f"    {language + ':':<15}{count}")
        for role, count in tree_stats.by_role.items():
            click.echo(f"    {role + ':':<15}{count}")


@cli.command()
@click.argument("repo_path", default=".", type=click.Path(exists=True, file_okay=False))
@click.option("--since", "baseline", required=True, help="Baseline revision to diff against.")
def changed(repo_path, baseline):
    """List source files changed since a baseline revision."""
    from pathlib import Path

    from repo_introspector.extractors.git_extractor import get_changed_files, is_git_repo

    repo = Path(repo_path).resolve()
    settings = _load_settings(repo)
    if not is_git_repo(repo, settings.history):
        raise click.ClickException(f"{repo} is not inside a git work tree")
    for path in get_changed_files(repo, baseline, settings.history):
        click.echo(path)


@cli.command()
@click.argument("repo_path", default=".", type=click.Path(exists=True, file_okay=False))
@click.option("--since", "baseline", required=True, help="Baseline revision to diff against.")
@click.option("-o", "--output", type=click.Path(dir_okay=False), default=None, help="Write JSON here instead of stdout.")
@click.option("-v", "--verbose", is_flag=True, help="Verbose output.")
def incremental(repo_path, baseline, output, verbose):
    """Analyze only the source files changed since a baseline revision."""
    from pathlib import Path

    from repo_introspector.indexer.orchestrator import analyze_incremental

    _setup_logging(verbose)
    repo = Path(repo_path).resolve()
    settings = _load_settings(repo)
    summary = analyze_incremental(repo, baseline, settings=settings)
    _emit_summary(summary, output)
