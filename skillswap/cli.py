#!/usr/bin/env python3
"""
SkillSwap CLI - command-line interface for skill exchange matching.
"""

import click
from rich.console import Console
from rich.table import Table

from . import __version__

console = Console()


def _load(profiles_file):
    from .profiles import load_profiles
    return load_profiles(profiles_file)


def _parse_weights(weights):
    from .config import get_config_manager
    from .models import WeightVector

    if not weights:
        return get_config_manager().get_weights()
    try:
        return WeightVector.parse(weights)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--weights")


def _skills(skills):
    return ", ".join(s.name for s in skills) or "-"


def _score_table(title, score):
    table = Table(title=title)
    table.add_column("Signal", style="cyan")
    table.add_column("Score", style="bold green")
    table.add_column("Weight", style="dim")

    weights = score.weights
    table.add_row("Offer → want", f"{score.offer_to_want:.3f}", f"{weights.w1:.2f}")
    table.add_row("Want → offer", f"{score.want_to_offer:.3f}", f"{weights.w2:.2f}")
    table.add_row("Location", f"{score.location:.3f}", f"{weights.w3:.2f}")
    table.add_row("Language", f"{score.language:.3f}", f"{weights.w4:.2f}")
    table.add_row("Trust", f"{score.trust:.3f}", f"{weights.w5:.2f}")
    table.add_row("Total", f"{score.total:.3f}", score.boost_rule or "", style="bold")
    return table


@click.group()
@click.version_option(version=__version__)
def main():
    """SkillSwap - match people who teach one skill and want to learn another."""
    pass


@main.group()
def profiles():
    """Inspect profile files."""
    pass


@profiles.command("list")
@click.argument("profiles_file", type=click.Path(exists=True))
@click.option("--limit", type=int, help="Maximum profiles to display")
def list_profiles(profiles_file, limit):
    """List profiles loaded from a JSON file."""
    from .config import get_config_manager

    try:
        collection = _load(profiles_file)

        if not len(collection):
            console.print("[yellow]No profiles found[/yellow]")
            return

        limit = limit or get_config_manager().get("cli", "default_table_limit")
        display = collection.profiles[:limit]
        stats = collection.get_stats()
        console.print(f"[dim]{stats['total']} profiles • {stats['with_offers']} offering • "
                      f"{stats['with_wants']} wanting • {stats['with_location']} with location[/dim]")

        table = Table(title=f"Profiles ({len(display)} of {len(collection)})")
        table.add_column("ID", style="cyan")
        table.add_column("Name", style="bold")
        table.add_column("Offers", style="green")
        table.add_column("Wants", style="yellow")
        table.add_column("Languages", style="dim")
        table.add_column("Location", style="magenta")
        table.add_column("Trust", style="blue")

        for profile in display:
            location = "N/A"
            if profile.location:
                location = ", ".join(p for p in (profile.location.city, profile.location.country) if p)
            table.add_row(
                profile.id,
                profile.display_name,
                _skills(profile.offers),
                _skills(profile.wants),
                ", ".join(profile.languages),
                location,
                f"{profile.trust:.2f}"
            )

        console.print(table)

    except Exception as e:
        console.print(f"[red]Error listing profiles: {e}[/red]")
        raise click.Abort()


@main.group()
def match():
    """Find and score exchange partners."""
    pass


@match.command("find")
@click.argument("profiles_file", type=click.Path(exists=True))
@click.argument("subject_id")
@click.option("--limit", type=int, help="Maximum matches to return")
@click.option("--min-score", type=float, help="Drop matches below this total score")
@click.option("--weights", help="Five comma-separated weights: offer→want, want→offer, location, language, trust")
@click.option("--no-embeddings", is_flag=True, help="Use lexical skill matching only")
@click.option("--export", "export_path", type=click.Path(), help="Write results to this file")
@click.option("--format", "export_format", type=click.Choice(["csv", "json"]), help="Export format")
def find_matches(profiles_file, subject_id, limit, min_score, weights, no_embeddings,
                 export_path, export_format):
    """Rank partners for SUBJECT_ID among the profiles in PROFILES_FILE."""
    from .config import get_config_manager
    from .export import get_export_manager
    from .matching import get_matching_engine

    config = get_config_manager()
    matching_config = config.get_matching_config()
    if weights:
        matching_config.weights = _parse_weights(weights)
    if min_score is not None:
        matching_config.min_match_score = min_score
    if limit:
        matching_config.max_results = limit

    try:
        collection = _load(profiles_file)
        subject = collection.get(subject_id)
        if subject is None:
            console.print(f"[red]Profile {subject_id} not found[/red]")
            return

        engine = get_matching_engine(use_embeddings=not no_embeddings)

        console.print(f"[cyan]Matching {subject.display_name} against {len(collection) - 1} candidates...[/cyan]")
        report = engine.match_report(subject, collection.profiles, matching_config, show_progress=True)

        console.print(f"[dim]Scored {report.scored}/{report.total_candidates} candidates "
                      f"({report.failed} failed) in {report.processing_time_ms:.0f} ms[/dim]")

        if not report.results:
            console.print("[yellow]No matches found[/yellow]")
            return

        table = Table(title=f"Top Matches for {subject.display_name} ({len(report.results)})")
        table.add_column("#", style="dim", width=4)
        table.add_column("Score", style="bold green", width=7)
        table.add_column("Candidate", style="cyan")
        table.add_column("Offers", style="green")
        table.add_column("Wants", style="yellow")
        table.add_column("A→B", width=6)
        table.add_column("B→A", width=6)
        table.add_column("Loc", width=6)
        table.add_column("Lang", width=6)
        table.add_column("Trust", width=6)

        for rank, result in enumerate(report.results, start=1):
            score = result.score
            table.add_row(
                str(rank),
                f"{score.total:.3f}",
                result.candidate.display_name,
                _skills(result.candidate.offers),
                _skills(result.candidate.wants),
                f"{score.offer_to_want:.2f}",
                f"{score.want_to_offer:.2f}",
                f"{score.location:.2f}",
                f"{score.language:.2f}",
                f"{score.trust:.2f}"
            )

        console.print(table)

        if export_path or export_format:
            export_format = export_format or config.get("export", "default_format")
            output = get_export_manager().export_match_results(report.results, export_format, export_path)
            if output:
                console.print(f"[green]✓ Export completed: {output}[/green]")

    except Exception as e:
        console.print(f"[red]Error during matching: {e}[/red]")
        raise click.Abort()


@match.command("score")
@click.argument("profiles_file", type=click.Path(exists=True))
@click.argument("id_a")
@click.argument("id_b")
@click.option("--weights", help="Five comma-separated weights")
@click.option("--no-embeddings", is_flag=True, help="Use lexical skill matching only")
def score_pair(profiles_file, id_a, id_b, weights, no_embeddings):
    """Show the score breakdown between ID_A and ID_B."""
    from .matching import get_matching_engine

    weight_vector = _parse_weights(weights)

    try:
        collection = _load(profiles_file)
        profile_a = collection.require(id_a)
        profile_b = collection.require(id_b)

        engine = get_matching_engine(use_embeddings=not no_embeddings)
        score = engine.score(profile_a, profile_b, weight_vector)

        console.print(_score_table(f"{profile_a.display_name} ↔ {profile_b.display_name}", score))

    except KeyError as e:
        console.print(f"[red]{e.args[0]}[/red]")
        raise click.Abort()
    except Exception as e:
        console.print(f"[red]Error calculating match score: {e}[/red]")
        raise click.Abort()


@match.command("check")
@click.argument("profiles_file", type=click.Path(exists=True))
@click.argument("id_a")
@click.argument("id_b")
@click.option("--min-score", type=float, help="Minimum score required in each direction")
@click.option("--no-embeddings", is_flag=True, help="Use lexical skill matching only")
def check_bidirectional(profiles_file, id_a, id_b, min_score, no_embeddings):
    """Check that ID_A and ID_B can each teach what the other wants."""
    from .config import get_config_manager
    from .matching import get_matching_engine

    if min_score is None:
        min_score = get_config_manager().get("matching", "bidirectional_min_score")

    try:
        collection = _load(profiles_file)
        profile_a = collection.require(id_a)
        profile_b = collection.require(id_b)

        engine = get_matching_engine(use_embeddings=not no_embeddings)
        if engine.validate_bidirectional(profile_a, profile_b, min_score):
            console.print(f"[green]✓ {profile_a.display_name} and {profile_b.display_name} "
                          f"match both ways (min {min_score:.2f})[/green]")
        else:
            console.print(f"[yellow]✗ {profile_a.display_name} and {profile_b.display_name} "
                          f"do not match both ways (min {min_score:.2f})[/yellow]")

    except KeyError as e:
        console.print(f"[red]{e.args[0]}[/red]")
        raise click.Abort()
    except Exception as e:
        console.print(f"[red]Error checking match: {e}[/red]")
        raise click.Abort()


@main.group()
def config():
    """Configuration management."""
    pass


@config.command("show")
@click.option("--section", help="Show specific configuration section only")
def show_config(section):
    """Show current configuration."""
    from .config import get_config_manager

    manager = get_config_manager()
    if section and section not in manager.config:
        console.print(f"[red]Unknown section: {section}[/red]")
        console.print(f"[dim]Available sections: {', '.join(manager.config.keys())}[/dim]")
        return
    manager.display_config(section)


@config.command("set")
@click.argument("section")
@click.argument("key")
@click.argument("value")
def set_config(section, key, value):
    """Set a configuration value."""
    from .config import get_config_manager

    manager = get_config_manager()

    # Convert value to the type of the existing setting
    current_value = manager.get(section, key)
    try:
        if isinstance(current_value, bool):
            value = value.lower() in ('true', '1', 'yes', 'on')
        elif isinstance(current_value, int):
            value = int(value)
        elif isinstance(current_value, float):
            value = float(value)
    except ValueError:
        console.print(f"[red]Invalid value type for {section}.{key}: expected {type(current_value).__name__}[/red]")
        raise click.Abort()

    if manager.set(section, key, value):
        console.print(f"[green]✓ Set {section}.{key} = {value}[/green]")
    else:
        console.print(f"[red]✗ Failed to set {section}.{key}[/red]")


@config.command("env")
@click.argument("key")
@click.argument("value")
def set_env_var(key, value):
    """Set an environment variable in the .env file."""
    from .config import get_config_manager

    if get_config_manager().set_env_var(key, value):
        console.print(f"[green]✓ Set {key}={value} in .env[/green]")
    else:
        console.print(f"[red]✗ Failed to set {key}[/red]")


@config.command("unset")
@click.argument("key")
def unset_env_var(key):
    """Remove an environment variable from the .env file."""
    from .config import get_config_manager

    if get_config_manager().unset_env_var(key):
        console.print(f"[green]✓ Removed {key} from .env[/green]")
    else:
        console.print(f"[red]✗ Failed to remove {key}[/red]")


@config.command("validate")
def validate_config():
    """Validate current configuration."""
    from .config import get_config_manager

    issues = get_config_manager().validate_config()
    if issues:
        console.print("[red]Configuration issues found:[/red]")
        for issue in issues:
            console.print(f"  [red]• {issue}[/red]")
        raise click.Abort()

    console.print("[green]✓ Configuration is valid[/green]")


@config.command("reset")
@click.option("--confirm", is_flag=True, help="Skip confirmation prompt")
def reset_config(confirm):
    """Reset configuration to defaults."""
    from .config import get_config_manager

    if not confirm and not click.confirm("Reset all configuration to defaults?"):
        console.print("[yellow]Reset cancelled[/yellow]")
        return

    if get_config_manager().reset_to_defaults():
        console.print("[green]✓ Configuration reset to defaults[/green]")
    else:
        console.print("[red]✗ Failed to reset configuration[/red]")


@config.command("template")
@click.option("--output", "-o", help="Output file path")
def export_template(output):
    """Export a .env template with all available settings."""
    from .config import get_config_manager

    get_config_manager().export_env_template(output)


@config.command("info")
def connection_info():
    """Show embedding provider connection information."""
    from .config import get_config_manager

    info = get_config_manager().get_connection_info()["embeddings"]

    table = Table(title="Embedding Provider")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    for key, value in info.items():
        table.add_row(key.title(), str(value))

    console.print(table)


@main.command("status")
def status():
    """Show configuration and embedding provider status."""
    from .config import get_config_manager
    from .embeddings import get_embedding_provider

    console.print("[bold green]SkillSwap System Status[/bold green]")

    table = Table(title="System Overview")
    table.add_column("Component", style="cyan", no_wrap=True)
    table.add_column("Status", style="magenta")
    table.add_column("Details", style="green")

    issues = get_config_manager().validate_config()
    if issues:
        table.add_row("Configuration", "Invalid", f"{len(issues)} issue(s): {issues[0][:50]}")
    else:
        table.add_row("Configuration", "Valid", f"Weights {get_config_manager().get_weights().as_dict()}")

    try:
        provider = get_embedding_provider()
        provider.initialize()
        status_info = provider.get_status()

        if status_info["state"] == "ready":
            table.add_row("Embeddings", "Ready", f"{status_info['provider']}: {status_info.get('model', '')}")
        else:
            table.add_row("Embeddings", "Fallback",
                          f"Lexical matching only ({str(status_info.get('error') or 'disabled')[:50]})")
    except Exception as e:
        table.add_row("Embeddings", "Error", f"Status check failed: {str(e)[:50]}")

    console.print(table)


@main.command("test-embedding")
@click.option("--text", default="Python programming intermediate",
              help="Text to use for testing embeddings")
def test_embedding(text):
    """Test the configured embedding provider."""
    from .embeddings import test_embedding_provider

    success = test_embedding_provider(text)
    if success:
        console.print("[bold green]Embedding test completed successfully![/bold green]")
    else:
        console.print("[bold red]Embedding test failed![/bold red]")


if __name__ == "__main__":
    main()
