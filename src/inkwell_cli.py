"""CLI interface for inkwell."""

import pathlib

import click

from inkwell_live.console import configure_logging, format_duration_ms
from inkwell_live.orchestrator import Orchestrator
from inkwell_site import builder
from inkwell_site.config import SiteConfig
from inkwell_site.errors import InkwellError


@click.group()
@click.version_option(package_name="inkwell")
def main():
    """Static site builder with a live-reloading development server."""
    pass


@main.command()
@click.argument(
    "root",
    default=".",
    type=click.Path(exists=True, file_okay=False, path_type=pathlib.Path),
)
@click.option("--verbose", "-v", is_flag=True, help="Show debug output")
def build(root: pathlib.Path, verbose: bool):
    """Build every collection under ROOT into its output directory."""
    configure_logging(verbose)
    config = SiteConfig(root=root, verbose=verbose)
    try:
        result = builder.build_site(config)
    except InkwellError as e:
        raise click.ClickException(str(e))
    click.echo(
        f"Built {result.page_count} pages into {config.output_path} "
        f"({format_duration_ms(result.duration_ms)})"
    )


@main.command()
@click.argument(
    "root",
    default=".",
    type=click.Path(exists=True, file_okay=False, path_type=pathlib.Path),
)
@click.option("--verbose", "-v", is_flag=True, help="Show debug output")
def live(root: pathlib.Path, verbose: bool):
    """Serve ROOT with live reload, rebuilding whenever content changes."""
    configure_logging(verbose)
    config = SiteConfig(root=root, verbose=verbose)
    orchestrator = Orchestrator(config)

    click.echo(f"Serving {config.output_path} at http://{config.host}:{config.http_port}")
    click.echo(f"Reload channel at {config.reload_url()}")
    click.echo(f"Watching {config.content_path} every {config.poll_interval}s")

    try:
        orchestrator.run()
    except InkwellError as e:
        raise click.ClickException(str(e))
    except KeyboardInterrupt:
        click.echo("\nStopping inkwell...")
        orchestrator.stop()


@main.command()
@click.argument("project_dir", type=click.Path(path_type=pathlib.Path))
def init(project_dir: pathlib.Path):
    """Initialize a new inkwell site."""
    builder.init_project(project_dir)
    click.echo(f"Initialized project in {project_dir}")


if __name__ == "__main__":
    main()
