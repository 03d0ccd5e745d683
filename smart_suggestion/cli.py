"""
Command-line interface for smart-suggestion.

Provides:
- smart-suggestion-shell: interactive shell with AI suggestions (default)
- smart-suggestion-shell config: show the current configuration
- smart-suggestion-shell suggest TEXT: one suggestion, printed to stdout
"""

import sys

import click
from rich.console import Console

from . import __version__
from .config import (
    SuggestionSettings,
    describe_settings,
    detect_provider,
    find_binary,
    load_settings,
)
from .dispatcher import RequestDispatcher, SuggestionRequest
from .editor import InMemoryBuffer, apply_response
from .errors import ConfigurationError
from .log import log_request, setup_logging
from .paths import RendezvousArtifacts
from .protocol import decode
from .runner import NO_SUGGESTION_MESSAGE, JobRunner
from .session import SuggestionSession, display_key

err_console = Console(stderr=True)


def _load_or_exit() -> SuggestionSettings:
    try:
        return load_settings()
    except ConfigurationError as e:
        err_console.print(f"[red]{e.message}[/]", highlight=False)
        sys.exit(1)


@click.group(invoke_without_command=True)
@click.version_option(__version__, prog_name="smart-suggestion-shell")
@click.pass_context
def main(ctx: click.Context) -> None:
    """Interactive shell with AI command suggestions."""
    if ctx.invoked_subcommand is not None:
        return
    settings = _load_or_exit()
    SuggestionSession(settings).loop()


@main.command()
def config() -> None:
    """Show configuration options and their current values."""
    try:
        settings = SuggestionSettings()
    except ValueError as e:
        err_console.print(f"[red]{e}[/]", highlight=False)
        sys.exit(1)

    try:
        settings = settings.resolve()
    except ConfigurationError:
        # Show whatever can be detected
        settings = settings.model_copy(update={
            "ai_provider": settings.ai_provider or detect_provider(),
            "binary": settings.binary or find_binary(),
        })

    click.echo(f"Smart Suggestion: press {display_key(settings.key)} to get suggestions.")
    click.echo()
    click.echo("Configurations:")
    for name, description, value in describe_settings(settings):
        click.echo(f"    - {name}: {description} (value: {value}).")


@main.command()
@click.argument("text", nargs=-1, required=True)
@click.option("--plain", is_flag=True,
              help="Wait without spinner or Ctrl+C handling.")
def suggest(text: tuple[str, ...], plain: bool) -> None:
    """Ask for a suggestion for TEXT and print the resulting command line."""
    settings = _load_or_exit()
    setup_logging(settings)
    buffer = InMemoryBuffer(' '.join(text))

    if plain:
        request = SuggestionRequest.from_buffer(buffer.text_before_cursor(), settings)
        artifacts = RendezvousArtifacts.for_request()
        artifacts.clear()
        try:
            exit_code = RequestDispatcher(settings).dispatch(request, artifacts)
            completed = artifacts.response.exists()
            if settings.debug:
                log_request(request.input_text, exit_code,
                            "completed" if completed else "failed")
            if not completed:
                err_console.print(artifacts.read_error() or NO_SUGGESTION_MESSAGE, highlight=False)
                sys.exit(1)
            apply_response(buffer, decode(artifacts.response.read_bytes()))
        finally:
            artifacts.clear()
    else:
        request = SuggestionRequest.from_buffer(buffer.text_before_cursor(), settings)
        result = JobRunner(settings, console=err_console).run(request, buffer)
        if not result.ok:
            if result.message:
                err_console.print(result.message, highlight=False)
            sys.exit(1)

    click.echo(buffer.rendered)


if __name__ == "__main__":
    main()
