"""CLI entrypoint for eecho."""

import rich_click as click

from eecho import __version__
from eecho.controllers import EechoCliController, ShutdownWorkerCommand, TranslateCommand
from eecho.logging_setup import configure_logging
from eecho.translation.errors import TranslationError
from eecho.worker.errors import WorkerError

click.rich_click.USE_MARKDOWN = True
CONTROLLER = EechoCliController()

_EPILOG = """
**Background worker**: the first translation starts a background process that
keeps the model loaded, so later translations answer quickly. If the worker
is unavailable the text is translated in-process instead.

**Environment**: `EECHO_VERBOSE=1` enables verbose logging, `EECHO_WORKER_DIR`
sets the worker queue directory, `EECHO_DEBUG=1` enables worker debug output,
`EECHO_PROVIDER` selects `transformers`, `ollama` or `echo`.
"""


@click.command(
    context_settings={"help_option_names": ["-h", "--help"]},
    epilog=_EPILOG,
)
@click.version_option(__version__, "-v", "--version", prog_name="eecho")
@click.option(
    "--verbose",
    is_flag=True,
    default=False,
    help="Translate in-process and show detailed logs (model download progress, warnings).",
)
@click.option(
    "--shutdown-worker",
    is_flag=True,
    default=False,
    help="Shut down the background translation worker.",
)
@click.argument("text", nargs=-1)
@click.pass_context
def eecho(ctx: click.Context, verbose: bool, shutdown_worker: bool, text: tuple[str, ...]) -> None:
    """Offline Japanese-to-English translation.

    Pass text as arguments or pipe it through standard input.
    """

    try:
        settings = CONTROLLER.settings()
    except ValueError as error:
        raise click.ClickException(str(error)) from error
    configure_logging(debug=settings.worker.debug, verbose=verbose or settings.cli.verbose)

    if shutdown_worker:
        try:
            _emit_lines(CONTROLLER.shutdown_worker(ShutdownWorkerCommand()))
        except (WorkerError, OSError) as error:
            raise click.ClickException(str(error) or "Failed to shutdown worker") from error
        return

    input_text = _read_input(text)
    if input_text is None:
        click.echo(ctx.get_usage())
        ctx.exit(1)

    try:
        output = CONTROLLER.translate(TranslateCommand(text=input_text, verbose=verbose))
    except (TranslationError, WorkerError, OSError, ValueError) as error:
        raise click.ClickException(str(error) or "Unknown error occurred") from error
    for warning in output.warnings:
        click.echo(warning, err=True)
    _emit_lines(output.lines)


def _read_input(args: tuple[str, ...]) -> str | None:
    if args:
        return " ".join(args)
    stdin = click.get_text_stream("stdin")
    if stdin.isatty():
        return None
    return stdin.read()


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    eecho()
