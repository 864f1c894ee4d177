"""
Entry point for `soaper-dl` and `python -m soaper_dl`.

Typed application errors are rendered as a suggestions panel; anything else
gets the same panel and a traceback at debug level.
"""

import asyncio
import logging
import os
import sys

import typer
from rich.console import Console

from soaper_dl.cli.app import app
from soaper_dl.cli.formatters import format_error_with_suggestions
from soaper_dl.exceptions import SoaperDlError

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def _use_utf8_streams() -> None:
    # The Windows console defaults to a legacy code page that cannot print the UI glyphs.
    if os.name != "nt":
        return
    for stream in (sys.stdout, sys.stderr):
        try:
            stream.reconfigure(encoding="utf-8")
        except (TypeError, AttributeError):
            pass


def run() -> int:
    """Invokes the CLI and maps every way it can end to an exit code."""
    console = Console(stderr=True)
    try:
        app()
    except typer.Exit as e:
        return e.exit_code
    except typer.Abort:
        return EXIT_FAILURE
    except (KeyboardInterrupt, asyncio.CancelledError):
        console.print("\n[yellow]⚠️  Operation cancelled by user.[/yellow]")
        return EXIT_INTERRUPTED
    except SoaperDlError as e:
        console.print(format_error_with_suggestions(e))
        return EXIT_FAILURE
    except Exception as e:
        console.print(format_error_with_suggestions(e, {"type": "Unexpected"}))
        logging.getLogger("soaper_dl").debug("Full traceback:", exc_info=True)
        return EXIT_FAILURE
    return EXIT_OK


def main() -> None:
    _use_utf8_streams()
    sys.exit(run())


if __name__ == "__main__":
    main()
