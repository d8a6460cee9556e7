import logging
import sys

import typer

from ecectl.commands import cluster
from ecectl.config import Config
from ecectl.errors import ConfigurationError
from ecectl.logging import setup_logging

app = typer.Typer()

# Add all command groups
app.add_typer(cluster.app, name="cluster")

debug_mode = False


# Global options callback
@app.callback()
def main(
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging"),
):
    """ecectl - search cluster lifecycle CLI."""
    global debug_mode
    debug_mode = debug
    try:
        config = Config.from_env()
    except ConfigurationError as e:
        setup_logging(debug)
        logging.getLogger("ecectl").error(f"❌ {e}")
        raise typer.Exit(code=1)
    setup_logging(debug, config.log_level)
    if debug:
        logging.getLogger("ecectl").debug("Debug mode enabled")


if __name__ == "__main__":
    try:
        app()
    except Exception as e:
        if debug_mode:
            import traceback
            logging.error(f"Unhandled exception: {e}\n{traceback.format_exc()}")
        else:
            logging.error(f"Error: {e}")
        sys.exit(1)
