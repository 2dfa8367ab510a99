"""CLI entry point: registers all subcommands."""

import typer

from ._common import console  # noqa: F401

app = typer.Typer(
    name="codeecho",
    help="CodeEcho - repository mining and change analytics",
    add_completion=False,
    rich_markup_mode="rich",
)


# Import subcommands to register them
from .root import main as _main_callback  # noqa: F401, E402
from .ingest import ingest as _ingest  # noqa: F401, E402
from .status import status as _status, projects as _projects  # noqa: F401, E402
from .analytics import (  # noqa: F401, E402
    authors as _authors,
    bus_factor as _bus_factor,
    coupling as _coupling,
    hotspots as _hotspots,
    overview as _overview,
    ownership as _ownership,
)
