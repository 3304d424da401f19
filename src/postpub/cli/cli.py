"""CLI entrypoint: Typer app definition and command registration"""

import typer

from postpub.cli.commands import build_cmd, check_cmd, list_cmd


app = typer.Typer(name="postpub", no_args_is_help=True, help="Blog post publishing pipeline")

app.command(name="build")(build_cmd)
app.command(name="check")(check_cmd)
app.command(name="list")(list_cmd)
