"""python -m roachdeploy"""

from roachdeploy.cli import cli

cli()
