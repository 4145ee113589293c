from reqtrace.cli import cli

cli()
