import os

import click

from ngsage import __version__
from ngsage.utils.logging import setup_logging

from .commands.analyze import analyze
from .commands.rules import rules


class CliContext:
    def __init__(self, config_path=None):
        self.config_path = config_path


@click.group(context_settings=dict(help_option_names=['-h', '--help']))
@click.option('--config', 'config_path', type=click.Path(dir_okay=False), help='Project configuration file (default: ./.ngsage.yaml).')
@click.option('--verbose', '-v', is_flag=True, help='Log debug output, including per-phase timings.')
@click.option('--log-json', is_flag=True, help='Render logs as JSON lines on stderr.')
@click.version_option(version=__version__)
@click.pass_context
def main(ctx, config_path, verbose, log_json):
    """
    ngsage: detects Angular anti-patterns in TypeScript sources.
    """
    log_level = "DEBUG" if verbose else os.environ.get("NGSAGE_LOG_LEVEL", "WARNING")
    setup_logging(log_level=log_level, json_logs=log_json)
    ctx.obj = CliContext(config_path=config_path)


main.add_command(analyze)
main.add_command(rules)

if __name__ == '__main__':
    main()
