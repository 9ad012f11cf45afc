import json
import sys
from pathlib import Path

import click
from rich.console import Console

from ngsage.cli.formatter import format_table
from ngsage.config.loader import load_config
from ngsage.errors import CatalogLoadError, ConfigError
from ngsage.facts.extractor import FactExtractor
from ngsage.rules.catalog import load_catalog


@click.command('rules')
@click.option('--format', '-f', 'output_format', type=click.Choice(['text', 'json']), default='text', help='Output format.')
@click.pass_context
def rules(ctx, output_format):
    """List the rules in the loaded catalog."""
    try:
        config = load_config(str(Path.cwd()), getattr(ctx.obj, 'config_path', None))
        catalog = load_catalog(config.catalog_path, FactExtractor().produced_kinds, config.rule_options)
    except (CatalogLoadError, ConfigError) as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(2)

    if output_format == 'json':
        data = [
            {
                "id": rule.id,
                "severity": rule.severity,
                "category": rule.definition.category,
                "title": rule.definition.title,
                "options": rule.options,
            }
            for rule in catalog
        ]
        click.echo(json.dumps(data, indent=2))
        return

    rows = [(rule.id, rule.severity, rule.definition.category, rule.definition.title) for rule in catalog]
    console = Console(file=sys.stdout, soft_wrap=True)
    console.print(format_table(rows, ["Rule", "Severity", "Category", "Title"], title=f"{len(catalog)} rules"))
