import sys
from pathlib import Path

import click

from ngsage.config.loader import apply_overrides, load_config
from ngsage.errors import CatalogLoadError, ConfigError
from ngsage.facts.extractor import FactExtractor
from ngsage.models.diagnostic import severity_at_least
from ngsage.pipeline.runner import AnalysisRunner
from ngsage.reporters import create_reporter
from ngsage.rules.catalog import load_catalog

SEVERITIES = ['info', 'warning', 'error']


@click.command('analyze')
@click.argument('paths', nargs=-1, required=True, type=click.Path())
@click.option('--format', '-f', 'output_format', type=click.Choice(['text', 'json', 'sarif']), default=None, help='Report format.')
@click.option('--severity-min', type=click.Choice(SEVERITIES), default=None, help='Drop diagnostics below this severity.')
@click.option('--fail-on', type=click.Choice(SEVERITIES), default=None, help='Exit with 1 at or above this severity (default: --severity-min).')
@click.option('--rules', 'rule_ids', default=None, help='Comma-separated rule ids to run.')
@click.option('--exclude', multiple=True, help='Glob of paths to skip. Repeatable.')
@click.option('--include-tests', is_flag=True, help='Also analyze *.spec.ts files.')
@click.option('--workers', type=click.IntRange(min=1), default=None, help='Number of worker threads.')
@click.option('--timeout', type=click.FloatRange(min=0, min_open=True), default=None, help='Cancel the run after this many seconds.')
@click.option('--output', '-o', type=click.Path(dir_okay=False), help='Write the report to a file instead of stdout.')
@click.option('--details', is_flag=True, help='Append a per-rule summary table (text format).')
@click.option('--config', 'config_path', type=click.Path(dir_okay=False), help='Project configuration file.')
@click.pass_context
def analyze(ctx, paths, output_format, severity_min, fail_on, rule_ids, exclude, include_tests, workers, timeout,
            output, details, config_path):
    """
    Analyze TypeScript files or directories for Angular anti-patterns.

    Exits with 0 when no diagnostic reaches the fail threshold, 1 when one
    does, and 2 when the configuration or rule catalog cannot be loaded or
    the report cannot be written.
    """
    config_path = config_path or getattr(ctx.obj, 'config_path', None)
    try:
        config = load_config(str(Path.cwd()), config_path)
        config = apply_overrides(
            config,
            format=output_format,
            severity_min=severity_min,
            fail_on=fail_on,
            rules=rule_ids,
            exclude=config.exclude + list(exclude) if exclude else None,
            include_tests=True if include_tests else None,
            max_workers=workers,
            timeout=timeout,
        )
        extractor = FactExtractor()
        catalog = load_catalog(config.catalog_path, extractor.produced_kinds, config.rule_options).select(config.rules)
    except (CatalogLoadError, ConfigError) as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(2)

    runner = AnalysisRunner(catalog, extractor=extractor, max_workers=config.max_workers, timeout=config.timeout)
    report = runner.run(paths, exclude=config.exclude, include_tests=config.include_tests)
    report = report.filtered(config.severity_min)

    reporter = create_reporter(config.format, catalog=catalog, details=details)
    if output:
        try:
            with open(output, 'w', encoding='utf-8') as f:
                reporter.report(report, f)
        except OSError as e:
            click.echo(f"Error: could not write report to {output}: {e}", err=True)
            ctx.exit(2)
        click.echo(f"Report written to {output}", err=True)
    else:
        reporter.report(report, sys.stdout)

    threshold = config.fail_threshold
    if any(severity_at_least(d.severity, threshold) for d in report.diagnostics):
        ctx.exit(1)
