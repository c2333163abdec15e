"""Command-line interface for dataknobs-rules.

Commands:
- demo: validate the sample user record against the reference rules
- validate: validate records from a JSON or CSV file against YAML/JSON rules
- convert: convert a CSV file to a JSON array
"""

from __future__ import annotations

import json
import logging
import sys
from typing import List

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import __version__
from .config import ValidationConfig
from .conversion import CsvJsonConverter, load_records
from .engine import ValidationEngine
from .exceptions import RulesError
from .factory import load_rule_sets
from .repository import MemoryErrorRepository
from .result import ValidationResult
from .rules import ComplexityRule, EmailRule, RangeRule, Severity
from .ruleset import RuleSet

console = Console()

SEVERITY_STYLES = {
    Severity.INFO: "cyan",
    Severity.WARNING: "yellow",
    Severity.CRITICAL: "bold red",
}

DEMO_RECORD = {"email": "test@example.com", "password": "weak", "age": 150}


def demo_rule_set() -> RuleSet:
    """Rules used by the demo command."""
    return (
        RuleSet.builder("user")
        .add_rule("email", EmailRule())
        .add_rule("password", ComplexityRule(min_length=8, require_special_char=True))
        .add_rule("age", RangeRule(0, 120))
        .build()
    )


def _errors_table(results: List[ValidationResult], title: str) -> Table:
    table = Table(title=title)
    table.add_column("Record", justify="right")
    table.add_column("Severity")
    table.add_column("Field", style="bold")
    table.add_column("Code")
    table.add_column("Message")

    for index, result in enumerate(results):
        for error in result.errors:
            style = SEVERITY_STYLES[error.severity]
            table.add_row(
                str(index),
                f"[{style}]{error.severity.name}[/{style}]",
                error.field_name,
                error.code,
                error.message,
            )
    return table


def _report(results: List[ValidationResult], title: str, as_json: bool) -> None:
    if as_json:
        click.echo(json.dumps([result.to_dict() for result in results], indent=2))
        return

    invalid = sum(1 for result in results if not result.is_valid)
    if invalid:
        console.print(_errors_table(results, title))
    console.print(f"{len(results)} record(s) checked, {invalid} with errors")


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    help="Logging level",
)
def cli(log_level: str) -> None:
    """dataknobs-rules - rule-based record validation"""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Print results as JSON")
def demo(as_json: bool) -> None:
    """Validate a sample user record against the reference rules"""
    rule_set = demo_rule_set()
    repository = MemoryErrorRepository()
    engine = ValidationEngine(
        config=ValidationConfig(parallelism=len(rule_set), persist_errors=True),
        repository=repository,
    ).register("user", rule_set)

    result = engine.validate("user", DEMO_RECORD)
    if not as_json:
        console.print(f"Record: {DEMO_RECORD}")
    _report([result], "Validation errors", as_json)


@cli.command()
@click.argument("rules_file", type=click.Path(exists=True, dir_okay=False))
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--type", "-t", "data_type", required=True, help="Data type of the records")
@click.option("--config", "-c", "config_file", type=click.Path(exists=True, dir_okay=False),
              help="File with a validation section (defaults to RULES_FILE)")
@click.option("--parallelism", "-p", type=click.IntRange(min=1), help="Fields validated at once")
@click.option("--stop-on-critical/--no-stop-on-critical", default=None,
              help="Stop scheduling fields after a CRITICAL error")
@click.option("--json", "as_json", is_flag=True, help="Print results as JSON")
def validate(
    rules_file: str,
    input_file: str,
    data_type: str,
    config_file: str | None,
    parallelism: int | None,
    stop_on_critical: bool | None,
    as_json: bool,
) -> None:
    """Validate records in INPUT_FILE against the rules in RULES_FILE"""
    try:
        config = ValidationConfig.from_file(config_file or rules_file)
        config = ValidationConfig.from_env(base=config)
        overrides = {}
        if parallelism is not None:
            overrides["parallelism"] = parallelism
        if stop_on_critical is not None:
            overrides["stop_on_critical"] = stop_on_critical
        config = config.with_overrides(persist_errors=False, **overrides)

        engine = ValidationEngine(load_rule_sets(rules_file), config)
        results = engine.validate_many(data_type, load_records(input_file))
    except RulesError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        sys.exit(2)

    _report(results, f"{data_type} validation errors", as_json)
    if any(not result.is_valid for result in results):
        sys.exit(1)


@cli.command()
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False))
@click.argument("output_file", type=click.Path(dir_okay=False))
@click.option("--header", help="Expected comma-separated CSV header")
@click.option("--raw", is_flag=True, help="Keep cells as strings")
def convert(input_file: str, output_file: str, header: str | None, raw: bool) -> None:
    """Convert a CSV file to a JSON array"""
    converter = CsvJsonConverter(
        expected_header=header.split(",") if header else None,
        coerce=not raw,
    )
    try:
        count = converter.convert(input_file, output_file)
    except RulesError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        sys.exit(2)
    console.print(f"[green]Converted {count} records to {output_file}[/green]")


def main() -> None:
    """Entry point for the dataknobs-rules command."""
    cli()


if __name__ == "__main__":
    main()
