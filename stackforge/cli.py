"""Command-line entry point.

Usage::

    stackforge recipe.yaml
    stackforge recipe.yaml --plugins-dir ./plugins --project-dir ./shop
    stackforge recipe.yaml --dry-run
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from pathlib import Path
from typing import Optional

from rich.panel import Panel
from rich.table import Table

from stackforge.config import EngineConfig, PackageManager
from stackforge.orchestrator import OrchestrationPlan, OrchestrationPlanner, PlanValidation
from stackforge.plugins import PluginContext, PluginManager, PluginRegistry
from stackforge.recipe import RecipeError, load_recipe
from stackforge.utils import ConsoleLogger, console


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stackforge",
        description="stackforge -- scaffold a project from a plugin recipe",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  stackforge recipe.yaml\n"
            "  stackforge recipe.yaml --plugins-dir ./plugins --project-dir ./shop\n"
            "  stackforge recipe.yaml --dry-run\n"
        ),
    )
    parser.add_argument("recipe", help="Path to the recipe YAML file")
    parser.add_argument(
        "--plugins-dir",
        action="append",
        default=[],
        metavar="DIR",
        help="Directory of plugin manifests (repeatable)",
    )
    parser.add_argument(
        "--project-dir",
        default=None,
        metavar="DIR",
        help="Target project directory (default: ./<project name>)",
    )
    parser.add_argument(
        "--package-manager",
        choices=[pm.value for pm in PackageManager],
        default=None,
        help="Override the package manager",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate and print the plan without executing it",
    )
    parser.add_argument(
        "--skip-install",
        action="store_true",
        help="Record packages in the manifest without running the package manager",
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Only print warnings, errors and the summary",
    )
    return parser


def print_plan(plan: OrchestrationPlan, validation: PlanValidation) -> None:
    table = Table(title="Orchestration Plan", show_header=True, header_style="bold cyan")
    table.add_column("Order", justify="right")
    table.add_column("Phase", style="bold")
    table.add_column("Plugins")
    table.add_column("Depends on", style="dim")
    for phase in plan.sorted_phases():
        table.add_row(
            f"{phase.order:g}",
            phase.name,
            ", ".join(phase.plugins) or "-",
            ", ".join(phase.dependencies) or "-",
        )
    console.print(table)

    for warning in validation.warnings:
        console.print(f"[yellow]WARNING:[/yellow] {warning}")
    if validation.valid:
        console.print("[bold green]Plan is valid.[/bold green]")
    else:
        for issue in validation.errors:
            console.print(f"[bold red]{issue.code.value}:[/bold red] {issue.message}")


def main(argv: Optional[list[str]] = None) -> None:
    """CLI entry point for ``stackforge``."""
    args = build_parser().parse_args(argv)

    try:
        recipe = load_recipe(args.recipe)
    except RecipeError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        sys.exit(1)

    config = recipe.apply_to(EngineConfig.from_env())
    update: dict[str, object] = {
        "plugin_dirs": [*config.plugin_dirs, *(Path(d) for d in args.plugins_dir)],
    }
    if not config.project_name:
        update["project_name"] = Path(args.recipe).stem
    if args.project_dir:
        update["project_path"] = Path(args.project_dir)
    elif "STACKFORGE_PROJECT_PATH" not in os.environ:
        update["project_path"] = Path.cwd() / str(update.get("project_name", config.project_name))
    if args.package_manager:
        update["package_manager"] = PackageManager(args.package_manager)
    if args.skip_install:
        update["skip_install"] = True
    config = config.model_copy(update=update)

    logger = ConsoleLogger(verbose=not args.quiet)
    registry = PluginRegistry()
    manager = PluginManager(registry, plugin_dirs=config.plugin_dirs, logger=logger)
    manager.discover_plugins()
    if not len(registry):
        console.print("[bold red]Error:[/bold red] No plugins found; pass --plugins-dir")
        sys.exit(1)

    planner = OrchestrationPlanner(
        registry, manager=manager, state_dir=config.state_dir
    )
    plan = planner.plan_for_plugins(recipe.plugin_ids, project_name=config.project_name)

    console.print(
        Panel(
            f"[bold bright_cyan]stackforge[/bold bright_cyan]\n"
            f"Project : {config.project_name}\n"
            f"Output  : {config.project_path.resolve()}\n"
            f"Plugins : {', '.join(plan.plugin_ids) or '(none)'}",
            title="[bold]Scaffold[/bold]",
            border_style="bright_cyan",
        )
    )

    if args.dry_run:
        validation = planner.validate_plan(plan)
        print_plan(plan, validation)
        sys.exit(0 if validation.valid else 1)

    context = PluginContext.from_config(config, logger=logger, parameters=recipe.parameters)
    context.description = recipe.project.description
    result = asyncio.run(planner.run(plan, context))

    if result.success:
        console.print("[bold green]Project scaffolded successfully![/bold green]")
    else:
        console.print("[bold red]Scaffolding failed.[/bold red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
