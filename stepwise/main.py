"""stepwise entry point: wires settings, tools and engines into CLI commands."""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Any

import click

from stepwise.config import Settings, load_settings
from stepwise.core.agent import AgentContext, AutonomousAgent
from stepwise.core.events import EventSink
from stepwise.core.llm import create_provider
from stepwise.core.monitor import HealthMonitor
from stepwise.errors import CircularDependencyError, StepwiseError
from stepwise.planner.engine import PlanEngine, PlanRun
from stepwise.planner.models import Plan
from stepwise.planner.validation import ready_steps, validate_plan
from stepwise.tools.base import ToolRegistry
from stepwise.tools.filesystem import ListDirTool, ViewFileTool, WriteFileTool
from stepwise.tools.search import SearchTool, SymbolScanBackend
from stepwise.tools.shell import RunCommandTool
from stepwise.utils.logging import get_logger, setup_logging

log = get_logger(__name__)


def build_registry(settings: Settings, root: Path | None = None) -> ToolRegistry:
    return ToolRegistry([
        SearchTool([SymbolScanBackend(root or Path.cwd())]),
        ViewFileTool(root),
        ListDirTool(root),
        WriteFileTool(root),
        RunCommandTool(settings.tools, root),
    ])


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


def _load_plan(path: str) -> Plan:
    try:
        with open(path) as f:
            return Plan.from_dict(json.load(f))
    except (ValueError, KeyError, TypeError) as e:
        click.echo(f"Invalid plan file {path}: {e}", err=True)
        sys.exit(1)


async def run_agent(settings: Settings, task: str, root: Path, show_events: bool) -> AgentContext:
    llm = create_provider(settings.llm)
    monitor = HealthMonitor(settings.monitor)
    agent = AutonomousAgent(llm, build_registry(settings, root), settings.agent, monitor)
    sink = EventSink(settings.agent.event_queue_size)

    async def _print_events() -> None:
        async for event in sink.stream():
            if show_events:
                click.echo(json.dumps(event.to_dict(), default=str))

    printer = asyncio.create_task(_print_events(), name="event-printer")
    try:
        return await agent.run(task, sink)
    finally:
        sink.close()
        await printer
        await llm.close()
        for suggestion in monitor.suggest_corrections(monitor.check_health()):
            click.echo(suggestion, err=True)


async def create_plan(settings: Settings, goal: str, context: str) -> Plan:
    llm = create_provider(settings.llm)
    try:
        return await PlanEngine(llm, build_registry(settings)).create_plan(goal, context)
    finally:
        await llm.close()


async def execute_plan(settings: Settings, plan: Plan, root: Path) -> tuple[PlanRun, list[str]]:
    llm = create_provider(settings.llm)
    engine = PlanEngine(llm, build_registry(settings, root), HealthMonitor(settings.monitor))
    try:
        run = await engine.execute_plan(plan)
    finally:
        await llm.close()
    return run, engine.monitor.suggest_corrections(run.issues)


@click.group()
@click.option("--config", "config_path", default=None, help="Path to config YAML file")
@click.option("--log-level", default=None, help="Log level (DEBUG, INFO, WARNING, ERROR)")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, log_level: str | None) -> None:
    """Plan, run and monitor autonomous tool-driven tasks."""
    settings = load_settings(config_path)
    if log_level:
        settings.log_level = log_level
    setup_logging(settings.log_level, settings.log_json)
    ctx.obj = settings


@cli.command()
@click.argument("task")
@click.option("--root", type=click.Path(file_okay=False, path_type=Path), default=".",
              help="Project directory the tools operate in")
@click.option("--events/--no-events", default=True, help="Stream agent events as JSON lines")
@click.pass_obj
def run(settings: Settings, task: str, root: Path, events: bool) -> None:
    """Gather context for TASK with the autonomous tool loop."""
    try:
        context = asyncio.run(run_agent(settings, task, root.resolve(), events))
    except StepwiseError as e:
        log.error("agent_run_failed", error=str(e))
        sys.exit(1)

    click.echo(f"Gathered {len(context.gathered_info)} item(s) in {len(context.history)} history line(s)")
    for info in context.gathered_info:
        click.echo(f"- {info.source}: {info.relevance}")


@cli.command()
@click.argument("goal")
@click.option("--context", default="", help="Extra context for the planner")
@click.pass_obj
def plan(settings: Settings, goal: str, context: str) -> None:
    """Create and validate a plan for GOAL."""
    try:
        new_plan = asyncio.run(create_plan(settings, goal, context))
    except CircularDependencyError as e:
        click.echo(str(e), err=True)
        sys.exit(1)

    _echo_json(new_plan.to_dict())
    click.echo(f"Ready: {', '.join(s.id for s in ready_steps(new_plan, set())) or '(none)'}", err=True)


@cli.command()
@click.argument("plan_file", type=click.Path(exists=True, dir_okay=False))
def validate(plan_file: str) -> None:
    """Check PLAN_FILE for dependency cycles and show the initial frontier."""
    loaded = _load_plan(plan_file)
    try:
        validate_plan(loaded)
    except CircularDependencyError as e:
        click.echo(str(e), err=True)
        sys.exit(1)

    click.echo(f"Plan OK: {len(loaded.steps)} step(s)")
    for step in ready_steps(loaded, set()):
        click.echo(f"  ready: {step.id} ({step.tool}) {step.description}")


@cli.command()
@click.argument("plan_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--root", type=click.Path(file_okay=False, path_type=Path), default=".",
              help="Project directory the tools operate in")
@click.pass_obj
def execute(settings: Settings, plan_file: str, root: Path) -> None:
    """Run PLAN_FILE step by step as dependencies complete."""
    loaded = _load_plan(plan_file)
    try:
        outcome, suggestions = asyncio.run(execute_plan(settings, loaded, root.resolve()))
    except CircularDependencyError as e:
        click.echo(str(e), err=True)
        sys.exit(1)

    _echo_json({
        "completed": outcome.completed,
        "failed": outcome.failed,
        "blocked": outcome.blocked,
    })
    for suggestion in suggestions:
        click.echo(suggestion, err=True)
    if not outcome.succeeded:
        sys.exit(2)


if __name__ == "__main__":
    cli()
