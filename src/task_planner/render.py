"""Rich text rendering of plans, dependency trees and task status.

Each function renders into a recording console and returns the exported
text, so callers can print it, log it or compare it in tests.
"""

from __future__ import annotations

from rich.console import Console
from rich.table import Table
from rich.tree import Tree

from .engine.manager import DependencyManager
from .engine.model import TaskStatus
from .engine.planner import ExecutionPlan

_STATUS_STYLES = {
    TaskStatus.READY: "[cyan]Ready[/cyan]",
    TaskStatus.RUNNING: "[yellow]Running[/yellow]",
    TaskStatus.COMPLETED: "[green]✓ Completed[/green]",
    TaskStatus.FAILED: "[red]✗ Failed[/red]",
    TaskStatus.SKIPPED: "[dim]Skipped[/dim]",
    TaskStatus.BLOCKED: "[magenta]Blocked[/magenta]",
}


def render_execution_plan(manager: DependencyManager, plan: ExecutionPlan | None = None) -> str:
    """Render execution stages with each task's HARD dependencies."""
    if plan is None:
        plan = manager.calculate_execution_plan()
    console = Console(record=True, width=100)

    console.print("\n[bold]Execution Plan[/bold]")
    console.print(f"Total tasks: {plan.total_tasks}")
    console.print(f"Stages: {len(plan.stages)}")
    console.print(f"Max parallelism: {plan.max_parallelism}")
    console.print(f"Critical path: {' -> '.join(plan.critical_path) or '-'} ({plan.estimated_duration:g})")
    console.print()

    for stage_idx, stage in enumerate(plan.stages, 1):
        console.print(f"[bold cyan]Stage {stage_idx}:[/bold cyan] ({len(stage)} task(s) in parallel)")
        for task_id in stage:
            task = manager.get_task(task_id)
            deps = manager.graph.hard_dependencies_of(task_id)
            if deps:
                console.print(f"  • {task_id} [dim](depends on: {', '.join(deps)})[/dim]")
            else:
                console.print(f"  • {task_id}")
            if task is not None and task.description:
                console.print(f"    {task.description[:80]}")
        console.print()

    for conflict in plan.resource_conflicts:
        console.print(f"[red]Resource conflict[/red] on {conflict.resource}: {', '.join(conflict.tasks)}")

    return console.export_text()


def render_dependency_tree(manager: DependencyManager) -> str:
    """Render HARD dependents as a tree rooted at tasks without dependencies."""
    console = Console(record=True, width=100)
    graph = manager.graph
    roots = [tid for tid in manager.store.ids() if not graph.hard_dependencies_of(tid)]

    tree = Tree("[bold]Task Dependency Tree[/bold]")

    def add_dependents(parent_node: Tree, task_id: str, visited: set[str]) -> None:
        visited.add(task_id)
        for dependent_id in graph.hard_dependents_of(task_id):
            if dependent_id in visited:
                # Reached again through another dependency; its subtree is already drawn
                parent_node.add(f"[dim]{dependent_id} (see above)[/dim]")
                continue
            branch = parent_node.add(f"[cyan]{dependent_id}[/cyan]")
            add_dependents(branch, dependent_id, visited)

    # Visited is per root: a shared dependent is drawn under each of its roots
    for root_id in roots:
        branch = tree.add(f"[green]{root_id}[/green]")
        add_dependents(branch, root_id, set())

    console.print(tree)
    return console.export_text()


def render_status_table(manager: DependencyManager) -> str:
    """Render one row per task with status, depth, criticality and error."""
    console = Console(record=True, width=120)
    table = Table(title="Task Status", show_header=True)
    table.add_column("Task ID", style="cyan")
    table.add_column("Status", style="bold")
    table.add_column("Depth", justify="right")
    table.add_column("Criticality", justify="right")
    table.add_column("Error", style="red")

    for task in manager.list_tasks():
        status_str = _STATUS_STYLES.get(task.status, task.status.value)
        table.add_row(
            task.id,
            status_str,
            str(task.depth),
            f"{task.criticality_score:.1f}",
            (task.error or "")[:50],
        )

    console.print(table)
    return console.export_text()
