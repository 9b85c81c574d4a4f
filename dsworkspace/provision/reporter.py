"""Deployment result reporter with terminal and YAML output."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import yaml
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..models.cleanup_operation import CleanupOperation
from ..models.cleanup_record import CleanupStatus
from ..models.deployment_result import DeploymentResult
from ..models.resource_record import ResourceKind
from .plan import PlannedResource


class DeploymentReporter:
    """Report deployment results and plans (terminal, YAML)."""

    def __init__(self, console: Optional[Console] = None) -> None:
        self.console = console or Console()

    def _render(self, table: Table) -> str:
        with self.console.capture() as capture:
            self.console.print(table)
        return capture.get()

    def format_resources(self, result: DeploymentResult) -> str:
        """Format the tracked resources as a table.

        Args:
            result: Deployment result

        Returns:
            Formatted string for terminal display
        """
        table = Table(title="Workspace Resources")
        table.add_column("Kind", style="cyan")
        table.add_column("Identifier")
        table.add_column("Created", style="dim")
        table.add_column("Note")

        for kind in ResourceKind:
            for record in result.records.get(kind, ()):
                table.add_row(
                    kind.value,
                    record.identifier,
                    record.created_at.strftime("%Y-%m-%d %H:%M:%S"),
                    "[yellow]reused[/yellow]" if record.reused else "",
                )

        return self._render(table)

    def format_instances(self, result: DeploymentResult, notebook_port: int) -> str:
        """Format instance addresses and notebook URLs."""
        if not result.instances:
            return "No instances."

        table = Table(title="Instances")
        table.add_column("Instance", style="cyan")
        table.add_column("State")
        table.add_column("Public IP")
        table.add_column("Private IP")
        table.add_column("Notebook")

        for instance in result.instances:
            notebook = f"http://{instance.public_address}:{notebook_port}" if instance.public_address else "-"
            table.add_row(
                instance.instance_id,
                f"[green]{instance.state}[/green]" if instance.is_running else f"[red]{instance.state}[/red]",
                instance.public_address or "-",
                instance.private_address or "-",
                notebook,
            )

        return self._render(table)

    def format_cleanup(self, operation: CleanupOperation) -> str:
        """Format a cleanup operation as a table."""
        if not operation.records:
            return "Nothing was cleaned up."

        table = Table(title=f"Cleanup ({operation.mode.value}): {operation.status.value}")
        table.add_column("Kind", style="cyan")
        table.add_column("Identifier")
        table.add_column("Status")
        table.add_column("Error")

        for record in operation.records:
            if record.status == CleanupStatus.SUCCEEDED:
                status_display = "[green]deleted[/green]"
            else:
                status_display = "[red]failed[/red]"
            error = record.error_message or ""
            if len(error) > 60:
                error = error[:57] + "..."
            table.add_row(record.kind.value, record.identifier, status_display, escape(error))

        return self._render(table)

    def format_plan(self, plan: list[PlannedResource]) -> str:
        """Format a dry-run plan as a table."""
        table = Table(title="Planned Resources (dry run)")
        table.add_column("#", justify="right", style="dim")
        table.add_column("Kind", style="cyan")
        table.add_column("Name")
        table.add_column("Details")

        for position, planned in enumerate(plan, start=1):
            table.add_row(str(position), planned.kind.value, planned.name, escape(planned.details))

        return self._render(table)

    def generate_summary(self, result: DeploymentResult) -> dict:
        """Generate summary counts for a deployment result."""
        summary = {
            "succeeded": result.succeeded,
            "final_state": result.final_state.value,
            "resource_counts": {kind.value: result.count(kind) for kind in ResourceKind},
            "duration_seconds": result.duration_seconds,
        }
        if result.cleanup is not None:
            summary["cleanup_status"] = result.cleanup.status.value
            summary["cleanup_failed_count"] = result.cleanup.failed_count
        return summary

    def export_yaml(self, result: DeploymentResult, filepath: str) -> Path:
        """Export a deployment result to YAML.

        Key material is never written.

        Args:
            result: Deployment result
            filepath: Output file path

        Returns:
            Path of the written file
        """
        output = {
            "summary": self.generate_summary(result),
            "deployment": result.to_dict(),
        }

        output_path = Path(filepath)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, "w") as f:
            yaml.safe_dump(output, f, default_flow_style=False, sort_keys=False)

        return output_path
