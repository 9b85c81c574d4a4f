"""Main CLI entry point using Typer."""

import logging
import sys
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from ..aws.credentials import CredentialValidationError, validate_credentials
from ..aws.resource_client import ResourceClient
from ..errors import ProviderError, ValidationError
from ..models.deployment_result import DeploymentResult
from ..models.deployment_spec import DEFAULT_INGRESS_CIDR, DEFAULT_NOTEBOOK_PORT, DEFAULT_NOTEBOOK_TOKEN, DeploymentSpec
from ..provision.cancellation import CancellationToken, handle_signals
from ..provision.compensator import Compensator
from ..provision.orchestrator import DeploymentOrchestrator
from ..provision.plan import build_plan
from ..provision.reporter import DeploymentReporter
from ..utils.logging import setup_logging
from .config import Config, ConfigError
from .keys import save_private_key

logger = logging.getLogger(__name__)

# Create Typer app
app = typer.Typer(
    name="dsworkspace",
    help="Data science workspace provisioning on AWS (security group, key pair, S3 bucket, EC2 instances)",
    add_completion=False,
)

# Create Rich console for output
console = Console()

# Global config
config: Optional[Config] = None


def cleanup_hint(project_name: str, environment: str, region: str) -> str:
    return f"dsworkspace cleanup --project {project_name} --environment {environment} --region {region}"


@app.callback()
def main(
    profile: Optional[str] = typer.Option(None, "--profile", "-p", help="AWS profile name"),
    config_file: Optional[str] = typer.Option(
        None, "--config", help="Config file (default: ~/.dsworkspace/config.yaml or $DSWORKSPACE_CONFIG)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress output except errors"),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colored output"),
):
    """Data science workspace provisioning on AWS."""
    global config

    # Load configuration
    try:
        config = Config.load(config_file)
    except ConfigError as e:
        console.print(f"✗ {escape(str(e))}", style="bold red")
        raise typer.Exit(code=1)

    # Override with CLI options
    if profile:
        config.aws_profile = profile

    # Setup logging
    log_level = "ERROR" if quiet else ("DEBUG" if verbose else config.log_level)
    setup_logging(level=log_level, verbose=verbose)

    # Disable colors if requested
    if no_color:
        console.no_color = True


@app.command()
def version():
    """Show version information."""
    import boto3

    from .. import __version__

    console.print(f"dsworkspace version {__version__}")
    console.print(f"Python {sys.version.split()[0]}")
    console.print(f"boto3 {boto3.__version__}")


def _print_failure(result: DeploymentResult, spec: DeploymentSpec, reporter: DeploymentReporter) -> None:
    failed_state = result.failed_state.value if result.failed_state else "unknown"
    if result.cancelled:
        console.print(f"\n✗ Deployment cancelled during {failed_state}", style="bold yellow")
    else:
        console.print(f"\n✗ Deployment failed during {failed_state}", style="bold red")
    if result.failed_resource:
        console.print(f"  Operation: {escape(result.failed_resource)}")
    console.print(f"  Reason: {escape(result.failure_reason)}")

    if result.cleanup is None:
        return

    console.print("\nRolled back:")
    console.print(reporter.format_cleanup(result.cleanup))

    if result.cleanup.failed_count:
        console.print(
            f"⚠️  {result.cleanup.failed_count} resource(s) could not be deleted. To remove them, run:\n"
            f"  {cleanup_hint(spec.project_name, spec.environment, spec.region)}",
            style="bold yellow",
        )
    else:
        console.print("✓ All created resources were removed", style="green")


@app.command()
def deploy(
    bucket_name: str = typer.Option(..., "--bucket-name", "-b", help="S3 bucket name (3-63 lowercase chars)"),
    instance_type: Optional[str] = typer.Option(None, "--instance-type", "-t", help="EC2 instance type"),
    count: Optional[int] = typer.Option(None, "--count", "-n", help="Number of instances"),
    region: Optional[str] = typer.Option(None, "--region", "-r", help="AWS region"),
    environment: Optional[str] = typer.Option(None, "--environment", "-e", help="Environment name"),
    project: Optional[str] = typer.Option(None, "--project", help="Project name"),
    image_id: Optional[str] = typer.Option(None, "--image-id", help="AMI ID (default: latest Ubuntu 22.04)"),
    ingress_cidr: str = typer.Option(
        DEFAULT_INGRESS_CIDR, "--ingress-cidr", help="Source CIDR for SSH/HTTP/HTTPS/notebook access"
    ),
    notebook_token: str = typer.Option(
        DEFAULT_NOTEBOOK_TOKEN, "--notebook-token", help="Notebook access token", envvar="DSWORKSPACE_NOTEBOOK_TOKEN"
    ),
    notebook_port: int = typer.Option(DEFAULT_NOTEBOOK_PORT, "--notebook-port", help="Notebook port"),
    key_dir: Optional[str] = typer.Option(None, "--key-dir", help="Directory for the private key (default: ~/.ssh)"),
    report: Optional[str] = typer.Option(None, "--report", help="Write a YAML deployment report to this file"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show the planned resources without creating anything"),
):
    """Provision a data science workspace.

    Creates, in order: a security group, a key pair, an S3 bucket and the
    EC2 instances. If any step fails, or the deployment is interrupted,
    everything created so far is deleted again.

    Examples:
        dsworkspace deploy --bucket-name my-ds-bucket
        dsworkspace deploy -b my-ds-bucket -t m5.xlarge -n 2 --ingress-cidr 203.0.113.0/24
        dsworkspace deploy -b my-ds-bucket --dry-run
    """
    spec = DeploymentSpec(
        instance_type=instance_type or config.instance_type,
        bucket_name=bucket_name,
        instance_count=count if count is not None else config.instance_count,
        region=region or config.region,
        project_name=project or config.project_name,
        environment=environment or config.environment,
        ingress_cidr=ingress_cidr,
        notebook_token=notebook_token,
        notebook_port=notebook_port,
        image_id=image_id,
    )
    reporter = DeploymentReporter(console)

    try:
        spec.validate()
    except ValidationError as e:
        console.print("✗ Invalid deployment:", style="bold red")
        for problem in e.problems:
            console.print(f"  - {escape(problem)}")
        raise typer.Exit(code=1)

    if dry_run:
        console.print(reporter.format_plan(build_plan(spec)))
        for warning in spec.uses_insecure_defaults():
            console.print(f"⚠️  {warning}", style="yellow")
        console.print("\nDry run: no AWS calls were made.")
        return

    try:
        # Validate credentials
        console.print("🔐 Validating AWS credentials...")
        identity = validate_credentials(config.aws_profile)
        console.print(f"✓ Authenticated as: {identity['arn']}\n", style="green")

        console.print(f"🚀 Deploying [bold]{spec.name_prefix}[/bold] to {spec.region}")

        client = ResourceClient(region=spec.region, aws_profile=config.aws_profile)
        token = CancellationToken()
        orchestrator = DeploymentOrchestrator(
            client,
            compensator=Compensator(client, termination_timeout=config.termination_timeout),
            cancellation=token,
            max_retries=config.max_retries,
            wait_timeout=config.wait_timeout,
        )
        with handle_signals(token):
            result = orchestrator.run(spec)

        if report:
            report_path = reporter.export_yaml(result, report)
            console.print(f"📝 Report written to: [cyan]{report_path}[/cyan]")

        if not result.succeeded:
            _print_failure(result, spec, reporter)
            raise typer.Exit(code=2)

        key_path = None
        if result.key_material:
            key_path = save_private_key(key_dir or config.key_dir, spec.key_name, result.key_material)
            console.print(f"🔑 Private key saved to: [cyan]{key_path}[/cyan]")

        console.print("\n✓ Deployment complete!", style="bold green")
        console.print(reporter.format_resources(result))
        console.print(reporter.format_instances(result, spec.notebook_port))

        for instance in result.instances:
            if instance.public_address:
                ssh_key = key_path or f"<path to {spec.key_name}.pem>"
                console.print(f"  ssh -i {ssh_key} ubuntu@{instance.public_address}")

        console.print(
            Panel(
                "The notebook server starts after the instance finishes installing packages (a few minutes).\n"
                f"To delete everything: {cleanup_hint(spec.project_name, spec.environment, spec.region)}",
                border_style="cyan",
            )
        )
        for warning in spec.uses_insecure_defaults():
            console.print(f"⚠️  {warning}", style="bold yellow")

    except typer.Exit:
        # Re-raise Exit exceptions (normal exit codes)
        raise
    except CredentialValidationError as e:
        console.print(f"✗ Error: {escape(str(e))}", style="bold red")
        raise typer.Exit(code=3)
    except KeyboardInterrupt:
        console.print("\n✗ Deployment interrupted, rollback may be incomplete", style="bold red")
        console.print("  Remove leftovers with:")
        console.print(f"    {cleanup_hint(spec.project_name, spec.environment, spec.region)}")
        raise typer.Exit(code=2)
    except Exception as e:
        console.print(f"✗ Error deploying workspace: {escape(str(e))}", style="bold red")
        console.print(f"  Check for leftovers with: {cleanup_hint(spec.project_name, spec.environment, spec.region)}")
        logger.exception("Error in deploy command")
        raise typer.Exit(code=2)


@app.command()
def cleanup(
    project: Optional[str] = typer.Option(None, "--project", help="Project name"),
    environment: Optional[str] = typer.Option(None, "--environment", "-e", help="Environment name"),
    region: Optional[str] = typer.Option(None, "--region", "-r", help="AWS region"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
):
    """Delete every resource tagged with a project and environment.

    Discovers instances, buckets, security groups and key pairs by their
    Project/Environment tags and deletes them in dependency order. Use it
    to clean up after an interrupted or failed deployment.
    """
    project_name = project or config.project_name
    environment_name = environment or config.environment
    region_name = region or config.region

    try:
        if not yes:
            confirmed = typer.confirm(
                f"Delete all resources tagged Project={project_name}, Environment={environment_name} "
                f"in {region_name}?"
            )
            if not confirmed:
                console.print("Aborted.")
                raise typer.Exit(code=1)

        console.print("🔐 Validating AWS credentials...")
        identity = validate_credentials(config.aws_profile)
        console.print(f"✓ Authenticated as: {identity['arn']}\n", style="green")

        client = ResourceClient(region=region_name, aws_profile=config.aws_profile)
        compensator = Compensator(client, termination_timeout=config.termination_timeout)
        operation = compensator.sweep(project_name, environment_name)

        console.print(DeploymentReporter(console).format_cleanup(operation))

        if operation.failed_count:
            console.print(
                f"✗ {operation.failed_count} resource(s) could not be deleted. "
                "Check the errors above and rerun cleanup.",
                style="bold red",
            )
            raise typer.Exit(code=2)

        console.print(f"✓ Cleanup complete: {operation.succeeded_count} resource(s) deleted", style="bold green")

    except typer.Exit:
        raise
    except CredentialValidationError as e:
        console.print(f"✗ Error: {escape(str(e))}", style="bold red")
        raise typer.Exit(code=3)
    except ProviderError as e:
        console.print(f"✗ Could not discover resources: {escape(str(e))}", style="bold red")
        raise typer.Exit(code=2)
    except Exception as e:
        console.print(f"✗ Error during cleanup: {escape(str(e))}", style="bold red")
        logger.exception("Error in cleanup command")
        raise typer.Exit(code=2)


def cli_main():
    """Entry point for console script."""
    app()


if __name__ == "__main__":
    cli_main()
