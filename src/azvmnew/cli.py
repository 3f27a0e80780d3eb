"""CLI entry point for azvmnew.

Commands:
    azvmnew new               # Create a VM from a YAML template
    azvmnew bginfo-version    # Show the BGInfo extension version for a region
    azvmnew config show       # Show saved defaults
    azvmnew config set        # Save a default
"""

import logging
import sys

import click
from azure.core.exceptions import AzureError
from rich.console import Console
from rich.table import Table

from azvmnew import __version__
from azvmnew.azure_clients import AzureClientError, ComputeClient, StorageAccountsClient
from azvmnew.boot_diagnostics import BootDiagnosticsStorageResolver
from azvmnew.config_manager import AzvmConfig, ConfigError, ConfigManager
from azvmnew.extension_selector import BGINFO_EXTENSION_NAME, ExtensionVersionSelector
from azvmnew.models import VMCreationResult
from azvmnew.session_context import SessionContext, SessionContextError
from azvmnew.vm_creator import VMCreationError, VMCreator
from azvmnew.vm_template import TemplateError, load_vm_spec

logger = logging.getLogger(__name__)

console = Console()


def parse_tag_options(values: tuple[str, ...]) -> dict[str, str] | None:
    """Parse repeated NAME=VALUE tag options.

    Returns:
        Tag mapping, or None when no tags were given

    Raises:
        click.BadParameter: If an entry has no '=' or an empty name
    """
    if not values:
        return None
    tags: dict[str, str] = {}
    for value in values:
        name, sep, tag_value = value.partition("=")
        if not sep or not name.strip():
            raise click.BadParameter(f"Tag must be NAME=VALUE, got: {value}", param_hint="--tag")
        tags[name.strip()] = tag_value.strip()
    return tags


def build_vm_creator(
    storage: StorageAccountsClient, compute: ComputeClient, subscription_name: str | None
) -> VMCreator:
    """Wire a VMCreator to open management clients."""
    resolver = BootDiagnosticsStorageResolver(storage, subscription_name)
    return VMCreator(compute, resolver, ExtensionVersionSelector(compute))


def _print_result(result: VMCreationResult) -> None:
    operation = result.operation
    table = Table(title="VM creation", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Name", operation.name or "-")
    table.add_row("Status", operation.status)
    table.add_row("Provisioning state", operation.provisioning_state or "-")
    table.add_row("Resource ID", operation.resource_id or "-")
    if result.diagnostics_profile is not None:
        table.add_row("Boot diagnostics", result.diagnostics_profile.boot_diagnostics.storage_uri or "-")
    else:
        table.add_row("Boot diagnostics", "disabled")
    table.add_row(f"{BGINFO_EXTENSION_NAME} extension", result.extension_version or "not installed")
    if operation.start_time and operation.end_time:
        table.add_row("Duration", f"{(operation.end_time - operation.start_time).total_seconds():.0f}s")
    console.print(table)

    if result.notices:
        console.print(f"[yellow]{len(result.notices)} warning(s) raised during creation[/yellow]")


@click.group(context_settings={"help_option_names": ["--help", "-h"]})
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.version_option(version=__version__)
def main(verbose: bool) -> None:
    """azvmnew - Create Azure VMs with boot diagnostics.

    Creates a VM from a YAML template. When the template has no diagnostics
    profile, a storage account for boot diagnostics is reused or created,
    and the BGInfo extension is installed on Windows VMs.

    \b
    CONFIGURATION:
        Config file: ~/.azvmnew/config.toml
        Set defaults: default_resource_group, default_region,
                      subscription_id, disable_bginfo_extension
    """
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format="%(message)s")
    if not verbose:
        logging.getLogger("azure").setLevel(logging.WARNING)


@main.command(name="new")
@click.option("--resource-group", "--rg", "-g", help="Azure resource group")
@click.option("--location", "-l", help="Azure region (defaults to the template's location)")
@click.option(
    "--vm-file",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    help="YAML VM template",
)
@click.option("--tag", "tags", multiple=True, help="Tag NAME=VALUE (repeatable, replaces template tags)")
@click.option("--disable-bginfo-extension", is_flag=True, help="Do not install the BGInfo extension")
@click.option("--subscription", help="Azure subscription ID")
@click.option("--config", "config_path", help="Config file path")
def new_vm(
    resource_group: str | None,
    location: str | None,
    vm_file: str,
    tags: tuple[str, ...],
    disable_bginfo_extension: bool,
    subscription: str | None,
    config_path: str | None,
):
    """Create a VM from a YAML template.

    \b
    Examples:
      $ azvmnew new -g my-rg -l westus2 --vm-file web01.yaml
      $ azvmnew new -g my-rg --vm-file web01.yaml --tag env=dev --tag owner=ops
      $ azvmnew new -g my-rg --vm-file web01.yaml --disable-bginfo-extension
    """
    tag_overrides = parse_tag_options(tags)

    try:
        config = ConfigManager.load_config(config_path)
        vm = load_vm_spec(vm_file)
    except (ConfigError, TemplateError) as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    rg = resource_group or config.default_resource_group
    if not rg:
        console.print(
            "[red]Error: Resource group required. Use --resource-group or set in config.[/red]"
        )
        sys.exit(1)

    region = location or config.default_region
    if not (region or vm.location):
        console.print(
            "[red]Error: Location required. Use --location, set it in config or in the template.[/red]"
        )
        sys.exit(1)

    try:
        session = SessionContext.resolve(subscription or config.subscription_id)
        with session.storage_client() as storage, session.compute_client() as compute:
            creator = build_vm_creator(storage, compute, session.subscription_name)
            console.print(f"[blue]Creating VM {vm.name} in {rg}...[/blue]")
            result = creator.create(
                rg,
                region,
                vm,
                tags=tag_overrides,
                disable_bginfo_extension=disable_bginfo_extension
                or config.disable_bginfo_extension,
            )
    except (SessionContextError, VMCreationError, AzureClientError, AzureError) as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    _print_result(result)


@main.command(name="bginfo-version")
@click.option("--location", "-l", help="Azure region")
@click.option("--subscription", help="Azure subscription ID")
@click.option("--config", "config_path", help="Config file path")
def bginfo_version(location: str | None, subscription: str | None, config_path: str | None):
    """Show the BGInfo extension version that would be installed.

    \b
    Examples:
      $ azvmnew bginfo-version -l westus2
    """
    try:
        config = ConfigManager.load_config(config_path)
    except ConfigError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    region = location or config.default_region
    if not region:
        console.print("[red]Error: Location required. Use --location or set it in config.[/red]")
        sys.exit(1)

    try:
        session = SessionContext.resolve(subscription or config.subscription_id)
        with session.compute_client() as compute:
            version = ExtensionVersionSelector(compute).select(region)
    except (SessionContextError, AzureError) as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    if version is None:
        console.print(f"[yellow]{BGINFO_EXTENSION_NAME} extension is not available in {region}[/yellow]")
        return
    click.echo(version)


@main.group(name="config")
def config_group():
    """Show or change saved defaults."""
    pass


@config_group.command(name="show")
@click.option("--config", "config_path", help="Config file path")
def config_show(config_path: str | None):
    """Show saved defaults."""
    try:
        config = ConfigManager.load_config(config_path)
    except ConfigError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    values = config.to_dict()
    for key in AzvmConfig.keys():
        click.echo(f"{key} = {values.get(key, '')}")


@config_group.command(name="set")
@click.argument("key", type=click.Choice(AzvmConfig.keys()))
@click.argument("value")
@click.option("--config", "config_path", help="Config file path")
def config_set(key: str, value: str, config_path: str | None):
    """Save a default.

    \b
    Examples:
      $ azvmnew config set default_resource_group my-rg
      $ azvmnew config set disable_bginfo_extension true
    """
    try:
        ConfigManager.set_value(key, value, config_path)
    except ConfigError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)
    console.print(f"[green]Saved {key}[/green]")


if __name__ == "__main__":
    main()
