"""CLI for the armory package registry."""

import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape

from . import __version__
from .cache import ArtifactCache
from .config import ClientConfig, armory_bin
from .logging_config import setup_logging
from .manifest import InstallManifest, PackageManifest
from .registry.client import RegistryClient
from .registry.models import GetInfoInput, ListInput, check_path_segment
from .targets import Triple, current_triple, parse_triple


console = Console()

TRIPLE_CHOICE = click.Choice([t.value for t in Triple])


def _make_client(config: ClientConfig) -> RegistryClient:
    return RegistryClient(config.registry_url, password=config.password)


def _fail(error: Exception) -> None:
    console.print(f"[red]Error: {escape(str(error))}[/red]")
    sys.exit(1)


def _triple(value: Optional[str]) -> Triple:
    return parse_triple(value) if value else current_triple()


def parse_identifier(text: str) -> tuple[str, Optional[str]]:
    """Split ``NAME[@VERSION]``."""
    parts = text.split("@")
    if len(parts) > 2:
        raise ValueError("too many components in package identifier")
    name = parts[0]
    if not name:
        raise ValueError("package identifier has an empty name")
    version = parts[1] if len(parts) == 2 else None
    return name, version or None


@click.group()
@click.version_option(version=__version__, prog_name="armory")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logs")
def cli(verbose: bool):
    """Armory - a personal package manager."""
    setup_logging("DEBUG" if verbose else "WARNING")


@cli.command()
@click.option("--manifest", "-m", "manifest_path", type=click.Path(dir_okay=False), help="Path to armory.yaml")
@click.option("--triple", "-t", type=TRIPLE_CHOICE, help="Only publish the binary for this triple")
def publish(manifest_path: Optional[str], triple: Optional[str]):
    """Publish the package described by armory.yaml."""
    try:
        manifest = PackageManifest.load(Path(manifest_path) if manifest_path else None)
        targets = manifest.targets
        if triple:
            target = manifest.target_for(parse_triple(triple))
            if target is None:
                raise ValueError(f"manifest has no target for {triple}")
            targets = [target]
        if not targets:
            raise ValueError("manifest declares no targets")

        config = ClientConfig.load()
        with _make_client(config) as client:
            for target in targets:
                if not target.path.is_file():
                    raise ValueError(f"{target.path} is not a file")
                client.publish_bytes(manifest.name, manifest.version, target.triple, target.path.read_bytes())
                console.print(f"[green]✓ Published {manifest.name}@{manifest.version} ({target.triple})[/green]")
    except Exception as e:
        _fail(e)


@cli.command("publish-file")
@click.argument("name")
@click.argument("version")
@click.argument("binary", type=click.Path(dir_okay=False))
@click.option("--triple", "-t", type=TRIPLE_CHOICE, help="Target triple (default: current platform)")
def publish_file(name: str, version: str, binary: str, triple: Optional[str]):
    """Publish a single binary."""
    try:
        path = Path(binary)
        if not path.is_file():
            raise ValueError(f"{path} is not a file")
        target = _triple(triple)

        config = ClientConfig.load()
        with _make_client(config) as client:
            client.publish_bytes(name, version, target, path.read_bytes())
        console.print(f"[green]✓ Published {name}@{version} ({target})[/green]")
    except Exception as e:
        _fail(e)


@cli.command()
@click.argument("package", metavar="PACKAGE[@VERSION]")
@click.option("--version", "version", default=None, help="Version to install (default: latest)")
def install(package: str, version: Optional[str]):
    """Install a package into ~/.armory/bin."""
    try:
        name, id_version = parse_identifier(package)
        if id_version and version:
            raise ValueError("version specified multiple times")
        version = id_version or version
        check_path_segment(name)
        if version is not None:
            check_path_segment(version, "version")
        triple = current_triple()

        cache = ArtifactCache()
        content = cache.get(name, triple, version) if version else None
        if content is None:
            config = ClientConfig.load()
            with _make_client(config) as client:
                version, content = client.fetch(name, triple, version)
            cache.put(name, triple, version, content)
        else:
            console.print(f"[dim]Using cached {name}@{version}[/dim]")

        bin_dir = armory_bin()
        bin_dir.mkdir(parents=True, exist_ok=True)
        binary = bin_dir / name
        if binary.exists():
            binary.unlink()
        binary.write_bytes(content)
        binary.chmod(0o700)

        manifest = InstallManifest.load_or_create()
        manifest.add(name, version)
        manifest.save()

        console.print(f"[green]✓ Installed {name}@{version} to {binary}[/green]")
    except Exception as e:
        _fail(e)


@cli.command("list")
@click.option("--triple", "-t", type=TRIPLE_CHOICE, help="Target triple (default: current platform)")
def list_packages(triple: Optional[str]):
    """List available packages."""
    try:
        target = _triple(triple)
        config = ClientConfig.load()
        with _make_client(config) as client:
            output = client.list_packages(ListInput(triple=target))

        installed = InstallManifest.load_or_create()
        if not output.packages:
            console.print(f"[yellow]No packages available for {target}[/yellow]")
            return
        for name in output.packages:
            record = installed.get(name)
            suffix = f" [dim](installed {record.version})[/dim]" if record else ""
            console.print(f"    {escape(name)}{suffix}")
    except Exception as e:
        _fail(e)


@cli.command()
@click.argument("name")
@click.option("--triple", "-t", type=TRIPLE_CHOICE, help="Target triple (default: current platform)")
def info(name: str, triple: Optional[str]):
    """Show the published versions of a package."""
    try:
        target = _triple(triple)
        config = ClientConfig.load()
        with _make_client(config) as client:
            output = client.get_info(GetInfoInput(name=name, triple=target))

        console.print(f"[bold]{escape(output.name)}[/bold] ({target})")
        for v in output.versions:
            console.print(f"    {escape(v)}")
    except Exception as e:
        _fail(e)


@cli.command()
@click.argument("name")
def uninstall(name: str):
    """Uninstall a package."""
    try:
        check_path_segment(name)
        binary = armory_bin() / name
        if not binary.is_file():
            raise ValueError(f"package '{name}' does not exist")
        binary.unlink()

        manifest = InstallManifest.load_or_create()
        manifest.remove(name)
        manifest.save()

        console.print(f"[green]✓ Uninstalled {name}[/green]")
    except Exception as e:
        _fail(e)


@cli.command()
@click.option("--registry", "-r", default=None, help="Registry URL")
@click.option("--password", "-p", default=None, help="Registry password")
def login(registry: Optional[str], password: Optional[str]):
    """Save the registry URL and password."""
    try:
        config = ClientConfig.load(env={})
        if registry:
            config.registry_url = registry
        if password is None:
            password = click.prompt("Password", hide_input=True, default="", show_default=False)
        config.password = password or None
        path = config.save()
        console.print(f"[green]✓ Saved credentials for {config.registry_url} to {path}[/green]")
    except Exception as e:
        _fail(e)


def main(argv=None):
    """Main entry point."""
    cli(argv)


if __name__ == "__main__":
    main()
