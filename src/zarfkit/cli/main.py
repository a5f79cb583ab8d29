#!/usr/bin/env python3
"""
ZARFKIT CLI - Package Commands
------------------------------
Command-line front end for creating, inspecting, verifying and planning the
deployment of air-gapped packages.

Author: ZarfKit Team
Date: 2026-02-03
"""

import argparse
import logging
import shutil
import sys
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from zarfkit.cli.formatter import ZarfFormatter
from zarfkit.core.config import ZarfConfig
from zarfkit.core.errors import ZarfError
from zarfkit.core.version import CLI_VERSION
from zarfkit.filters.select import parse_requested
from zarfkit.filters.strategy import EmptyFilter
from zarfkit.integrity.signature import generate_key_pair
from zarfkit.layout.package import PackagePaths
from zarfkit.packager.create import Creator
from zarfkit.packager.deploy import Deployer
from zarfkit.sources.base import new_source

console = Console()
formatter = ZarfFormatter()

LOG_LEVELS = ["debug", "info", "warning", "error"]


class ZarfKitCLI:
    """
    Translates user commands into packager calls and renders the results.
    """

    def __init__(self):
        self.parser = argparse.ArgumentParser(
            prog="zarfkit",
            description="ZarfKit - Air-gapped Kubernetes package assembly and verification",
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )
        self._setup_args()

    def _setup_args(self):
        self.parser.add_argument("-v", "--version", action="version", version=f"zarfkit {CLI_VERSION}")
        self.parser.add_argument("-l", "--log-level", default="warning", choices=LOG_LEVELS,
                                 help="Log level (default: warning)")
        self.parser.add_argument("--tmpdir", help="Directory for temporary files")
        self.parser.add_argument("--zarf-cache", help="Cache directory for imported skeletons")
        self.parser.add_argument("-a", "--architecture", help="Architecture to build or deploy for")
        self.parser.add_argument("--plain-http", action="store_true", help="Talk to registries over plain HTTP")
        subparsers = self.parser.add_subparsers(dest="command", metavar="Command")

        package_parser = subparsers.add_parser("package", help="📦 Create, inspect, verify or deploy packages")
        package_cmds = package_parser.add_subparsers(dest="package_command", metavar="Command")

        create = package_cmds.add_parser("create", help="Build a package from a directory holding zarf.yaml")
        create.add_argument("path", nargs="?", default=".", help="Package directory (default: .)")
        create.add_argument("-o", "--output", default=".", help="Directory to write the package to")
        create.add_argument("-f", "--flavor", default="", help="Only include components with this flavor")
        create.add_argument("--differential", default="", help="Reference package for a differential build")
        create.add_argument("-m", "--max-package-size", type=int, default=0,
                            help="Split the package into parts of this many megabytes (0 disables)")
        create.add_argument("--signing-key", default="", help="Private key used to sign the package")
        create.add_argument("--signing-key-pass", default="", help="Password of the signing key")

        inspect = package_cmds.add_parser("inspect", help="Show the definition of a package")
        inspect.add_argument("source", help="Tarball, split part000, oci:// or http(s) URL")
        inspect.add_argument("-k", "--key", default="", help="Public key to verify the signature with")
        inspect.add_argument("--insecure", action="store_true", help="Skip signature validation")
        inspect.add_argument("--definition", action="store_true", help="Print the full zarf.yaml")

        deploy = package_cmds.add_parser("deploy", help="Load, verify and plan a package deployment")
        deploy.add_argument("source", help="Tarball, split part000, oci:// or http(s) URL")
        deploy.add_argument("--components", default="", help="Comma separated components (globs, -name excludes)")
        deploy.add_argument("--confirm", action="store_true", help="Confirm the selection without prompting")
        deploy.add_argument("-k", "--key", default="", help="Public key to verify the signature with")
        deploy.add_argument("--insecure", action="store_true", help="Skip signature validation")
        deploy.add_argument("--shasum", default="", help="Expected sha256 of the package archive")

        verify = package_cmds.add_parser("verify", help="Check every checksum and the signature of a package")
        verify.add_argument("source", help="Tarball, split part000, oci:// or http(s) URL")
        verify.add_argument("-k", "--key", default="", help="Public key to verify the signature with")
        verify.add_argument("--shasum", default="", help="Expected sha256 of the package archive")

        tools_parser = subparsers.add_parser("tools", help="🔧 Helper utilities")
        tools_cmds = tools_parser.add_subparsers(dest="tools_command", metavar="Command")
        gen_key = tools_cmds.add_parser("gen-key", help="Generate an Ed25519 signing key pair")
        gen_key.add_argument("path", nargs="?", default=".", help="Directory to write the keys to")
        gen_key.add_argument("--password", default="", help="Encrypt the private key with this password")

    def print_header(self, subtitle: str):
        console.print(Panel.fit(
            f"[bold cyan]ZarfKit {CLI_VERSION}[/bold cyan]\n"
            "══════════════════════════════════════════════════════════════════",
            title=f"[bold white]{subtitle}[/bold white]",
            border_style="cyan"
        ))

    def build_config(self, args: argparse.Namespace) -> ZarfConfig:
        """Environment first, then whatever was passed on the command line."""
        config = ZarfConfig.from_env()
        if args.tmpdir:
            config.temp_dir = args.tmpdir
        if args.zarf_cache:
            config.cache_dir = args.zarf_cache
        if args.architecture:
            config.architecture = args.architecture
        config.plain_http = args.plain_http

        config.flavor = getattr(args, "flavor", "")
        config.differential_source = getattr(args, "differential", "")
        config.max_package_size_mb = getattr(args, "max_package_size", 0)
        config.signing_key_path = getattr(args, "signing_key", "")
        config.signing_key_password = getattr(args, "signing_key_pass", "")
        config.public_key_path = getattr(args, "key", "")
        config.insecure = getattr(args, "insecure", False)
        config.confirm = getattr(args, "confirm", False)
        config.shasum = getattr(args, "shasum", "")
        config.optional_components = parse_requested(getattr(args, "components", ""))
        return config

    # --- COMMANDS ---

    def _create(self, args: argparse.Namespace, config: ZarfConfig):
        creator = Creator(config)
        build_dir = config.make_temp_dir(prefix="zarfkit-build-")
        try:
            with Progress(SpinnerColumn(), TextColumn("[progress.description]{task.description}"),
                          TimeElapsedColumn(), console=console) as progress:
                task_id = progress.add_task("Assembling components...", total=None)
                layout = PackagePaths(build_dir)
                pkg, warnings = creator.assemble(args.path, layout)
                progress.update(task_id, description="Writing package...")
                written = creator.output(layout, args.output)
        finally:
            shutil.rmtree(build_dir, ignore_errors=True)

        formatter.show_warnings(warnings)
        formatter.print_components(pkg, title="Packaged Components")
        formatter.print_summary(pkg, "Package Created", [str(p) for p in written])

    def _inspect(self, args: argparse.Namespace, config: ZarfConfig):
        scratch = config.make_temp_dir(prefix="zarfkit-inspect-")
        try:
            source = new_source(args.source, config)
            pkg, warnings = source.load_package_metadata(PackagePaths(scratch), skip_validation=True)
        finally:
            shutil.rmtree(scratch, ignore_errors=True)

        formatter.show_warnings(warnings)
        if args.definition:
            formatter.show_definition(pkg)
        formatter.print_components(pkg)

    def _deploy(self, args: argparse.Namespace, config: ZarfConfig):
        plan = Deployer(config).plan(args.source)
        try:
            formatter.show_warnings(plan.warnings)
            formatter.print_components(plan.package, title="Components To Deploy")
            formatter.print_summary(plan.package, "Deployment Plan",
                                    [f"{name}: {paths.base}" for name, paths in plan.directories.items()])
        finally:
            shutil.rmtree(plan.layout.base, ignore_errors=True)

    def _verify(self, args: argparse.Namespace, config: ZarfConfig):
        scratch = config.make_temp_dir(prefix="zarfkit-verify-")
        try:
            source = new_source(args.source, config)
            pkg, warnings = source.load_package(PackagePaths(scratch), EmptyFilter(), unarchive_all=False)
        finally:
            shutil.rmtree(scratch, ignore_errors=True)

        formatter.show_warnings(warnings)
        formatter.print_summary(pkg, "Package Verified", [])

    def _gen_key(self, args: argparse.Namespace):
        private, public = generate_key_pair(Path(args.path), args.password or None)
        console.print(f"[green]Wrote[/green] {private} and {public}")

    def run(self, argv=None):
        argv = sys.argv[1:] if argv is None else argv
        if not argv:
            self.print_header("Air-gapped Package Manager")
            self.parser.print_help()
            sys.exit(0)

        args = self.parser.parse_args(argv)
        logging.basicConfig(level=getattr(logging, args.log_level.upper()),
                            format="%(asctime)s %(levelname)s %(name)s: %(message)s")

        if args.command == "tools" and args.tools_command == "gen-key":
            self._gen_key(args)
            return
        if args.command != "package" or not args.package_command:
            self.parser.print_help()
            return

        config = self.build_config(args)
        handlers = {
            "create": ("Package Create", self._create),
            "inspect": ("Package Inspect", self._inspect),
            "deploy": ("Package Deploy", self._deploy),
            "verify": ("Package Verify", self._verify),
        }
        title, handler = handlers[args.package_command]
        self.print_header(title)
        try:
            handler(args, config)
        except ZarfError as e:
            console.print(f"[bold red]Error:[/bold red] {e}")
            sys.exit(1)


def main():
    """Application entry point with interrupt handling."""
    try:
        ZarfKitCLI().run()
    except KeyboardInterrupt:
        console.print("\n[bold red]Terminated by user.[/bold red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
