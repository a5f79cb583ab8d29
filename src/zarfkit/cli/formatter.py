# src/zarfkit/cli/formatter.py
from typing import List

from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from zarfkit.core.models import Package
from zarfkit.core.yamlio import dumps

console = Console()


class ZarfFormatter:
    """
    Renders packages, warnings and deployment plans for the terminal.
    """

    def show_warnings(self, warnings: List[str]):
        for warning in warnings:
            console.print(f"[bold yellow]⚠️  WARNING:[/bold yellow] [white]{warning}[/white]")

    def show_definition(self, pkg: Package):
        """Prints the package definition as highlighted YAML."""
        syntax = Syntax(dumps(pkg.to_dict()).strip(), "yaml", theme="monokai", line_numbers=False)
        console.print(Panel(syntax, title=f"[bold cyan]{pkg.metadata.name}[/bold cyan]", border_style="cyan"))

    def print_components(self, pkg: Package, title: str = "Components"):
        table = Table(title=title, show_lines=True, header_style="bold magenta")
        table.add_column("Name", style="cyan")
        table.add_column("Group", style="white")
        table.add_column("Required", justify="center")
        table.add_column("Default", justify="center")
        table.add_column("Images", justify="right")
        table.add_column("Description", style="dim")

        for c in pkg.components:
            table.add_row(
                c.name,
                c.group or "-",
                "✅" if c.is_required() else "-",
                "✅" if c.default else "-",
                str(len(c.images)),
                c.description,
            )
        console.print(table)

    def print_summary(self, pkg: Package, heading: str, files: List[str]):
        lines = "\n".join(f"  {f}" for f in files)
        console.print(Panel(
            f"[bold white]{heading}[/bold white]\n"
            f"════════════════════════════════════════\n"
            f"Package:      {pkg.metadata.name} {pkg.metadata.version}\n"
            f"Architecture: {pkg.metadata.architecture or pkg.build.architecture}\n"
            f"Components:   [green]{len(pkg.components)}[/green]\n"
            f"Checksum:     {pkg.metadata.aggregate_checksum or '-'}\n"
            f"{lines}",
            border_style="dim"
        ))
