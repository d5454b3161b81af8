"""Rich console utilities for consistent output formatting."""

from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.text import Text


class PaxConsole:
    """Wrapper around Rich Console with consistent styling."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def print_success(self, message: str) -> None:
        """Print success message in green."""
        self.console.print(f"✓ {escape(message)}", style="green")

    def print_error(self, message: str) -> None:
        """Print error message in red."""
        self.console.print(f"✗ {escape(message)}", style="red bold")

    def print_warning(self, message: str) -> None:
        """Print warning message in yellow."""
        self.console.print(f"⚠ {escape(message)}", style="yellow")

    def print_info(self, message: str) -> None:
        """Print info message in cyan."""
        self.console.print(f"ℹ {escape(message)}", style="cyan")

    def print_step(self, message: str) -> None:
        """Print step message in blue."""
        self.console.print(f"→ {escape(message)}", style="blue")

    def print_field(self, label: str, value: str, style: str = "green") -> None:
        """Print a bold label followed by a styled value."""
        text = Text()
        text.append(f"  -> {label}: ", style="bold")
        text.append(value, style=style)
        self.console.print(text)

    def print_banner(self, message: str, style: str = "bold white on red") -> None:
        """Print a highlighted banner line."""
        self.console.print()
        self.console.print(Text(message, style=style))
        self.console.print()


console = PaxConsole()
