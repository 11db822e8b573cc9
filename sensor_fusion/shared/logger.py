"""
Rich Logging Module for Sensor Fusion.

Provides colorful, formatted logging with tables and panels for the CLI.
"""

import logging
from datetime import datetime
from typing import Any, Protocol

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.theme import Theme

from sensor_fusion.shared.config import settings

# Custom theme for Sensor Fusion
FUSION_THEME = Theme(
    {
        "info": "cyan",
        "warning": "yellow",
        "error": "bold red",
        "success": "bold green",
        "data": "dim cyan",
        "highlight": "bold yellow",
        "muted": "dim white",
        "header": "bold cyan",
        "border": "bright_black",
    }
)

# Initialize Rich console with custom theme
console = Console(theme=FUSION_THEME, stderr=True)


class Logger(Protocol):
    """Logging capability accepted by engine components."""

    def debug(self, message: str, **kwargs: Any) -> None: ...

    def info(self, message: str, **kwargs: Any) -> None: ...

    def warning(self, message: str, **kwargs: Any) -> None: ...

    def error(self, message: str, **kwargs: Any) -> None: ...


class FusionLogger:
    """Custom logger with Rich formatting for Sensor Fusion."""

    def __init__(self, name: str = "sensor_fusion", level: str | None = None):
        """Initialize the logger with Rich handler."""
        self.console = console
        self.name = name

        # Set up Python logging with Rich handler
        log_level = level or settings.log_level
        logging.basicConfig(
            level=getattr(logging, log_level.upper(), logging.INFO),
            format="%(message)s",
            datefmt="[%X]",
            handlers=[
                RichHandler(
                    console=self.console,
                    show_time=True,
                    show_path=False,
                    rich_tracebacks=True,
                    markup=True,
                )
            ],
        )
        self._logger = logging.getLogger(name)

    def info(self, message: str, **kwargs: Any) -> None:
        """Log info message with cyan color."""
        self._logger.info(f"[info]{escape(message)}[/info]", **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        """Log warning message with yellow color."""
        self._logger.warning(f"[warning]⚠️  {escape(message)}[/warning]", **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        """Log error message with red color."""
        self._logger.error(f"[error]❌ {escape(message)}[/error]", **kwargs)

    def success(self, message: str) -> None:
        """Log success message with green color."""
        self.console.print(f"[success]✅ {escape(message)}[/success]")

    def debug(self, message: str, **kwargs: Any) -> None:
        """Log debug message."""
        self._logger.debug(f"[muted]{escape(message)}[/muted]", **kwargs)

    def panel(
        self,
        content: str,
        title: str = "",
        style: str = "border",
        subtitle: str | None = None,
    ) -> None:
        """Display content in a styled panel."""
        self.console.print(
            Panel(
                content,
                title=f"[header]{title}[/header]" if title else None,
                subtitle=f"[muted]{subtitle}[/muted]" if subtitle else None,
                border_style=style,
                padding=(1, 2),
            )
        )

    def table(
        self,
        title: str,
        columns: list[str],
        rows: list[list[Any]],
        show_lines: bool = False,
    ) -> None:
        """Display data in a formatted table."""
        table = Table(
            title=f"[header]{title}[/header]",
            show_header=True,
            header_style="bold cyan",
            border_style="border",
            show_lines=show_lines,
        )

        for col in columns:
            table.add_column(col)

        for row in rows:
            table.add_row(*[escape(str(cell)) for cell in row])

        self.console.print(table)

    def divider(self, title: str = "") -> None:
        """Print a visual divider."""
        if title:
            self.console.rule(f"[header]{title}[/header]", style="border")
        else:
            self.console.rule(style="border")


# Global logger instance
_logger: FusionLogger | None = None


def get_logger() -> FusionLogger:
    """Get or create the global logger instance."""
    global _logger
    if _logger is None:
        _logger = FusionLogger()
    return _logger


def log_result_table(
    title: str,
    columns: list[str],
    rows: list[list[Any]],
) -> None:
    """Display results in a table."""
    get_logger().table(title, columns, rows)


def log_config_status(configs: dict[str, Any]) -> None:
    """Display the active configuration.

    Args:
        configs: Dict of config_name -> value
    """
    logger = get_logger()

    table = Table(
        title="[header]⚙️ Configuration[/header]",
        show_header=True,
        header_style="bold cyan",
        border_style="border",
    )

    table.add_column("Config", style="bold")
    table.add_column("Value", style="data")

    for name, value in configs.items():
        table.add_row(name, escape(str(value)))

    logger.console.print(table)


def log_cycle_summary(cycle: int, result_count: int, history_size: int) -> None:
    """Display a formatted summary of one analysis cycle."""
    style = "success" if result_count else "muted"
    lines = [
        f"[{style}]🔗 Correlations: {result_count}[/{style}]",
        f"[highlight]📊 History size: {history_size}[/highlight]",
    ]
    get_logger().panel(
        "\n".join(lines),
        title=f"Cycle #{cycle}",
        subtitle=datetime.now().strftime("%H:%M:%S"),
    )
