"""
Logging for Pantry.

Example:
    from pantry.logging import get_logger

    logger = get_logger(__name__)
    logger.info("Loading recipe")
    logger.warning("Template re-renders on every run")
"""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.theme import Theme

PANTRY_THEME = Theme({
    "log.time": "dim cyan",
    "log.level.debug": "dim blue",
    "log.level.info": "green",
    "log.level.warning": "yellow",
    "log.level.error": "bold red",
    "log.level.critical": "bold white on red",
    "pantry.success": "bold green",
    "pantry.action.create": "green",
    "pantry.action.update": "yellow",
    "pantry.action.delete": "red",
    "pantry.outcome.converged": "green",
    "pantry.outcome.compliant": "dim",
    "pantry.outcome.failed": "bold red",
})

console = Console(theme=PANTRY_THEME, stderr=True)

_initialized = False


def setup_logging(
    level: str = "WARNING",
    show_time: bool = True,
    show_path: bool = False,
    force: bool = False,
) -> None:
    """
    Install the rich handler on the root logger.

    Only the first call takes effect unless force=True, so library code
    can call get_logger() freely before the CLI sets the real level.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        show_time: Show timestamps in log output
        show_path: Show file path in log output
        force: Reconfigure even if already initialized
    """
    global _initialized

    if _initialized and not force:
        return

    numeric_level = getattr(logging, level.upper(), logging.WARNING)

    handler = RichHandler(
        console=console,
        show_time=show_time,
        show_path=show_path,
        rich_tracebacks=True,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))

    logging.basicConfig(level=numeric_level, handlers=[handler], force=True)

    _initialized = True


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a module, initializing logging on first use."""
    if not _initialized:
        setup_logging()

    return logging.getLogger(name)


class PantryLogger:
    """
    Logger with console helpers for convergence output.

    Plain messages go through the standard logger; outcome lines are
    printed straight to the themed console.
    """

    def __init__(self, name: str):
        self.logger = get_logger(name)
        self.console = console

    def debug(self, message: str, *args, **kwargs) -> None:
        self.logger.debug(message, *args, **kwargs)

    def info(self, message: str, *args, **kwargs) -> None:
        self.logger.info(message, *args, **kwargs)

    def warning(self, message: str, *args, **kwargs) -> None:
        self.logger.warning(message, *args, **kwargs)

    def error(self, message: str, *args, **kwargs) -> None:
        self.logger.error(message, *args, **kwargs)

    def success(self, message: str) -> None:
        self.console.print(f"[pantry.success]✓[/pantry.success] {escape(message)}")

    def action(self, action: str, resource_id: str, details: Optional[str] = None) -> None:
        """
        Print a planned resource action.

        Args:
            action: create, update or delete (anything else prints blank)
            resource_id: Resource identifier
            details: Optional trailing note
        """
        symbols = {
            "create": "+",
            "update": "~",
            "delete": "-",
        }
        symbol = symbols.get(action.lower())
        if symbol is None:
            msg = f"  {escape(resource_id)}"
        else:
            style = f"pantry.action.{action.lower()}"
            msg = f"[{style}]{symbol}[/{style}] {escape(resource_id)}"
        if details:
            msg += f" [dim]({escape(details)})[/dim]"
        self.console.print(f"  {msg}")

    def resource_status(self, resource_id: str, outcome: str) -> None:
        """Print the outcome line for one resource after apply."""
        style = f"pantry.outcome.{outcome.lower()}"
        msg = f"  {escape(resource_id)} ... [{style}]{escape(outcome)}[/{style}]"
        self.console.print(msg)


def get_pantry_logger(name: str) -> PantryLogger:
    """
    Get a PantryLogger for the given module.

    Example:
        logger = get_pantry_logger(__name__)
        logger.resource_status("file:/app_setup.txt", "converged")
    """
    return PantryLogger(name)
