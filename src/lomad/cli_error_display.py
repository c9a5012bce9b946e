"""
CLI Error Display for lomad repository operations.

Renders a failed operation with the repository and target it concerned, and
lists next steps matching the kind of failure.
"""

import logging
import traceback
from typing import List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from .api_clients.exceptions import (
    AlreadyExistsError,
    AuthenticationError,
    NotFoundError,
    RateLimitError,
    RemoteRejectedError,
    ServerError,
    TransportError,
)
from .mutation.content_mutator import FileNotInTreeError

logger = logging.getLogger(__name__)


class CLIErrorDisplay:
    """CLI error display with user-friendly messaging and next steps."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def display_operation_error(
        self,
        error: BaseException,
        repository: str,
        operation: str,
        show_technical_details: bool = False,
    ) -> None:
        """
        Display a failed repository operation.

        Args:
            error: The exception that occurred
            repository: Repository the operation ran against
            operation: Human readable operation description
            show_technical_details: Whether to print the stack trace
        """
        error_text = Text()
        error_text.append("❌ ", style="red")
        error_text.append(str(error), style="red bold")

        details = Text()
        details.append(f"Repository: {repository}", style="dim")
        details.append(f" | Operation: {operation}", style="dim")
        details.append(f" | Error: {type(error).__name__}", style="dim")

        self.console.print(
            Panel(
                Text("\n").join([error_text, Text(""), details]),
                title=f"{repository}: {operation} failed",
                title_align="left",
                border_style="red",
            )
        )

        guidance = getattr(error, "user_guidance", "")
        if guidance:
            self.console.print(guidance)
        else:
            self._display_next_steps(self._generate_next_steps(error))

        if show_technical_details:
            self.console.print("Technical Details:", style="dim")
            self.console.print(
                "".join(
                    traceback.format_exception(type(error), error, error.__traceback__)
                ),
                style="dim red",
                markup=False,
            )

    def _display_next_steps(self, steps: List[str]) -> None:
        if not steps:
            return
        self.console.print("📋 Next Steps:", style="blue bold")
        for i, step in enumerate(steps, 1):
            step_text = Text()
            step_text.append(f"   {i}. ", style="blue")
            step_text.append(step, style="white")
            self.console.print(step_text)

    def _generate_next_steps(self, error: BaseException) -> List[str]:
        """Generate error-specific next steps."""
        if isinstance(error, AuthenticationError):
            return [
                "Check that the token is valid and not expired",
                "Make sure the token has the 'repo' scope",
            ]
        if isinstance(error, RateLimitError):
            return ["Wait for the rate limit to reset before retrying"]
        if isinstance(error, AlreadyExistsError):
            return [
                "Choose another branch name, or delete the existing branch first",
            ]
        if isinstance(error, FileNotInTreeError):
            return ["Check the file name in .lomad/config.json"]
        if isinstance(error, NotFoundError):
            return [
                "Check the repository and branch names",
                "Private repositories are reported as missing without access",
            ]
        if isinstance(error, RemoteRejectedError):
            return [
                "Check that the branch you referenced exists",
                "If the branch moved during the update, run the command again",
            ]
        if isinstance(error, (ServerError, TransportError)):
            return ["Try again in a few moments"]
        return ["Run again with --verbose for more detail"]
