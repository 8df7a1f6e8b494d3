"""
Rich printer module for displaying generation envelopes.
"""
import json
from typing import Any, Dict, Optional

from rich.console import Console, Group
from rich.markdown import Markdown
from rich.panel import Panel
from rich.syntax import Syntax
from rich.text import Text


# Envelope fields holding binary artifacts; shown as sizes, never dumped
ARTIFACT_FIELDS = ("image", "audio", "video")


class RichPrinter:
    """
    Display envelopes returned by ``UnifiedAIClient`` using rich.

    Attributes:
        title: Title for the display panel
        show_metadata: Whether to show usage, cost and latency
        code_theme: Theme for code blocks
        show_provider_info: Whether to show the provider in the title
        border_style: Border style for successful results
    """

    def __init__(
        self,
        title: str = "Result",
        show_metadata: bool = True,
        code_theme: str = "coffee",
        show_provider_info: bool = True,
        border_style: str = "green",
        console: Optional[Console] = None,
    ):
        self.title = title
        self.show_metadata = show_metadata
        self.code_theme = code_theme
        self.show_provider_info = show_provider_info
        self.border_style = border_style
        self.console = console or Console()

    def print_result(self, envelope: Dict[str, Any], title: Optional[str] = None) -> Dict[str, Any]:
        """
        Display one envelope.

        Args:
            envelope: Envelope from any ``UnifiedAIClient`` operation.
            title: Overrides the printer title for this panel.

        Returns:
            The same envelope for chaining
        """
        error = envelope.get("error")
        self.console.print(
            Panel(
                self._build_content(envelope),
                title=self._build_title(title or self.title, envelope),
                border_style="red" if error else self.border_style,
                padding=(1, 2),
            )
        )
        return envelope

    def _build_title(self, title: str, envelope: Dict[str, Any]) -> str:
        title_parts = [f"[bold]{title}[/bold]"]

        if self.show_provider_info and envelope.get("provider"):
            label = envelope["provider"]
            if envelope.get("model"):
                label = f"{label}/{envelope['model']}"
            title_parts.append(f"[dim]({label})[/dim]")

        return " ".join(title_parts)

    def _build_content(self, envelope: Dict[str, Any]) -> Any:
        parts = []

        if envelope.get("error"):
            parts.append(Text(envelope["error"], style="bold red"))
        elif envelope.get("text"):
            parts.append(Markdown(envelope["text"], code_theme=self.code_theme))

        for name in ARTIFACT_FIELDS:
            value = envelope.get(name)
            if isinstance(value, (bytes, bytearray)):
                parts.append(Text(f"{name}: {len(value):,} bytes", style="cyan"))
            elif value:
                parts.append(Text(f"{name}: {value}", style="cyan"))

        if envelope.get("task_id"):
            parts.append(Text(f"task {envelope['task_id']}: {envelope.get('status')}", style="cyan"))
        if envelope.get("tools"):
            parts.append(Text(f"tools: {', '.join(envelope['tools'])}", style="magenta"))

        if not parts:
            parts.append(Text("(empty response)", style="dim italic"))

        if self.show_metadata:
            metadata = {
                "usage": envelope.get("usage"),
                "cost": envelope.get("cost"),
                "latency_ms": (envelope.get("meta") or {}).get("latency_ms"),
            }
            metadata_display = Syntax(
                json.dumps(metadata, indent=2, default=str),
                "json",
                theme="lightbulb",
                background_color="default",
            )
            parts.append(Panel(metadata_display, title="[bold]Metadata[/bold]", border_style="dim"))

        return Group(*parts)
