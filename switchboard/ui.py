"""Rich rendering for the CLI: status table, catalog, replies and errors."""

from dataclasses import dataclass
from typing import Any, Iterable

from rich.console import Console
from rich.table import Table
from rich.text import Text

from .errors import SwitchboardError
from .providers.response import ProviderResponse
from .tools.schema import ToolDef


@dataclass(frozen=True)
class ColorPalette:
    text_bright: str = "#e8e8f0"
    text: str = "#b8b8cc"
    text_dim: str = "#4a4a60"
    text_muted: str = "#363648"
    accent: str = "#00d4e5"
    ok: str = "#34d399"
    warn: str = "#e5c747"
    error: str = "#e55a6e"


PALETTE = ColorPalette()

# Connection state -> status cell style
_STATE_STYLES = {
    "connected": PALETTE.ok,
    "starting": PALETTE.warn,
    "disconnected": f"dim {PALETTE.text_muted}",
    "error": PALETTE.error,
}

console = Console()


def render_servers(status: Iterable[dict[str, Any]]) -> None:
    """Render one row per tool server with its state and tool count."""
    table = Table(box=None, header_style=f"dim {PALETTE.text_muted}", pad_edge=False)
    table.add_column("SERVER")
    table.add_column("NAME")
    table.add_column("STATE")
    table.add_column("TOOLS", justify="right")
    table.add_column("LAST ERROR")

    rows = list(status)
    if not rows:
        console.print(Text("  no tool servers configured", style=f"dim {PALETTE.text_muted}"))
        return

    for record in rows:
        state = record.get("state", "")
        table.add_row(
            Text(record["id"], style=f"bold {PALETTE.accent}"),
            record.get("name", ""),
            Text(state, style=_STATE_STYLES.get(state, PALETTE.text)),
            str(record.get("toolsCount", 0)),
            Text(record.get("lastError") or "", style=PALETTE.error),
        )
    console.print(table)


def render_catalog(tools: Iterable[ToolDef]) -> None:
    for tool in tools:
        line = Text()
        line.append(tool.name, style=f"bold {PALETTE.accent}")
        if tool.builtin:
            line.append(" [built-in]", style=f"dim {PALETTE.text_dim}")
        line.append("  ")
        line.append(tool.description, style=PALETTE.text)
        console.print(line)


def render_response(response: ProviderResponse) -> None:
    """Render a reply body followed by its tool calls and token usage."""
    if response.content:
        console.print(response.content)

    for call in response.tool_calls:
        line = Text()
        line.append("tool ", style=f"bold {PALETTE.warn}")
        line.append("| ", style=f"dim {PALETTE.text_muted}")
        line.append(f"{call.get('name', '')}({call.get('arguments')})", style=PALETTE.text)
        console.print(line)

    meta = Text()
    meta.append(f"{response.provider}/{response.model}", style=f"dim {PALETTE.text_dim}")
    meta.append(f"  {response.format_tokens()}", style=f"dim {PALETTE.text_dim}")
    meta.append(f"  {response.latency_ms:.0f} ms", style=f"dim {PALETTE.text_dim}")
    console.print(meta)


def render_error(error: Any) -> None:
    """Render an error line. SwitchboardErrors show their kind."""
    err = Text()
    err.append("err ", style=f"bold {PALETTE.error}")
    err.append("| ", style=f"dim {PALETTE.text_muted}")
    if isinstance(error, SwitchboardError):
        err.append(f"{error.kind}: ", style=f"bold {PALETTE.error}")
        err.append(error.message, style=PALETTE.error)
    else:
        err.append(str(error), style=PALETTE.error)
    console.print(err)
