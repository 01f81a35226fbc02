"""switchboard CLI - tool servers and model routing from the shell."""

import atexit
import base64
import logging
import mimetypes
import sys
from pathlib import Path
from typing import Optional

import click
from rich.logging import RichHandler

from .app import Switchboard
from .config import ConfigManager
from .errors import SwitchboardError
from .messages import ContentPart, ConversationMessage, Role
from .models import ModelDescriptor, resolve_provider
from .ui import console, render_catalog, render_error, render_response, render_servers


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


# Global app instance
_app = None


def get_app(config_path: Optional[str] = None) -> Switchboard:
    """Get or create the app instance. Servers are stopped at exit."""
    global _app
    if _app is None:
        _app = Switchboard(ConfigManager(config_path))
        atexit.register(_app.shutdown)
    return _app


def _image_part(path: str) -> ContentPart:
    data = Path(path).read_bytes()
    media_type = mimetypes.guess_type(path)[0] or "image/png"
    return ContentPart(
        type="image",
        data=base64.b64encode(data).decode("ascii"),
        media_type=media_type,
    )


@click.group()
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="Config file path")
@click.option("--verbose", "-v", is_flag=True, help="Log at DEBUG level")
@click.pass_context
def cli(ctx, config_path, verbose):
    """SWITCHBOARD - tool servers and multi-provider model routing.

    Start configured tool servers, list their tools, and send prompts to
    any configured provider with the tool catalog attached.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    level = "DEBUG" if verbose else ConfigManager(config_path).get_logging_level()
    setup_logging(level)


@cli.command()
@click.pass_context
def servers(ctx):
    """Start configured tool servers and show their status."""
    try:
        app = get_app(ctx.obj["config_path"])
        app.start_configured_servers()
        render_servers(app.manager.get_servers_status())
    except SwitchboardError as e:
        render_error(e)
        sys.exit(1)


@cli.command()
@click.pass_context
def tools(ctx):
    """Start configured tool servers and list the tool catalog."""
    try:
        app = get_app(ctx.obj["config_path"])
        app.start_configured_servers()
        render_catalog(app.catalog())
    except SwitchboardError as e:
        render_error(e)
        sys.exit(1)


@cli.command()
@click.argument("prompt", nargs=-1, required=True)
@click.option("--model", "-m", "model_id", help="Model id (defaults to the provider's configured model)")
@click.option("--provider", "-p", required=True, help="Provider kind (openai, claude, gemini, ...)")
@click.option("--capability", "-c", multiple=True, help="Model capability tag, repeatable")
@click.option("--no-tools", is_flag=True, help="Do not attach the tool catalog")
@click.option("--image", "images", multiple=True, type=click.Path(exists=True, dir_okay=False),
              help="Attach an image, repeatable")
@click.option("--system", "-s", help="System prompt")
@click.pass_context
def ask(ctx, prompt, model_id, provider, capability, no_tools, images, system):
    """Send one message, with the tool catalog attached."""
    prompt_text = " ".join(prompt)
    try:
        app = get_app(ctx.obj["config_path"])

        if not model_id:
            provider_config = app.config.get_provider_config(provider)
            model_id = provider_config.model if provider_config else ""
        model = ModelDescriptor(id=model_id, provider=provider, capabilities=frozenset(capability))

        if images:
            content = (ContentPart.from_text(prompt_text),) + tuple(_image_part(p) for p in images)
        else:
            content = prompt_text
        messages = []
        if system:
            messages.append(ConversationMessage(role=Role.SYSTEM, content=system))
        messages.append(ConversationMessage(role=Role.USER, content=content))

        if not no_tools and resolve_provider(provider) is not None:
            app.start_configured_servers()
        response = app.send_with_tools(messages, model, use_tools=not no_tools)
        render_response(response)
    except SwitchboardError as e:
        render_error(e)
        sys.exit(1)


@cli.command()
@click.pass_context
def config(ctx):
    """Show configuration."""
    manager = ConfigManager(ctx.obj["config_path"])
    console.print(f"Config file: {manager.config_path}")
    console.print(f"Enabled providers: {[k.value for k in manager.get_enabled_providers()]}")
    console.print(f"Servers: {[s.id for s in manager.get_server_configs()]}")


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
