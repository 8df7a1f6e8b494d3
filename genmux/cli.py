"""CLI entry point for the genmux smoke-test harness."""
import asyncio
import logging
import sys
from typing import List, Optional

import click
from rich.console import Console
from rich.logging import RichHandler

from .client import DEFAULT_PROVIDERS, PROVIDER_ALIASES, UnifiedAIClient
from .harness import TEST_TYPES, TestHarness

console = Console()


def configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )
    if not debug:
        for noisy in ("httpx", "httpcore", "openai", "anthropic", "google_genai"):
            logging.getLogger(noisy).setLevel(logging.WARNING)


async def _run(client: UnifiedAIClient, harness: TestHarness, target: str, provider: Optional[str]) -> List[str]:
    async with client:
        if target in TEST_TYPES:
            return await harness.run(target, provider)
        return await harness.run_provider(target)


@click.command()
@click.argument("target")
@click.argument("provider", required=False)
@click.option("--output-dir", "-o", default="test_output", show_default=True,
              type=click.Path(file_okay=False), help="Directory for generated artifacts")
@click.option("--image", "image_path", type=click.Path(exists=True, dir_okay=False),
              help="Input image for video tests")
@click.option("--audio", "audio_path", type=click.Path(exists=True, dir_okay=False),
              help="Input audio for stt tests (default: synthesize speech first)")
@click.option("--debug", is_flag=True, help="Verbose logging, including request payloads")
@click.version_option(package_name="genmux")
def main(
    target: str,
    provider: Optional[str],
    output_dir: str,
    image_path: Optional[str],
    audio_path: Optional[str],
    debug: bool,
):
    """Run live generation tests against the configured providers.

    TARGET is a provider name (tests every capability of every model) or a
    test type, optionally followed by the provider to restrict it to.

    \b
    Test types: text, image, tts, video, stt, websearch, tool,
                conversation, conversation_state

    \b
    Examples:
      genmux openai
      genmux text anthropic
      genmux video runway --image cat.png
      genmux conversation_state openai -o out
    """
    configure_logging(debug)
    target = target.lower()

    provider_names = [name for name, _ in DEFAULT_PROVIDERS]
    known_providers = set(provider_names) | set(PROVIDER_ALIASES)

    if target in TEST_TYPES:
        if provider and provider.lower() not in known_providers:
            raise click.BadParameter(f"unknown provider '{provider}'", param_hint="PROVIDER")
    elif target in known_providers:
        if provider:
            raise click.UsageError("PROVIDER can only follow a test type")
    else:
        raise click.BadParameter(
            f"'{target}' is neither a provider ({', '.join(provider_names)}) "
            f"nor a test type ({', '.join(TEST_TYPES)})",
            param_hint="TARGET",
        )

    client = UnifiedAIClient()
    harness = TestHarness(client, output_dir, image_path=image_path, audio_path=audio_path)
    failures = asyncio.run(_run(client, harness, target, provider))

    if failures:
        console.print(f"\n[red]{len(failures)} test(s) failed:[/red]")
        for failure in failures:
            console.print(f"  [red]-[/red] {failure}")
        sys.exit(1)
    console.print(f"\n[green]Done.[/green] Artifacts in {output_dir}")
