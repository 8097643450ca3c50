"""CLI for the Nexis agent - serve the HTTP API or chat from the terminal."""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from nexis_agent import __version__
from nexis_agent.config import AgentConfig, resolve_config, save_config
from nexis_agent.errors import ConfigurationError, NexisError

app = typer.Typer(
    name="nexis-agent",
    help="Multi-chain Web3 chat agent: wallets, balances, transfers and market data.",
    no_args_is_help=True,
)
console = Console()

_config_path: Path | None = None


def _version_callback(value: bool):
    if value:
        console.print(f"nexis-agent {__version__}")
        raise typer.Exit()


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
    )
    # SDK request logs would drown out the agent's own
    for noisy in ("httpx", "httpcore", "openai", "anthropic", "web3", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


@app.callback()
def main(
    config: Path = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to config.yaml (defaults to ./config.yaml, then the environment)",
        envvar="NEXIS_CONFIG",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    ),
):
    """Multi-chain Web3 chat agent: wallets, balances, transfers and market data."""
    global _config_path
    _config_path = config
    _setup_logging(verbose)


def _run(coro):
    """Run an async function synchronously."""
    return asyncio.run(coro)


def _load_config() -> AgentConfig:
    try:
        return resolve_config(_config_path)
    except ConfigurationError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)


def _build_runtime(config: AgentConfig):
    from nexis_agent.core.agent import AgentRuntime

    try:
        return AgentRuntime.from_config(config)
    except ConfigurationError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)


def _read_key_env(env_name: str | None, label: str) -> str | None:
    if not env_name:
        return None
    value = os.environ.get(env_name)
    if not value:
        console.print(f"[red]Environment variable {env_name} for the {label} key is not set.[/red]")
        raise typer.Exit(1)
    return value


# ------------------------------------------------------------------
# serve
# ------------------------------------------------------------------


@app.command()
def serve(
    host: str = typer.Option(None, "--host", help="Bind address (default from config)"),
    port: int = typer.Option(None, "--port", "-p", help="Port (default from config)"),
):
    """Run the HTTP API with uvicorn."""
    from nexis_agent.server import run_server

    config = _load_config()
    try:
        run_server(config, host=host, port=port)
    except ConfigurationError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)


# ------------------------------------------------------------------
# chat
# ------------------------------------------------------------------


@app.command()
def chat(
    evm_key_env: str = typer.Option(
        None, "--evm-key-env", help="Name of an environment variable holding an EVM private key"
    ),
    solana_key_env: str = typer.Option(
        None, "--solana-key-env", help="Name of an environment variable holding a Solana secret key"
    ),
):
    """Start an interactive chat. Wallets stay connected for the whole chat."""
    config = _load_config()
    evm_key = _read_key_env(evm_key_env, "EVM")
    solana_key = _read_key_env(solana_key_env, "Solana")
    runtime = _build_runtime(config)

    async def _chat():
        session = runtime.new_session()
        try:
            note = session.connect_credentials(evm_key, solana_key)
        except NexisError as exc:
            console.print(f"[red]{exc.user_message()}[/red]")
            return
        if note:
            console.print(f"[dim]{note}[/dim]")

        console.print(f"[bold]Chatting with {config.name}[/bold]")
        console.print("[dim]Type 'help' for commands, 'exit' to end the conversation.[/dim]\n")

        try:
            while True:
                try:
                    user_input = console.input("[bold blue]You>[/bold blue] ")
                except (EOFError, KeyboardInterrupt):
                    break

                if user_input.strip().lower() in ("exit", "quit", "bye"):
                    break
                if not user_input.strip():
                    continue

                with console.status("Thinking..."):
                    try:
                        result = await session.handle(user_input)
                    except NexisError as exc:
                        console.print(f"[red]{exc.user_message()}[/red]\n")
                        continue
                    except Exception as exc:
                        logging.getLogger("nexis_agent.cli").error(
                            f"Model call failed: {type(exc).__name__}"
                        )
                        console.print("[red]The agent could not answer. Please try again.[/red]\n")
                        continue

                console.print(f"[bold green]Nexis>[/bold green] {result.answer}\n")
        finally:
            session.close()
        console.print("[dim]Chat ended. Wallets cleared from memory.[/dim]")

    _run(_chat())


# ------------------------------------------------------------------
# ask
# ------------------------------------------------------------------


@app.command()
def ask(
    text: str = typer.Argument(help="The request, e.g. 'what are current gas prices?'"),
    evm_key_env: str = typer.Option(None, "--evm-key-env", help="Env var holding an EVM private key"),
    solana_key_env: str = typer.Option(None, "--solana-key-env", help="Env var holding a Solana secret key"),
):
    """Send a single request and print the answer."""
    config = _load_config()
    evm_key = _read_key_env(evm_key_env, "EVM")
    solana_key = _read_key_env(solana_key_env, "Solana")
    runtime = _build_runtime(config)

    async def _ask():
        session = runtime.new_session()
        try:
            return await asyncio.wait_for(
                session.handle(text, evm_key=evm_key, solana_key=solana_key),
                timeout=config.dispatch.request_timeout_seconds,
            )
        finally:
            session.close()

    with console.status("Thinking..."):
        try:
            result = _run(_ask())
        except NexisError as exc:
            console.print(f"[red]{exc.user_message()}[/red]")
            raise typer.Exit(1)
        except asyncio.TimeoutError:
            console.print("[red]Request timed out.[/red]")
            raise typer.Exit(1)
        except Exception as exc:
            logging.getLogger("nexis_agent.cli").error(
                f"Model call failed: {type(exc).__name__}"
            )
            console.print("[red]The agent could not answer. Please try again.[/red]")
            raise typer.Exit(1)

    console.print(Panel(result.answer, title=config.name))
    if not result.completed:
        raise typer.Exit(2)


# ------------------------------------------------------------------
# chains
# ------------------------------------------------------------------


@app.command()
def chains():
    """List the supported networks."""
    from nexis_agent.wallet.chains import ChainRegistry

    registry = ChainRegistry.from_config(_load_config().chains)

    table = Table(title="Supported Networks")
    table.add_column("Key", style="cyan")
    table.add_column("Name")
    table.add_column("Family")
    table.add_column("Chain ID", justify="right")
    table.add_column("Native")
    table.add_column("Tokens", style="dim")

    for chain in registry.all():
        table.add_row(
            chain.key,
            chain.display_name,
            chain.family.value,
            str(chain.chain_id) if chain.chain_id is not None else "-",
            chain.native_symbol,
            ", ".join(t.symbol for t in registry.tokens_for(chain.key)) or "-",
        )
    console.print(table)


# ------------------------------------------------------------------
# init
# ------------------------------------------------------------------


@app.command()
def init(
    path: Path = typer.Option(Path("config.yaml"), "--path", help="Where to write the config"),
    provider: str = typer.Option("openai", "--provider", "-p", help="LLM provider (openai or anthropic)"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file"),
):
    """Write a starter config.yaml that reads secrets from the environment."""
    from nexis_agent.config import LLMProviderConfig

    if path.exists() and not force:
        console.print(f"[yellow]{path} already exists.[/yellow] Use --force to overwrite.")
        raise typer.Exit(1)
    if provider not in ("openai", "anthropic"):
        console.print(f"[red]Unknown provider '{provider}'.[/red] Choose openai or anthropic.")
        raise typer.Exit(1)

    config = AgentConfig()
    config.llm.default_provider = provider
    if provider == "openai":
        config.llm.openai = LLMProviderConfig(api_key="${OPENAI_API_KEY}", model="gpt-4o-mini")
    else:
        config.llm.anthropic = LLMProviderConfig(
            api_key="${ANTHROPIC_API_KEY}", model="claude-sonnet-4-5-20250929"
        )
    config.prices.api_key = "${COINGECKO_API_KEY}"
    save_config(config, path)

    console.print(Panel(
        f"[bold green]Config written to {path}[/bold green]\n\n"
        f"Provider: [cyan]{provider}[/cyan]\n\n"
        f"Next steps:\n"
        f"  nexis-agent chains\n"
        f"  nexis-agent chat --evm-key-env MY_EVM_KEY\n"
        f"  nexis-agent serve",
        title="Nexis Agent",
    ))
