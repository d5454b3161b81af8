"""Command line entry point for the Pax SSH SOCKS5 tunnel."""

import logging
import signal
from typing import Annotated, Optional

import typer

from .config.environment import load_environment_config
from .config.models import AppConfig
from .core.supervisor import Supervisor
from .system.platform import PlatformManager
from .utils.console import console
from .utils.exceptions import ConfigurationError, PaxError
from .utils.logging import setup_logging, get_logger

logger = get_logger("main")

app = typer.Typer(
    name="pax",
    help="Pax - supervised SSH SOCKS5 proxy tunnel",
    add_completion=False,
    rich_markup_mode="rich",
)


def _perform_preflight_checks(config: AppConfig) -> None:
    """Warn about missing external tools before the first attempt."""
    tools = PlatformManager().check_required_tools()

    if not tools["ssh"]:
        console.print_warning("ssh client not found in PATH; connection attempts will fail")
    if not tools["sshpass"] and (config.password or not config.private_key):
        console.print_warning("sshpass not found in PATH; password authentication is unavailable")


def _log_mode(config: AppConfig) -> None:
    if config.manual_mode:
        logger.info(f"Mode: CLI Arguments (Target: {config.host})")
    else:
        logger.info(f"Mode: API Fetch (Target: {config.api_url})")


@app.command()
def run(
    api: Annotated[Optional[str], typer.Option("--api", help="API endpoint URL (used if --host is not provided)")] = None,
    timeout: Annotated[Optional[float], typer.Option("--timeout", help="API request timeout in seconds")] = None,
    host: Annotated[Optional[str], typer.Option("--host", help="Remote SSH host (enables CLI mode, ignores API)")] = None,
    user: Annotated[Optional[str], typer.Option("--user", help="Remote SSH user (default: root)")] = None,
    ssh_port: Annotated[Optional[int], typer.Option("--ssh-port", help="Remote SSH port")] = None,
    password: Annotated[Optional[str], typer.Option("--password", help="SSH password or key passphrase")] = None,
    private_key: Annotated[Optional[str], typer.Option("--private-key", "-k", help="Private key path or PEM content")] = None,
    local_port: Annotated[Optional[int], typer.Option("--local-port", "-l", help="Local SOCKS5 port")] = None,
    local_host: Annotated[Optional[str], typer.Option("--local-host", help="Local SOCKS5 bind address")] = None,
    connect_timeout: Annotated[Optional[float], typer.Option("--connect-timeout", help="Seconds to wait for the tunnel")] = None,
    silent: Annotated[bool, typer.Option("--silent", help="Suppress SSH client output")] = False,
    no_compression: Annotated[bool, typer.Option("--no-compression", help="Disable SSH compression")] = False,
    ssh_option: Annotated[Optional[list[str]], typer.Option("--ssh-option", "-o", help="Extra ssh -o option")] = None,
    env_file: Annotated[Optional[str], typer.Option("--env-file", help="Path to .env file")] = None,
    log_file: Annotated[Optional[str], typer.Option("--log-file", help="Log file name under logs/")] = None,
    debug: Annotated[bool, typer.Option("--debug", help="Enable debug logging")] = False,
):
    """Start the SSH SOCKS5 tunnel and keep it connected."""
    setup_logging(level=logging.DEBUG if debug else logging.INFO, log_file=log_file)

    try:
        config = load_environment_config(
            env_file,
            api_url=api,
            api_timeout=timeout,
            host=host,
            user=user,
            ssh_port=ssh_port,
            password=password,
            private_key=private_key,
            local_port=local_port,
            local_host=local_host,
            connect_timeout=connect_timeout,
            silent=True if silent else None,
            compression=False if no_compression else None,
            ssh_options=ssh_option or None,
        )
    except ConfigurationError as e:
        console.print_error(f"Configuration error: {e}")
        raise typer.Exit(code=1)

    logger.info("Starting Pax - SSH SOCKS5 Proxy")
    _log_mode(config)
    _perform_preflight_checks(config)

    supervisor = Supervisor(config)

    def handle_sigterm(signum, frame):
        console.print_warning(f"\nReceived signal {signum}, shutting down...")
        supervisor.stop()

    signal.signal(signal.SIGTERM, handle_sigterm)

    try:
        supervisor.run()
    except KeyboardInterrupt:
        console.print_warning("\nInterrupted by user, tunnel closed")
    except ConfigurationError as e:
        console.print_error(f"Configuration error: {e}")
        raise typer.Exit(code=1)
    except PaxError as e:
        console.print_error(f"Tunnel error: {e}")
        raise typer.Exit(code=1)
    except Exception as e:
        logger.exception("Unexpected error in main")
        console.print_error(f"Unexpected error: {e}")
        raise typer.Exit(code=1)


def main():
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
