"""CLI entry point for pairlink."""

import base64
import binascii
import json
import os
from pathlib import Path

import click

from pairlink import __version__
from pairlink.config import load_config
from pairlink.errors import ConfigError, PairingLinkError, TransportError
from pairlink.logging import setup_logging
from pairlink.server_config import (
    ServerConfigStore,
    get_server_info,
    resolve_server_url,
)

EXIT_FAILED = 1
EXIT_CANCELLED = 2


def _decode_b64_option(value: str, name: str) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except binascii.Error:
        raise click.BadParameter("must be base64", param_hint=name)


def _write_credentials(path: Path, secret: bytes, token: str) -> None:
    """Write credentials as JSON readable by the owner only."""
    path.parent.mkdir(parents=True, exist_ok=True)
    data = json.dumps(
        {
            "secret": base64.b64encode(secret).decode("ascii"),
            "token": token,
        },
        indent=2,
    )
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    try:
        os.write(fd, data.encode())
    finally:
        os.close(fd)


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=False, path_type=Path),
    default=None,
    help="Path to config file.",
)
@click.option("--verbose", "-v", is_flag=True, help="Log at debug level.")
@click.pass_context
def main(ctx: click.Context, config: Path | None, verbose: bool) -> None:
    """pairlink - Pair a client and an agent through a relay."""
    ctx.ensure_object(dict)
    try:
        ctx.obj["config"] = load_config(config)
    except ConfigError as e:
        raise click.ClickException(f"Invalid config: {e}")
    ctx.obj["logger"] = setup_logging(ctx.obj["config"], verbose=verbose)


@main.command()
def version() -> None:
    """Show version."""
    click.echo(f"pairlink version {__version__}")


@main.command()
@click.option("--server", "-s", default=None, help="Relay URL for this run.")
@click.option(
    "--display",
    type=click.Choice(["terminal", "browser", "none"]),
    default="terminal",
    help="How to show the pairing QR code.",
)
@click.option(
    "--qr-output",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Also save the QR code as PNG.",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write credentials JSON here on success.",
)
@click.option(
    "--timeout",
    "-t",
    type=float,
    default=300.0,
    help="Give up after this many seconds.",
)
@click.pass_context
def pair(
    ctx: click.Context,
    server: str | None,
    display: str,
    qr_output: Path | None,
    output: Path | None,
    timeout: float,
) -> None:
    """Start a pairing attempt and wait for an agent to approve it."""
    import asyncio
    import tempfile
    import time
    import webbrowser

    from pairlink.pairing.keys import generate_keypair
    from pairlink.pairing.poller import PollOutcome, wait_for_pairing
    from pairlink.pairing.qr import PairingQr

    config = ctx.obj["config"]
    keypair = generate_keypair()
    qr = PairingQr(keypair.public_key)

    if display == "terminal":
        click.echo(qr.to_terminal())
    elif display == "browser":
        with tempfile.NamedTemporaryFile(
            mode="w", suffix=".html", delete=False
        ) as f:
            f.write(qr.to_html())
            webbrowser.open(f"file://{f.name}")
        click.echo("QR code opened in browser")
    if qr_output:
        qr.to_png(str(qr_output))
        click.echo(f"QR code saved to: {qr_output}")

    click.echo(f"Pairing link: {qr.link}")
    click.echo("Waiting for approval", nl=False)

    deadline = time.monotonic() + timeout

    def on_progress(tick: int) -> None:
        click.echo(".", nl=False)

    def should_cancel() -> bool:
        return time.monotonic() >= deadline

    try:
        result = asyncio.run(
            wait_for_pairing(
                keypair,
                on_progress=on_progress,
                should_cancel=should_cancel,
                server_url=server,
                config=config,
            )
        )
    except KeyboardInterrupt:
        click.echo("\nCancelled", err=True)
        ctx.exit(EXIT_CANCELLED)
    click.echo("")

    if result.outcome == PollOutcome.CANCELLED:
        click.echo("Timed out waiting for approval", err=True)
        ctx.exit(EXIT_CANCELLED)
    if result.outcome == PollOutcome.FAILED:
        click.echo(f"Pairing failed: {result.error}", err=True)
        click.echo("Run 'pairlink pair' again to start a new attempt", err=True)
        ctx.exit(EXIT_FAILED)

    credentials = result.credentials
    click.echo("Pairing successful")
    if output:
        _write_credentials(output, credentials.secret, credentials.token)
        click.echo(f"Credentials saved to: {output}")


@main.command()
@click.argument("link")
@click.option(
    "--token",
    envvar="PAIRLINK_TOKEN",
    required=True,
    help="Bearer token of this agent (or PAIRLINK_TOKEN).",
)
@click.option(
    "--secret",
    required=True,
    help="Base64 secret sent to clients using the legacy payload.",
)
@click.option(
    "--data-key",
    default=None,
    help="Base64 32-byte data key seed (defaults to --secret).",
)
@click.option("--server", "-s", default=None, help="Relay URL for this call.")
@click.pass_context
def approve(
    ctx: click.Context,
    link: str,
    token: str,
    secret: str,
    data_key: str | None,
    server: str | None,
) -> None:
    """Approve the pairing request behind LINK."""
    import asyncio

    from pairlink.pairing.approver import ApprovalOutcome, approve_pairing
    from pairlink.pairing.keys import parse_pairing_link
    from pairlink.pairing.payload import build_answers

    try:
        public_key = parse_pairing_link(link)
    except PairingLinkError as e:
        raise click.BadParameter(str(e), param_hint="LINK")

    legacy_secret = _decode_b64_option(secret, "--secret")
    seed = _decode_b64_option(data_key, "--data-key") if data_key else None
    try:
        answers = build_answers(public_key, legacy_secret, seed)
    except ValueError as e:
        blamed = "--data-key" if legacy_secret and seed is not None else "--secret"
        raise click.BadParameter(str(e), param_hint=blamed)

    try:
        outcome = asyncio.run(
            approve_pairing(
                token,
                public_key,
                answers.v1,
                answers.v2,
                server_url=server,
                config=ctx.obj["config"],
            )
        )
    except TransportError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(EXIT_FAILED)

    messages = {
        ApprovalOutcome.APPROVED: "Pairing approved",
        ApprovalOutcome.ALREADY_AUTHORIZED: "Pairing request already authorized",
        ApprovalOutcome.NOT_FOUND: "Pairing request not found (expired or already used)",
        ApprovalOutcome.SKIPPED: "Relay returned an unknown status; nothing sent",
    }
    click.echo(messages[outcome])


@main.command()
@click.option("--secret", required=True, help="Base64 seed obtained from pairing.")
@click.option("--usage", default="Content", help="Usage label of the key tree.")
@click.argument("path", nargs=-1)
@click.pass_context
def derive(ctx: click.Context, secret: str, usage: str, path: tuple[str, ...]) -> None:
    """Derive a key from a pairing seed along PATH."""
    from pairlink.crypto.digest import select_backend
    from pairlink.crypto.hmac_sha512 import KeyDerivation

    seed = _decode_b64_option(secret, "--secret")
    backend = select_backend(ctx.obj["config"].digest_backend)
    ctx.obj["logger"].debug(f"Deriving with {backend.name} SHA-512")

    key = KeyDerivation(backend).derive_key(seed, usage, list(path))
    click.echo(base64.b64encode(key).decode("ascii"))


@main.group()
def server() -> None:
    """Relay server commands."""
    pass


@server.command("show")
@click.pass_context
def server_show(ctx: click.Context) -> None:
    """Show the relay URL that would be used."""
    config = ctx.obj["config"]
    store = ServerConfigStore(config.override_path())
    url = resolve_server_url(store=store, configured=config.server_url)
    info = get_server_info(url)

    click.echo(f"Server: {url}")
    click.echo(f"Host: {info.hostname}")
    if info.port is not None:
        click.echo(f"Port: {info.port}")
    click.echo(f"Custom: {'yes' if info.is_custom else 'no'}")
    override = store.get()
    click.echo(f"Override: {override or 'none'}")


@server.command("set")
@click.argument("url")
@click.pass_context
def server_set(ctx: click.Context, url: str) -> None:
    """Persist a relay URL override."""
    store = ServerConfigStore(ctx.obj["config"].override_path())
    try:
        store.set(url)
    except ConfigError as e:
        raise click.BadParameter(str(e), param_hint="URL")
    click.echo(f"Server set to: {url.strip()}")


@server.command("reset")
@click.pass_context
def server_reset(ctx: click.Context) -> None:
    """Remove the persisted relay URL override."""
    ServerConfigStore(ctx.obj["config"].override_path()).clear()
    click.echo("Server override removed")
