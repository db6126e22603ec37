"""
Command-Line Interface for the anonymous social board.

State (event log and post bodies) lives under --state-dir; every command
rebuilds the ledger by replaying the event log.
"""

import functools
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from anon_social_poc import __version__, print_disclaimer
from anon_social_poc.action_protocol.codec import (
    from_ref,
    is_valid_identifier,
    parse_identifier,
    to_ref,
)
from anon_social_poc.action_protocol.events import EventLogFile
from anon_social_poc.action_protocol.exceptions import (
    AnonActionError,
    NotAMemberError,
    NullifierReusedError,
    StaleRootError,
    InvalidProofError,
)
from anon_social_poc.action_protocol.factory import BACKEND_REGISTRY, get_proof_backend
from anon_social_poc.action_protocol.identity import (
    Identity,
    derive_identity,
    derive_identity_from_signature,
)
from anon_social_poc.action_protocol.ledger import ActionLedger
from anon_social_poc.action_protocol.settings import LedgerSettings, load_settings
from anon_social_poc.action_protocol.types import ref_from_hex, ref_to_hex, scalar_to_hex
from anon_social_poc.client import AnonSocialClient, build_feed
from anon_social_poc.content_store import DirectoryContentStore

SECRET_ENV_VAR = "ANON_SOCIAL_SECRET"

secret_option = click.option(
    "--secret",
    envvar=SECRET_ENV_VAR,
    prompt="Identity secret",
    hide_input=True,
    help=f"Identity secret or 0x-hex wallet signature (env: {SECRET_ENV_VAR})",
)


# ============================================================================
# HELPERS
# ============================================================================


def _identity_from_secret(secret: str) -> Identity:
    if secret.startswith(("0x", "0X")):
        return derive_identity_from_signature(secret)
    return derive_identity(secret.encode("utf-8"))


def _parse_ref(value: str) -> bytes:
    """Accept a content identifier or a 0x-hex content reference."""
    if is_valid_identifier(value):
        return to_ref(value)
    try:
        return ref_from_hex(value)
    except ValueError as exc:
        raise click.BadParameter(
            "expected a content identifier or a 32-byte hex reference"
        ) from exc


def _open_ledger(settings: LedgerSettings) -> ActionLedger:
    backend = get_proof_backend(settings.backend)
    return ActionLedger.from_event_log(
        EventLogFile(settings.event_log_path),
        backend,
        settings.group_id,
        reject_duplicate_members=settings.reject_duplicate_members,
    )


def _open_client(settings: LedgerSettings, secret: str) -> AnonSocialClient:
    ledger = _open_ledger(settings)
    return AnonSocialClient(
        ledger,
        ledger.backend,
        DirectoryContentStore(settings.content_dir),
        _identity_from_secret(secret),
        max_post_chars=settings.max_post_chars,
    )


def _error_hint(exc: Exception) -> Optional[str]:
    if isinstance(exc, NotAMemberError):
        return "join the group first"
    if isinstance(exc, NullifierReusedError):
        return "this identity already performed this action"
    if isinstance(exc, StaleRootError):
        return "the group changed while proving; try again"
    if isinstance(exc, InvalidProofError):
        return "regenerate the proof"
    return None


def reports_errors(func):
    """Turn protocol and input errors into a red message and exit code 1."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (AnonActionError, ValueError) as exc:
            click.echo(
                click.style(f"✗ {type(exc).__name__}: {exc}", fg="red"), err=True
            )
            hint = _error_hint(exc)
            if hint:
                click.echo(f"  {hint}", err=True)
            if logging.getLogger().isEnabledFor(logging.DEBUG):
                logging.getLogger(__name__).exception("command failed")
            sys.exit(1)

    return wrapper


# ============================================================================
# COMMANDS
# ============================================================================


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--state-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory holding the event log and post bodies",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="YAML settings file",
)
@click.option(
    "--backend",
    type=click.Choice(sorted(BACKEND_REGISTRY)),
    default=None,
    help="Proof backend (default: ANON_SOCIAL_PROOF_BACKEND, then --config, then ring)",
)
@click.option("--verbose", "-v", is_flag=True, help="Verbose logging")
@click.pass_context
def main(ctx, state_dir, config_path, backend, verbose):
    """
    Anonymous posts and votes for a private group - Proof of Concept

    Members prove they belong to the group without revealing which member
    they are; nullifiers stop the same member from acting twice.

    ⚠️  PROOF OF CONCEPT - NOT PRODUCTION READY
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        ctx.obj = load_settings(config_path, state_dir=state_dir, backend=backend)
    except AnonActionError as exc:
        raise click.UsageError(str(exc)) from exc


@main.command()
@secret_option
@reports_errors
def identity(secret):
    """Show the public commitment for a secret."""
    ident = _identity_from_secret(secret)
    click.echo(scalar_to_hex(ident.commitment))


@main.command()
@secret_option
@click.pass_obj
@reports_errors
def join(settings, secret):
    """Join the group (no-op if already a member)."""
    client = _open_client(settings, secret)
    event = client.ensure_joined()
    if event is None:
        click.echo(click.style("✓ Already a member", fg="yellow"))
        return
    click.echo(click.style(f"✓ Joined as member #{event.index}", fg="green"))
    click.echo(f"  Root: {scalar_to_hex(event.root)}")


@main.command()
@click.argument("text")
@secret_option
@click.pass_obj
@reports_errors
def post(settings, text, secret):
    """Publish TEXT anonymously."""
    client = _open_client(settings, secret)
    event = client.publish(text)
    click.echo(click.style("✓ Post published", fg="green"))
    click.echo(f"  CID: {from_ref(event.content_ref)}")
    click.echo(f"  Ref: {ref_to_hex(event.content_ref)}")


@main.command()
@click.argument("ref")
@click.option("--up/--down", "upvote", default=True, help="Vote direction")
@secret_option
@click.pass_obj
@reports_errors
def vote(settings, ref, upvote, secret):
    """Vote on the post identified by REF (CID or hex reference)."""
    content_ref = _parse_ref(ref)
    client = _open_client(settings, secret)
    client.vote(content_ref, upvote)
    direction = "up" if upvote else "down"
    click.echo(click.style(f"✓ Voted {direction}", fg="green"))
    click.echo(f"  Tally: {client.ledger.votes_for(content_ref)}")


@main.command()
@click.argument("ref")
@click.pass_obj
@reports_errors
def votes(settings, ref):
    """Show the vote tally for REF."""
    content_ref = _parse_ref(ref)
    click.echo(str(_open_ledger(settings).votes_for(content_ref)))


@main.command()
@click.pass_obj
@reports_errors
def feed(settings):
    """Show posts, newest first."""
    ledger = _open_ledger(settings)
    items = build_feed(ledger, DirectoryContentStore(settings.content_dir))
    if not items:
        click.echo("No posts yet.")
        return

    table = Table(title=f"Group {ledger.group_id} - {len(items)} posts")
    table.add_column("Created", justify="right")
    table.add_column("Votes", justify="right")
    table.add_column("Text")
    table.add_column("CID", overflow="fold")
    for item in items:
        table.add_row(str(item.created_at), str(item.votes), item.text, item.identifier)
    Console().print(table)


@main.command()
@click.pass_obj
@reports_errors
def members(settings):
    """List member commitments in join order."""
    group = _open_ledger(settings).group
    click.echo(f"Group {group.group_id}: {group.size} members, depth {group.depth}")
    click.echo(f"Root: {scalar_to_hex(group.root)}")
    for index, commitment in enumerate(group.members):
        click.echo(f"  {index:>4}  {scalar_to_hex(commitment)}")


@main.command("cid-to-ref")
@click.argument("cid")
@reports_errors
def cid_to_ref(cid):
    """Convert a content identifier to its 32-byte reference."""
    parsed = parse_identifier(cid)
    click.echo(ref_to_hex(parsed.digest))


@main.command("ref-to-cid")
@click.argument("ref")
@click.option("--modern", is_flag=True, help="Emit the base32 (CIDv1) form")
@click.option(
    "--codec",
    type=click.Choice(["dag-pb", "raw", "dag-cbor", "dag-json"]),
    default="dag-pb",
    help="Content codec for the modern form",
)
@reports_errors
def ref_to_cid(ref, modern, codec):
    """Convert a 32-byte hex reference to a content identifier."""
    identifier = from_ref(
        ref_from_hex(ref), form="modern" if modern else "legacy", codec=codec
    )
    click.echo(identifier if identifier is not None else "(unset)")


@main.command()
@click.pass_obj
@reports_errors
def replay(settings):
    """Check that the event log replays into a consistent ledger."""
    ledger = _open_ledger(settings)
    click.echo(click.style(f"✓ Replayed {len(ledger)} events", fg="green"))
    click.echo(f"  Members: {ledger.group.size}")
    click.echo(f"  Posts: {len(ledger.posts())}")
    click.echo(f"  Root: {scalar_to_hex(ledger.root)}")


@main.command()
def version():
    """Show version and disclaimer information."""
    click.echo(f"\nAnonymous Social Board v{__version__}")
    click.echo("Proof of Concept - Not Production Ready\n")
    print_disclaimer()


if __name__ == "__main__":
    main()
