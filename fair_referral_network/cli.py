"""
Command-Line Interface for the Fair Referral Network

Manages a network state file: initialize the network with its fee schedule,
create identities, admit members and process anonymous referral claims.
"""

import logging
import sys
from pathlib import Path

import click

from fair_referral_network import __version__
from fair_referral_network.fees import FeeSchedule
from fair_referral_network.persistence import StateStore
from fair_referral_network.network import ReferralNetwork
from fair_referral_network.semaphore.config import (
    DEFAULT_HASH,
    DEFAULT_ROOT_HISTORY_SIZE,
    DEFAULT_TREE_DEPTH,
)
from fair_referral_network.semaphore.exceptions import ReferralNetworkError
from fair_referral_network.semaphore.hashing import get_hash
from fair_referral_network.semaphore.identity import Identity
from fair_referral_network.settings import (
    NetworkConfig,
    load_network_config,
    parse_field_element,
)

DEFAULT_STATE_FILE = "network.cbor"


def _fail(message: str) -> None:
    click.echo(click.style(f"✗ {message}", fg="red"), err=True)
    sys.exit(1)


def _ok(message: str) -> None:
    click.echo(click.style(f"✓ {message}", fg="green"))


def _parse_commitment(value: str, label: str = "commitment") -> int:
    try:
        return parse_field_element(value, label)
    except ReferralNetworkError as exc:
        raise click.BadParameter(str(exc))


def _load(ctx: click.Context) -> ReferralNetwork:
    store: StateStore = ctx.obj["store"]
    if not store.exists():
        _fail(f"No network state at {store.path}. Run 'init' first.")
    try:
        return store.load()
    except ReferralNetworkError as exc:
        _fail(f"Cannot load network: {exc}")
    except ValueError as exc:
        _fail(f"Invalid configuration: {exc}")


def _read_identity(path: str) -> Identity:
    try:
        return Identity.from_string(Path(path).read_text(encoding="utf-8").strip())
    except (OSError, ValueError) as exc:
        raise click.BadParameter(f"cannot read identity file {path}: {exc}")


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--state",
    type=click.Path(dir_okay=False),
    envvar="FAIR_REFERRAL_STATE",
    default=DEFAULT_STATE_FILE,
    show_default=True,
    help="Network state file",
)
@click.option("--verbose", is_flag=True, help="Enable verbose output")
@click.pass_context
def main(ctx, state, verbose):
    """
    Fair Referral Network - anonymous membership with cascading referral fees.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["store"] = StateStore(state)


@main.command()
@click.option(
    "--fee",
    "fees",
    multiple=True,
    type=int,
    help="Referral fee per level in ten-thousandths (repeat, nearest level first)",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    help="YAML network config (overrides the other options)",
)
@click.option("--depth", type=int, default=DEFAULT_TREE_DEPTH, show_default=True)
@click.option(
    "--root-history",
    type=int,
    default=DEFAULT_ROOT_HISTORY_SIZE,
    show_default=True,
    help="Number of recent roots accepted by the verifier",
)
@click.option(
    "--genesis",
    "genesis",
    multiple=True,
    help="Commitment allowed to join without a referrer (repeatable)",
)
@click.option("--hash", "hash_id", default=DEFAULT_HASH, show_default=True)
@click.option("--force", is_flag=True, help="Overwrite an existing state file")
@click.pass_context
def init(ctx, fees, config_path, depth, root_history, genesis, hash_id, force):
    """
    Create a new, empty network.

    Examples:

        # 30% to the direct referrer, 10% one level up
        fair-referral init --fee 3000 --fee 1000
    """
    store: StateStore = ctx.obj["store"]
    if store.exists() and not force:
        _fail(f"{store.path} already exists (use --force to overwrite)")

    try:
        if config_path:
            config = load_network_config(config_path)
        else:
            config = NetworkConfig(
                fee_schedule=FeeSchedule.from_list(fees),
                depth=depth,
                root_history_size=root_history,
                genesis_referrers=tuple(
                    _parse_commitment(g, "genesis") for g in genesis
                ),
                hash_id=hash_id,
            )
        network = ReferralNetwork(config)
        store.save(network)
    except ReferralNetworkError as exc:
        _fail(str(exc))

    _ok(f"Initialized network at {store.path}")
    click.echo(f"  Depth:        {config.depth} ({1 << config.depth} members)")
    click.echo(f"  Fees:         {list(config.fee_schedule.shares)}")
    click.echo(f"  Root history: {config.root_history_size}")
    click.echo(f"  Root:         {network.current_root():#x}")


@main.group()
def identity():
    """Create and inspect member identities."""


@identity.command("new")
@click.option(
    "--out",
    type=click.Path(dir_okay=False),
    required=True,
    help="File to write the identity secrets to",
)
@click.option("--seed", help="Derive deterministically from a secret seed")
@click.option("--hash", "hash_id", default=DEFAULT_HASH, show_default=True)
def identity_new(out, seed, hash_id):
    """Generate a new identity and print its commitment."""
    path = Path(out)
    if path.exists():
        _fail(f"{path} already exists")
    new_identity = Identity.from_seed(seed) if seed else Identity.generate()
    try:
        commitment = new_identity.commitment(get_hash(hash_id))
    except ReferralNetworkError as exc:
        _fail(str(exc))
    path.write_text(new_identity.to_string() + "\n", encoding="utf-8")
    _ok(f"Identity written to {path} (keep it secret)")
    click.echo(f"  Commitment: {commitment:#x}")


@identity.command("show")
@click.argument("identity_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--hash", "hash_id", default=DEFAULT_HASH, show_default=True)
def identity_show(identity_file, hash_id):
    """Print the public commitment of an identity file."""
    member = _read_identity(identity_file)
    try:
        click.echo(f"{member.commitment(get_hash(hash_id)):#x}")
    except ReferralNetworkError as exc:
        _fail(str(exc))


@main.command()
@click.argument("commitment")
@click.option("--referrer", help="Referrer commitment (omit for genesis members)")
@click.option("--address", help="Payout address on the external ledger")
@click.pass_context
def join(ctx, commitment, referrer, address):
    """Admit COMMITMENT into the network."""
    member = _parse_commitment(commitment)
    referrer_value = _parse_commitment(referrer, "referrer") if referrer else None
    network = _load(ctx)
    try:
        leaf_index = network.join(member, referrer_value, address)
        ctx.obj["store"].save(network)
    except ReferralNetworkError as exc:
        _fail(f"Join rejected: {exc}")
    _ok(f"Joined at leaf {leaf_index}")
    click.echo(f"  Root: {network.current_root():#x}")


@main.command()
@click.pass_context
def root(ctx):
    """Print the current Merkle root."""
    network = _load(ctx)
    click.echo(f"{network.current_root():#x}")


@main.command()
@click.argument("commitment")
@click.pass_context
def chain(ctx, commitment):
    """Print the referral chain above COMMITMENT, nearest first."""
    member = _parse_commitment(commitment)
    network = _load(ctx)
    try:
        referrers = network.chain(member)
    except KeyError:
        _fail("commitment is not a member")
    if not referrers:
        click.echo("(genesis member)")
    for level, referrer in enumerate(referrers, start=1):
        share = network.fee_schedule.share(level)
        click.echo(f"  {level}: {referrer:#x}  fee={share}/10000")


@main.command()
@click.option(
    "--identity",
    "identity_file",
    type=click.Path(exists=True, dir_okay=False),
    required=True,
    help="Identity file of the claimant",
)
@click.option("--member", required=True, help="Commitment whose referrers are paid")
@click.option("--value", type=click.IntRange(min=0), required=True)
@click.option("--event", required=True, help="Claim scope, e.g. an order id")
@click.pass_context
def claim(ctx, identity_file, member, value, event):
    """
    Prove membership anonymously and distribute referral fees.
    """
    claimant = _read_identity(identity_file)
    member_value = _parse_commitment(member, "member")
    network = _load(ctx)
    try:
        proof = network.generate_claim_proof(claimant, member_value, value, event)
        receipt = network.claim(proof)
        ctx.obj["store"].save(network)
    except ReferralNetworkError as exc:
        _fail(f"Claim rejected ({type(exc).__name__}): {exc}")

    _ok(f"Claim accepted (tx {receipt.tx_id})")
    for payout in receipt.distribution.payouts:
        click.echo(f"  level {payout.level}: {payout.recipient:#x} <- {payout.amount}")
    click.echo(f"  treasury <- {receipt.distribution.treasury_amount}")


@main.command()
@click.pass_context
def balances(ctx):
    """Print accumulated referral balances and the treasury."""
    network = _load(ctx)
    for commitment, amount in sorted(network.ledger.balances().items()):
        click.echo(f"  {commitment:#x}: {amount}")
    click.echo(f"  treasury: {network.ledger.treasury_balance}")


@main.command()
@click.pass_context
def info(ctx):
    """Show network parameters and counters."""
    network = _load(ctx)
    try:
        network.verify_integrity()
    except ReferralNetworkError as exc:
        _fail(str(exc))
    snapshot = network.snapshot()
    click.echo("=" * 50)
    click.echo(click.style("Fair Referral Network", fg="cyan", bold=True))
    click.echo("=" * 50)
    click.echo(f"  Members:        {snapshot.size}/{network.registry.tree.capacity}")
    click.echo(f"  Root:           {snapshot.root:#x}")
    click.echo(f"  Fees:           {list(network.fee_schedule.shares)}")
    click.echo(f"  Hash:           {network.hasher.identifier}")
    click.echo(f"  Proof backend:  {network.backend.backend_name}")
    click.echo(f"  Claims:         {len(network.ledger)}")


if __name__ == "__main__":
    main()
