"""
Command-line interface for building and signing transparent-to-shielded transactions.

PCZTs travel between commands as files, so proposal, signing and
finalization can run on different machines. No key material is handled here:
signatures are produced elsewhere over the digest printed by ``sighash``.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Annotated

import typer
from loguru import logger
from pydantic import TypeAdapter, ValidationError

from t2z.address import Invalid, ShieldedCapable, classify
from t2z.builder import propose_transaction
from t2z.combiner import combine as combine_pczts
from t2z.config import T2zSettings, get_settings
from t2z.errors import T2zError
from t2z.extractor import finalize_and_extract
from t2z.fees import calculate_fee
from t2z.models import Payment, TransactionRequest, TransparentInput, TransparentOutput
from t2z.pczt import Pczt, parse_pczt, serialize_pczt
from t2z.sighash import get_sighash
from t2z.signer import append_signature
from t2z.verify import verify_before_signing

app = typer.Typer(
    name="t2z",
    help="t2z - Send transparent Zcash to transparent and shielded recipients via PCZTs",
    add_completion=False,
)


def setup_logging(level: str) -> None:
    """Configure loguru logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )


def _settings(network: str | None, log_level: str | None) -> T2zSettings:
    settings = get_settings()
    if network is not None:
        if network not in ("mainnet", "testnet"):
            logger.error(f"Invalid network: {network}")
            raise typer.Exit(1)
        settings.network = network  # type: ignore[assignment]
    setup_logging(log_level or settings.log_level)
    return settings


def parse_payment(text: str) -> Payment:
    """Parse ``ADDRESS:AMOUNT`` or ``ADDRESS:AMOUNT:MEMO`` (memo as UTF-8 text)."""
    parts = text.split(":", 2)
    if len(parts) < 2:
        raise ValueError(f"Payment must be ADDRESS:AMOUNT, got {text!r}")
    memo = parts[2].encode("utf-8") if len(parts) == 3 else None
    return Payment(address=parts[0], amount=int(parts[1]), memo=memo)


def parse_change_output(text: str) -> TransparentOutput:
    """Parse ``SCRIPT_HEX:VALUE``."""
    script_hex, _, value = text.partition(":")
    return TransparentOutput(script_pubkey=bytes.fromhex(script_hex), value=int(value))


def _build_request(
    payments: list[str], settings: T2zSettings, target_height: int | None
) -> TransactionRequest:
    try:
        request = TransactionRequest(payments=[parse_payment(p) for p in payments])
    except ValueError as e:
        logger.error(f"Invalid payment: {e}")
        raise typer.Exit(1)
    request.set_network(settings.network_is_main)
    height = target_height if target_height is not None else settings.target_height
    if height is not None:
        request.set_target_height(height)
    return request


def _load_pczt(path: Path) -> Pczt:
    try:
        return parse_pczt(path.read_bytes())
    except OSError as e:
        logger.error(f"Cannot read {path}: {e}")
        raise typer.Exit(1)
    except T2zError as e:
        logger.error(f"{path}: {e}")
        raise typer.Exit(1)


def _write_pczt(pczt: Pczt, output: Path) -> None:
    output.write_bytes(serialize_pczt(pczt))
    logger.info(f"PCZT written to {output}")


NetworkOption = Annotated[
    str | None, typer.Option("--network", "-n", help="mainnet | testnet (default from T2Z_NETWORK)")
]
LogLevelOption = Annotated[str | None, typer.Option("--log-level", "-l", help="Log level")]
OutputOption = Annotated[Path, typer.Option("--output", "-o", help="Where to write the PCZT")]


@app.command()
def fee(
    inputs: Annotated[int, typer.Option("--inputs", "-i", help="Transparent inputs")],
    transparent_outputs: Annotated[
        int, typer.Option("--transparent", "-t", help="Transparent outputs")
    ] = 0,
    shielded_outputs: Annotated[
        int, typer.Option("--shielded", "-s", help="Orchard outputs")
    ] = 0,
) -> None:
    """Print the ZIP 317 fee for a transaction shape."""
    try:
        typer.echo(calculate_fee(inputs, transparent_outputs, shielded_outputs))
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


@app.command("classify")
def classify_address(
    address: Annotated[str, typer.Argument(help="Address to classify")],
    network: NetworkOption = None,
    log_level: LogLevelOption = None,
) -> None:
    """Show how an address would be paid."""
    settings = _settings(network, log_level)
    result = classify(address, settings.get_network())
    if isinstance(result, Invalid):
        typer.echo(f"invalid: {result.reason}")
        raise typer.Exit(1)
    if isinstance(result, ShieldedCapable):
        typer.echo(f"shielded orchard:{result.receiver.hex()}")
    else:
        typer.echo(f"transparent {result.script_pubkey.hex()}")


@app.command()
def propose(
    inputs_file: Annotated[
        Path, typer.Option("--inputs", "-i", help="JSON list of inputs to spend")
    ],
    payments: Annotated[
        list[str], typer.Option("--pay", "-p", help="ADDRESS:AMOUNT[:MEMO], repeatable")
    ],
    output: OutputOption,
    change_address: Annotated[
        str | None, typer.Option("--change", "-c", help="Transparent change address")
    ] = None,
    target_height: Annotated[
        int | None, typer.Option("--target-height", help="Height of the next block")
    ] = None,
    network: NetworkOption = None,
    log_level: LogLevelOption = None,
) -> None:
    """Propose a transaction and write it as a PCZT."""
    settings = _settings(network, log_level)
    request = _build_request(payments, settings, target_height)

    try:
        inputs = TypeAdapter(list[TransparentInput]).validate_json(inputs_file.read_bytes())
    except (OSError, ValidationError) as e:
        logger.error(f"Cannot load inputs from {inputs_file}: {e}")
        raise typer.Exit(1)

    try:
        pczt = propose_transaction(inputs, request, change_address)
    except T2zError as e:
        logger.error(str(e))
        raise typer.Exit(1)

    _write_pczt(pczt, output)


@app.command()
def inspect(
    pczt_file: Annotated[Path, typer.Argument(help="PCZT file")],
    log_level: LogLevelOption = None,
) -> None:
    """Summarize a PCZT."""
    _settings(None, log_level)
    pczt = _load_pczt(pczt_file)
    header = pczt.header

    typer.echo(f"Network:          {header.network.value}")
    typer.echo(f"Branch id:        0x{header.consensus_branch_id:08x}")
    typer.echo(f"Expiry height:    {header.expiry_height}")
    typer.echo(f"Inputs:           {len(pczt.inputs)}")
    for i, inp in enumerate(pczt.inputs):
        status = "signed" if inp.is_signed() else "unsigned"
        typer.echo(f"  [{i}] {inp.txid.hex()}:{inp.vout} {inp.value} zat ({status})")
    typer.echo(f"Outputs:          {len(pczt.outputs)}")
    for i, out in enumerate(pczt.outputs):
        typer.echo(f"  [{i}] {out.value} zat -> {out.script_pubkey.hex()}")
    typer.echo(f"Orchard actions:  {pczt.num_actions}")
    typer.echo(f"Orchard proof:    {'yes' if pczt.has_orchard_proof else 'no'}")
    implied_fee = (
        pczt.total_input_value() - pczt.total_transparent_output_value() + pczt.orchard.value_balance
    )
    typer.echo(f"Fee:              {implied_fee}")


@app.command()
def verify(
    pczt_file: Annotated[Path, typer.Argument(help="PCZT file")],
    payments: Annotated[
        list[str], typer.Option("--pay", "-p", help="ADDRESS:AMOUNT[:MEMO], repeatable")
    ],
    change_outputs: Annotated[
        list[str] | None,
        typer.Option("--expect-change", help="SCRIPT_HEX:VALUE, repeatable"),
    ] = None,
    network: NetworkOption = None,
    log_level: LogLevelOption = None,
) -> None:
    """Check a PCZT against the payments it should make before signing it."""
    settings = _settings(network, log_level)
    request = _build_request(payments, settings, None)
    try:
        expected = [parse_change_output(c) for c in change_outputs or []]
    except ValueError as e:
        logger.error(f"Invalid change output: {e}")
        raise typer.Exit(1)

    pczt = _load_pczt(pczt_file)
    try:
        verify_before_signing(pczt, request, expected)
    except T2zError as e:
        logger.error(str(e))
        raise typer.Exit(1)
    typer.echo("OK")


@app.command()
def sighash(
    pczt_file: Annotated[Path, typer.Argument(help="PCZT file")],
    index: Annotated[int, typer.Option("--index", "-i", help="Input index")] = 0,
    log_level: LogLevelOption = None,
) -> None:
    """Print the hex signature hash for one transparent input."""
    _settings(None, log_level)
    pczt = _load_pczt(pczt_file)
    try:
        typer.echo(get_sighash(pczt, index).hex())
    except T2zError as e:
        logger.error(str(e))
        raise typer.Exit(1)


@app.command("append-signature")
def append_signature_cmd(
    pczt_file: Annotated[Path, typer.Argument(help="PCZT file")],
    signature: Annotated[
        str, typer.Option("--signature", "-s", help="64-byte compact signature (hex)")
    ],
    output: OutputOption,
    index: Annotated[int, typer.Option("--index", "-i", help="Input index")] = 0,
    log_level: LogLevelOption = None,
) -> None:
    """Attach a signature to one transparent input."""
    _settings(None, log_level)
    try:
        sig = bytes.fromhex(signature)
    except ValueError:
        logger.error("Signature must be hex")
        raise typer.Exit(1)

    pczt = _load_pczt(pczt_file)
    try:
        signed = append_signature(pczt, index, sig)
    except T2zError as e:
        logger.error(str(e))
        raise typer.Exit(1)
    _write_pczt(signed, output)


@app.command()
def combine(
    pczt_files: Annotated[list[Path], typer.Argument(help="PCZT files to merge")],
    output: OutputOption,
    log_level: LogLevelOption = None,
) -> None:
    """Merge PCZTs signed in parallel."""
    _settings(None, log_level)
    pczts = [_load_pczt(path) for path in pczt_files]
    try:
        combined = combine_pczts(pczts)
    except T2zError as e:
        logger.error(str(e))
        raise typer.Exit(1)
    _write_pczt(combined, output)


@app.command()
def finalize(
    pczt_file: Annotated[Path, typer.Argument(help="PCZT file")],
    output: Annotated[
        Path | None, typer.Option("--output", "-o", help="Write raw transaction bytes here")
    ] = None,
    log_level: LogLevelOption = None,
) -> None:
    """Finalize a signed PCZT and print the raw transaction hex."""
    _settings(None, log_level)
    pczt = _load_pczt(pczt_file)
    try:
        tx_bytes = finalize_and_extract(pczt)
    except T2zError as e:
        logger.error(str(e))
        raise typer.Exit(1)

    if output is not None:
        output.write_bytes(tx_bytes)
        logger.info(f"Transaction written to {output}")
    else:
        typer.echo(tx_bytes.hex())


def main() -> None:
    """Entry point."""
    app()


if __name__ == "__main__":
    main()
