#!/usr/bin/env python3
"""Operator CLI for pyloadlynx calibration drafts and EEPROM images, using Typer."""

import json
import logging
from pathlib import Path
from typing import Any, Optional

import typer
from typing_extensions import Annotated

from . import __version__  # type: ignore
from .draft import Draft
from .eeprom import EepromFile, deserialize_profile
from .errors import PreconditionError, ProfileFormatError, ValidationFailed
from .piecewise import (
    inverse_piecewise_linear,
    inverse_piecewise_linear_decimal,
    piecewise_linear,
    piecewise_linear_decimal,
)
from .profile import CalibrationProfile, points_to_dicts
from .store import ProfileStore
from .types import CAL_FMT_VERSION, DEFAULT_MAX_POINTS, DIGITAL_HW_REV, RAW_MAX, RAW_MIN, CurveKind
from .validation import issues_to_dicts

app = typer.Typer(
    name="pyloadlynx",
    help="Calibration draft and EEPROM image tooling for LoadLynx electronic loads.",
    no_args_is_help=True,
)

logger = logging.getLogger(__name__)

# Exit codes
EXIT_ISSUES = 1
EXIT_INPUT = 2
EXIT_IO = 3
EXIT_UNEXPECTED = 4

# ============================================================================
# Shared options and helpers
# ============================================================================

MaxPointsOption = Annotated[
    int,
    typer.Option("--max-points", help="Maximum points per curve", envvar="PYLOADLYNX_MAX_POINTS"),
]
HwRevOption = Annotated[
    int,
    typer.Option("--hw-rev", help="Hardware revision stored in EEPROM images", envvar="PYLOADLYNX_HW_REV"),
]
VerboseOption = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Enable debug logging"),
]
JsonOption = Annotated[
    bool,
    typer.Option("--json", help="Output as JSON"),
]
DraftArgument = Annotated[
    Path,
    typer.Argument(help="Draft JSON file (as exported by the calibration console)"),
]


def setup_logging(verbose: bool) -> None:
    """Configure logging based on verbose flag."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s" if not verbose else "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def parse_int(value: str, signed: bool = True) -> int:
    """Parse a raw code from string, supporting hex; signed i16 or unsigned u16 range."""
    v = value.strip()
    if v.lower().startswith(("0x", "-0x")):
        num = int(v, 16)
    else:
        num = int(v)

    if signed:
        if not (RAW_MIN <= num <= RAW_MAX):
            raise ValueError(f"Signed 16-bit integer out of range: {num}")
    else:
        if not (0 <= num <= 65535):
            raise ValueError(f"Unsigned 16-bit integer out of range: {num}")

    return num


def parse_curve(value: str) -> CurveKind:
    try:
        return CurveKind(value.strip().lower())
    except ValueError:
        choices = ", ".join(k.value for k in CurveKind)
        raise ValueError(f"Unknown curve {value!r} (expected one of: {choices})") from None


def format_number(value: Any) -> str:
    """Format a converted value for display: integers as-is, otherwise 3 decimal places."""
    if isinstance(value, int):
        return str(value)
    return f"{value:.3f}"


def load_draft(path: Path, max_points: int) -> Draft:
    """Load a draft, exiting 2 on bad input and 3 on I/O failure."""
    try:
        return Draft.load(path, max_points=max_points)
    except FileNotFoundError:
        typer.echo(f"Error: Draft file not found: {path}", err=True)
        raise typer.Exit(EXIT_INPUT)
    except ValidationFailed as e:
        typer.echo(f"Error: {e}", err=True)
        for issue in e.issues:
            typer.echo(f"  {issue}", err=True)
        raise typer.Exit(EXIT_INPUT)
    except PreconditionError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(EXIT_INPUT)
    except OSError as e:
        typer.echo(f"Error: Cannot read draft: {e}", err=True)
        raise typer.Exit(EXIT_IO)


def echo_issues(issues: list, json_output: bool) -> None:
    if json_output:
        typer.echo(json.dumps({"ok": not issues, "issues": issues_to_dicts(issues)}, indent=2))
        return
    if not issues:
        typer.echo("OK: no issues")
        return
    for issue in issues:
        typer.echo(str(issue))


# ============================================================================
# Commands
# ============================================================================

@app.command()
def info(
    max_points: MaxPointsOption = DEFAULT_MAX_POINTS,
    hw_rev: HwRevOption = DIGITAL_HW_REV,
    verbose: VerboseOption = False,
    json_output: JsonOption = False,
) -> None:
    """
    Show package version and calibration format defaults.
    """
    setup_logging(verbose)

    info_data = {
        "version": __version__,
        "fmt_version": CAL_FMT_VERSION,
        "hw_rev": hw_rev,
        "max_points": max_points,
        "curves": [k.value for k in CurveKind],
    }

    if json_output:
        typer.echo(json.dumps(info_data, indent=2))
    else:
        typer.echo(f"pyloadlynx version: {info_data['version']}")
        typer.echo(f"Format version: {info_data['fmt_version']}")
        typer.echo(f"Hardware revision: {info_data['hw_rev']}")
        typer.echo(f"Max points per curve: {info_data['max_points']}")
        typer.echo(f"Curves: {', '.join(info_data['curves'])}")


@app.command()
def validate(
    draft_path: DraftArgument,
    max_points: MaxPointsOption = DEFAULT_MAX_POINTS,
    verbose: VerboseOption = False,
    json_output: JsonOption = False,
) -> None:
    """
    Pre-flight a draft without touching a device.

    Curves that were not captured are skipped. Exits 1 when issues are found.
    """
    setup_logging(verbose)

    draft = load_draft(draft_path, max_points)
    issues = draft.validate()
    echo_issues(issues, json_output)
    if issues:
        raise typer.Exit(EXIT_ISSUES)


@app.command()
def normalize(
    draft_path: DraftArgument,
    curve: Annotated[Optional[str], typer.Option("--curve", "-c", help="Only this curve")] = None,
    max_points: MaxPointsOption = DEFAULT_MAX_POINTS,
    verbose: VerboseOption = False,
) -> None:
    """
    Print the normalized (deduplicated, raw-ordered) curves of a draft as JSON.

    Issues are reported alongside each curve; exits 1 when any curve has issues.
    """
    setup_logging(verbose)

    try:
        kinds = [parse_curve(curve)] if curve else list(CurveKind)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(EXIT_INPUT)

    draft = load_draft(draft_path, max_points)
    output: dict[str, Any] = {}
    any_issues = False
    for kind in kinds:
        if not draft.points(kind):
            continue
        result = draft.normalized(kind)
        output[kind.path] = {
            "points": points_to_dicts(kind, result.points),
            "issues": issues_to_dicts(result.issues),
        }
        any_issues = any_issues or not result.ok

    typer.echo(json.dumps(output, indent=2))
    if any_issues:
        raise typer.Exit(EXIT_ISSUES)


@app.command()
def convert(
    value: Annotated[str, typer.Argument(help="Raw code (decimal or 0x hex); physical value with --inverse")],
    curve: Annotated[str, typer.Option("--curve", "-c", help="Curve to convert with")] = "v_local",
    draft_path: Annotated[Optional[Path], typer.Option("--draft", help="Use this draft's curve")] = None,
    eeprom_path: Annotated[Optional[Path], typer.Option("--eeprom", help="Use the curve stored in this EEPROM image")] = None,
    inverse: Annotated[bool, typer.Option("--inverse", help="Convert a physical value back to a raw code")] = False,
    exact: Annotated[bool, typer.Option("--exact", help="Use exact decimal arithmetic")] = False,
    max_points: MaxPointsOption = DEFAULT_MAX_POINTS,
    hw_rev: HwRevOption = DIGITAL_HW_REV,
    verbose: VerboseOption = False,
    json_output: JsonOption = False,
) -> None:
    """
    Convert a value through one calibration curve.

    The curve comes from --draft, else from --eeprom, else the factory defaults.
    """
    setup_logging(verbose)

    try:
        kind = parse_curve(curve)
        number = int(value.strip()) if inverse else parse_int(value)
    except ValueError as e:
        typer.echo(f"Error: Invalid value: {e}", err=True)
        raise typer.Exit(EXIT_INPUT)

    if draft_path is not None and eeprom_path is not None:
        typer.echo("Error: --draft and --eeprom are mutually exclusive", err=True)
        raise typer.Exit(EXIT_INPUT)

    try:
        if draft_path is not None:
            draft = load_draft(draft_path, max_points)
            result = draft.normalized(kind)
            if not result.ok:
                for issue in result.issues:
                    typer.echo(str(issue), err=True)
                raise typer.Exit(EXIT_ISSUES)
            points = result.points
            origin = "draft"
        elif eeprom_path is not None:
            points = deserialize_profile(eeprom_path.read_bytes(), hw_rev).points_for(kind)
            origin = "eeprom"
        else:
            points = CalibrationProfile.factory_default(hw_rev).points_for(kind)
            origin = "factory"

        if inverse:
            converted = (inverse_piecewise_linear_decimal if exact else inverse_piecewise_linear)(points, number)
        else:
            converted = (piecewise_linear_decimal if exact else piecewise_linear)(points, number)

        if json_output:
            typer.echo(json.dumps({
                "curve": kind.value,
                "source": origin,
                "input": number,
                "inverse": inverse,
                "value": str(converted) if exact else converted,
            }))
        else:
            typer.echo(format_number(converted))
    except typer.Exit:
        raise
    except ProfileFormatError as e:
        typer.echo(f"Error: Invalid EEPROM image: {e}", err=True)
        raise typer.Exit(EXIT_IO)
    except OSError as e:
        typer.echo(f"Error: Cannot read file: {e}", err=True)
        raise typer.Exit(EXIT_IO)
    except Exception as e:
        typer.echo(f"Error: Unexpected error: {e}", err=True)
        if verbose:
            import traceback
            traceback.print_exc()
        raise typer.Exit(EXIT_UNEXPECTED)


@app.command(name="eeprom-dump")
def eeprom_dump(
    image: Annotated[Path, typer.Argument(help="EEPROM image file (256 bytes)")],
    hw_rev: HwRevOption = DIGITAL_HW_REV,
    verbose: VerboseOption = False,
) -> None:
    """
    Decode an EEPROM calibration image and print it as JSON.
    """
    setup_logging(verbose)

    try:
        profile = deserialize_profile(image.read_bytes(), hw_rev)
        typer.echo(json.dumps(profile.to_dict(), indent=2))
    except ProfileFormatError as e:
        typer.echo(f"Error: Invalid EEPROM image: {e}", err=True)
        raise typer.Exit(EXIT_IO)
    except OSError as e:
        typer.echo(f"Error: Cannot read image: {e}", err=True)
        raise typer.Exit(EXIT_IO)
    except Exception as e:
        typer.echo(f"Error: Unexpected error: {e}", err=True)
        if verbose:
            import traceback
            traceback.print_exc()
        raise typer.Exit(EXIT_UNEXPECTED)


@app.command(name="eeprom-build")
def eeprom_build(
    draft_path: DraftArgument,
    output: Annotated[Path, typer.Argument(help="EEPROM image file to write")],
    max_points: MaxPointsOption = DEFAULT_MAX_POINTS,
    hw_rev: HwRevOption = DIGITAL_HW_REV,
    verbose: VerboseOption = False,
) -> None:
    """
    Commit every captured draft curve on top of factory defaults and write the EEPROM image.

    Nothing is written when the draft has issues.
    """
    setup_logging(verbose)

    draft = load_draft(draft_path, max_points)
    issues = draft.validate()
    if issues:
        echo_issues(issues, json_output=False)
        raise typer.Exit(EXIT_ISSUES)

    try:
        store = ProfileStore(CalibrationProfile.factory_default(hw_rev), max_points=max_points)
        committed = []
        for kind in CurveKind:
            if draft.points(kind):
                draft.sync(store, kind, commit=True)
                committed.append(kind.value)
        EepromFile(output, hw_rev=hw_rev).store(store.eeprom)
        typer.echo(f"OK: Wrote {output} ({', '.join(committed)})")
    except ValidationFailed as e:
        for issue in e.issues:
            typer.echo(str(issue), err=True)
        raise typer.Exit(EXIT_ISSUES)
    except (OSError, ValueError) as e:
        typer.echo(f"Error: Cannot write image: {e}", err=True)
        raise typer.Exit(EXIT_IO)
    except Exception as e:
        typer.echo(f"Error: Unexpected error: {e}", err=True)
        if verbose:
            import traceback
            traceback.print_exc()
        raise typer.Exit(EXIT_UNEXPECTED)


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        typer.echo(f"pyloadlynx {__version__}")
        raise typer.Exit(0)


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option("--version", callback=version_callback, is_eager=True, help="Show version and exit"),
    ] = None,
) -> None:
    """pyloadlynx - calibration draft and EEPROM image tooling for LoadLynx electronic loads."""
    pass


if __name__ == "__main__":
    app()
