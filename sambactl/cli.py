"""Typer CLI entrypoint."""

from __future__ import annotations

import logging
from pathlib import Path

import typer

from sambactl.core.errors import SambactlError
from sambactl.core.model import TargetSelector
from sambactl.core.registry import parse_variant
from sambactl.core.service import SambaService

app = typer.Typer(help="Talk to the SAM-BA boot monitor of an NXT-class device over USB")

VariantOption = typer.Option("samba", "--variant", help="Firmware variant: samba or lego")
VidOption = typer.Option(None, "--vid", help="USB vendor ID (overrides --variant)")
PidOption = typer.Option(None, "--pid", help="USB product ID (overrides --variant)")


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every wire command")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _build_service() -> SambaService:
    service = SambaService()
    for warning in getattr(service, "load_warnings", ()):
        typer.echo(f"Warning: {warning}", err=True)
    for warning in getattr(service, "runtime_warnings", ()):
        typer.echo(f"Warning: {warning}", err=True)
    return service


def _parse_int(value: str, name: str) -> int:
    try:
        return int(value, 0)
    except ValueError:
        raise typer.BadParameter(f"{name} must be a decimal or 0x-prefixed integer, got '{value}'") from None


def _target(variant: str, vid: str | None, pid: str | None) -> TargetSelector:
    if vid is not None or pid is not None:
        if vid is None or pid is None:
            raise typer.BadParameter("--vid and --pid must be given together")
        return TargetSelector(variant=None, vendor_id=_parse_int(vid, "--vid"), product_id=_parse_int(pid, "--pid"))
    return TargetSelector(variant=parse_variant(variant))


@app.command("devices")
def list_devices() -> None:
    """List connected devices running a known firmware."""
    try:
        service = _build_service()
        devices = service.list_devices()
        if not devices:
            typer.echo("No known devices found")
            return

        for device in devices:
            typer.echo(f"{device.identity} -> {device.variant.value}")
    except SambactlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("profiles")
def list_profiles() -> None:
    """List available flash profiles."""
    try:
        service = _build_service()
        for profile in service.list_profiles():
            typer.echo(f"{profile.id}: {profile.name}")
            typer.echo(
                f"  flash 0x{profile.flash_base:08X} +{profile.flash_size} bytes, "
                f"{profile.page_count} pages of {profile.page_size}"
            )
    except SambactlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("version")
def show_version(
    variant: str = VariantOption,
    vid: str | None = VidOption,
    pid: str | None = PidOption,
) -> None:
    """Print the boot monitor version string."""
    try:
        service = _build_service()
        typer.echo(service.version(_target(variant, vid, pid)))
    except SambactlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("peek")
def peek(
    address: str,
    width: int = typer.Option(4, "--width", "-w", help="Access width in bytes: 1, 2 or 4"),
    variant: str = VariantOption,
    vid: str | None = VidOption,
    pid: str | None = PidOption,
) -> None:
    """Read a byte, halfword or word from device memory."""
    try:
        service = _build_service()
        addr = _parse_int(address, "ADDRESS")
        value = service.peek(addr, width, _target(variant, vid, pid))
        typer.echo(f"0x{addr:08X}: 0x{value:0{2 * width}X}")
    except SambactlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("poke")
def poke(
    address: str,
    value: str,
    width: int = typer.Option(4, "--width", "-w", help="Access width in bytes: 1, 2 or 4"),
    variant: str = VariantOption,
    vid: str | None = VidOption,
    pid: str | None = PidOption,
) -> None:
    """Write a byte, halfword or word into device memory."""
    try:
        service = _build_service()
        addr = _parse_int(address, "ADDRESS")
        service.poke(addr, _parse_int(value, "VALUE"), width, _target(variant, vid, pid))
        typer.echo(f"Wrote 0x{addr:08X}")
    except SambactlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("dump")
def dump(
    address: str,
    length: str,
    output: Path = typer.Option(..., "--output", "-o", help="File to write the memory contents to"),
    variant: str = VariantOption,
    vid: str | None = VidOption,
    pid: str | None = PidOption,
) -> None:
    """Copy a region of device memory into a file."""
    try:
        service = _build_service()
        data = service.dump(
            _parse_int(address, "ADDRESS"),
            _parse_int(length, "LENGTH"),
            target=_target(variant, vid, pid),
        )
        output.write_bytes(data)
        typer.echo(f"Saved {len(data)} bytes to {output}")
    except SambactlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("exec")
def execute(
    routine: Path = typer.Argument(..., exists=True, dir_okay=False, help="Raw binary to run from RAM"),
    address: str = typer.Option("0x202000", "--address", help="RAM load and entry address"),
    variant: str = VariantOption,
    vid: str | None = VidOption,
    pid: str | None = PidOption,
) -> None:
    """Upload a routine into RAM and jump to it."""
    try:
        service = _build_service()
        addr = _parse_int(address, "--address")
        service.execute(routine.read_bytes(), addr, _target(variant, vid, pid))
        typer.echo(f"Jumped to 0x{addr:08X}")
    except SambactlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("flash")
def flash(
    image: Path = typer.Argument(..., exists=True, dir_okay=False, help="Firmware image to write"),
    driver: Path = typer.Option(..., "--driver", exists=True, dir_okay=False, help="In-RAM flash driver routine"),
    profile: str = typer.Option("nxt", "--profile", help="Flash profile ID"),
    address: str | None = typer.Option(None, "--address", help="Destination flash address (default: flash base)"),
    verify: bool = typer.Option(True, "--verify/--no-verify", help="Read back and compare after writing"),
    boot: bool = typer.Option(False, "--boot", help="Jump to the flashed firmware when done"),
    variant: str = VariantOption,
    vid: str | None = VidOption,
    pid: str | None = PidOption,
) -> None:
    """Write a firmware image into flash memory."""
    try:
        service = _build_service()
        target = _target(variant, vid, pid)
        image_data = image.read_bytes()
        page_size = service.profile(profile).page_size
        page_count = -(-len(image_data) // page_size)
        with typer.progressbar(length=page_count, label="Flashing") as bar:
            report = service.flash(
                image_data,
                driver.read_bytes(),
                profile_id=profile,
                address=_parse_int(address, "--address") if address is not None else None,
                verify=verify,
                progress=lambda done, total: bar.update(1),
                target=target,
            )
        status = "verified" if report.verified else "not verified"
        typer.echo(
            f"Flashed {report.image_size} bytes ({report.pages_written} pages) "
            f"at 0x{report.address:08X} [{status}]"
        )
        if boot:
            entry = service.boot(profile, target)
            typer.echo(f"Jumped to 0x{entry:08X}")
    except SambactlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("boot")
def boot(
    profile: str = typer.Option("nxt", "--profile", help="Flash profile ID"),
    variant: str = VariantOption,
    vid: str | None = VidOption,
    pid: str | None = PidOption,
) -> None:
    """Start the firmware stored in flash."""
    try:
        service = _build_service()
        entry = service.boot(profile, _target(variant, vid, pid))
        typer.echo(f"Jumped to 0x{entry:08X}")
    except SambactlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def run() -> None:
    app()


if __name__ == "__main__":
    run()
