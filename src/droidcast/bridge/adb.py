"""One-shot adb/scrcpy commands exposed to the presentation layer."""

from __future__ import annotations

import logging

from droidcast.binaries.resolver import BinaryResolver
from droidcast.bridge.tokenizer import split_command
from droidcast.shared.events import NullNotifier, Notifier, log_line
from droidcast.shared.exceptions import CommandError, CommandParseError, CommandTimeoutError
from droidcast.shared.models import (
    BinaryCheck,
    CommandResult,
    DeviceList,
    MdnsService,
    MdnsServiceList,
    RawCommandResult,
    ShellResult,
)
from droidcast.shared.process import CommandOutput, run_command

logger = logging.getLogger(__name__)

# adb subcommands that address the server, not a device; never given -s.
_GLOBAL_ADB_COMMANDS = frozenset({"devices", "connect", "pair"})
_SERIAL_FLAGS = frozenset({"-s", "--serial"})


def parse_devices(output: str) -> list[str]:
    """Extract ready device serials from ``adb devices`` output."""
    serials: list[str] = []
    for line in output.splitlines()[1:]:
        if "\tdevice" not in line:
            continue
        serial = line.split("\t", 1)[0].strip()
        if serial and "._tcp" not in serial and "._udp" not in serial:
            serials.append(serial)
    return serials


def parse_mdns_services(output: str) -> list[MdnsService]:
    """Extract unique services from ``adb mdns services`` output, first seen wins."""
    services: list[MdnsService] = []
    seen: set[tuple[str, str, str]] = set()
    for line in output.splitlines()[1:]:
        parts = line.split("\t")
        if len(parts) < 3:
            continue
        key = (parts[0].strip(), parts[1].strip(), parts[2].strip())
        if key in seen:
            continue
        seen.add(key)
        services.append(MdnsService(name=key[0], service=key[1], address=key[2]))
    return services


class DeviceBridge:
    """Runs adb and scrcpy one-shot commands and shapes their results.

    Soft failures (non-zero exit, missing success markers, spawn errors)
    come back as ``success=False`` results rather than exceptions. Only
    ``connect`` and ``pair`` raise, and only when adb cannot be spawned.
    """

    def __init__(
        self,
        *,
        resolver: BinaryResolver,
        notifier: Notifier | None = None,
        scrcpy_binary: str = "scrcpy",
        adb_binary: str = "adb",
        connect_timeout: float = 5.0,
        command_timeout: float | None = None,
        push_remote_dir: str = "/sdcard/Download/",
    ) -> None:
        self._resolver = resolver
        self._notifier = notifier or NullNotifier()
        self._scrcpy_binary = scrcpy_binary
        self._adb_binary = adb_binary
        self._connect_timeout = connect_timeout
        self._command_timeout = command_timeout
        self._push_remote_dir = push_remote_dir

    def _adb(self, custom_dir: str | None) -> str:
        return self._resolver.resolve(self._adb_binary, custom_dir)

    def _scrcpy(self, custom_dir: str | None) -> str:
        return self._resolver.resolve(self._scrcpy_binary, custom_dir)

    async def _run(self, program: str, *args: str) -> CommandOutput:
        return await run_command(program, *args, timeout=self._command_timeout)

    def _echo(self, output: CommandOutput) -> tuple[str, str]:
        out_text = output.stdout.strip()
        err_text = output.stderr.strip()
        if out_text:
            log_line(self._notifier, f"[ADB] {out_text}")
        if err_text:
            log_line(self._notifier, f"[ADB ERROR] {err_text}")
        return out_text, err_text

    async def check_binary(self, custom_dir: str | None = None) -> BinaryCheck:
        """Verify scrcpy is runnable by asking for its version."""
        try:
            output = await self._run(self._scrcpy(custom_dir), "--version")
        except CommandError as exc:
            logger.info("scrcpy check failed: %s", exc)
            return BinaryCheck(found=False, message="Scrcpy not found")
        if not output.ok:
            return BinaryCheck(found=False, message="Failed to start scrcpy (Exit Code != 0)")
        return BinaryCheck(found=True, message="Scrcpy Ready")

    async def list_devices(self, custom_dir: str | None = None) -> DeviceList:
        try:
            output = await self._run(self._adb(custom_dir), "devices")
        except CommandError as exc:
            return DeviceList(error=True, message=str(exc))
        if not output.ok:
            return DeviceList(error=True, message="ADB returned error")
        return DeviceList(error=False, devices=parse_devices(output.stdout))

    async def list_mdns_services(self, custom_dir: str | None = None) -> MdnsServiceList:
        try:
            output = await self._run(self._adb(custom_dir), "mdns", "services")
        except CommandError as exc:
            return MdnsServiceList(error=True, message=str(exc))
        if not output.ok:
            return MdnsServiceList(error=True, message="ADB mdns returned error")
        return MdnsServiceList(error=False, services=parse_mdns_services(output.stdout))

    async def connect(self, ip: str, custom_dir: str | None = None) -> CommandResult:
        """Connect to a device over TCP/IP.

        A timeout is a soft failure: it is logged and reported as
        ``success=False`` so the caller can decide whether to retry.

        Raises:
            CommandError: If adb cannot be spawned.
        """
        log_line(self._notifier, f"[SYSTEM] Attempting wireless connection to {ip}...")
        try:
            output = await run_command(self._adb(custom_dir), "connect", ip, timeout=self._connect_timeout)
        except CommandTimeoutError:
            log_line(
                self._notifier,
                f"[SYSTEM] Connection to {ip} timed out after {self._connect_timeout:g}s.",
            )
            return CommandResult(success=False, message="connection timed out")

        out_text, err_text = self._echo(output)
        success = output.ok and "cannot connect" not in out_text and "failed" not in out_text
        return CommandResult(success=success, message=out_text or err_text)

    async def pair(self, ip: str, code: str, custom_dir: str | None = None) -> CommandResult:
        """Pair with a device using its wireless-debugging code.

        Raises:
            CommandError: If adb cannot be spawned.
        """
        log_line(self._notifier, f"[SYSTEM] Pairing with {ip}...")
        output = await self._run(self._adb(custom_dir), "pair", ip, code)
        out_text, err_text = self._echo(output)
        paired = "Successfully paired" in out_text or "Successfully paired" in err_text
        return CommandResult(success=output.ok and paired, message=out_text or err_text)

    async def shell(self, device: str, command: str, custom_dir: str | None = None) -> ShellResult:
        try:
            output = await self._run(self._adb(custom_dir), "-s", device, "shell", command)
        except CommandError as exc:
            return ShellResult(success=False, message=str(exc))
        return ShellResult(success=output.ok, output=output.stdout)

    async def run_raw(self, device: str | None, cmd: str, custom_dir: str | None = None) -> RawCommandResult:
        """Run a free-form ``adb ...`` or ``scrcpy ...`` command line.

        Commands without a leading binary name go to adb. The active device
        is injected as ``-s <device>`` unless the command already names one
        or is a server-level adb command.
        """
        try:
            parts = split_command(cmd)
        except CommandParseError as exc:
            return RawCommandResult(success=False, message=str(exc))
        if not parts:
            return RawCommandResult(success=False, message="No command provided")

        first = parts[0].lower()
        binary = self._scrcpy_binary if first == "scrcpy" else self._adb_binary
        if first in ("adb", "scrcpy"):
            parts = parts[1:]

        args: list[str] = []
        if device and not _SERIAL_FLAGS.intersection(parts):
            is_global = binary == self._adb_binary and bool(parts) and parts[0] in _GLOBAL_ADB_COMMANDS
            if not is_global:
                args += ["-s", device]
        args += parts

        exe_path = self._scrcpy(custom_dir) if binary == self._scrcpy_binary else self._adb(custom_dir)
        try:
            output = await self._run(exe_path, *args)
        except CommandError as exc:
            return RawCommandResult(success=False, binary=binary, message=str(exc))
        return RawCommandResult(success=output.ok, binary=binary, stdout=output.stdout, stderr=output.stderr)

    async def push(self, device: str, file_path: str, custom_dir: str | None = None) -> CommandResult:
        try:
            output = await self._run(self._adb(custom_dir), "-s", device, "push", file_path, self._push_remote_dir)
        except CommandError as exc:
            return CommandResult(success=False, message=str(exc))
        if output.ok:
            return CommandResult(success=True, message="File pushed to Downloads")
        return CommandResult(success=False, message="Transfer failed")

    async def install(self, device: str, file_path: str, custom_dir: str | None = None) -> CommandResult:
        try:
            output = await self._run(self._adb(custom_dir), "-s", device, "install", file_path)
        except CommandError as exc:
            return CommandResult(success=False, message=str(exc))
        if output.ok:
            return CommandResult(success=True, message=output.stdout.strip())
        return CommandResult(success=False, message=output.stderr.strip())

    async def list_options(self, device: str, flag: str, custom_dir: str | None = None) -> ShellResult:
        """Run ``scrcpy -s <device> <flag>`` (e.g. ``--list-encoders``).

        scrcpy prints most listings on stderr, so both streams are returned.
        """
        try:
            output = await self._run(self._scrcpy(custom_dir), "-s", device, flag)
        except CommandError as exc:
            return ShellResult(success=False, message=str(exc))
        return ShellResult(success=output.ok, output=output.stdout + output.stderr)
