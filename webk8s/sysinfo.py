"""Information about the local machine: processor, memory, uptime, disk and GPUs."""

from __future__ import annotations

import math
import os
import re
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path

PROC_CPUINFO = "/proc/cpuinfo"
PROC_MEMINFO = "/proc/meminfo"
PROC_UPTIME = "/proc/uptime"

NVML_BINARY_ENV_VAR = "WEBK8S_SYSINFO_NVML"
NVML_BINARY_NOT_SET = (
    "the nvml binary is not set in the environment variable " + NVML_BINARY_ENV_VAR
)

_MODEL_NAME = re.compile(r"^model name[ \t]+: (.+)$", re.MULTILINE)
_INTEGER = re.compile(r"[+-]?[0-9]+")
_INT32 = (-(2**31), 2**31 - 1)
_MEMINFO_UNITS = {"": 1, "kB": 1024, "mB": 1024**2, "gB": 1024**3}


class SysinfoError(RuntimeError):
    """Raised when information about the machine cannot be obtained."""


class UnsupportedPlatformError(SysinfoError):
    """Raised when the current operating system is not supported."""


class NvmlBinaryNotSetError(SysinfoError):
    """Raised when no NVML helper binary has been configured."""


@dataclass(frozen=True)
class CpuInfo:
    """Processor model name and number of logical cores."""

    model: str
    cores: int


@dataclass(frozen=True)
class GpuInfo:
    """Graphics processor model name and number of cores."""

    model: str
    cores: int


@dataclass(frozen=True)
class FsInfo:
    """Space on a file system that is available to unprivileged users."""

    bytes_available: int


def _require_linux(message: str) -> None:
    if not sys.platform.startswith("linux"):
        raise UnsupportedPlatformError(message)


def parse_cpuinfo(text: str) -> CpuInfo:
    """Read the model name and core count out of ``/proc/cpuinfo`` content."""
    models = _MODEL_NAME.findall(text)
    if not models:
        raise SysinfoError("cpu not found (/proc/cpuinfo)")
    return CpuInfo(model=models[0], cores=len(models))


def cpu(path: str | os.PathLike[str] | None = None) -> CpuInfo:
    """Describe the processor, from *path* or from ``/proc/cpuinfo`` by default."""
    if path is None:
        _require_linux(
            "Retrieving processor information is not supported in the current OS"
        )
        path = PROC_CPUINFO
    try:
        text = Path(path).read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        raise SysinfoError(f"could not read {path}") from exc
    return parse_cpuinfo(text)


def _meminfo(key: str) -> int:
    try:
        text = Path(PROC_MEMINFO).read_text(encoding="utf-8")
    except OSError as exc:
        raise SysinfoError(f"could not read {PROC_MEMINFO}") from exc
    for line in text.splitlines():
        name, sep, rest = line.partition(":")
        if not sep or name.strip() != key:
            continue
        value, _, unit = rest.strip().partition(" ")
        try:
            return int(value) * _MEMINFO_UNITS[unit.strip()]
        except (ValueError, KeyError) as exc:
            raise SysinfoError(f"malformed {key} entry: {line!r}") from exc
    raise SysinfoError(f"{key} not found ({PROC_MEMINFO})")


def free_memory() -> int:
    """Unused memory in bytes."""
    _require_linux("Getting free memory is not supported on the current OS")
    return _meminfo("MemFree")


def total_memory() -> int:
    """Total usable memory in bytes."""
    _require_linux("Getting memory is not supported on the current OS")
    return _meminfo("MemTotal")


def uptime() -> int:
    """Seconds since boot, rounded up to a whole second."""
    _require_linux("Getting uptime is not supported on the current OS")
    try:
        text = Path(PROC_UPTIME).read_text(encoding="utf-8")
    except OSError as exc:
        raise SysinfoError(f"could not read {PROC_UPTIME}") from exc
    fields = text.split()
    try:
        return math.ceil(float(fields[0]))
    except (IndexError, ValueError) as exc:
        raise SysinfoError(f"malformed {PROC_UPTIME}: {text!r}") from exc


def fs(path: str | os.PathLike[str]) -> FsInfo:
    """Available space of the file system holding *path*."""
    _require_linux(
        "Retrieving file system information on the current OS is not supported"
    )
    stats = os.statvfs(path)
    return FsInfo(bytes_available=stats.f_bavail * stats.f_bsize)


def parse_nvml_output(text: str) -> list[GpuInfo]:
    """Parse ``cores|model`` lines, one per GPU, as printed by the NVML helper."""
    result = []
    for line in text.splitlines():
        if not line.strip():
            continue
        fields = line.split("|")
        if len(fields) < 2:
            raise SysinfoError(f"malformed nvml line: {line!r}")
        cores_text, model = fields[0], fields[1]
        if not _INTEGER.fullmatch(cores_text):
            raise SysinfoError(f"invalid core count in nvml line: {line!r}")
        cores = int(cores_text)
        low, high = _INT32
        if not low <= cores <= high:
            raise SysinfoError(f"core count out of range in nvml line: {line!r}")
        result.append(GpuInfo(model=model, cores=cores))
    return result


def gpus(binary: str | None = None) -> list[GpuInfo]:
    """List Nvidia GPUs by running the NVML helper binary.

    The binary defaults to the one named by ``WEBK8S_SYSINFO_NVML``.
    """
    _require_linux(
        "Retrieving Nvidia GPU information on the current OS is not supported"
    )
    if binary is None:
        binary = os.environ.get(NVML_BINARY_ENV_VAR, "")
    if not binary:
        raise NvmlBinaryNotSetError(NVML_BINARY_NOT_SET)
    try:
        result = subprocess.run(
            [binary], capture_output=True, text=True, check=False
        )
    except OSError as exc:
        raise SysinfoError(f"could not run {binary}: {exc}") from exc
    if result.returncode != 0:
        raise SysinfoError(result.stderr or f"exit status {result.returncode}")
    return parse_nvml_output(result.stdout)