import sys

import pytest

from webk8s import sysinfo
from webk8s.sysinfo import (
    NVML_BINARY_ENV_VAR,
    CpuInfo,
    GpuInfo,
    NvmlBinaryNotSetError,
    SysinfoError,
    UnsupportedPlatformError,
)

MODEL = "Intel(R) Xeon(R) CPU @ 2.20GHz"
CPUINFO = (
    "processor\t: 0\n"
    f"model name\t: {MODEL}\n"
    "cpu MHz\t\t: 2200.000\n"
    "\n"
    "processor\t: 1\n"
    f"model name\t: {MODEL}\n"
    "cpu MHz\t\t: 2200.000\n"
)


@pytest.fixture
def linux(monkeypatch, tmp_path):
    monkeypatch.setattr(sys, "platform", "linux")
    meminfo = tmp_path / "meminfo"
    meminfo.write_text(
        "MemTotal:        2048 kB\nMemFree:          512 kB\nMemAvailable:    1024 kB\n"
    )
    uptime = tmp_path / "uptime"
    uptime.write_text("12345.00 54321.00\n")
    monkeypatch.setattr(sysinfo, "PROC_MEMINFO", str(meminfo))
    monkeypatch.setattr(sysinfo, "PROC_UPTIME", str(uptime))
    monkeypatch.delenv(NVML_BINARY_ENV_VAR, raising=False)
    return tmp_path


@pytest.fixture
def windows(monkeypatch):
    monkeypatch.setattr(sys, "platform", "win32")


def _script(tmp_path, body):
    path = tmp_path / "nvml"
    path.write_text("#!/bin/sh\n" + body + "\n")
    path.chmod(0o755)
    return str(path)


def test_parse_cpuinfo_reads_model_and_counts_cores():
    info = sysinfo.parse_cpuinfo(CPUINFO)
    assert info == CpuInfo(model=MODEL, cores=2)


def test_parse_cpuinfo_accepts_spaces_before_colon():
    assert sysinfo.parse_cpuinfo("model name   : Some CPU\n").model == "Some CPU"


def test_parse_cpuinfo_without_model_raises():
    with pytest.raises(SysinfoError, match="cpu not found"):
        sysinfo.parse_cpuinfo("processor\t: 0\n")


def test_parse_cpuinfo_requires_blank_before_colon():
    with pytest.raises(SysinfoError):
        sysinfo.parse_cpuinfo("model name: Some CPU\n")


def test_cpu_reads_given_file(tmp_path):
    path = tmp_path / "cpuinfo"
    path.write_text(CPUINFO)
    assert sysinfo.cpu(path) == sysinfo.parse_cpuinfo(CPUINFO)


def test_cpu_missing_file_raises(tmp_path):
    with pytest.raises(SysinfoError, match="could not read"):
        sysinfo.cpu(tmp_path / "missing")


def test_total_memory_in_bytes(linux):
    assert sysinfo.total_memory() == 2048 * 1024


def test_free_memory_below_total(linux):
    assert 0 < sysinfo.free_memory() < sysinfo.total_memory()


def test_memory_missing_entry_raises(linux):
    (linux / "meminfo").write_text("MemAvailable: 1 kB\n")
    with pytest.raises(SysinfoError, match="MemTotal"):
        sysinfo.total_memory()


def test_uptime_whole_seconds(linux):
    assert sysinfo.uptime() == 12345


def test_uptime_malformed_raises(linux):
    (linux / "uptime").write_text("")
    with pytest.raises(SysinfoError):
        sysinfo.uptime()


def test_fs_reports_nonnegative_space(linux):
    assert sysinfo.fs(linux).bytes_available >= 0


def test_fs_missing_path_raises(linux):
    with pytest.raises(FileNotFoundError):
        sysinfo.fs(linux / "missing")


@pytest.mark.parametrize(
    "call",
    [
        lambda: sysinfo.cpu(),
        sysinfo.free_memory,
        sysinfo.total_memory,
        sysinfo.uptime,
        lambda: sysinfo.fs("/"),
        lambda: sysinfo.gpus("nvml"),
    ],
)
def test_unsupported_platform(windows, call):
    with pytest.raises(UnsupportedPlatformError, match="not supported"):
        call()


def test_parse_nvml_output():
    result = sysinfo.parse_nvml_output("128|Tesla T4\n64|Other GPU\n")
    assert result == [GpuInfo("Tesla T4", 128), GpuInfo("Other GPU", 64)]


@pytest.mark.parametrize(
    "text", ["no separator", "abc|Model", "3000000000|Model", " 12|Model"]
)
def test_parse_nvml_output_rejects_malformed(text):
    with pytest.raises(SysinfoError):
        sysinfo.parse_nvml_output(text)


def test_gpus_without_binary_raises(linux):
    with pytest.raises(NvmlBinaryNotSetError, match=NVML_BINARY_ENV_VAR):
        sysinfo.gpus()


def test_gpus_runs_binary_from_environment(linux, monkeypatch):
    script = _script(linux, "printf '128|Test GPU\\n'")
    monkeypatch.setenv(NVML_BINARY_ENV_VAR, script)
    assert sysinfo.gpus() == [GpuInfo("Test GPU", 128)]


def test_gpus_failure_reports_stderr(linux):
    script = _script(linux, "echo boom >&2\nexit 3")
    with pytest.raises(SysinfoError, match="boom"):
        sysinfo.gpus(script)


def test_gpus_missing_binary_raises(linux):
    with pytest.raises(SysinfoError):
        sysinfo.gpus(str(linux / "missing"))