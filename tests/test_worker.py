import json
import sys
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer

import pytest

from webk8s import sysinfo, worker
from webk8s.models import GPU, NODE_PATH, Node, UpdateNodeRequest, success_reply
from webk8s.sysinfo import NVML_BINARY_ENV_VAR

MODEL = "Test CPU @ 3.00GHz"


@pytest.fixture
def machine(monkeypatch, tmp_path):
    monkeypatch.setattr(sys, "platform", "linux")
    cpuinfo = tmp_path / "cpuinfo"
    cpuinfo.write_text(f"model name\t: {MODEL}\nmodel name\t: {MODEL}\n")
    meminfo = tmp_path / "meminfo"
    meminfo.write_text("MemTotal: 4096 kB\nMemFree: 1024 kB\n")
    uptime = tmp_path / "uptime"
    uptime.write_text("600.00 1200.00\n")
    monkeypatch.setattr(sysinfo, "PROC_CPUINFO", str(cpuinfo))
    monkeypatch.setattr(sysinfo, "PROC_MEMINFO", str(meminfo))
    monkeypatch.setattr(sysinfo, "PROC_UPTIME", str(uptime))
    monkeypatch.delenv(NVML_BINARY_ENV_VAR, raising=False)
    monkeypatch.delenv(worker.NODE_NAME_ENV_VAR, raising=False)
    return tmp_path


@pytest.fixture
def server():
    received = []

    class Handler(BaseHTTPRequestHandler):
        def do_POST(self):
            length = int(self.headers["Content-Length"])
            payload = json.loads(self.rfile.read(length))
            received.append((self.path, self.headers["Content-Type"], payload))
            body = json.dumps(success_reply().to_dict()).encode()
            self.send_response(200)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, *args):
            pass

    httpd = HTTPServer(("127.0.0.1", 0), Handler)
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{httpd.server_address[1]}{NODE_PATH}", received
    httpd.shutdown()
    httpd.server_close()
    thread.join()


def test_collect_node_reads_machine(machine):
    node = worker.collect_node(str(machine / "missing"))
    assert node.cpu.model == MODEL
    assert node.cpu.cores == 2
    assert node.memory == sysinfo.total_memory()
    assert node.uptime == sysinfo.uptime()
    assert node.gpus == []
    assert node.disk_free == 0


def test_collect_node_reports_disk_space(machine):
    node = worker.collect_node(str(machine))
    assert node.disk_free == sysinfo.fs(machine).bytes_available


def test_collect_node_includes_gpus(machine, monkeypatch):
    script = machine / "nvml"
    script.write_text("#!/bin/sh\nprintf '256|Test GPU\\n'\n")
    script.chmod(0o755)
    monkeypatch.setenv(NVML_BINARY_ENV_VAR, str(script))
    assert worker.collect_node(str(machine)).gpus == [GPU(model="Test GPU", cores=256)]


def test_build_request_round_trips():
    node = Node(memory=10, uptime=20, disk_free=30)
    request = worker.build_request("sakura", node)
    assert request.name == "sakura"
    assert UpdateNodeRequest.from_dict(request.to_dict()) == request


def test_report_posts_json(server):
    url, received = server
    request = worker.build_request("sakura", Node(memory=1, uptime=2))
    body = worker.report(url, request)
    assert json.loads(body) == success_reply().to_dict()
    path, content_type, payload = received[0]
    assert path == NODE_PATH
    assert content_type == "application/json"
    assert payload == request.to_dict()


def test_run_reports_given_number_of_times(machine, server, capsys):
    url, received = server
    worker.run(url=url, name="sakura", interval=0, iterations=2)
    assert len(received) == 2
    assert all(payload["name"] == "sakura" for _, _, payload in received)
    lines = capsys.readouterr().out.splitlines()
    assert [json.loads(line) for line in lines] == [success_reply().to_dict()] * 2


def test_run_takes_name_from_environment(machine, server, monkeypatch, capsys):
    url, received = server
    monkeypatch.setenv(worker.NODE_NAME_ENV_VAR, "from-env")
    worker.run(url=url, interval=0, iterations=1)
    lines = capsys.readouterr().out.splitlines()
    assert [json.loads(line) for line in lines] == [success_reply().to_dict()]
    assert len(received) == 1
    assert received[0][2]["name"] == "from-env"


def test_main_runs_worker(machine, server):
    url, received = server
    code = worker.main(
        ["--url", url, "--name", "sakura", "--interval", "0", "--iterations", "1"]
    )
    assert code == 0
    assert len(received) == 1
    assert received[0][2]["node"]["cpu"]["name"] == MODEL