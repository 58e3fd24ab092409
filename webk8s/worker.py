"""Worker agent: reports the node's resources to the master periodically."""

from __future__ import annotations

import argparse
import os
import time
from collections.abc import Sequence

import requests

from webk8s import sysinfo
from webk8s.models import CPU, GPU, NODE_PATH, Node, UpdateNodeRequest

DEFAULT_URL = "http://webk8s-master" + NODE_PATH
HOST_PATH = "/host"
NODE_NAME_ENV_VAR = "WEBK8S_NODE_NAME"
DEFAULT_INTERVAL = 5.0
REQUEST_TIMEOUT = 30.0


def collect_node(host_path: str = HOST_PATH) -> Node:
    """Gather this machine's resources; GPUs and disk space default to none."""
    try:
        gpu_list = [GPU(model=gpu.model, cores=gpu.cores) for gpu in sysinfo.gpus()]
    except sysinfo.SysinfoError:
        gpu_list = []

    try:
        disk_free = sysinfo.fs(host_path).bytes_available
    except (sysinfo.SysinfoError, OSError):
        disk_free = 0

    info = sysinfo.cpu()
    return Node(
        cpu=CPU(model=info.model, cores=info.cores),
        gpus=gpu_list,
        memory=sysinfo.total_memory(),
        uptime=sysinfo.uptime(),
        disk_free=disk_free,
    )


def build_request(name: str, node: Node) -> UpdateNodeRequest:
    """The update request announcing *node* under *name*."""
    return UpdateNodeRequest(name=name, node=node)


def report(
    url: str,
    request: UpdateNodeRequest,
    session: requests.Session | None = None,
) -> str:
    """POST *request* as JSON to *url* and return the reply body."""
    client = session if session is not None else requests
    response = client.post(url, json=request.to_dict(), timeout=REQUEST_TIMEOUT)
    return response.text


def run(
    url: str = DEFAULT_URL,
    name: str | None = None,
    interval: float = DEFAULT_INTERVAL,
    iterations: int | None = None,
) -> None:
    """Report the node every *interval* seconds, forever or *iterations* times."""
    if name is None:
        name = os.environ.get(NODE_NAME_ENV_VAR, "")
    with requests.Session() as session:
        done = 0
        while iterations is None or done < iterations:
            if done:
                time.sleep(interval)
            body = report(url, build_request(name, collect_node()), session)
            print(body, flush=True)
            done += 1


def main(argv: Sequence[str] | None = None) -> int:
    """Command-line entry point of the worker."""
    parser = argparse.ArgumentParser(
        prog="webk8s-worker", description="Report this node's resources to the master."
    )
    parser.add_argument("--url", default=DEFAULT_URL, help="node update endpoint")
    parser.add_argument(
        "--name", default=None, help=f"node name (default: ${NODE_NAME_ENV_VAR})"
    )
    parser.add_argument(
        "--interval", type=float, default=DEFAULT_INTERVAL, help="seconds between reports"
    )
    parser.add_argument(
        "--iterations", type=int, default=None, help="stop after this many reports"
    )
    args = parser.parse_args(argv)
    run(url=args.url, name=args.name, interval=args.interval, iterations=args.iterations)
    return 0