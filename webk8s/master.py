"""Master server: keeps the reported nodes and manages deployments over HTTP."""

from __future__ import annotations

import argparse
import logging
import threading
import time
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from flask import Flask, Response, abort, g, jsonify, request, send_from_directory

from webk8s.kube import KubeClient, KubeError, build_deployment
from webk8s.logs import LOGGER_NAME, create_logger, log_request_error
from webk8s.models import (
    BATCH_GET_METHOD,
    BATCH_PATH,
    DEPLOYMENT_CREATE_METHOD,
    DEPLOYMENT_DELETE_METHOD,
    DEPLOYMENT_PATH,
    NODE_PATH,
    NODE_UPDATE_METHOD,
    CreateDeploymentReply,
    CreateDeploymentRequest,
    DeleteDeploymentRequest,
    GetBatchReply,
    ModelError,
    Node,
    UpdateNodeRequest,
    error_reply,
    success_reply,
)
from webk8s.version import format_version

APP_NAME = "WebK8S {version} @ master"
DEFAULT_PORT = 8080
DEFAULT_STATIC_DIR = Path(__file__).with_name("dist")
INDEX_FILE = "index.html"
STATE_KEY = "webk8s"


class DeploymentBackend(Protocol):
    """What the master needs from a Kubernetes client."""

    def create_deployment(self, namespace: str, manifest: Any) -> dict[str, Any]: ...

    def delete_deployment(self, namespace: str, name: str) -> None: ...


@dataclass
class MasterState:
    """Shared state of the master: the cluster client, logger and known nodes."""

    kube: DeploymentBackend
    logger: logging.Logger
    nodes: dict[str, Node] = field(default_factory=dict)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


def _json_body() -> Any:
    body = request.get_json(silent=True)
    if body is None:
        raise ModelError("request body is not valid JSON")
    return body


def _bad_request(error: Exception) -> tuple[str, int]:
    return str(error), 400


def _register_api(app: Flask, state: MasterState) -> None:
    @app.route(NODE_PATH, methods=[NODE_UPDATE_METHOD])
    def update_node() -> Response:
        try:
            payload = UpdateNodeRequest.from_dict(_json_body())
        except ModelError as exc:
            log_request_error(
                state.logger, request.path, request.method, "Failed to parse body", exc
            )
            return jsonify(error_reply("invalid request").to_dict())
        with state.lock:
            state.nodes[payload.name] = payload.node
        return jsonify(success_reply().to_dict())

    @app.route(BATCH_PATH, methods=[BATCH_GET_METHOD])
    def get_batch() -> Response:
        base = success_reply()
        with state.lock:
            reply = GetBatchReply(
                success=base.success, error=base.error, nodes=dict(state.nodes)
            )
            body = reply.to_dict()
        return jsonify(body)

    @app.route(DEPLOYMENT_PATH, methods=[DEPLOYMENT_CREATE_METHOD])
    def create_deployment() -> Any:
        try:
            payload = CreateDeploymentRequest.from_dict(_json_body())
        except ModelError as exc:
            return _bad_request(exc)
        manifest = build_deployment(payload)
        try:
            created = state.kube.create_deployment(payload.namespace, manifest)
        except KubeError as exc:
            log_request_error(
                state.logger,
                request.path,
                request.method,
                "Failed to create new deployment",
                exc,
            )
            return jsonify(error_reply("failed to create").to_dict())
        metadata = created.get("metadata") or {}
        uid = uuid.UUID(str(metadata.get("uid", "")))
        base = success_reply()
        reply = CreateDeploymentReply(success=base.success, error=base.error, uuid=uid)
        return jsonify(reply.to_dict())

    @app.route(DEPLOYMENT_PATH, methods=[DEPLOYMENT_DELETE_METHOD])
    def delete_deployment() -> Any:
        try:
            payload = DeleteDeploymentRequest.from_dict(_json_body())
        except ModelError as exc:
            return _bad_request(exc)
        try:
            state.kube.delete_deployment(payload.namespace, payload.name)
        except KubeError as exc:
            log_request_error(
                state.logger,
                request.path,
                request.method,
                "Failed to delete deployment",
                exc,
            )
            return jsonify(error_reply("failed to delete").to_dict())
        return jsonify(success_reply().to_dict())


def _register_static(app: Flask, static_dir: str | Path | None) -> None:
    root = Path(static_dir).resolve() if static_dir is not None else None

    def serve(path: str = "") -> Response:
        if root is None:
            abort(404)
        candidate = (root / path).resolve()
        try:
            candidate.relative_to(root)
        except ValueError:
            abort(404)
        if candidate.is_dir():
            candidate = candidate / INDEX_FILE
        if not candidate.is_file():
            abort(404)
        return send_from_directory(root, candidate.relative_to(root).as_posix())

    app.add_url_rule("/", "static_index", serve, methods=["GET"])
    app.add_url_rule("/<path:path>", "static_files", serve, methods=["GET"])


def _register_middleware(app: Flask, state: MasterState) -> None:
    @app.before_request
    def start_timer() -> None:
        g.started = time.perf_counter()

    @app.after_request
    def add_etag(response: Response) -> Response:
        if (
            request.method in ("GET", "HEAD")
            and response.status_code == 200
            and not response.direct_passthrough
            and "ETag" not in response.headers
        ):
            response.add_etag(weak=True)
            response.make_conditional(request)
        return response

    @app.after_request
    def log_request(response: Response) -> Response:
        started = g.get("started")
        latency = time.perf_counter() - started if started is not None else 0.0
        status = response.status_code
        if status >= 500:
            level, message = logging.ERROR, "Server error"
        elif status >= 400:
            level, message = logging.WARNING, "Client error"
        elif status >= 300:
            level, message = logging.INFO, "Redirection"
        else:
            level, message = logging.INFO, "Success!"
        state.logger.log(
            level,
            message,
            extra={
                "fields": {
                    "status": status,
                    "method": request.method,
                    "url": request.path,
                    "latency": f"{latency:.6f}s",
                }
            },
        )
        return response


def create_app(
    kube: DeploymentBackend,
    logger: logging.Logger | None = None,
    static_dir: str | Path | None = None,
) -> Flask:
    """Build the master application around *kube*, serving *static_dir* at ``/``."""
    state = MasterState(
        kube=kube, logger=logger if logger is not None else logging.getLogger(LOGGER_NAME)
    )
    app = Flask(__name__, static_folder=None)
    app.config["APP_NAME"] = format_version(APP_NAME)
    app.extensions[STATE_KEY] = state
    _register_middleware(app, state)
    _register_api(app, state)
    _register_static(app, static_dir)
    return app


def main(argv: Sequence[str] | None = None) -> int:
    """Command-line entry point of the master server."""
    parser = argparse.ArgumentParser(
        prog="webk8s-master", description="Run the WebK8S master server."
    )
    parser.add_argument("--host", default="0.0.0.0", help="address to listen on")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="port to listen on")
    parser.add_argument(
        "--static-dir",
        default=str(DEFAULT_STATIC_DIR),
        help="directory of the front-end files served at /",
    )
    args = parser.parse_args(argv)

    logger = create_logger()
    kube = KubeClient.in_cluster()
    app = create_app(kube, logger, args.static_dir)

    logger.info("Starting the server...", extra={"fields": {"port": args.port}})
    try:
        app.run(host=args.host, port=args.port)
    except OSError as exc:
        logger.critical("Failed to start the server", extra={"fields": {"error": str(exc)}})
        return 1
    return 0