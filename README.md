# webk8s

A small web control plane for a Kubernetes cluster. It has two parts:

- **master** (`webk8s.master`) runs inside the cluster. It serves an HTTP API
  and, optionally, a directory of static front-end files. Workers report their
  nodes to it, and it creates and deletes deployments through the Kubernetes
  API.
- **worker** (`webk8s.worker`) runs on each node. Every few seconds it collects
  CPU, GPU, memory, uptime and free disk space and posts them to the master.

## Installation

```
pip install .
```

For development and tests:

```
pip install .[test]
pytest
```

## Running the master

```
webk8s-master
```

Options:

- `--host` – address to listen on (default `0.0.0.0`).
- `--port` – port to listen on (default `8080`).
- `--static-dir` – directory whose files are served at `/`; a request for a
  directory serves its `index.html`. The default is a `dist` directory next to
  `webk8s/master.py`. Missing files answer 404.

The master builds its Kubernetes client with `KubeClient.in_cluster()`: it
needs `KUBERNETES_SERVICE_HOST` and `KUBERNETES_SERVICE_PORT` in the
environment and reads the service account token (and `ca.crt`, if present)
from `/var/run/secrets/kubernetes.io/serviceaccount`. Outside a cluster it
stops with a `KubeError`.

### API

| Method | Path               | Purpose                                   |
|--------|--------------------|-------------------------------------------|
| POST   | `/v1/node`         | Update (or create) a node's report        |
| GET    | `/v1/node/batch`   | List every node reported so far           |
| POST   | `/v1/deployment`   | Create a deployment                       |
| DELETE | `/v1/deployment`   | Delete a deployment by namespace and name |

Every reply carries `"success"`, and an `"error"` message when it failed
(`"invalid request"`, `"failed to create"`, `"failed to delete"`). Creating a
deployment also returns the new deployment's `"uuid"`. A deployment request
whose body does not fit the model is answered with status 400 and the reason
as text. Successful `GET` replies carry a weak `ETag`, and each request is
logged with its status, method, path and latency.

The application can also be built in code, with any object that has
`create_deployment(namespace, manifest)` and `delete_deployment(namespace, name)`:

```python
from webk8s.master import create_app

app = create_app(kube_backend, static_dir="path/to/front-end")
```

## Running a worker

```
webk8s-worker
```

Options:

- `--url` – node update endpoint (default `http://webk8s-master/v1/node`).
- `--name` – name the node is reported under (default: `$WEBK8S_NODE_NAME`).
- `--interval` – seconds between reports (default `5`).
- `--iterations` – stop after this many reports (default: run forever).

After each report the worker prints the master's reply body. It reads:

- `WEBK8S_NODE_NAME`: the node name, when `--name` is not given.
- `WEBK8S_SYSINFO_NVML`: path of a helper program that prints one line per
  NVIDIA GPU in the form `cores|model`. Without it no GPUs are reported.

Free disk space is measured on the file system mounted at `/host`; if that
fails, `0` is reported. CPU, memory and uptime are read from `/proc` and are
only available on Linux; elsewhere `webk8s.sysinfo` raises
`UnsupportedPlatformError`.

## Logging

The master logs to standard output through `webk8s.logs.create_logger()`.
`WEBK8S_ENV` picks the format:

- `production` (the default): JSON lines at level INFO and above.
- `development`: tab-separated, coloured console lines at level DEBUG and above.

Any other value raises `UnknownEnvironmentError`.

## Using it as a library

```python
from webk8s import models, sysinfo

with open("/proc/cpuinfo", encoding="utf-8") as f:
    info = sysinfo.parse_cpuinfo(f.read())

node = models.Node(cpu=models.CPU(model=info.model, cores=info.cores))
print(node.to_dict())
```

`webk8s.kube` offers `build_deployment()` and `build_pod_template()` to turn a
`CreateDeploymentRequest` into a Kubernetes manifest, and `KubeClient` to
submit or delete deployments.

## What it does not do

- Node reports are kept in memory only; they are lost when the master stops.
- There is no endpoint for listing pods, and no API documentation page.
- No front-end files come with the package; supply them with `--static-dir`.