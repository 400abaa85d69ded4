"""Shared fixtures for ipfsd-ctl tests.

Provides:
- fake_ipfs: a stand-in node executable (Python script) implementing
  `version`, `init --bits N` and `daemon`, the latter serving a minimal
  HTTP RPC API on the configured API address
- library_node_class: an in-process node class for the library backend
- fake_handle: a pre-constructed execution object for the handle backend
- settings: CtlSettings with short timeouts and tmp_path-rooted repositories
"""

import json
import stat
import sys
import textwrap
from pathlib import Path
from typing import Any

import pytest

from ipfsd_ctl.config import CtlSettings

# ============================================================================
# Fake native executable
# ============================================================================

FAKE_IPFS_SOURCE = textwrap.dedent(
    '''
    import json
    import os
    import signal
    import sys
    import time
    from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
    from urllib.parse import parse_qs, urlparse

    PEER_ID = "QmFakePeerId1111111111111111111111111111111111"


    def repo_path():
        return os.environ["IPFS_PATH"]


    def config_path():
        return os.path.join(repo_path(), "config")


    def load_config():
        with open(config_path(), encoding="utf-8") as f:
            return json.load(f)


    def save_config(doc):
        with open(config_path(), "w", encoding="utf-8") as f:
            json.dump(doc, f, indent=2)


    def cmd_version():
        print("ipfs version 0.4.13")


    def cmd_init(argv):
        bits = int(argv[argv.index("--bits") + 1]) if "--bits" in argv else 2048
        if os.path.exists(config_path()):
            sys.stderr.write("Error: ipfs configuration file already exists!\\n")
            sys.exit(1)
        os.makedirs(repo_path(), exist_ok=True)
        save_config({
            "Identity": {"PeerID": PEER_ID, "PrivKey": "CAASfake" + str(bits)},
            "Addresses": {
                "Swarm": ["/ip4/0.0.0.0/tcp/4001", "/ip6/::/tcp/4001"],
                "API": "/ip4/127.0.0.1/tcp/5001",
                "Gateway": "/ip4/127.0.0.1/tcp/8080",
                "Announce": [],
                "NoAnnounce": [],
            },
            "Bootstrap": ["/ip4/104.131.131.82/tcp/4001/ipfs/QmaCpDMGvV2BGHeYERUEnRQAwe3N8SzbUtfsmvsqQLuvuJ"],
            "Discovery": {"MDNS": {"Enabled": True, "Interval": 10}},
            "Datastore": {"StorageMax": "10GB"},
        })
        with open(os.path.join(repo_path(), "version"), "w") as f:
            f.write("6\\n")
        print("initializing ipfs node at " + repo_path())
        print("generating " + str(bits) + "-bit RSA keypair...done")


    def get_path(doc, key):
        node = doc
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                raise KeyError(key)
            node = node[part]
        return node


    def set_path(doc, key, value):
        parts = key.split(".")
        node = doc
        for part in parts[:-1]:
            if not isinstance(node.get(part), dict):
                node[part] = {}
            node = node[part]
        node[parts[-1]] = value


    class Handler(BaseHTTPRequestHandler):
        def log_message(self, *args):
            pass

        def reply(self, status, body):
            data = json.dumps(body).encode("utf-8")
            self.send_response(status)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(data)))
            self.end_headers()
            self.wfile.write(data)

        def error(self, message):
            self.reply(500, {"Message": message, "Code": 0, "Type": "error"})

        def do_POST(self):
            url = urlparse(self.path)
            query = parse_qs(url.query)
            length = int(self.headers.get("Content-Length") or 0)
            body = self.rfile.read(length) if length else b""
            command = url.path[len("/api/v0/"):]

            if command == "id":
                return self.reply(200, {"ID": PEER_ID, "Addresses": []})
            if command == "version":
                return self.reply(200, {"Version": "0.4.13"})
            if command == "config/show":
                return self.reply(200, load_config())
            if command == "config/replace":
                doc = json.loads(body[body.index(b"{"):body.rindex(b"}") + 1])
                save_config(doc)
                return self.reply(200, {})
            if command == "config":
                args = query.get("arg", [])
                doc = load_config()
                if len(args) == 1:
                    try:
                        value = get_path(doc, args[0])
                    except KeyError:
                        return self.error("failed to get config value: key has no attributes")
                    return self.reply(200, {"Key": args[0], "Value": value})
                key, raw = args[0], args[1]
                value = json.loads(raw) if query.get("json") == ["true"] else raw
                if key == "Bootstrap" and not (value is None or isinstance(value, list)):
                    return self.error(
                        "failed to set config value: json: cannot unmarshal "
                        + type(value).__name__
                        + " into Go struct field Config.Bootstrap of type []string"
                    )
                set_path(doc, key, value)
                save_config(doc)
                return self.reply(200, {"Key": key, "Value": value})
            self.reply(404, {"Message": "unknown command " + command})


    def cmd_daemon(argv):
        with open(os.path.join(repo_path(), "daemon_args.json"), "w") as f:
            json.dump(argv, f)
        if os.environ.get("FAKE_IPFS_FAIL"):
            sys.stderr.write("Error: serveHTTPApi: listen tcp: address already in use\\n")
            sys.exit(1)
        if os.environ.get("FAKE_IPFS_IGNORE_TERM"):
            signal.signal(signal.SIGTERM, signal.SIG_IGN)

        print("Initializing daemon...", flush=True)
        if os.environ.get("FAKE_IPFS_HANG"):
            while True:
                time.sleep(1)

        api = get_path(load_config(), "Addresses.API")
        port = int(api.split("/")[4])
        server = ThreadingHTTPServer(("127.0.0.1", port), Handler)
        bound = server.server_address[1]
        print("Swarm listening on /ip4/127.0.0.1/tcp/4001", flush=True)
        print("API server listening on /ip4/127.0.0.1/tcp/" + str(bound), flush=True)
        print("Gateway (readonly) server listening on /ip4/127.0.0.1/tcp/8080", flush=True)
        print("Daemon is ready", flush=True)
        server.serve_forever()


    def main():
        argv = sys.argv[1:]
        if not argv:
            sys.exit(2)
        if argv[0] == "version":
            cmd_version()
        elif argv[0] == "init":
            cmd_init(argv[1:])
        elif argv[0] == "daemon":
            cmd_daemon(argv[1:])
        else:
            sys.stderr.write("unknown command " + argv[0] + "\\n")
            sys.exit(1)


    main()
    '''
)


@pytest.fixture
def fake_ipfs(tmp_path: Path) -> Path:
    """Executable fake node binary."""
    path = tmp_path / "bin" / "ipfs"
    path.parent.mkdir()
    path.write_text(f"#!{sys.executable}\n{FAKE_IPFS_SOURCE}")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


# ============================================================================
# Fake in-process nodes
# ============================================================================


class FakeNodeConfig:
    """Config surface backed by <repo>/config, as an embedded node would keep it."""

    def __init__(self, repo_path: str) -> None:
        self._path = Path(repo_path) / "config"

    def get(self) -> dict[str, Any]:
        return json.loads(self._path.read_text())

    def set(self, path: str, value: Any) -> None:
        doc = self.get()
        node = doc
        parts = path.split(".")
        for part in parts[:-1]:
            node = node.setdefault(part, {})
        node[parts[-1]] = value
        self.replace(doc)

    def replace(self, document: dict[str, Any]) -> None:
        self._path.write_text(json.dumps(document))


class FakeLibraryNode:
    """In-process node class for the library backend."""

    node_name = "js-ipfs"
    __version__ = "0.27.0"
    instances: list["FakeLibraryNode"] = []

    def __init__(self, repo_path: str, args: tuple[str, ...] = ()) -> None:
        if "--fail" in args:
            raise RuntimeError("repo is locked by another process")
        self.repo_path = repo_path
        self.args = args
        self.config = FakeNodeConfig(repo_path)
        self.api_addr = "/ip4/127.0.0.1/tcp/5002"
        self.gateway_addr = "/ip4/127.0.0.1/tcp/9090"
        self.running = True
        type(self).instances.append(self)

    def id(self) -> dict[str, Any]:
        return {"id": self.config.get()["Identity"]["PeerID"]}

    def stop(self) -> None:
        self.running = False


class FakeHandle:
    """Pre-constructed execution object for the handle backend."""

    def __init__(self) -> None:
        self.started_with: tuple[str, tuple[str, ...]] | None = None
        self.stop_calls = 0
        self.config: FakeNodeConfig | None = None

    def start(self, repo_path: str, args: tuple[str, ...]) -> None:
        self.started_with = (repo_path, args)
        self.config = FakeNodeConfig(repo_path)

    def stop(self) -> None:
        self.stop_calls += 1

    def id(self) -> dict[str, Any]:
        return {"id": "QmHandle"}

    def version(self) -> dict[str, str]:
        return {"version": "0.27.0", "repo": "7"}


@pytest.fixture
def library_node_class() -> type[FakeLibraryNode]:
    """Fresh FakeLibraryNode subclass with its own instance registry."""
    return type("FakeLibraryNode", (FakeLibraryNode,), {"instances": []})


@pytest.fixture
def fake_handle() -> FakeHandle:
    return FakeHandle()


# ============================================================================
# Settings
# ============================================================================


@pytest.fixture
def settings(tmp_path: Path) -> CtlSettings:
    """Short timeouts, repositories under tmp_path."""
    return CtlSettings(
        readiness_timeout_seconds=15,
        stop_timeout_seconds=5,
        kill_timeout_seconds=5,
        version_timeout_seconds=15,
        api_timeout_seconds=5,
        tmp_root=str(tmp_path / "repos"),
    )
