"""ipfsd-ctl: spawn and control content-addressed network daemons.

Quick start:
    import ipfsd_ctl

    factory = ipfsd_ctl.create("native")
    with factory.spawn(init_options={"bits": 1024}) as node:
        print(node.api.id()["ID"])
"""

from __future__ import annotations

__all__ = [
    "BackendType",
    "CtlSettings",
    "Daemon",
    "DaemonSpec",
    "DaemonState",
    "Factory",
    "InitOptions",
    "__version__",
    "create",
    "version",
]

__version__ = "0.1.0"

from ipfsd_ctl.config import CtlSettings
from ipfsd_ctl.controller import Daemon
from ipfsd_ctl.factory import Factory, create, version
from ipfsd_ctl.models import BackendType, DaemonSpec, DaemonState, InitOptions
