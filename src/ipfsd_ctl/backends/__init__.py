"""Backend adapters.

The set of backends is closed: BACKENDS maps each type tag to its adapter
class, and select_backend is the only way the factory picks one.
"""

from __future__ import annotations

__all__ = [
    "BACKENDS",
    "BackendAdapter",
    "EmbeddedLibraryBackend",
    "NativeProcessBackend",
    "PrecompiledHandleBackend",
    "select_backend",
]

from ipfsd_ctl.backends.base import BackendAdapter
from ipfsd_ctl.backends.handle import PrecompiledHandleBackend
from ipfsd_ctl.backends.library import EmbeddedLibraryBackend
from ipfsd_ctl.backends.native import NativeProcessBackend
from ipfsd_ctl.exceptions import UnsupportedBackend
from ipfsd_ctl.models import BackendType

BACKENDS: dict[BackendType, type[BackendAdapter]] = {
    BackendType.NATIVE: NativeProcessBackend,
    BackendType.LIBRARY: EmbeddedLibraryBackend,
    BackendType.HANDLE: PrecompiledHandleBackend,
}


def select_backend(backend_type: object) -> type[BackendAdapter]:
    """Adapter class for a type tag.

    Raises:
        UnsupportedBackend: If the tag is not one of native, library, handle.
    """
    try:
        key = BackendType(backend_type)
    except ValueError:
        raise UnsupportedBackend(backend_type) from None
    return BACKENDS[key]
