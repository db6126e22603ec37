"""
Proof backend registry.

Backends are imported lazily by name. Which name to use is decided by
settings.load_settings(); this module only maps names to classes.

WARNING: The mock backend accepts forged proofs and is for tests only.
"""

from __future__ import annotations

import importlib
from typing import Final

from .interfaces import ProofBackend

_PACKAGE: Final[str] = __package__ or "anon_social_poc.action_protocol"

DEFAULT_BACKEND: Final[str] = "ring"

BACKEND_REGISTRY: Final[dict[str, str]] = {
    "ring": f"{_PACKAGE}.backends.ring.LinkableRingBackend",
    "mock": f"{_PACKAGE}.backends.mock_adapter.MockProofBackend",
}


def check_backend_name(name: str) -> str:
    """
    Raises:
        ValueError: If name is not a registered backend
    """
    if not isinstance(name, str) or name not in BACKEND_REGISTRY:
        raise ValueError(
            f"Unknown proof backend {name!r}. "
            f"Valid options: {', '.join(sorted(BACKEND_REGISTRY))}"
        )
    return name


def load_backend_class(name: str) -> type[ProofBackend]:
    import_path = BACKEND_REGISTRY[check_backend_name(name)]
    module_path, _, class_name = import_path.rpartition(".")

    try:
        module = importlib.import_module(module_path)
    except ModuleNotFoundError as exc:
        raise ImportError(f"Unable to import backend module {module_path!r}") from exc

    backend_cls = getattr(module, class_name, None)
    if not isinstance(backend_cls, type) or not issubclass(backend_cls, ProofBackend):
        raise TypeError(f"{import_path!r} is not a ProofBackend")
    return backend_cls


def get_proof_backend(name: str = DEFAULT_BACKEND) -> ProofBackend:
    """
    Instantiate the backend registered under name.

    Raises:
        ValueError: If the name is unknown
        ImportError: If the backend module cannot be imported
        TypeError: If the registered class does not implement ProofBackend
    """
    return load_backend_class(name)()
