# Copyright (c) Istio Node Attestor Contributors. All rights reserved.
# Licensed under the MIT License.
"""
Identity Authority Client Manager

Holds the single shared handle to the token review backend. The handle
is built outside the lock and swapped in under it, so a failed
reconfiguration never clears a working handle and no reader sees a
partially built one.
"""

import logging
import threading
from typing import Callable, Optional

from istio_attestor.authority import IdentityAuthority, KubernetesIdentityAuthority
from istio_attestor.exceptions import ConfigurationError, NotConfiguredError
from istio_attestor.metrics import get_metrics

logger = logging.getLogger(__name__)

AuthorityFactory = Callable[[str], IdentityAuthority]


class ClientManager:
    """
    Owner of the current identity authority handle.

    ``configure`` and ``get_handle`` are linearized by one lock; the
    last successful ``configure`` wins.
    """

    def __init__(self, factory: Optional[AuthorityFactory] = None):
        """Initialize the manager with no handle.

        Args:
            factory: Builds a handle from a kubeconfig path ("" for
                in-cluster). Defaults to the Kubernetes backend.
        """
        self._factory = factory or KubernetesIdentityAuthority.from_config_path
        self._lock = threading.Lock()
        self._handle: Optional[IdentityAuthority] = None

    @property
    def is_configured(self) -> bool:
        with self._lock:
            return self._handle is not None

    def configure(self, config_path: str = "") -> IdentityAuthority:
        """Build a new handle and install it, replacing any previous one.

        Args:
            config_path: Kubeconfig path; empty selects in-cluster
                credentials.

        Returns:
            The newly installed handle.

        Raises:
            ConfigurationError: If the handle cannot be built. The
                previous handle, if any, stays installed.
        """
        try:
            handle = self._factory(config_path)
        except ConfigurationError:
            get_metrics().record_configure("error")
            raise
        except Exception as exc:
            get_metrics().record_configure("error")
            raise ConfigurationError(f"error creating kubeClient: {exc}") from exc

        with self._lock:
            self._handle = handle

        get_metrics().record_configure("success")
        logger.info("Identity authority configured: %r", handle)
        return handle

    def get_handle(self) -> IdentityAuthority:
        """Return the current handle.

        Raises:
            NotConfiguredError: If ``configure`` never succeeded.
        """
        with self._lock:
            handle = self._handle
        if handle is None:
            raise NotConfiguredError("no Kubernetes client is configured")
        return handle


__all__ = [
    "AuthorityFactory",
    "ClientManager",
]
