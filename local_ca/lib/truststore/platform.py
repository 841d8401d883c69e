"""Selection of the system trust store implementation for the running OS."""

from ..errors import Op, UnsupportedPlatformWarning
from ..models import BackendResult, RootCA, Status
from .base import TrustContext, TrustStore
from .nss import nss_browsers
from .platform_darwin import DarwinKeychainStore
from .platform_linux import LinuxSystemStore


class UnsupportedSystemStore(TrustStore):
    """System store placeholder for platforms without an integration."""

    name = "system"

    def _discover(self) -> str:
        return self.settings.platform

    def _warning(self, op: Op, ca: RootCA) -> UnsupportedPlatformWarning:
        browsers = nss_browsers(self.settings.platform)
        return UnsupportedPlatformWarning(
            backend=self.name,
            op=op,
            message=f"Installing to the system store is not supported on {self.state()}.",
            hint=f"You can manually install the root certificate at {str(ca.cert_path)!r}.",
            root_ca_path=str(ca.cert_path),
            browsers=browsers,
        )

    def check(self, ca: RootCA) -> BackendResult:
        return self.result(Op.CHECK, Status.NOT_INSTALLED, [self._warning(Op.CHECK, ca)])

    def install(self, ca: RootCA) -> BackendResult:
        return self.result(Op.INSTALL, Status.NOT_INSTALLED, [self._warning(Op.INSTALL, ca)])

    def uninstall(self, ca: RootCA) -> BackendResult:
        return self.result(Op.UNINSTALL, Status.NOT_INSTALLED, [self._warning(Op.UNINSTALL, ca)])


def build_system_store(context: TrustContext) -> TrustStore:
    """Return the system trust store implementation for context's platform."""
    platform = context.settings.platform
    if platform.startswith("linux"):
        return LinuxSystemStore(context)
    if platform == "darwin":
        return DarwinKeychainStore(context)
    return UnsupportedSystemStore(context)
