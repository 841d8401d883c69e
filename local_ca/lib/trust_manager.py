"""Trust manager: one CA session across the system, NSS and Java trust stores."""

from .ca_manager import CAManager
from .errors import Op, UsageError
from .models import BackendResult, RootCA, Status, TrustState
from .truststore.base import TrustContext, TrustStore
from .truststore.java import JavaStore
from .truststore.nss import NSSStore
from .truststore.platform import build_system_store


def build_trust_stores(context: TrustContext) -> list[TrustStore]:
    """Return the trust stores enabled for this run, system store first.

    The Java store only exists when JAVA_HOME is set.
    """
    stores: list[TrustStore] = [build_system_store(context), NSSStore(context)]
    if context.settings.java_home is not None:
        stores.append(JavaStore(context))
    return [store for store in stores if context.settings.store_enabled(store.name)]


class TrustManager:
    """Loads the root CA of one CAROOT and manages its trust.

    Fatal errors raised by a store propagate immediately. Warnings are
    collected per store and never stop the remaining stores.
    """

    def __init__(
        self,
        context: TrustContext,
        ca_manager: CAManager,
        stores: list[TrustStore] | None = None,
    ) -> None:
        """Initialize trust manager.

        Args:
            context: Per-run settings, executor and filesystem probe
            ca_manager: Engine used to load or create the root CA
            stores: Trust stores to manage (defaults to the enabled stores)
        """
        self.context = context
        self.ca_manager = ca_manager
        self.stores = stores if stores is not None else build_trust_stores(context)
        self.ca: RootCA | None = None
        self.state = TrustState.UNINITIALIZED

    def load(self) -> tuple[RootCA, bool]:
        """Load the root CA from CAROOT, creating it if missing.

        Returns:
            Tuple of (root CA, created)
        """
        ca, created = self.ca_manager.load_or_create(self.context.settings.caroot)
        self.ca = ca
        self.state = TrustState.LOADED
        return ca, created

    def _require_ca(self) -> RootCA:
        if self.ca is None:
            raise UsageError("the root CA has not been loaded")
        return self.ca

    def check(self) -> list[BackendResult]:
        """Report per store whether the CA is trusted. Never mutates a store."""
        ca = self._require_ca()
        results = []
        for store in self.stores:
            if not store.applicable():
                results.append(BackendResult(backend=store.name, op=Op.CHECK, status=Status.SKIPPED))
                continue
            results.append(store.check(ca))
        self.state = self.summarize(results)
        return results

    def install(self) -> list[BackendResult]:
        """Install the CA in every enabled store that does not trust it yet."""
        ca = self._require_ca()
        results = []
        for store in self.stores:
            if not store.applicable():
                results.append(BackendResult(backend=store.name, op=Op.INSTALL, status=Status.SKIPPED))
                continue
            checked = store.check_before_install(ca)
            if checked.trusted:
                results.append(
                    BackendResult(
                        backend=store.name,
                        op=Op.INSTALL,
                        status=Status.ALREADY_INSTALLED,
                        warnings=checked.warnings,
                    )
                )
                continue
            results.append(store.install(ca))
        self.state = self.summarize(results)
        return results

    def uninstall(self) -> list[BackendResult]:
        """Remove the CA from every enabled store.

        The root certificate and key stay in CAROOT.
        """
        ca = self._require_ca()
        results = []
        for store in self.stores:
            if not store.applicable():
                results.append(BackendResult(backend=store.name, op=Op.UNINSTALL, status=Status.SKIPPED))
                continue
            results.append(store.uninstall(ca))
        self.state = self.summarize(results)
        return results

    @staticmethod
    def summarize(results: list[BackendResult]) -> TrustState:
        """Derive the aggregate trust state from per-store results."""
        considered = [r for r in results if r.status is not Status.SKIPPED]
        if not considered:
            return TrustState.LOADED
        trusted = sum(1 for r in considered if r.trusted)
        if trusted == len(considered):
            return TrustState.INSTALLED
        if trusted:
            return TrustState.PARTIALLY_INSTALLED
        return TrustState.UNINSTALLED
