#!/usr/bin/env python3
"""Create locally-trusted development certificates and manage trust of the local CA."""

import argparse
import re
import sys
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

from local_ca.lib.ca_manager import CAManager
from local_ca.lib.cert_utils import PKCS12_PASSWORD
from local_ca.lib.config import CAConfig, Settings
from local_ca.lib.errors import (
    InstallVerificationWarning,
    LocalCAError,
    NoCertutilWarning,
    NoNSSDatabaseWarning,
    Op,
    StorageError,
    TrustStoreWarning,
)
from local_ca.lib.logging_config import LOGGER
from local_ca.lib.models import BackendResult, IssuedCertificate, LeafFiles, Status
from local_ca.lib.trust_manager import TrustManager
from local_ca.lib.truststore.base import TrustContext, TrustStore
from local_ca.lib.truststore.nss import NSSStore

SECOND_LEVEL_WILDCARD = re.compile(r"^\*\.[0-9a-z_-]+$", re.IGNORECASE)

USAGE_EXAMPLES = """\
examples:
  local-ca -install
      Install the local CA in the system trust store.

  local-ca example.org
      Generate "example.org.pem" and "example.org-key.pem".

  local-ca example.com myapp.dev localhost 127.0.0.1 ::1
      Generate "example.com+4.pem" and "example.com+4-key.pem".

  local-ca "*.example.it"
      Generate "_wildcard.example.it.pem" and "_wildcard.example.it-key.pem".

  local-ca -uninstall
      Uninstall the local CA (but do not delete it).

environment:
  CAROOT          CA certificate and key storage location
  TRUST_STORES    comma-separated trust stores to manage: "system", "nss", "java"
"""


def store_label(store: TrustStore) -> str:
    """Return the human-readable name of a trust store."""
    if isinstance(store, NSSStore):
        return f"the {store.browsers} trust store"
    if store.name == "java":
        return "Java's trust store"
    return "the system trust store"


def log_warning(warning: TrustStoreWarning) -> None:
    """Render a trust store warning with its remediation hint."""
    if isinstance(warning, NoNSSDatabaseWarning):
        LOGGER.error("ERROR: %s", warning.message)
        return

    if isinstance(warning, NoCertutilWarning):
        LOGGER.warning("Warning: %s", warning.message)
        if warning.hint and warning.op is not Op.CHECK:
            LOGGER.warning('Install "certutil" with "%s" and re-run "local-ca -%s"', warning.hint, warning.op)
        return

    if isinstance(warning, InstallVerificationWarning):
        LOGGER.error("ERROR: %s", warning.message)
    else:
        LOGGER.warning("Warning: %s", warning.message)
    if warning.hint:
        LOGGER.warning(warning.hint)


def report_install(stores: list[TrustStore], results: list[BackendResult]) -> None:
    for store, result in zip(stores, results, strict=True):
        for warning in result.warnings:
            log_warning(warning)
        label = store_label(store)
        if result.status is Status.ALREADY_INSTALLED:
            LOGGER.info("The local CA is already installed in %s!", label)
        elif result.status is Status.INSTALLED:
            if isinstance(store, NSSStore):
                LOGGER.info("The local CA is now installed in %s (requires browser restart)!", label)
            else:
                LOGGER.info("The local CA is now installed in %s!", label)


def report_uninstall(stores: list[TrustStore], results: list[BackendResult]) -> None:
    for store, result in zip(stores, results, strict=True):
        for warning in result.warnings:
            log_warning(warning)
        if result.status is Status.UNINSTALLED:
            LOGGER.info("The local CA is now uninstalled from %s.", store_label(store))
        elif result.status is Status.NOT_INSTALLED and not result.warnings:
            LOGGER.info("The local CA was not installed in %s.", store_label(store))


def report_check(stores: list[TrustStore], results: list[BackendResult]) -> None:
    """Note every store that does not trust the CA yet."""
    untrusted = False
    for store, result in zip(stores, results, strict=True):
        for warning in result.warnings:
            log_warning(warning)
        if result.status is Status.NOT_INSTALLED:
            untrusted = True
            LOGGER.info("Note: the local CA is not installed in %s.", store_label(store))
    if untrusted:
        LOGGER.warning('Run "local-ca -install" for certificates to be trusted automatically')


def report_certificate(issued: IssuedCertificate, files: LeafFiles) -> None:
    LOGGER.info("Created a new certificate valid for the following names:")
    for host in issued.hosts:
        LOGGER.info('  - "%s"', host)
        if SECOND_LEVEL_WILDCARD.match(host):
            LOGGER.warning("Note: many browsers don't support second-level wildcards like %r", host)

    for host in issued.hosts:
        if host.startswith("*."):
            LOGGER.info("Reminder: X.509 wildcards only go one level deep, so this won't match a.b.%s", host[2:])
            break

    if files.p12_path is not None:
        LOGGER.info("The PKCS#12 bundle is at %s", files.p12_path)
        LOGGER.info('The legacy PKCS#12 encryption password is the often hardcoded default "%s"', PKCS12_PASSWORD.decode())
    elif files.key_path is None:
        LOGGER.info("The certificate is at %s", files.cert_path)
    elif files.key_path == files.cert_path:
        LOGGER.info("The certificate and key are at %s", files.cert_path)
    else:
        LOGGER.info("The certificate is at %s and the key at %s", files.cert_path, files.key_path)

    LOGGER.info("It will expire on %s", issued.certificate.not_valid_after_utc.strftime("%d %B %Y"))


def package_version() -> str:
    """Return the installed distribution version, or "(devel)" for a source checkout."""
    try:
        return version("local-ca")
    except PackageNotFoundError:
        return "(devel)"


def read_csr(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as e:
        raise StorageError(f"failed to read the CSR {path}: {e}") from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="local-ca",
        description="Create locally-trusted development certificates",
        epilog=USAGE_EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        allow_abbrev=False,
    )
    parser.add_argument(
        "-install",
        "--install",
        action="store_true",
        help="Install the local CA in the system trust store(s)",
    )
    parser.add_argument(
        "-uninstall",
        "--uninstall",
        action="store_true",
        help="Uninstall the local CA from the trust store(s), keeping its files",
    )
    parser.add_argument(
        "-CAROOT",
        "--CAROOT",
        action="store_true",
        dest="print_caroot",
        help="Print the CA certificate and key storage location",
    )
    parser.add_argument(
        "-pkcs12",
        "--pkcs12",
        action="store_true",
        help='Generate a ".p12" PKCS #12 file containing certificate and key',
    )
    parser.add_argument(
        "-ecdsa",
        "--ecdsa",
        action="store_true",
        help="Generate a certificate with an ECDSA key",
    )
    parser.add_argument(
        "-client",
        "--client",
        action="store_true",
        help="Generate a certificate for client authentication",
    )
    parser.add_argument(
        "-csr",
        "--csr",
        type=Path,
        default=None,
        help="Generate a certificate based on the supplied CSR",
    )
    parser.add_argument("-cert-file", "--cert-file", type=Path, default=None, help="Certificate output path")
    parser.add_argument("-key-file", "--key-file", type=Path, default=None, help="Key output path")
    parser.add_argument("-p12-file", "--p12-file", type=Path, default=None, help="PKCS #12 output path")
    parser.add_argument("-version", "--version", action="store_true", help="Print the version and exit")
    parser.add_argument("names", nargs="*", help="Hostnames, wildcards, IPs, emails or URLs")
    return parser


def main() -> int:
    """Run the local-ca command line.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    parser = build_parser()
    if len(sys.argv) == 1:
        parser.print_help()
        return 0
    args = parser.parse_args()

    if args.version:
        print(package_version())
        return 0

    if args.print_caroot and (args.install or args.uninstall):
        parser.error("you can't set -[un]install and -CAROOT at the same time")
    if args.install and args.uninstall:
        parser.error("you can't set -install and -uninstall at the same time")
    if args.csr and (args.pkcs12 or args.ecdsa or args.client):
        parser.error("can only combine -csr with -install and -cert-file")
    if args.csr and args.names:
        parser.error("can't specify extra arguments when using -csr")

    try:
        settings = Settings.from_env()
        if args.print_caroot:
            # Plain stdout so scripts can capture the location
            print(settings.caroot)
            return 0

        context = TrustContext.from_settings(settings)
        manager = TrustManager(context, CAManager(CAConfig()))
        ca, created = manager.load()
        if created:
            LOGGER.info("Created a new local CA at %s", ca.cert_path)

        if args.install:
            report_install(manager.stores, manager.install())
            if not args.names and not args.csr:
                return 0
        elif args.uninstall:
            report_uninstall(manager.stores, manager.uninstall())
            return 0
        else:
            report_check(manager.stores, manager.check())

        output_dir = Path.cwd()
        if args.csr:
            issued = manager.ca_manager.sign_csr(ca, read_csr(args.csr))
            files = manager.ca_manager.write_leaf(issued, ca, output_dir, cert_file=args.cert_file)
            report_certificate(issued, files)
            return 0

        if not args.names:
            parser.print_usage()
            return 0

        issued = manager.ca_manager.issue_leaf(
            ca, args.names, ecdsa=args.ecdsa, client=args.client, pkcs12=args.pkcs12
        )
        files = manager.ca_manager.write_leaf(
            issued,
            ca,
            output_dir,
            cert_file=args.cert_file,
            key_file=args.key_file,
            p12_file=args.p12_file,
            pkcs12=args.pkcs12,
        )
        report_certificate(issued, files)
        return 0

    except LocalCAError as e:
        LOGGER.error("ERROR: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
