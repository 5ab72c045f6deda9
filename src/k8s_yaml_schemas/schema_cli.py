"""
CLI commands for Kubernetes schema resolution.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from .config import ConfigLoader
from .exceptions import CatalogListingError, ConfigurationError
from .models import DocumentStatus, ResourceIdentity
from .service import SchemaAttachmentService
from .sink import YamlLanguageServerSink


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def build_service(args) -> SchemaAttachmentService:
    """Service honoring the global ``--config`` option."""
    return SchemaAttachmentService(
        config_loader=ConfigLoader(config_file=args.config),
        sink=YamlLanguageServerSink(),
    )


def cmd_resolve(args):
    """Resolve schemas for an apiVersion/kind pair or a YAML file."""
    setup_logging(args.verbose)
    service = build_service(args)
    try:
        if args.file:
            return _resolve_file(service, args)
        if not args.api_version or not args.kind:
            print("✗ Provide apiVersion and kind, or --file")
            return 2
        identity = ResourceIdentity.from_api_version(args.api_version, args.kind)
        outcome = service.resolve(identity)
        if args.json:
            print(json.dumps(outcome.to_dict(), indent=2))
        elif outcome.result is not None:
            print(f"✓ {identity.kind} ({identity.api_version}) -> {outcome.result.url}")
            print(f"  source: {outcome.result.source_name}")
        else:
            print(f"✗ {identity.kind} ({identity.api_version}): {outcome.status.value}")
        return 0 if outcome.resolved else 1
    except ConfigurationError as e:
        print(f"✗ Invalid configuration: {e}")
        return 2
    finally:
        service.close()


def _resolve_file(service: SchemaAttachmentService, args) -> int:
    path = Path(args.file)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        print(f"✗ Cannot read {path}: {e}")
        return 2

    reports = service.attach_document(str(path), text)
    if args.json:
        print(json.dumps([report.to_dict() for report in reports], indent=2))
    else:
        for report in reports:
            marker = "✓" if report.status is DocumentStatus.ATTACHED else "✗"
            print(f"{marker} [{report.document.index}] {report.message}")
            if report.outcome is not None and report.outcome.result is not None:
                print(f"    {report.outcome.result.url}")
    attached = [r for r in reports if r.status is DocumentStatus.ATTACHED]
    return 0 if reports and len(attached) == len(reports) else 1


def cmd_sources(args):
    """List the effective source registry."""
    setup_logging(args.verbose)
    try:
        config = ConfigLoader(config_file=args.config).load()
    except ConfigurationError as e:
        print(f"✗ Invalid configuration: {e}")
        return 2

    if args.json:
        print(json.dumps([source.to_dict() for source in config.sources], indent=2))
        return 0

    print(f"Schema sources ({config.origin}):")
    for position, source in enumerate(config.sources, start=1):
        catalog = " [catalog]" if source.catalog else ""
        print(f"  {position}. {source.name}{catalog}")
        print(f"     {source.url_template}")
        if source.when is not None and source.when.group_regex:
            print(f"     group: /{source.when.group_regex}/")
    return 0


def cmd_catalog(args):
    """Print the catalog listing of a source."""
    setup_logging(args.verbose)
    service = build_service(args)
    try:
        entries = service.list_catalog(args.source)
    except KeyError:
        print(f"✗ Unknown source: {args.source}")
        return 1
    except ValueError as e:
        print(f"✗ {e}")
        return 1
    except (CatalogListingError, ConfigurationError) as e:
        print(f"✗ Failed to list catalog: {e}")
        return 1
    finally:
        service.close()

    for path in entries[: args.limit] if args.limit else entries:
        print(path)
    print(f"✓ {len(entries)} schema files in {args.source}", file=sys.stderr)
    return 0


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Kubernetes YAML schema resolution CLI",
        prog="k8s-yaml-schemas"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging"
    )
    parser.add_argument(
        "-c", "--config",
        default=None,
        help="Source registry file (JSON or YAML); overrides K8S_YAML_SCHEMAS_CONFIG"
    )

    subparsers = parser.add_subparsers(
        dest="command",
        help="Available commands"
    )

    # Resolve command
    resolve_parser = subparsers.add_parser(
        "resolve",
        help="Resolve a schema URL for apiVersion/kind or for every resource in a file"
    )
    resolve_parser.add_argument("api_version", nargs="?", help="e.g. apps/v1")
    resolve_parser.add_argument("kind", nargs="?", help="e.g. Deployment")
    resolve_parser.add_argument(
        "-f", "--file",
        help="YAML file to resolve (multi-document streams supported)"
    )
    resolve_parser.add_argument(
        "--json",
        action="store_true",
        help="Print machine-readable output"
    )
    resolve_parser.set_defaults(func=cmd_resolve)

    # Sources command
    sources_parser = subparsers.add_parser(
        "sources",
        help="List the effective schema sources in priority order"
    )
    sources_parser.add_argument(
        "--json",
        action="store_true",
        help="Print machine-readable output"
    )
    sources_parser.set_defaults(func=cmd_sources)

    # Catalog command
    catalog_parser = subparsers.add_parser(
        "catalog",
        help="List schema files in a source's remote catalog"
    )
    catalog_parser.add_argument("source", help="Source name, e.g. 'Datree CRDs'")
    catalog_parser.add_argument(
        "--limit",
        type=int,
        default=0,
        help="Print at most this many paths (default: all)"
    )
    catalog_parser.set_defaults(func=cmd_catalog)

    args = parser.parse_args(argv)

    if not hasattr(args, 'func'):
        parser.print_help()
        return 1

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
