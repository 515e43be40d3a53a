"""CLI tool for managing stage libraries

Usage:
    python -m stagehub.cli.stagelibs definitions [--hide-stage TYPE] [--schema-version 2]
    python -m stagehub.cli.stagelibs connections
    python -m stagehub.cli.stagelibs libraries
    python -m stagehub.cli.stagelibs loaded
    python -m stagehub.cli.stagelibs install <library_id>... [--with-version]
    python -m stagehub.cli.stagelibs uninstall <library_id>...
    python -m stagehub.cli.stagelibs extras-list [--library <library_id>]
    python -m stagehub.cli.stagelibs extras-upload <library_id> <file>
    python -m stagehub.cli.stagelibs extras-delete <library_id> <file_name>...
    python -m stagehub.cli.stagelibs resources-list
    python -m stagehub.cli.stagelibs resources-upload <file> [--name <file_name>]
    python -m stagehub.cli.stagelibs resources-delete <file_name>...
    python -m stagehub.cli.stagelibs user-libs
    python -m stagehub.cli.stagelibs export-resources <output_file>
    python -m stagehub.cli.stagelibs classpath-health

The registry snapshot comes from --registry-file or STAGEHUB_REGISTRY_FILE.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from stagehub.core.config import get_config
from stagehub.core.stagelibrary.exceptions import StageLibraryError
from stagehub.core.stagelibrary.models import ExtrasDescriptor
from stagehub.core.stagelibrary.registry import StaticStageLibraryRegistry
from stagehub.core.stagelibrary.service import StageLibraryService

logger = logging.getLogger(__name__)


def _print_json(payload):
    print(json.dumps(payload, indent=2, sort_keys=False, default=str))


def _print_extras(extras):
    if not extras:
        print("No files found.")
        return

    print(f"{'Library':<30} {'File':<50}")
    print("-" * 80)
    for extra in extras:
        print(f"{extra.library_id or '-':<30} {extra.file_name:<50}")


def cmd_definitions(service, args):
    """Print the definitions catalog"""
    catalog = service.get_definitions(args.hide_stage, args.schema_version)
    _print_json(catalog.to_payload())


def cmd_connections(service, args):
    """Print connection definitions"""
    _print_json(service.get_connections().to_payload())


def cmd_libraries(service, args):
    """Print repository manifests"""
    _print_json([manifest.to_payload() for manifest in service.get_libraries()])


def cmd_loaded(service, args):
    """List loaded stage libraries"""
    libraries = service.get_loaded_libraries()
    if not libraries:
        print("No stage libraries loaded.")
        return

    print(f"\nLoaded Stage Libraries ({len(libraries)}):\n")
    print(f"{'ID':<40} {'Label'}")
    print("-" * 80)
    for lib in libraries:
        print(f"{lib.name:<40} {lib.label or ''}")


def cmd_install(service, args):
    """Install stage libraries"""
    print(f"Installing: {', '.join(args.library_ids)}")
    results = service.install_libraries(args.library_ids, args.with_version)
    for result in results:
        print(f"  {result.library_id} {result.version or ''} -> {result.install_dir}")
    print("\nSuccess! Restart the engine to load the new libraries.")


def cmd_uninstall(service, args):
    """Uninstall stage libraries"""
    removed = service.uninstall_libraries(args.library_ids)
    for library_id in args.library_ids:
        status = "removed" if library_id in removed else "not installed"
        print(f"  {library_id}: {status}")


def cmd_extras_list(service, args):
    """List extras of loaded libraries"""
    _print_extras(service.get_extras(args.library))


def cmd_extras_upload(service, args):
    """Upload an extras file for a library"""
    source = Path(args.file).expanduser()
    with open(source, "rb") as stream:
        descriptor = service.install_extras(args.library_id, args.name or source.name, stream)
    print(f"Uploaded: {descriptor.id}")


def cmd_extras_delete(service, args):
    """Delete extras files of a library"""
    descriptors = [ExtrasDescriptor(library_id=args.library_id, file_name=name) for name in args.file_names]
    removed = service.delete_extras(descriptors)
    print(f"Deleted {len(removed)} file(s).")


def cmd_resources_list(service, args):
    """List engine resource files"""
    _print_extras(service.get_resources())


def cmd_resources_upload(service, args):
    """Upload an engine resource file"""
    source = Path(args.file).expanduser()
    with open(source, "rb") as stream:
        descriptor = service.upload_resource(args.name or source.name, stream)
    print(f"Uploaded: {descriptor.id}")


def cmd_resources_delete(service, args):
    """Delete engine resource files"""
    descriptors = [ExtrasDescriptor(file_name=name) for name in args.file_names]
    removed = service.delete_resources(descriptors)
    print(f"Deleted {len(removed)} file(s).")


def cmd_user_libs(service, args):
    """List user stage libraries"""
    _print_extras(service.get_user_libraries())


def cmd_export_resources(service, args):
    """Export the external resources directory as .tar.gz"""
    archive_path = service.download_external_resources()
    output = Path(args.output).expanduser()
    try:
        with open(output, "wb") as out:
            for chunk in service.exporter.iter_archive(archive_path):
                out.write(chunk)
    finally:
        service.exporter.cleanup(archive_path)
    print(f"Exported external resources to: {output}")


def cmd_classpath_health(service, args):
    """Print classpath health of loaded libraries"""
    _print_json([result.to_payload() for result in service.classpath_health()])


COMMANDS = {
    "definitions": cmd_definitions,
    "connections": cmd_connections,
    "libraries": cmd_libraries,
    "loaded": cmd_loaded,
    "install": cmd_install,
    "uninstall": cmd_uninstall,
    "extras-list": cmd_extras_list,
    "extras-upload": cmd_extras_upload,
    "extras-delete": cmd_extras_delete,
    "resources-list": cmd_resources_list,
    "resources-upload": cmd_resources_upload,
    "resources-delete": cmd_resources_delete,
    "user-libs": cmd_user_libs,
    "export-resources": cmd_export_resources,
    "classpath-health": cmd_classpath_health,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Manage stage libraries",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument("--registry-file", help="Registry snapshot (YAML or JSON)")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    definitions_parser = subparsers.add_parser("definitions", help="Print the definitions catalog")
    definitions_parser.add_argument("--hide-stage", help="Only stages tagged with this hide type")
    definitions_parser.add_argument("--schema-version", help="'2' for the compact schema")

    subparsers.add_parser("connections", help="Print connection definitions")
    subparsers.add_parser("libraries", help="Print repository manifests")
    subparsers.add_parser("loaded", help="List loaded stage libraries")

    install_parser = subparsers.add_parser("install", help="Install stage libraries")
    install_parser.add_argument("library_ids", nargs="+", help="Library ids to install")
    install_parser.add_argument(
        "--with-version", action="store_true",
        help="Ids are given as <libId>:<version>"
    )

    uninstall_parser = subparsers.add_parser("uninstall", help="Uninstall stage libraries")
    uninstall_parser.add_argument("library_ids", nargs="+", help="Library ids to uninstall")

    extras_list_parser = subparsers.add_parser("extras-list", help="List library extras")
    extras_list_parser.add_argument("--library", help="Only this library")

    extras_upload_parser = subparsers.add_parser("extras-upload", help="Upload a library extras file")
    extras_upload_parser.add_argument("library_id", help="Owning library id")
    extras_upload_parser.add_argument("file", help="Local file to upload")
    extras_upload_parser.add_argument("--name", help="Target file name (default: local name)")

    extras_delete_parser = subparsers.add_parser("extras-delete", help="Delete library extras files")
    extras_delete_parser.add_argument("library_id", help="Owning library id")
    extras_delete_parser.add_argument("file_names", nargs="+", help="File names to delete")

    subparsers.add_parser("resources-list", help="List engine resource files")

    resources_upload_parser = subparsers.add_parser("resources-upload", help="Upload a resource file")
    resources_upload_parser.add_argument("file", help="Local file to upload")
    resources_upload_parser.add_argument("--name", help="Target file name (default: local name)")

    resources_delete_parser = subparsers.add_parser("resources-delete", help="Delete resource files")
    resources_delete_parser.add_argument("file_names", nargs="+", help="File names to delete")

    subparsers.add_parser("user-libs", help="List user stage libraries")

    export_parser = subparsers.add_parser("export-resources", help="Export external resources")
    export_parser.add_argument("output", help="Output .tar.gz path")

    subparsers.add_parser("classpath-health", help="Validate classpath of loaded libraries")

    return parser


def main(argv=None):
    """Main CLI entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    config = get_config()
    logging.basicConfig(level=config.log_level, format="%(levelname)s: %(message)s")

    registry_file = args.registry_file or config.registry_file
    if registry_file:
        registry = StaticStageLibraryRegistry.from_file(Path(registry_file))
    else:
        logger.warning("No registry snapshot given, using an empty registry")
        registry = StaticStageLibraryRegistry()

    service = StageLibraryService(registry, config)
    handler = COMMANDS[args.command]

    try:
        handler(service, args)
    except KeyboardInterrupt:
        print("\nAborted.")
        sys.exit(1)
    except StageLibraryError as e:
        print(f"Error [{e.error_code.value}]: {e}")
        if e.hint:
            print(f"Hint: {e.hint}")
        sys.exit(1)
    except (ValueError, OSError) as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
