"""
CLI entry point for build_native.

Usage:
    python -m build_native --source ./src --output ./out              # Build for the host architecture
    python -m build_native --source ./src --output ./out --arch arm64 # Specify architecture
    python -m build_native --help                                     # Show help
"""

import argparse
import sys

from native_pack.descriptor import (
    Architecture,
    ArchitectureDescriptor,
    Configuration,
    parse_architecture,
    parse_configuration,
)
from native_pack.config import get_settings
from native_pack.exceptions import NativePackError

from . import __version__
from .compiler import ArtifactBuilder, ScriptToolchain, get_platform_info, read_source_version


def main(argv=None) -> int:
    """Main entry point for the CLI."""
    settings = get_settings()

    parser = argparse.ArgumentParser(
        prog="python -m build_native",
        description="Compile one native artifact for a single architecture/configuration",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python -m build_native -s ./src -o ./out              # Build for current platform
    python -m build_native -s ./src -o ./out --arch arm64 # Build for ARM64
    python -m build_native -s ./src -o ./out -C debug     # Debug build
        """,
    )

    parser.add_argument(
        "--source", "-s",
        required=True,
        help="Native source directory (contains the build script and VERSION)",
    )

    parser.add_argument(
        "--output", "-o",
        required=True,
        help="Output root; the binary lands in <output>/<arch>/<configuration>/",
    )

    parser.add_argument(
        "--arch", "-a",
        help=f"Target architecture ({', '.join(a.value for a in Architecture)}); defaults to the host",
    )

    parser.add_argument(
        "--configuration", "-C",
        default=Configuration.RELEASE.value,
        choices=[c.value for c in Configuration],
        help="Build configuration (default: release)",
    )

    parser.add_argument(
        "--script",
        help="Build script inside the source directory (default: build.bat on Windows, build.sh elsewhere)",
    )

    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress build output",
    )

    parser.add_argument(
        "--version", "-V",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    args = parser.parse_args(argv)

    try:
        if args.arch:
            architecture = parse_architecture(args.arch)
        else:
            arch, platform_tag = get_platform_info()
            architecture = parse_architecture(arch)
            if not args.quiet:
                print(f"[build_native] Platform: {sys.platform}")
                print(f"[build_native] Architecture: {arch}")
                print(f"[build_native] Platform tag: {platform_tag}")
                print()
        descriptor = ArchitectureDescriptor(architecture, parse_configuration(args.configuration))
        source_version = read_source_version(args.source, settings.version_file)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    except NativePackError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    builder = ArtifactBuilder(
        args.source,
        args.output,
        ScriptToolchain(script=args.script),
        settings.binary_name,
        source_version,
    )

    if not args.quiet:
        print(f"[build_native] Building {descriptor} ({settings.library_name} {source_version})")

    result = builder.build(descriptor)
    if not result.succeeded:
        print(f"Build failed: {result.diagnostic}", file=sys.stderr)
        return 1

    if not args.quiet:
        print(f"[build_native] {result.artifact.binary_path}")
        print(f"[build_native] sha256 {result.artifact.content_hash} ({result.artifact.size_bytes} bytes)")

    return 0


if __name__ == "__main__":
    sys.exit(main())
