# ruff: noqa: T201

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from debianize import __version__
from debianize.app import debianize
from debianize.common import configure_logging
from debianize.config import ConfigurationError, get_settings, load_policy_tables
from debianize.domain import goodies
from debianize.domain.model.atoms import SourceField
from debianize.domain.policy import parse_maintainer, parse_standards_version
from debianize.domain.relations import parse_relations

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from debianize.app import DebianizeResult
    from debianize.domain.goodies import Customization

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="debianize",
        description="Generate or check the debian/ directory of a Haskell package",
    )
    parser.add_argument(
        "--manifest",
        type=Path,
        required=True,
        help="Upstream package manifest (JSON or TOML)",
    )
    parser.add_argument(
        "--debian-dir",
        type=Path,
        default=Path("debian"),
        help="Debian directory to read and write (default: %(default)s)",
    )
    parser.add_argument(
        "-n",
        "--dry-run",
        action="store_true",
        help="Show what would be generated without writing anything",
    )
    parser.add_argument(
        "--validate",
        action="store_true",
        help="Fail if the existing debian directory differs from the computed one",
    )
    parser.add_argument(
        "--merge-existing",
        action="store_true",
        help="Keep values from the existing debian directory",
    )
    parser.add_argument("--maintainer", type=str, help="Maintainer as 'Name <email>'")
    parser.add_argument("--revision", type=str, help="Debian revision, e.g. -1 (empty for none)")
    parser.add_argument(
        "--epoch",
        action="append",
        default=[],
        metavar="NAME=N",
        help="Epoch for an upstream package (repeatable)",
    )
    parser.add_argument(
        "--map-name",
        action="append",
        default=[],
        metavar="NAME=BASE",
        help="Debian base name for an upstream package (repeatable)",
    )
    parser.add_argument(
        "--split",
        action="append",
        default=[],
        metavar="NAME=BASE<VERSION",
        help="Versions of NAME below VERSION map to BASE (repeatable)",
    )
    parser.add_argument(
        "--missing-dependency",
        action="append",
        default=[],
        metavar="NAME",
        help="Package provided by the build environment (repeatable)",
    )
    parser.add_argument(
        "--depends",
        action="append",
        default=[],
        metavar="BIN:REL",
        help="Extra Depends for binary package BIN (repeatable)",
    )
    parser.add_argument(
        "--build-depends",
        action="append",
        default=[],
        metavar="REL",
        help="Extra Build-Depends (repeatable)",
    )
    parser.add_argument(
        "--executable",
        action="append",
        default=[],
        metavar="NAME",
        help="Ship executable NAME in its own binary package (repeatable)",
    )
    parser.add_argument("--no-docs", action="store_true", help="Do not build a -doc package")
    parser.add_argument("--no-prof", action="store_true", help="Do not build a -prof package")
    parser.add_argument(
        "--dev-depends",
        action="append",
        default=[],
        metavar="REL",
        help="Extra Depends for the library development package (repeatable)",
    )
    parser.add_argument("--utils-package", type=str, help="Name of the package collecting executables")
    parser.add_argument(
        "--omit-lt-deps",
        action="store_true",
        help="Drop upper version bounds from generated dependencies",
    )
    parser.add_argument(
        "--omit-prof-version-deps",
        action="store_true",
        help="Unversioned dependencies for the -prof package",
    )
    parser.add_argument("--standards-version", type=str, help="Override Standards-Version")
    parser.add_argument("--compat", type=int, help="Override the debhelper compat level")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(list(argv))


def _split_pair(value: str, separator: str, option: str) -> tuple[str, str]:
    left, found, right = value.partition(separator)
    if not found or not left.strip() or not right.strip():
        raise ValueError(f"Invalid {option} value {value!r}")
    return left.strip(), right.strip()


def _build_customizations(args: argparse.Namespace) -> list[Customization]:
    customizations: list[Customization] = []

    maintainer = parse_maintainer(args.maintainer) if args.maintainer else get_settings().maintainer
    if maintainer is not None:
        customizations.append(goodies.set_maintainer(maintainer))
    if args.revision is not None:
        customizations.append(goodies.set_revision(args.revision))

    for value in args.epoch:
        name, epoch = _split_pair(value, "=", "--epoch")
        try:
            customizations.append(goodies.set_epoch(name, int(epoch)))
        except ValueError as exc:
            raise ValueError(f"Invalid --epoch value {value!r}: {exc}") from exc
    for value in args.map_name:
        name, base = _split_pair(value, "=", "--map-name")
        customizations.append(goodies.map_cabal(name, base))
    for value in args.split:
        name, rule = _split_pair(value, "=", "--split")
        base, boundary = _split_pair(rule, "<", "--split")
        customizations.append(goodies.split_cabal(name, base, boundary))

    if args.missing_dependency:
        customizations.append(goodies.missing_dependency(*args.missing_dependency))
    for value in args.depends:
        binary, relations = _split_pair(value, ":", "--depends")
        customizations.append(goodies.add_depends(binary, parse_relations(relations)))
    for value in args.build_depends:
        customizations.append(goodies.add_build_depends(parse_relations(value)))
    customizations.extend(goodies.do_executable(name) for name in args.executable)

    if args.no_docs:
        customizations.append(goodies.no_documentation_library())
    if args.no_prof:
        customizations.append(goodies.no_profiling_library())
    for value in args.dev_depends:
        customizations.append(goodies.add_dev_depends(parse_relations(value)))
    if args.utils_package:
        customizations.append(goodies.set_utilities_package(args.utils_package))
    if args.omit_lt_deps:
        customizations.append(goodies.omit_lt_deps())
    if args.omit_prof_version_deps:
        customizations.append(goodies.omit_prof_version_deps())
    if args.standards_version:
        customizations.append(
            goodies.set_field(
                SourceField.STANDARDS_VERSION,
                parse_standards_version(args.standards_version),
            )
        )
    if args.compat is not None:
        if args.compat < 1:
            raise ValueError("Compat level must be positive")
        customizations.append(goodies.set_field(SourceField.COMPAT, args.compat))
    return customizations


def _report(result: DebianizeResult, args: argparse.Namespace) -> int:
    for error in result.errors:
        log.error("%s", error)
    for violation in result.violations:
        log.error("Structural violation: %s", violation)
    if result.errors or result.violations:
        return 1

    if args.validate:
        stale = result.stale
        for error in stale:
            log.error("%s", error)
        if stale:
            return 1
        log.info("Debianization in %s is up to date", args.debian_dir)
        return 0

    if args.dry_run:
        print(result.diff.format())
    return 0


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    configure_logging()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        settings = get_settings()
        parsed_args = _parse_args([*settings.extra_arguments, *args_list])
        if parsed_args.verbose:
            configure_logging(verbose=True, force=True)
        customizations = _build_customizations(parsed_args)
        policy = load_policy_tables(settings.policy_file)
    except (ValueError, ConfigurationError):
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        result = debianize(
            parsed_args.manifest,
            debian_dir=parsed_args.debian_dir,
            customizations=customizations,
            policy=policy,
            dry_run=parsed_args.dry_run,
            merge_existing=parsed_args.merge_existing,
            validate_only=parsed_args.validate,
        )
    except Exception:
        log.exception("Fatal error during debianization")
        sys.exit(1)

    status = _report(result, parsed_args)
    if status:
        sys.exit(status)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
