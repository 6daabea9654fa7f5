"""
Command line for remote image builds.

Usage:
    # Build and push with the default profile (config/profiles/hopper.yaml)
    remote-build run

    # Rebuild without layer cache under another tag
    remote-build run --no-cache --tag 2024-06-01

    # Show the docker commands without running them
    remote-build plan --profile hopper

    # Check certificates, build context and remote daemon
    remote-build check
"""

import argparse
import sys
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import ValidationError

from . import __version__
from .errors import ProfileError
from .logging_config import LogFormats, setup_logger
from .pipeline import build_and_push, plan, run_checks
from .profiles import BuildProfile, apply_overrides, list_profiles, load_profile

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2


def _parse_build_args(values: Optional[List[str]]) -> Dict[str, str]:
    parsed: Dict[str, str] = {}
    for item in values or []:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise ProfileError(f"--build-arg expects KEY=VALUE, got {item!r}")
        parsed[key] = value
    return parsed


def _load(args: argparse.Namespace) -> BuildProfile:
    profile = load_profile(args.profile)
    return apply_overrides(
        profile,
        tag=args.tag,
        image=args.image,
        no_cache=None if args.cache is None else not args.cache,
        path=args.path,
        build_args=_parse_build_args(args.build_arg),
        replace_context=args.replace_context,
        restore_context=args.restore_context,
    )


def cmd_run(args: argparse.Namespace) -> int:
    profile = _load(args)
    mode = " (dry run)" if args.dry_run else ""
    print(f"📦 Building {profile.image.ref} on {profile.context.host}{mode}\n")

    result = build_and_push(profile, dry_run=args.dry_run)

    for step in result["steps"]:
        icon = {"completed": "✓", "failed": "✗", "skipped": "·"}.get(step["status"], "?")
        print(f"  {icon} {step['step']}: {step.get('message', '')}")

    if not result["success"]:
        print(f"\n❌ Build and push failed: {result['error']}", file=sys.stderr)
        return EXIT_FAILED

    if args.dry_run:
        print("\n✅ Dry run complete, nothing was executed")
    else:
        print(f"\n✅ Pushed {result['image_url']}")
    return EXIT_OK


def cmd_plan(args: argparse.Namespace) -> int:
    profile = _load(args)
    for step in plan(profile):
        print(step.command)
    return EXIT_OK


def cmd_check(args: argparse.Namespace) -> int:
    profile = _load(args)
    print(f"🔎 Checking profile {profile.name}\n")

    all_ok = True
    for check, ok, details in run_checks(profile):
        all_ok = all_ok and ok
        print(f"  {'✓' if ok else '✗'} {check}: {details}")

    print()
    if all_ok:
        print("✅ Ready to build")
        return EXIT_OK
    print("❌ Some checks failed")
    return EXIT_FAILED


def cmd_profiles(args: argparse.Namespace) -> int:
    profiles = list_profiles()
    if not profiles:
        print("No build profiles found")
        return EXIT_OK
    for entry in profiles:
        detail = entry.get("image") or f"invalid: {entry.get('error', '').splitlines()[0]}"
        print(f"  - {entry['name']}: {detail}")
        print(f"    Path: {entry['path']}")
    return EXIT_OK


def _add_profile_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--profile",
        default=None,
        help="Profile name under the profiles directory, or a path to a YAML file (default: $REMOTE_BUILD_PROFILE or hopper)",
    )
    parser.add_argument("--tag", help="Override the image tag")
    parser.add_argument("--image", help="Override the full image reference (registry/namespace/name[:tag])")
    parser.add_argument(
        "--cache",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Use the layer cache; --no-cache rebuilds every layer (default: the profile's build.no_cache)",
    )
    parser.add_argument("--path", type=Path, help="Override the build context directory")
    parser.add_argument("--build-arg", action="append", metavar="KEY=VALUE", help="Extra build argument (repeatable)")
    parser.add_argument(
        "--replace-context",
        action="store_true",
        default=None,
        help="Recreate the context if it exists with a different host",
    )
    parser.add_argument(
        "--restore-context",
        action="store_true",
        default=None,
        help="Switch back to the previously active context afterwards",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="remote-build",
        description="Build an image on a remote TLS docker daemon and push it to a registry",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Log level (default: $LOG_LEVEL or WARNING)",
    )
    parser.add_argument(
        "--log-format",
        choices=[f.value for f in LogFormats],
        default=None,
        help="Log output format (default: $LOG_FORMAT or console)",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Create and select the remote context, build and push")
    _add_profile_options(run)
    run.add_argument("--dry-run", action="store_true", help="Show the steps without running docker")
    run.set_defaults(func=cmd_run)

    plan_parser = sub.add_parser("plan", help="Print the docker commands a run would execute")
    _add_profile_options(plan_parser)
    plan_parser.set_defaults(func=cmd_plan)

    check = sub.add_parser("check", help="Check certificates, build context and remote daemon")
    _add_profile_options(check)
    check.set_defaults(func=cmd_check)

    profiles = sub.add_parser("profiles", help="List available build profiles")
    profiles.set_defaults(func=cmd_profiles)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        setup_logger(args.log_level, args.log_format)
    except ValidationError as e:
        print(f"❌ Invalid logging configuration (LOG_LEVEL / LOG_FORMAT): {e}", file=sys.stderr)
        return EXIT_USAGE

    try:
        return args.func(args)
    except ProfileError as e:
        print(f"❌ {e}", file=sys.stderr)
        return EXIT_USAGE


if __name__ == "__main__":
    sys.exit(main())
