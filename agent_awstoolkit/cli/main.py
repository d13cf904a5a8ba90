"""CLI entrypoint for agent-awstoolkit."""
import sys
import argparse
import shutil
import logging
from pathlib import Path

from agent_awstoolkit.secrets.domains.payload import PayloadValidationError

from .validators import validate_resource_id, validate_secret_id, validate_stage_label

VERSION = "0.1.0"

logger = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        stream=sys.stderr
    )


def _print_version(version) -> None:
    print(f"Resource ID: {version.resource_id}")
    print(f"ARN: {version.arn}")
    print(f"Stages: {', '.join(sorted(version.version_stages)) or '(none)'}")


def _parse_tag_assignments(assignments):
    tags = {}
    for assignment in assignments or []:
        key, sep, value = assignment.partition("=")
        if not sep or not key:
            print(f"Error: Invalid tag '{assignment}', expected KEY=VALUE", file=sys.stderr)
            sys.exit(2)
        tags[key] = value
    return tags


def cmd_version(args):
    """Show version information."""
    print(f"agent-awstoolkit {VERSION}")


def cmd_config_set_path(args):
    """Set config file path preference."""
    from agent_awstoolkit.secrets.domains.preferences import set_preference

    config_path = Path(args.path).resolve()

    if not config_path.is_file():
        print(f"Error: Config file does not exist: {config_path}", file=sys.stderr)
        sys.exit(1)

    set_preference("config_path", str(config_path))
    print(f"Config path set to: {config_path}")


def cmd_config_set_region(args):
    """Set default region preference."""
    from agent_awstoolkit.secrets.domains.preferences import set_preference

    set_preference("region", args.region)
    print(f"Default region set to: {args.region}")


def cmd_config_show(args):
    """Show current config file path and region preference."""
    from agent_awstoolkit.secrets.domains.config_loader import default_config_path
    from agent_awstoolkit.secrets.domains.preferences import get_preference

    config_path_pref = get_preference("config_path")
    if config_path_pref:
        config_path = Path(config_path_pref)
        suffix = "" if config_path.exists() else " (file not found)"
        print(f"Config path: {config_path}{suffix}")
        print("Source: preference")
    else:
        default_config = default_config_path()
        suffix = "" if default_config.exists() else " (file not found)"
        print(f"Config path: {default_config}")
        print(f"Source: default{suffix}")

    region = get_preference("region")
    if region:
        print(f"Region preference: {region}")


def cmd_config_clear(args):
    """Clear config path and region preferences."""
    from agent_awstoolkit.secrets.domains.config_loader import default_config_path
    from agent_awstoolkit.secrets.domains.preferences import clear_preference

    clear_preference("config_path")
    clear_preference("region")
    print(f"Preferences cleared. Will use default config: {default_config_path()}")


def cmd_config_init(args):
    """Interactive config setup."""
    from agent_awstoolkit.secrets.domains.config_loader import default_config_path
    from agent_awstoolkit.secrets.domains.preferences import set_preference

    default_config = default_config_path()

    print("=== agent-awstoolkit Configuration Setup ===\n")
    if default_config.exists():
        print(f"Configuration file already exists at: {default_config}")
        return

    print("Choose an option:")
    print("1. Copy an existing config file to default location")
    print("2. Point to an existing config file at a different location")
    print("3. Cancel (manually create config file later)")

    choice = input("\nEnter choice (1-3): ").strip()
    if choice == "3":
        print(f"\nSetup cancelled. Create your config file at: {default_config}")
        return
    if choice not in ("1", "2"):
        print("Invalid choice.", file=sys.stderr)
        sys.exit(2)

    source = Path(input("Enter path to existing config file: ").strip()).expanduser().resolve()
    if not source.is_file():
        print(f"Error: File not found: {source}", file=sys.stderr)
        sys.exit(1)

    if choice == "1":
        default_config.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, default_config)
        print(f"\nConfig copied to: {default_config}")
    else:
        set_preference("config_path", str(source))
        print(f"\nConfig path set to: {source}")


def cmd_secrets_put(args):
    """Store a new secret version."""
    from agent_awstoolkit.secrets.workflows.secret_version_operations import create_secret_version

    validate_secret_id(args.secret_id)
    for stage in args.stage or []:
        validate_stage_label(stage)

    version = create_secret_version(
        args.secret_id,
        secret_string=args.value,
        secret_binary=args.binary_base64,
        version_stages=args.stage,
    )
    if args.quiet:
        print(version.resource_id)
    else:
        _print_version(version)


def cmd_secrets_get(args):
    """Read a secret version."""
    from agent_awstoolkit.secrets.workflows.secret_version_operations import get_secret_version

    validate_resource_id(args.resource_id)
    version = get_secret_version(args.resource_id)

    if version is None:
        print(f"Error: Secret version '{args.resource_id}' not found", file=sys.stderr)
        sys.exit(1)

    value = version.secret_string if version.secret_string is not None else version.secret_binary
    if args.quiet:
        print(value)
    else:
        _print_version(version)
        print(f"Value: {value}")


def cmd_secrets_stages(args):
    """Reconcile the stage labels on a secret version."""
    from agent_awstoolkit.secrets.workflows.secret_version_operations import update_secret_version_stages

    validate_resource_id(args.resource_id)
    for stage in args.stage or []:
        validate_stage_label(stage)

    version = update_secret_version_stages(args.resource_id, args.stage or [])
    if version is None:
        print(f"Error: Secret version '{args.resource_id}' disappeared during update", file=sys.stderr)
        sys.exit(1)
    _print_version(version)


def cmd_secrets_delete_version(args):
    """Detach all labels (except AWSCURRENT) from a secret version."""
    from agent_awstoolkit.secrets.workflows.secret_version_operations import delete_secret_version

    validate_resource_id(args.resource_id)
    delete_secret_version(args.resource_id)
    print(f"Secret version '{args.resource_id}' released")


def cmd_secrets_tags(args):
    """Show or change the tags on a secret."""
    from agent_awstoolkit.secrets.domains.aws_client import AWSSecretClient
    from agent_awstoolkit.secrets.domains.tags import list_tags, update_tags

    validate_secret_id(args.secret_id)
    to_set = _parse_tag_assignments(args.set)

    client = AWSSecretClient()
    old_tags = list_tags(client, args.secret_id)

    if to_set or args.unset:
        new_tags = {key: value for key, value in old_tags.items() if key not in set(args.unset or [])}
        new_tags.update(to_set)
        update_tags(client, args.secret_id, old_tags, new_tags)
        old_tags = new_tags

    for key in sorted(old_tags):
        print(f"{key}={old_tags[key]}")


def _build_parser():
    parser = argparse.ArgumentParser(
        prog="awstoolkit",
        description="agent-awstoolkit CLI - AWS Secrets Manager version and stage label toolkit",
        epilog="""
Exit codes:
  0 - Success
  1 - Runtime error (authentication, network, secret not found, etc.)
  2 - Usage error (invalid arguments, invalid resource ID, etc.)

Environment variables:
  AWS_REGION / AWS_DEFAULT_REGION - AWS region (overrides preferences and config file)

Configuration:
  Default location: ~/.config/agent-awstoolkit/config.yml
  Custom path: Set with 'awstoolkit config set-path <path>'
  View current: Run 'awstoolkit config show'
        """
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log remote calls to stderr")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("version", help="Show version information")

    # config command
    config_parser = subparsers.add_parser("config", help="Configuration management")
    config_subparsers = config_parser.add_subparsers(dest="config_command")

    set_path_parser = config_subparsers.add_parser(
        "set-path",
        help="Set config file path",
        description="Store the absolute config file path in ~/.config/agent-awstoolkit/preferences.json"
    )
    set_path_parser.add_argument("path", help="Path to config file")

    set_region_parser = config_subparsers.add_parser("set-region", help="Set default AWS region")
    set_region_parser.add_argument("region", help="AWS region, e.g. us-east-1")

    config_subparsers.add_parser("show", help="Show current config path and preferences")
    config_subparsers.add_parser("clear", help="Clear stored preferences")
    config_subparsers.add_parser("init", help="Interactive config setup")

    # secrets command
    secrets_parser = subparsers.add_parser(
        "secrets",
        help="Secret version operations",
        description="Manage secret versions and their staging labels in AWS Secrets Manager"
    )
    secrets_subparsers = secrets_parser.add_subparsers(dest="secrets_command")

    put_parser = secrets_subparsers.add_parser(
        "put",
        help="Store a new secret version",
        description="""
Store a new immutable secret version and print its resource ID
(SecretID|VersionID). Without --stage, Secrets Manager makes the
new version AWSCURRENT.
        """
    )
    put_parser.add_argument("secret_id", help="Secret name or ARN")
    payload_group = put_parser.add_mutually_exclusive_group(required=True)
    payload_group.add_argument("--value", help="Secret value as text")
    payload_group.add_argument("--binary-base64", help="Binary secret value, base64 encoded")
    put_parser.add_argument("--stage", action="append", help="Staging label to attach (repeatable)")
    put_parser.add_argument("-q", "--quiet", action="store_true", help="Print only the resource ID")

    get_parser = secrets_subparsers.add_parser("get", help="Read a secret version")
    get_parser.add_argument("resource_id", help="SecretID|VersionID")
    get_parser.add_argument("-q", "--quiet", action="store_true", help="Print only the secret value")

    stages_parser = secrets_subparsers.add_parser(
        "stages",
        help="Set the staging labels of a version",
        description="""
Reconcile the staging labels on a version to exactly the given set.
Adding AWSCURRENT moves it from the version that holds it today.
AWSCURRENT is never removed outright; move it by adding it elsewhere.
        """
    )
    stages_parser.add_argument("resource_id", help="SecretID|VersionID")
    labels_group = stages_parser.add_mutually_exclusive_group(required=True)
    labels_group.add_argument("--stage", action="append", help="Desired staging label (repeatable)")
    labels_group.add_argument("--clear", action="store_true", help="Remove all labels except AWSCURRENT")

    delete_parser = secrets_subparsers.add_parser(
        "delete-version",
        help="Release a version by detaching its labels",
        description="Detach every staging label except AWSCURRENT from a version"
    )
    delete_parser.add_argument("resource_id", help="SecretID|VersionID")

    tags_parser = secrets_subparsers.add_parser("tags", help="Show or change tags on a secret")
    tags_parser.add_argument("secret_id", help="Secret name or ARN")
    tags_parser.add_argument("--set", action="append", metavar="KEY=VALUE", help="Add or change a tag (repeatable)")
    tags_parser.add_argument("--unset", action="append", metavar="KEY", help="Remove a tag (repeatable)")

    return parser, {
        "config": (config_parser, "config_command", {
            "set-path": cmd_config_set_path,
            "set-region": cmd_config_set_region,
            "show": cmd_config_show,
            "clear": cmd_config_clear,
            "init": cmd_config_init,
        }),
        "secrets": (secrets_parser, "secrets_command", {
            "put": cmd_secrets_put,
            "get": cmd_secrets_get,
            "stages": cmd_secrets_stages,
            "delete-version": cmd_secrets_delete_version,
            "tags": cmd_secrets_tags,
        }),
    }


def main(argv=None):
    """Main CLI entrypoint.

    Exit codes:
        0 - Success
        1 - Runtime errors (authentication, network, secret not found, etc.)
        2 - Usage errors (invalid arguments, invalid resource ID, etc.)
    """
    parser, groups = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    if not args.command:
        parser.print_help()
        sys.exit(2)

    try:
        if args.command == "version":
            cmd_version(args)
            return

        group_parser, dest, handlers = groups[args.command]
        handler = handlers.get(getattr(args, dest))
        if handler is None:
            group_parser.print_help()
            sys.exit(2)
        handler(args)
    except PayloadValidationError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
