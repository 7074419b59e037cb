"""Command line entry point for JIRA Capacity."""

import argparse
import logging
import sys

from jira_capacity.capacity import get_capacity_config
from jira_capacity.config import Config, get_config_path, save_config
from jira_capacity.exceptions import ConfigNotFoundError, InvalidConfigError
from jira_capacity.web.app import create_app

logger = logging.getLogger(__name__)


def configure_argument_parser():
    """Configure an ArgumentParser that manages command line options."""
    parser = argparse.ArgumentParser(
        description="Compare planned sprint work in JIRA with declared team capacity."
    )
    parser.add_argument("-v", dest="verbose", action="store_true", help="Verbose output")
    parser.add_argument(
        "-vv", dest="very_verbose", action="store_true", help="Even more verbose output"
    )
    subparsers = parser.add_subparsers(dest="command")

    init = subparsers.add_parser("init", help="Write ~/.jira-capacity/config.toml")
    init.add_argument("--url", required=True, metavar="https://my.jira.com", help="JIRA URL")
    init.add_argument("--email", default="", help="JIRA account email (basic auth)")
    init.add_argument("--token", default="", help="JIRA API token (basic auth)")
    init.add_argument("--pat", default="", help="Personal access token (bearer auth)")
    init.add_argument("--auth-type", choices=["basic", "bearer"], default="")
    init.add_argument("--ca-bundle", default=None, help="Extra CA bundle for TLS")
    init.add_argument("--upload-dir", default="", help="Where baseline spreadsheets are kept")

    serve = subparsers.add_parser("serve", help="Run the web server")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=3000)
    serve.add_argument("--debug", action="store_true")

    return parser


def run_init(args) -> int:
    config = Config(
        jira_url=args.url.rstrip("/"),
        jira_email=args.email,
        jira_api_token=args.token,
        jira_pat=args.pat,
        auth_type=args.auth_type,
        ca_bundle=args.ca_bundle,
        upload_dir=args.upload_dir,
    )
    errors = config.validate()
    if errors:
        for error in errors:
            print(f"Error: {error}", file=sys.stderr)
        return 1
    save_config(config)
    print(f"Configuration written to {get_config_path()}")
    return 0


def run_server(args) -> int:
    try:
        config = get_capacity_config()
    except (ConfigNotFoundError, InvalidConfigError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    logger.info("Serving capacity reports for %s", config.jira_url)
    create_app(config).run(host=args.host, port=args.port, debug=args.debug)
    return 0


def main(argv=None) -> int:
    parser = configure_argument_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        format="[%(asctime)s %(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        level=(
            logging.DEBUG
            if args.very_verbose
            else logging.INFO if args.verbose else logging.WARNING
        ),
    )

    if args.command == "init":
        return run_init(args)
    if args.command == "serve":
        return run_server(args)

    parser.print_usage()
    return 2


if __name__ == "__main__":
    sys.exit(main())
