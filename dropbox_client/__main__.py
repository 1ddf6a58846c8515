#!/usr/bin/env python
"""
Command-line interface for the Dropbox client.
Supports both interactive shells and GitHub Actions environments.
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from dropbox_client import (
    AuthenticationError,
    AuthInfoLoadError,
    BadResponseError,
    Config,
    DropboxClient,
    DropboxClientError,
    DropboxUploader,
    InvalidAccessTokenError,
    LocalFileNotFoundError,
    SizeMismatchError,
    UploadError,
    auth_info_from_env,
    configure_logging,
    load_auth_info,
    logger,
)
from dropbox_client.uploader import CLIENT_IDENTIFIER

# Exit codes
EXIT_OK = 0
EXIT_LOCAL = 1
EXIT_AUTH = 2
EXIT_UPLOAD = 3
EXIT_ERROR = 4
EXIT_INTERRUPTED = 130
EXIT_UNEXPECTED = 99


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m dropbox_client",
        description="Work with files in Dropbox",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Upload a file to a folder
  python -m dropbox_client upload my_report_2024-01-15_14-30.md --folder /Reports

  # Download a file
  python -m dropbox_client download /Reports/summary.md summary.md

  # Account details
  python -m dropbox_client account-info

Environment Variables:
  DROPBOX_AUTH_FILE       JSON auth file with app info and access token
  DROPBOX_ACCESS_TOKEN    Access token (bearer, or "key|secret" for OAuth 1)
  DROPBOX_APP_KEY         App key (OAuth 1 tokens only)
  DROPBOX_APP_SECRET      App secret (OAuth 1 tokens only)
  DROPBOX_FOLDER          Default upload folder (optional)
  DROPBOX_CHUNK_SIZE      Bytes per chunk for chunked uploads (optional)
  DROPBOX_MAX_RETRIES     Retries per chunked upload request (optional)
""",
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "-t", "--token",
        help="Dropbox access token (default: from DROPBOX_ACCESS_TOKEN env var)",
    )
    common.add_argument(
        "-a", "--auth-file",
        help="JSON auth file (default: from DROPBOX_AUTH_FILE env var)",
    )
    common.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )
    common.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress all output except errors",
    )

    commands = parser.add_subparsers(dest="command", metavar="COMMAND")
    commands.required = True

    commands.add_parser("account-info", parents=[common], help="Show account information")

    upload = commands.add_parser("upload", parents=[common], help="Upload a local file")
    upload.add_argument("file", help="Path to the file to upload")
    upload.add_argument(
        "-f", "--folder",
        default=os.environ.get("DROPBOX_FOLDER", "/"),
        help="Destination folder in Dropbox (default: / or DROPBOX_FOLDER env var)",
    )
    upload.add_argument(
        "-n", "--filename",
        help="Custom filename in Dropbox (default: use original filename)",
    )
    upload.add_argument(
        "--no-overwrite",
        action="store_true",
        help="Don't overwrite existing files",
    )
    upload.add_argument(
        "--chunk-size",
        type=int,
        help="Bytes per chunk for chunked uploads",
    )

    download = commands.add_parser("download", parents=[common], help="Download a file")
    download.add_argument("dropbox_path", help="Path of the file in Dropbox")
    download.add_argument("local_path", help="Where to save the file locally")
    download.add_argument("--rev", help="Download a specific revision")

    mkdir = commands.add_parser("mkdir", parents=[common], help="Create a folder")
    mkdir.add_argument("dropbox_path")

    rm = commands.add_parser("rm", parents=[common], help="Delete a file or folder")
    rm.add_argument("dropbox_path")

    for name, verb in (("mv", "Move"), ("cp", "Copy")):
        sub = commands.add_parser(name, parents=[common], help=f"{verb} a file or folder")
        sub.add_argument("from_path")
        sub.add_argument("to_path")

    return parser


def parse_args(argv=None):
    """Parse command-line arguments."""
    return build_parser().parse_args(argv)


def make_client(args) -> DropboxClient:
    """Build a client from --auth-file, --token or the environment."""
    if args.auth_file:
        app_info, token = load_auth_info(args.auth_file)
    else:
        app_info, token = auth_info_from_env(access_token=args.token)
    return DropboxClient(Config.from_env(app_info, CLIENT_IDENTIFIER), token)


def print_json(data) -> None:
    print(json.dumps(data, indent=2, sort_keys=True))


def cmd_account_info(args) -> int:
    with make_client(args) as client:
        print_json(client.get_account_info())
    return EXIT_OK


def cmd_upload(args) -> int:
    file_path = Path(args.file)
    logger.debug(f"Resolved path: {file_path.resolve()}")

    client = None
    if args.auth_file:
        client = make_client(args)
        if args.chunk_size:
            client.config.chunk_size = args.chunk_size
    with DropboxUploader(
        access_token=args.token, chunk_size=args.chunk_size, client=client
    ) as uploader:
        metadata = uploader.upload(
            local_path=args.file,
            dropbox_folder=args.folder,
            filename=args.filename,
            overwrite=not args.no_overwrite,
        )

    dropbox_path = metadata.get("path", "")

    # Set GitHub Actions output if running in that environment
    if os.environ.get("GITHUB_OUTPUT"):
        with open(os.environ["GITHUB_OUTPUT"], "a") as f:
            f.write(f"dropbox_path={dropbox_path}\n")

    return EXIT_OK


def cmd_download(args) -> int:
    local_path = Path(args.local_path)
    with make_client(args) as client:
        try:
            with open(local_path, "wb") as out:
                metadata = client.get_file(args.dropbox_path, out, rev=args.rev)
        except BaseException:
            # Don't leave an empty or partial file behind
            local_path.unlink(missing_ok=True)
            raise
        if metadata is None:
            local_path.unlink()
            print(f"✗ No file at {args.dropbox_path}")
            return EXIT_LOCAL
    print(f"✓ Downloaded {metadata.get('path', args.dropbox_path)} ({metadata.get('size', '?')}) to {local_path}")
    return EXIT_OK


def cmd_mkdir(args) -> int:
    with make_client(args) as client:
        metadata = client.create_folder(args.dropbox_path)
    if metadata is None:
        print(f"✗ Something already exists at {args.dropbox_path}")
        return EXIT_ERROR
    print(f"✓ Created {metadata.get('path', args.dropbox_path)}")
    return EXIT_OK


def cmd_rm(args) -> int:
    with make_client(args) as client:
        metadata = client.delete(args.dropbox_path)
    print(f"✓ Deleted {metadata.get('path', args.dropbox_path)}")
    return EXIT_OK


def cmd_mv(args) -> int:
    with make_client(args) as client:
        metadata = client.move(args.from_path, args.to_path)
    print(f"✓ Moved to {metadata.get('path', args.to_path)}")
    return EXIT_OK


def cmd_cp(args) -> int:
    with make_client(args) as client:
        metadata = client.copy(args.from_path, args.to_path)
    print(f"✓ Copied to {metadata.get('path', args.to_path)}")
    return EXIT_OK


COMMANDS = {
    "account-info": cmd_account_info,
    "upload": cmd_upload,
    "download": cmd_download,
    "mkdir": cmd_mkdir,
    "rm": cmd_rm,
    "mv": cmd_mv,
    "cp": cmd_cp,
}


def run(args) -> int:
    """Run a parsed command, mapping failures to exit codes."""
    try:
        return COMMANDS[args.command](args)

    except (AuthenticationError, AuthInfoLoadError, InvalidAccessTokenError) as e:
        print(f"✗ Authentication failed: {e}")
        print("  Make sure DROPBOX_ACCESS_TOKEN or DROPBOX_AUTH_FILE is set correctly.")
        return EXIT_AUTH

    except LocalFileNotFoundError as e:
        print(f"✗ {e}")
        return EXIT_LOCAL

    except (UploadError, BadResponseError, SizeMismatchError) as e:
        print(f"✗ Failed: {e}")
        return EXIT_UPLOAD

    except DropboxClientError as e:
        print(f"✗ Error: {e}")
        return EXIT_ERROR

    except ValueError as e:
        print(f"✗ Invalid argument: {e}")
        return EXIT_LOCAL

    except KeyboardInterrupt:
        print("\n✗ Cancelled")
        return EXIT_INTERRUPTED

    except Exception as e:
        print(f"✗ Unexpected error: {e}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        return EXIT_UNEXPECTED


def main(argv=None):
    """Main entry point for CLI."""
    # Load environment variables from .env if present, without overriding
    # variables that are already set (e.g. GitHub Actions secrets).
    load_dotenv(override=False)

    args = parse_args(argv)

    if args.quiet:
        configure_logging(logging.ERROR)
    elif args.verbose:
        configure_logging(logging.DEBUG)
        logger.debug(f"Arguments: command={args.command}")
    else:
        configure_logging(logging.INFO)

    sys.exit(run(args))


if __name__ == "__main__":
    main()
