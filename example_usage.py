#!/usr/bin/env python
"""
Example: Uploading generated reports and streamed backups to Dropbox.

Shows the high-level uploader for files on disk, and a chunked upload
straight from a stream whose length isn't known up front.
"""

import gzip
import io
import os
import sys
from datetime import datetime
from pathlib import Path

from dotenv import load_dotenv

from dropbox_client import (
    AuthenticationError,
    Config,
    DropboxClient,
    DropboxClientError,
    DropboxUploader,
    UploadState,
    WriteMode,
    auth_info_from_env,
    configure_logging,
)


def generate_sample_report() -> str:
    """
    Write a small markdown report stamped to the minute.

    Returns:
        Path to the generated markdown file.
    """
    timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M")
    filename = f"report_{timestamp}.md"

    content = f"""# Automated Report

Generated: {datetime.now().strftime("%Y-%m-%d %H:%M:%S")}

| Metric | Value |
|--------|-------|
| Items Processed | 1,234 |
| Success Rate | 98.5% |
"""

    # UTF-8 explicitly (important for Windows)
    with open(filename, "w", encoding="utf-8") as f:
        f.write(content)

    print(f"Generated report: {filename} ({Path(filename).stat().st_size} bytes)")
    return filename


def upload_reports(files: list, folder: str = "/Reports") -> list:
    """
    Upload several files over one connection, collecting per-file results.
    """
    results = []

    with DropboxUploader() as uploader:
        for local_file in files:
            try:
                metadata = uploader.upload(local_file, folder, overwrite=False)
                results.append({"file": local_file, "path": metadata["path"], "success": True})
            except AuthenticationError:
                raise
            except DropboxClientError as e:
                results.append({"file": local_file, "error": str(e), "success": False})
                print(f"✗ {local_file}: {e}")

    return results


def upload_compressed_log(lines: list, dropbox_path: str) -> dict:
    """
    Gzip log lines in memory and send them as a chunked upload.

    No byte count is passed, so the client streams the data in chunks and
    works out the length as it goes.
    """
    buffer = io.BytesIO()
    with gzip.GzipFile(fileobj=buffer, mode="wb") as gz:
        for line in lines:
            gz.write(line.encode("utf-8") + b"\n")
    buffer.seek(0)

    def on_progress(state: UploadState, offset: int) -> None:
        if state in (UploadState.UPLOADING, UploadState.DONE):
            print(f"  {state.name.lower()}: {offset} bytes committed")

    app_info, token = auth_info_from_env()
    config = Config.from_env(app_info, "report-bot/1.0")
    with DropboxClient(config, token) as client:
        return client.upload_file(
            dropbox_path, WriteMode.add(), buffer, on_progress=on_progress
        )


def main():
    load_dotenv(override=False)
    configure_logging()

    if not (os.environ.get("DROPBOX_ACCESS_TOKEN") or os.environ.get("DROPBOX_AUTH_FILE")):
        print("Error: set DROPBOX_ACCESS_TOKEN or DROPBOX_AUTH_FILE")
        print()
        print("  Windows CMD:    set DROPBOX_ACCESS_TOKEN=your_token")
        print("  PowerShell:     $env:DROPBOX_ACCESS_TOKEN = 'your_token'")
        print("  Linux/macOS:    export DROPBOX_ACCESS_TOKEN=your_token")
        sys.exit(1)

    destination_folder = os.environ.get("DROPBOX_FOLDER", "/Reports/Automated")
    local_file = generate_sample_report()

    try:
        for result in upload_reports([local_file], destination_folder):
            if result["success"]:
                print(f"✓ {result['file']} -> {result['path']}")

        log_lines = [f"{datetime.now().isoformat()} step {i} ok" for i in range(100000)]
        metadata = upload_compressed_log(log_lines, f"{destination_folder}/run.log.gz")
        print(f"✓ Log uploaded: {metadata['path']} ({metadata.get('size', '?')})")

    except DropboxClientError as e:
        print(f"✗ Failed: {e}")
        print(f"  Local file preserved: {local_file}")
        sys.exit(1)


if __name__ == "__main__":
    main()
