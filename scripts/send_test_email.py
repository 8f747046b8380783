#!/usr/bin/env python3
"""
Dev helper: log in to a running MailDeck backend and send a test message.

Logs in with APP_USER / APP_PASSWORD, then POSTs a multipart form to
/send-email with an optional attachment (a small sample CSV by default).

Usage
-----
# Basic - send from the first allowed sender to yourself, localhost:8000
python scripts/send_test_email.py --to me@example.com

# Pick the sender and attach a real file
python scripts/send_test_email.py --from admin@maildeck.dev --to me@example.com --file report.pdf

# Show what would be sent without logging in or sending
python scripts/send_test_email.py --to me@example.com --dry-run

# Target a different backend URL
python scripts/send_test_email.py --url https://maildeck.example.com --to me@example.com

Environment / .env
------------------
APP_USER, APP_PASSWORD   Operator credentials used for /login (required
                         unless --dry-run). Read from a .env file in the
                         project root or backend/ if present.
"""

import argparse
import json
import mimetypes
import os
import sys
import textwrap
from pathlib import Path

import httpx
from dotenv import load_dotenv


def _make_sample_csv() -> bytes:
    lines = [
        "date,queue,received,answered",
        "2025-03-01,support,42,40",
        "2025-03-01,billing,17,17",
    ]
    return "\n".join(lines).encode()


def _print_response(response: httpx.Response) -> None:
    status = response.status_code
    symbol = "OK" if status == 200 else "FAIL"
    print(f"\n[{symbol}] HTTP {status}")
    try:
        print(json.dumps(response.json(), indent=2))
    except ValueError:
        print(response.text)


def _login(client: httpx.Client, username: str, password: str) -> str:
    response = client.post("/login", json={"username": username, "password": password})
    if response.status_code != 200:
        _print_response(response)
        raise SystemExit("ERROR: login failed")
    return response.json()["token"]


def _pick_sender(client: httpx.Client, token: str) -> str:
    response = client.get("/get-senders", headers={"Authorization": f"Bearer {token}"})
    response.raise_for_status()
    senders = response.json()
    if not senders:
        raise SystemExit("ERROR: the backend reports no allowed senders; pass --from")
    return senders[0]


def main() -> int:
    # scripts/ lives one level below the project root
    project_root = Path(__file__).resolve().parent.parent
    load_dotenv(project_root / ".env")
    load_dotenv(project_root / "backend" / ".env")

    parser = argparse.ArgumentParser(
        prog="send_test_email.py",
        description="Send a test message through a MailDeck backend.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            Examples:
              python scripts/send_test_email.py --to me@example.com
              python scripts/send_test_email.py --to me@example.com --file q1.pdf
              python scripts/send_test_email.py --to me@example.com --dry-run
        """),
    )
    parser.add_argument(
        "--url",
        default=f"http://localhost:{os.getenv('HOST_PORT', '8000')}",
        help="Backend base URL (default: http://localhost:$HOST_PORT)",
    )
    parser.add_argument("--to", required=True, help="Comma-separated recipient addresses")
    parser.add_argument("--cc", default=None, help="Comma-separated Cc addresses")
    parser.add_argument("--bcc", default=None, help="Comma-separated Bcc addresses")
    parser.add_argument(
        "--from",
        dest="from_email",
        default=None,
        help="Sender address (default: first address from /get-senders)",
    )
    parser.add_argument(
        "--subject",
        default="MailDeck test message",
        help='Subject (default: "MailDeck test message")',
    )
    parser.add_argument(
        "--file",
        default=None,
        metavar="PATH",
        help="File to attach. A sample CSV is used if omitted.",
    )
    parser.add_argument("--no-attachment", action="store_true", help="Send without any attachment")
    parser.add_argument("--dry-run", action="store_true", help="Print the form fields without sending.")

    args = parser.parse_args()

    files = []
    if args.file:
        file_path = Path(args.file)
        if not file_path.exists():
            print(f"ERROR: File not found: {file_path}", file=sys.stderr)
            return 1
        content_type = mimetypes.guess_type(file_path.name)[0] or "application/octet-stream"
        files.append(("attachments", (file_path.name, file_path.read_bytes(), content_type)))
    elif not args.no_attachment:
        files.append(("attachments", ("sample_report.csv", _make_sample_csv(), "text/csv")))

    form = {
        "from": args.from_email or "",
        "to": args.to,
        "subject": args.subject,
        "html": "<p>This is a <b>MailDeck</b> test message.</p>",
    }
    if args.cc:
        form["cc"] = args.cc
    if args.bcc:
        form["bcc"] = args.bcc

    print(f"Endpoint  : {args.url.rstrip('/')}/send-email")
    for name, (filename, content, content_type) in files:
        print(f"Attachment: {filename} ({len(content):,} bytes, {content_type})")

    if args.dry_run:
        print("\n[DRY RUN] Form fields:")
        print(json.dumps(form, indent=2))
        return 0

    username = os.getenv("APP_USER")
    password = os.getenv("APP_PASSWORD")
    if not username or not password:
        print(
            "ERROR: APP_USER and APP_PASSWORD must be set in your environment or .env file.",
            file=sys.stderr,
        )
        return 1

    try:
        with httpx.Client(base_url=args.url.rstrip("/"), timeout=30) as client:
            token = _login(client, username, password)
            if not form["from"]:
                form["from"] = _pick_sender(client, token)
                print(f"From      : {form['from']} (first allowed sender)")

            response = client.post(
                "/send-email",
                data=form,
                files=files or None,
                headers={"Authorization": f"Bearer {token}"},
            )
            _print_response(response)
            return 0 if response.status_code == 200 else 1
    except httpx.ConnectError:
        print(
            f"\nERROR: Could not connect to {args.url}\n"
            "Is the backend running? Start it with:\n"
            "  cd backend && uvicorn maildeck.main:app --reload",
            file=sys.stderr,
        )
        return 1
    except httpx.HTTPStatusError as exc:
        print(f"\nERROR: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
