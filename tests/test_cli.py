import json
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATABASE_URL", "sqlite://")

from asset_tracker.cli import main, parse_args


def test_parse_args_defaults():
    args = parse_args(["send-reminders"])
    assert args.command == "send-reminders"
    assert args.days == 3

    sweep = parse_args(["sweep-overdue", "--as-of", "2024-03-10"])
    assert sweep.as_of.isoformat() == "2024-03-10"


def test_sweep_overdue_prints_count(capsys):
    assert main(["sweep-overdue", "--as-of", "2024-03-10"]) == 0
    assert json.loads(capsys.readouterr().out) == {"updated": 0}


def test_create_user_reports_duplicates(capsys):
    argv = [
        "create-user",
        "--username", "cli-admin",
        "--email", "cli-admin@example.com",
        "--password", "secret123",
        "--full-name", "CLI Admin",
    ]
    assert main(argv) == 0
    created = json.loads(capsys.readouterr().out)
    assert created["username"] == "cli-admin"
    assert created["role"] == "admin"

    assert main(argv) == 1
    assert "duplicate_username" in capsys.readouterr().err


def test_create_user_rejects_invalid_email(capsys):
    code = main([
        "create-user",
        "--username", "cli-bad",
        "--email", "not-an-email",
        "--password", "secret123",
        "--full-name", "Bad Email",
    ])
    assert code == 1
    assert "email" in capsys.readouterr().err
