# abastech/main.py
"""Command line runner for the sync jobs.

    python main.py import              pull vehicles and readings from the sheet
    python main.py export              append every mirror reading to the sheet
    python main.py drain --user ID     send the offline queue of one user
    python main.py push-fuel           push mirror fuel rows not yet in the sheet
    python main.py push-orders         rewrite the service-order tab from the mirror
    python main.py cache --user ID     refresh cached reference tables
"""
import argparse
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from core.settings import OFFLINE_DB_PATH
from services.google_auth import GoogleAuth
from services.google_sheets import GoogleSheets
from services.mirror import SupabaseMirror
from services.offline_storage import OfflineStorage
from services.offline_sync import OfflineSyncWorker
from services.sheet_import import SheetImporter
from services.sheet_push import SheetPusher
from storage.offline_store import OfflineStore


def _progress(current: int, total: int) -> None:
    if current == total or current % 50 == 0:
        print(f"  {current}/{total}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="abastech-sync")
    parser.add_argument("--db", default=str(OFFLINE_DB_PATH), help="offline database file")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("import")
    sub.add_parser("export")
    sub.add_parser("push-fuel")
    sub.add_parser("push-orders")
    for name in ("drain", "cache"):
        cmd = sub.add_parser(name)
        cmd.add_argument("--user", required=True)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    sheets = GoogleSheets(GoogleAuth())
    mirror = SupabaseMirror()
    pusher = SheetPusher(sheets)

    if args.command == "import":
        stats = SheetImporter(sheets, mirror).sync_from_sheet(on_progress=_progress)
        print(stats.as_dict())
        return 1 if stats.errors else 0
    if args.command == "export":
        print(SheetImporter(sheets, mirror).export_to_sheet())
        return 0

    with OfflineStore(args.db) as store:
        storage = OfflineStorage(store, getattr(args, "user", None))
        worker = OfflineSyncWorker(storage, mirror, pusher)
        if args.command == "push-fuel":
            print(worker.push_unsynced_fuel_records())
        elif args.command == "push-orders":
            print(worker.sync_service_orders_to_sheet())
        elif args.command == "cache":
            return 0 if worker.cache_reference_data() else 1
        else:
            result = worker.sync_all()
            print(f"synced={result.synced} failed={result.failed} exhausted={result.exhausted}")
            return 1 if result.failed else 0
    return 0


if __name__ == "__main__":
    sys.exit(main())
