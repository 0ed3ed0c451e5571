#!/usr/bin/env python3
"""
Console watcher for new orders.

Polls the pending-order count, keeps a new-orders badge against a locally
stored watermark and rings the terminal bell when orders arrive.

Usage: python watch_orders.py --token <bearer token> [--base-url URL]

Commands while running (type and press Enter):
  c  check now      a  acknowledge (I have seen the orders list)
  s  toggle sound   q  quit
"""
import argparse
import asyncio
import logging
import sys
from datetime import datetime

from core.config import settings
from services.arrival_watermark import ArrivalWatermarkTracker, JsonFileWatermarkStore
from services.pending_count_client import PendingCountClient

logger = logging.getLogger("watch_orders")


def print_notification(message: str, count: int):
    print(f"[{datetime.now():%H:%M:%S}] 🎉 {message}  (badge: {count})", flush=True)


def ring_bell():
    sys.stdout.write("\a")
    sys.stdout.flush()


def print_status(tracker: ArrivalWatermarkTracker):
    watermark = tracker.watermark
    seen = watermark.last_seen_pending_count if watermark else "-"
    sound = "on" if tracker.sound_enabled else "off"
    line = f"pending: {tracker.last_count}  last seen: {seen}  badge: {tracker.badge}  sound: {sound}"
    if tracker.last_error:
        line += f"  error: {tracker.last_error} (will retry)"
    print(line, flush=True)


async def read_commands(tracker: ArrivalWatermarkTracker):
    loop = asyncio.get_running_loop()
    while True:
        line = await loop.run_in_executor(None, sys.stdin.readline)
        if not line:
            tracker.stop()
            return
        command = line.strip().lower()
        if command == "q":
            tracker.stop()
            return
        try:
            if command == "c":
                await tracker.check_now()
            elif command == "a":
                await tracker.acknowledge()
            elif command == "s":
                tracker.toggle_sound()
            elif command:
                print("commands: c=check now, a=acknowledge, s=toggle sound, q=quit", flush=True)
                continue
        except Exception as e:
            print(f"Request failed: {e}. Press c to refetch.", flush=True)
        print_status(tracker)


async def main(args) -> int:
    async with PendingCountClient(base_url=args.base_url, token=args.token, timeout=args.timeout) as client:
        tracker = ArrivalWatermarkTracker(
            fetch_pending_count=client.fetch_pending_count,
            store=JsonFileWatermarkStore(args.store),
            interval=args.interval,
            notifier=print_notification,
            play_sound=ring_bell,
            sound_enabled=not args.mute
        )
        try:
            await tracker.initialize()
        except Exception as e:
            print(f"❌ Could not reach the order service: {e}")
            return 1

        print_status(tracker)
        commands = asyncio.ensure_future(read_commands(tracker))
        try:
            await tracker.run()
        finally:
            commands.cancel()
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Watch for newly arrived orders")
    parser.add_argument("--token", required=True, help="Bearer token of an ADMIN or DELIVERY user")
    parser.add_argument("--base-url", default=settings.API_BASE_URL)
    parser.add_argument("--interval", type=float, default=settings.PENDING_POLL_INTERVAL_SECONDS)
    parser.add_argument("--timeout", type=float, default=settings.POLL_REQUEST_TIMEOUT_SECONDS)
    parser.add_argument("--store", default=settings.WATERMARK_STORE_PATH, help="Where the watermark is kept")
    parser.add_argument("--mute", action="store_true", help="Start with the sound alert off")
    args = parser.parse_args()

    logging.basicConfig(level=settings.LOG_LEVEL, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    try:
        sys.exit(asyncio.run(main(args)))
    except KeyboardInterrupt:
        sys.exit(0)
