import argparse
import json
import logging
import sys
import time

from dateutil import parser as date_parser

from clinic_notifications.app import build_app
from clinic_notifications.utils.config import config

# Configure logging
logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def _print(data):
    print(json.dumps(data, indent=2, default=str, ensure_ascii=False))


def _parse_value(raw: str):
    """Interpret CLI values: true/false, integers, otherwise the text itself"""
    lowered = raw.strip().lower()
    if lowered in ("true", "yes", "on"):
        return True
    if lowered in ("false", "no", "off"):
        return False
    try:
        return int(raw)
    except ValueError:
        return raw.strip()


def _parse_date(raw):
    return date_parser.isoparse(raw) if raw else None


def run_worker(app, args):
    app.scheduler.start()
    logger.info("Worker running; press Ctrl+C to stop")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("Shutting down worker")
    finally:
        app.scheduler.stop()


def run_process_now(app, args):
    _print(app.scheduler.process_now())


def run_status(app, args):
    _print(app.scheduler.status())


def run_providers(app, args):
    _print(app.service.get_providers_status())


def run_stats(app, args):
    _print(app.service.get_notification_stats(
        appointment_id=args.appointment,
        date_from=_parse_date(args.date_from),
        date_to=_parse_date(args.date_to)
    ))


def run_logs(app, args):
    result = app.service.list_logs(
        page=args.page,
        limit=args.limit,
        appointment_id=args.appointment,
        channel=args.channel,
        status=args.status
    )
    result["logs"] = [log.to_dict() for log in result["logs"]]
    _print(result)


def run_config(app, args):
    if args.set:
        updates = {}
        for item in args.set:
            if "=" not in item:
                raise SystemExit(f"Expected key=value, got: {item}")
            key, value = item.split("=", 1)
            updates[key.strip()] = _parse_value(value)
        try:
            app.service.update_configuration(updates)
        except ValueError as e:
            raise SystemExit(str(e))
    _print(app.service.get_configuration().model_dump(mode="json"))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Clinic appointment reminder notifications")
    parser.add_argument("--db", help="SQLite database path", default=None)
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("worker", help="Run the reminder scheduler until interrupted").set_defaults(func=run_worker)
    sub.add_parser("process-now", help="Dispatch due reminders once").set_defaults(func=run_process_now)
    sub.add_parser("status", help="Show scheduler status").set_defaults(func=run_status)
    sub.add_parser("providers", help="Show configured channel providers").set_defaults(func=run_providers)

    stats = sub.add_parser("stats", help="Delivery statistics")
    stats.add_argument("--appointment")
    stats.add_argument("--date-from")
    stats.add_argument("--date-to")
    stats.set_defaults(func=run_stats)

    logs = sub.add_parser("logs", help="List delivery logs, newest first")
    logs.add_argument("--appointment")
    logs.add_argument("--channel", type=str.upper, choices=["WHATSAPP", "SMS", "EMAIL"])
    logs.add_argument("--status", type=str.upper)
    logs.add_argument("--page", type=int, default=1)
    logs.add_argument("--limit", type=int, default=50)
    logs.set_defaults(func=run_logs)

    cfg = sub.add_parser("config", help="Show or update reminder configuration")
    cfg.add_argument("--set", action="append", metavar="KEY=VALUE")
    cfg.set_defaults(func=run_config)

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    config.validate_config()
    app = build_app(db_path=args.db)
    args.func(app, args)
    return 0


if __name__ == "__main__":
    sys.exit(main())
