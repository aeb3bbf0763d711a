"""CLI entrypoint for the CampusNest unlock client."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from campusnest.config import load_settings_from_env
from campusnest.errors import UnlockError
from campusnest.export import export_unlocked_to_xlsx
from campusnest.models import PropertyRecord
from campusnest.notifications import BrowserNavigator, LoggingNotifier
from campusnest.session import ViewerSession

logger = logging.getLogger(__name__)


def configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="CampusNest premium details client")
    parser.add_argument("--unlock", metavar="PROPERTY_ID", help="pay to unlock a property")
    parser.add_argument(
        "--callback",
        metavar="URL",
        help="complete an unlock using the URL the payment provider returned to",
    )
    parser.add_argument("--show", metavar="PROPERTY_ID", help="show a property")
    parser.add_argument(
        "--unlocked",
        action="store_true",
        help="list properties unlocked by the current viewer",
    )
    parser.add_argument("--export", metavar="PATH", help="export unlocked properties to xlsx")
    parser.add_argument("--logout", action="store_true", help="discard session storage")
    parser.add_argument(
        "--viewer-id",
        default=os.getenv("CAMPUSNEST_VIEWER_ID", ""),
        help="viewer identity (overrides CAMPUSNEST_VIEWER_ID env var)",
    )
    parser.add_argument(
        "--token",
        default=os.getenv("CAMPUSNEST_TOKEN", ""),
        help="API bearer token (overrides CAMPUSNEST_TOKEN env var)",
    )
    parser.add_argument("--verbose", action="store_true", help="enable debug logging")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    if not any([args.unlock, args.callback, args.show, args.unlocked, args.export, args.logout]):
        parser.print_help()
        return 1

    settings = load_settings_from_env()
    try:
        session = ViewerSession.login(
            settings,
            viewer_id=args.viewer_id,
            token=args.token,
            navigator=BrowserNavigator(client_url=settings.client_url),
            notifier=LoggingNotifier(),
        )
    except UnlockError as exc:
        logger.error("%s", exc.message)
        return 1

    if args.logout:
        session.logout()
        return 0

    try:
        if args.unlock:
            session.initiator.expire_abandoned()
            logger.info("Unlocking premium details costs %s", session.initiator.fee_display())
            result = session.initiator.initiate_unlock(args.unlock)
            if result.already_unlocked:
                logger.info("Property %s is already unlocked", args.unlock)
                _log_property(session.properties.get_property(args.unlock))
            else:
                logger.info(
                    "After paying, rerun with --callback and the URL you were returned to"
                )

        if args.callback:
            outcome = session.reconciler.reconcile(args.callback)
            if not outcome.verified:
                if outcome.retryable:
                    logger.info("Retry with the same URL once your connection is back")
                logger.info("Back to %s%s", settings.client_url, outcome.route)
                return 1
            if outcome.property_id:
                _log_property(session.properties.get_property(outcome.property_id))

        if args.show:
            _log_property(session.properties.get_property(args.show))

        if args.unlocked or args.export:
            records = session.properties.unlocked_properties()
            if args.unlocked:
                logger.info("Unlocked properties (%d):", len(records))
                for record in records:
                    _log_property(record)
            if args.export:
                export_unlocked_to_xlsx(
                    records,
                    Path(args.export),
                    grants=session.context.database.fetch_grants(session.context.viewer_id),
                )
    except UnlockError as exc:
        logger.error("%s", exc.message)
        return 1
    return 0


def _log_property(record: PropertyRecord) -> None:
    logger.info(
        "%s | %s (%s from campus) | %s %s/%s | %d bd / %d ba, %s | %s",
        record.title or record.property_id,
        record.location.area,
        record.location.distance_from_campus.display(),
        record.price.currency,
        f"{record.price.amount:,.0f}",
        record.price.period,
        record.specifications.bedrooms,
        record.specifications.bathrooms,
        record.specifications.size.display(),
        "locked" if record.locked else "unlocked",
    )
    premium = record.premium
    gps = premium.gps_coordinates
    logger.info(
        "  address: %s | gps: %s | caretaker: %s %s",
        premium.exact_address,
        f"{gps.latitude:.6f}, {gps.longitude:.6f}" if gps.is_set else "n/a",
        premium.caretaker.name,
        premium.caretaker.phone,
    )


if __name__ == "__main__":
    sys.exit(main())
