"""Dispatch assembled tool calls to read-only handlers.

Every handler validates its model-generated arguments, runs a small number
of read queries through :class:`PropertyRepository`, and returns text that
can be streamed to the guest as-is.
"""

import logging
from collections.abc import Callable
from typing import Any

from database.PropertyRepository import PropertyRepository
from relay.errors import ToolArgumentError
from relay.models import (
    CheckAvailabilityArgs,
    OwnerProfitArgs,
    StayPriceArgs,
    parse_tool_arguments,
)
from relay.tools import TOOL_NAMES

logger = logging.getLogger(__name__)

CLEANING_FEE = 50
SERVICE_FEE_RATE = 0.12
MANAGEMENT_COMMISSION = 0.18
OWNER_CLEANING_PER_STAY = 25
AVERAGE_STAY_NIGHTS = 3
MAX_LISTED = 5
WHATSAPP = "+40723154520"


def _fmt_date(value) -> str:
    return value.strftime("%d.%m.%Y")


def _plural(count: int, one: str, many: str) -> str:
    return f"{count} {one if count == 1 else many}"


class ToolExecutor:
    """Executes tool calls by name against the listings database."""

    def __init__(self, repository: PropertyRepository) -> None:
        self._repository = repository
        self._handlers: dict[str, Callable[[Any, str], str]] = {
            "check_availability": self._check_availability,
            "get_stay_price": self._get_stay_price,
            "estimate_owner_profit": self._estimate_owner_profit,
        }

    def execute(self, name: str, arguments: dict[str, Any], language: str = "ro") -> str:
        """Run the named tool and return its formatted result.

        Unknown tools and unusable arguments produce a short explanatory
        text instead of an exception. Database failures propagate as
        ``RuntimeError`` so the caller can drop the result entirely.

        Args:
            name: Tool name as sent by the model.
            arguments: Parsed argument object (may be empty).
            language: ``"ro"`` or ``"en"``; selects the output language.
        """
        if name not in TOOL_NAMES:
            logger.warning("Model requested unknown tool: %r", name)
            if language == "en":
                return f"Unknown function: {name or '(unnamed)'}."
            return f"Funcție necunoscută: {name or '(fără nume)'}."

        try:
            args = parse_tool_arguments(name, arguments)
        except ToolArgumentError as e:
            logger.warning("%s", e)
            if language == "en":
                return (
                    "I could not understand the details of this request. "
                    "Could you rephrase it, with exact dates (e.g. 2025-07-10)?"
                )
            return (
                "Nu am putut înțelege detaliile cererii. "
                "Poți reformula, cu date exacte (ex. 2025-07-10)?"
            )

        logger.info("Executing tool %s with %s", name, args.model_dump(mode="json"))
        return self._handlers[name](args, language)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _check_availability(self, args: CheckAvailabilityArgs, language: str) -> str:
        candidates = self._repository.active_properties(min_capacity=args.guests)
        booked = self._repository.booked_property_ids(args.check_in, args.check_out)
        free = [p for p in candidates if p["id"] not in booked]

        period = f"{_fmt_date(args.check_in)} - {_fmt_date(args.check_out)}"
        if language == "en":
            header = (
                f"Availability {period} ({_plural(args.nights, 'night', 'nights')}, "
                f"{_plural(args.guests, 'guest', 'guests')}):"
            )
            if not free:
                return (
                    f"{header}\nNo apartments are free for these dates. "
                    f"Message us on WhatsApp ({WHATSAPP}) and we will find an alternative."
                )
            per_night = "night"
            more = "more available"
            footer = "Book directly with code DIRECT5 for 5% off."
        else:
            header = (
                f"Disponibilitate {period} ({_plural(args.nights, 'noapte', 'nopți')}, "
                f"{_plural(args.guests, 'oaspete', 'oaspeți')}):"
            )
            if not free:
                return (
                    f"{header}\nNu avem apartamente libere în aceste date. "
                    f"Scrie-ne pe WhatsApp ({WHATSAPP}) și găsim o alternativă."
                )
            per_night = "noapte"
            more = "disponibile în plus"
            footer = "Rezervă direct cu codul DIRECT5 pentru 5% reducere."

        lines = [header]
        for prop in free[:MAX_LISTED]:
            lines.append(
                f"• {prop['name']} ({prop['location']}) - "
                f"{prop['price_per_night']:.0f} €/{per_night}"
            )
        if len(free) > MAX_LISTED:
            lines.append(f"+ {len(free) - MAX_LISTED} {more}")
        lines.append(footer)
        return "\n".join(lines)

    def _get_stay_price(self, args: StayPriceArgs, language: str) -> str:
        matches = self._repository.active_properties(
            name=args.property_name, min_capacity=args.guests, limit=MAX_LISTED
        )
        if not matches and args.property_name:
            # Unknown apartment name: quote the general offer instead.
            matches = self._repository.active_properties(
                min_capacity=args.guests, limit=MAX_LISTED
            )
        if not matches:
            if language == "en":
                return f"I have no prices for that request. Message us on WhatsApp: {WHATSAPP}."
            return f"Nu am prețuri pentru această cerere. Scrie-ne pe WhatsApp: {WHATSAPP}."

        en = language == "en"
        nights = _plural(args.nights, "night", "nights") if en else _plural(args.nights, "noapte", "nopți")
        lines = [f"Price for {nights}:" if en else f"Preț pentru {nights}:"]
        for prop in matches:
            base = round(prop["price_per_night"] * args.nights)
            service = round(base * SERVICE_FEE_RATE)
            total = base + CLEANING_FEE + service
            if en:
                lines.append(
                    f"• {prop['name']}: {base} € stay + {CLEANING_FEE} € cleaning + "
                    f"{service} € service = {total} €"
                )
            else:
                lines.append(
                    f"• {prop['name']}: {base} € cazare + {CLEANING_FEE} € curățenie + "
                    f"{service} € servicii = {total} €"
                )
        lines.append(
            "Code DIRECT5 gives 5% off direct bookings."
            if en
            else "Codul DIRECT5 îți oferă 5% reducere la rezervarea directă."
        )
        return "\n".join(lines)

    def _estimate_owner_profit(self, args: OwnerProfitArgs, language: str) -> str:
        rate = self._repository.price_per_sqm(args.location)
        nightly = round(rate * args.area_sqm)
        gross = nightly * args.occupancy * 30
        commission = gross * MANAGEMENT_COMMISSION
        stays = 30 * args.occupancy / AVERAGE_STAY_NIGHTS
        cleaning = stays * OWNER_CLEANING_PER_STAY
        net = gross - commission - cleaning

        occupancy = f"{args.occupancy * 100:.0f}%"
        area = f"{args.area_sqm:.0f}"
        if language == "en":
            return "\n".join([
                f"Estimate for a {area} sqm apartment"
                + (f" in {args.location}" if args.location else "") + ":",
                f"• Nightly rate: ~{nightly} €",
                f"• Occupancy: {occupancy}",
                f"• Gross monthly income: ~{gross:.0f} €",
                f"• Management commission (18%): -{commission:.0f} €",
                f"• Cleaning: -{cleaning:.0f} €",
                f"• Net monthly income: ~{net:.0f} €",
                "This is an estimate; book a free evaluation on WhatsApp for an exact figure.",
            ])
        return "\n".join([
            f"Estimare pentru un apartament de {area} mp"
            + (f" în zona {args.location}" if args.location else "") + ":",
            f"• Tarif pe noapte: ~{nightly} €",
            f"• Grad de ocupare: {occupancy}",
            f"• Venit brut lunar: ~{gross:.0f} €",
            f"• Comision administrare (18%): -{commission:.0f} €",
            f"• Curățenie: -{cleaning:.0f} €",
            f"• Venit net lunar: ~{net:.0f} €",
            "Este o estimare; cere o evaluare gratuită pe WhatsApp pentru o cifră exactă.",
        ])
