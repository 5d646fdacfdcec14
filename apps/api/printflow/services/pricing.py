import math
from dataclasses import dataclass

from printflow.config import settings


@dataclass(frozen=True)
class PrintingOptions:
    page_size: str = "A4"
    color: str = "bw"
    sided: str = "single"
    copies: int = 1
    page_count: int = 1
    color_pages: tuple[int, ...] = ()
    service_option: str | None = None


@dataclass(frozen=True)
class PriceBreakdown:
    printing: float
    service_fee: float
    delivery_charge: float
    template_price: float
    total: float
    creator_share_amount: float | None = None
    platform_share_amount: float | None = None


def _round_money(value: float) -> float:
    return round(value + 1e-9, 2)


def base_price_for(page_size: str) -> float:
    prices = {"A4": settings.price_a4, "A3": settings.price_a3}
    return float(prices.get(page_size, settings.price_a4))


def printing_cost(options: PrintingOptions) -> float:
    base = base_price_for(options.page_size)
    sided_multiplier = settings.double_sided_multiplier if options.sided == "double" else 1
    pages = max(options.page_count, 1)

    if options.color == "mixed":
        color_pages = len({p for p in options.color_pages if 1 <= p <= pages})
        bw_pages = pages - color_pages
        per_copy = (
            base * color_pages * settings.color_multiplier + base * bw_pages
        ) * sided_multiplier
    else:
        color_multiplier = settings.color_multiplier if options.color == "color" else 1
        per_copy = base * pages * color_multiplier * sided_multiplier

    return per_copy * max(options.copies, 1)


def service_option_fee(options: PrintingOptions) -> float:
    if options.page_count <= 1 or not options.service_option:
        return 0.0
    fees = {
        "binding": settings.binding_fee,
        "file": settings.file_handling_fee,
        "service": settings.service_fee,
    }
    return float(fees.get(options.service_option, 0))


def template_revenue_split(price: float, commission_percent: float) -> tuple[float, float]:
    """Return ``(creator_share, platform_share)`` for a paid template."""
    platform_share = _round_money(price * commission_percent / 100)
    return _round_money(price - platform_share), platform_share


def quote(
    options: PrintingOptions,
    *,
    delivery_charge: float = 0.0,
    template_price: float | None = None,
) -> PriceBreakdown:
    printing = printing_cost(options)
    fee = service_option_fee(options)
    surcharge = template_price or 0.0
    creator_share = platform_share = None
    if template_price:
        creator_share, platform_share = template_revenue_split(
            template_price, settings.template_commission_percent
        )
    total = printing + fee + delivery_charge + surcharge
    return PriceBreakdown(
        printing=_round_money(printing),
        service_fee=_round_money(fee),
        delivery_charge=_round_money(delivery_charge),
        template_price=_round_money(surcharge),
        total=_round_money(total),
        creator_share_amount=creator_share,
        platform_share_amount=platform_share,
    )


def to_paise(amount: float) -> int:
    return int(round(amount * 100))


def estimate_print_duration_minutes(page_count: int, copies: int, is_color: bool) -> int:
    pages = max(page_count, 1)
    minutes = pages * max(copies, 1) * 0.5 + (pages * 0.3 if is_color else 0)
    return math.ceil(minutes)


def delivery_charge_for(distance_km: float | None) -> float:
    """Distance-banded delivery charge: 0-5 km is one band, 20+ km caps at five."""
    if distance_km is None:
        return 0.0
    bands = math.ceil(max(distance_km, 0) / settings.delivery_band_km)
    bands = max(1, min(bands, settings.delivery_max_bands))
    return float(settings.delivery_charge_per_band * bands)
