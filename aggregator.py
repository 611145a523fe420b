"""Summary statistics for the sales dashboard."""
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

CHANNELS = ('voiceLines', 'bts', 'iot', 'hsi')

CENT = Decimal('0.01')
TENTH = Decimal('0.1')


class EntryValueError(ValueError):
    """Raised when an entry field cannot be read as a number."""

    def __init__(self, field, value):
        super().__init__(f"{field} is not a number: {value!r}")
        self.field = field
        self.value = value


@dataclass
class SummaryStats:
    voice_lines: int = 0
    bts: int = 0
    iot: int = 0
    hsi: int = 0
    total_lines: int = 0
    accessories: str = '0.00'
    protection: int = 0
    protection_percent: str = '0.0%'
    average_mrc: str = '0.00'
    average_lines: int = 0
    entry_count: int = 0
    latest: Optional[dict] = None


def _number(entry, field):
    value = entry.get(field)
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise EntryValueError(field, value)
    if not number.is_finite():
        raise EntryValueError(field, value)
    return number


def _count(entry, field):
    number = _number(entry, field)
    if number != number.to_integral_value():
        raise EntryValueError(field, entry.get(field))
    return int(number)


def summarize(entries):
    """Aggregate a newest-first list of entry mappings.

    Sums do not depend on order; ``latest`` is simply ``entries[0]``.
    """
    entries = list(entries)
    stats = SummaryStats(entry_count=len(entries))
    if not entries:
        return stats

    channel_totals = dict.fromkeys(CHANNELS, 0)
    accessories = Decimal('0')
    mrc = Decimal('0')
    protection = 0

    for entry in entries:
        for channel in CHANNELS:
            channel_totals[channel] += _count(entry, channel)
        accessories += _number(entry, 'accessories')
        protection += _count(entry, 'protection')
        mrc += _number(entry, 'mrc')

    total_lines = sum(channel_totals.values())

    stats.voice_lines = channel_totals['voiceLines']
    stats.bts = channel_totals['bts']
    stats.iot = channel_totals['iot']
    stats.hsi = channel_totals['hsi']
    stats.total_lines = total_lines
    stats.accessories = str(accessories.quantize(CENT, rounding=ROUND_HALF_UP))
    stats.protection = protection
    stats.protection_percent = protection_percent(protection, total_lines)
    stats.average_mrc = str((mrc / len(entries)).quantize(CENT, rounding=ROUND_HALF_UP))
    stats.average_lines = int((Decimal(total_lines) / len(entries)).quantize(Decimal('1'), rounding=ROUND_HALF_UP))
    stats.latest = entries[0]
    return stats


def protection_percent(protection, total_lines):
    if not total_lines:
        return '0.0%'
    percent = Decimal(protection) * 100 / Decimal(total_lines)
    return f"{percent.quantize(TENTH, rounding=ROUND_HALF_UP)}%"
