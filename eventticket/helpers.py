from __future__ import annotations

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

from eth_utils import from_wei, to_wei

ETHER_DECIMALS = 18


def normalize_endpoint(endpoint: str, add_proto=True) -> str:
    endpoint = endpoint[:-1] if endpoint.endswith("/") else endpoint
    if add_proto:
        if endpoint.startswith("ws://") or endpoint.startswith("wss://"):
            return endpoint
        endpoint = (
            f"https://{endpoint}" if not endpoint.startswith("http") else endpoint
        )
    return endpoint


def parse_ether(amount: str) -> int:
    """
    Convert a decimal ETH amount (e.g. "0.05") into wei.
    Raises ValueError for anything that is not a finite, non-negative amount
    with at most 18 decimals.
    """
    try:
        value = Decimal(amount.strip())
    except (InvalidOperation, AttributeError) as exc:
        raise ValueError(f"Invalid amount: '{amount}'.") from exc
    if not value.is_finite():
        raise ValueError(f"Invalid amount: '{amount}'.")
    if value < 0:
        raise ValueError(f"Amount can not be negative: '{amount}'.")
    exponent = value.as_tuple().exponent
    if isinstance(exponent, int) and -exponent > ETHER_DECIMALS:
        raise ValueError(f"Amount has more than {ETHER_DECIMALS} decimals.")
    return int(to_wei(value, "ether"))


def format_ether(wei: int) -> str:
    text = format(from_wei(wei, "ether"), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def parse_date_input(date_input: str) -> Optional[int]:
    """
    Unix timestamp (seconds) for a form date. Accepts plain timestamps and
    ISO 8601 dates, naive dates are read as local time.
    """
    date_input = date_input.strip()
    if not date_input:
        return None
    if date_input.isdigit():
        try:
            return int(date_input)
        except ValueError:
            return None
    try:
        parsed = datetime.fromisoformat(date_input)
    except ValueError:
        return None
    return int(parsed.timestamp())


def parse_positive_int(value: str) -> Optional[int]:
    try:
        number = int(value.strip())
    except (ValueError, AttributeError):
        return None
    return number if number > 0 else None


def local_datetime(timestamp: int) -> datetime:
    """Timezone aware local time, the same zone naive form dates are read in."""
    return datetime.fromtimestamp(timestamp).astimezone()


def format_timestamp(timestamp: int, fmt: str = "%Y-%m-%d %H:%M") -> str:
    return local_datetime(timestamp).strftime(fmt)
