"""
Rent-roll row normalization.

Turns loosely keyed records (from the structured-extraction collaborator or
a caller) or raw rent-roll text into RentRollRow objects with normalized lot
numbers, and discards rents that were scraped from a "Total" column.
"""
import re
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple

import structlog

from lotledger.policy import DEFAULT_RENT_ROLL_POLICY, RentRollPolicy
from lotledger.rent_roll.models import RentRollRow
from lotledger.schemas.structured import coerce_amount
from lotledger.services.numeric_parser import NumericParser, get_numeric_parser
from lotledger.services.row_tokenizer import RowTokenizer, get_row_tokenizer
from lotledger.services.text_normalizer import normalize_lines

logger = structlog.get_logger(__name__)

# Trailing 1-4 digit run: "Lot 12A" -> 12, "Space #007" -> 7
LOT_DIGITS_PATTERN = re.compile(r"(\d{1,4})\D*$")
LOT_CELL_PATTERN = re.compile(
    r"^(?:(?:lot|space|site|unit|pad|no\.?)\s*#?\s*)?#?[A-Z]{0,2}-?\d{1,4}[A-Z]?$",
    re.IGNORECASE,
)
LOT_PREFIXES = ("lot", "space", "site", "unit", "pad", "no", "no.")
TOTAL_LINE_PATTERN = re.compile(r"\btotals?\b", re.IGNORECASE)
HEADER_LINE_PATTERN = re.compile(r"\brent\s+roll\b|\breport\b|\bas\s+of\b|\bprinted\b", re.IGNORECASE)
VACANT_PATTERN = re.compile(r"\bvacant\b", re.IGNORECASE)
STATUS_WORDS = {"vacant", "occupied", "yes", "no", "y", "n"}

LOT_KEYS = ("lotNumber", "lot", "lot_no", "space", "unit", "site", "padNumber")
TENANT_KEYS = ("tenantName", "tenant", "name", "resident", "tenant_name", "occupant")
RENT_KEYS = ("rent", "monthlyRent", "amount", "payment")
OCCUPANCY_KEYS = ("occupied", "isOccupied", "status", "occupancy")
TRUTHY_OCCUPANCY = {"true", "yes", "y", "occupied", "1"}


def normalize_lot_token(token: Any, width: int = 3) -> Optional[Tuple[str, int]]:
    """
    Normalize a raw lot token.

    Args:
        token: Raw lot identifier ("2", "002", "Lot 2", 2).
        width: Zero-padding width for display.

    Returns:
        (display, numeric) such as ("002", 2), or None when the token has no digits.
    """
    if token is None or isinstance(token, bool):
        return None
    match = LOT_DIGITS_PATTERN.search(str(token).strip())
    if not match:
        return None
    numeric = int(match.group(1))
    return str(numeric).zfill(width), numeric


def coerce_occupied(value: Any) -> bool:
    """Coerce an occupancy flag: bools as-is, numbers > 0, truthy words."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float, Decimal)):
        return value > 0
    if isinstance(value, str):
        return value.strip().lower() in TRUTHY_OCCUPANCY
    return False


def coerce_rent(value: Any) -> Optional[Decimal]:
    """A rent that is missing, unparsable, zero or negative is absent."""
    amount = coerce_amount(value)
    if amount is None or amount <= 0:
        return None
    return amount


def _first(record: Mapping[str, Any], keys: Iterable[str]) -> Any:
    for key in keys:
        value = record.get(key)
        if value is not None:
            return value
    return None


def _clean_tenant(value: Any) -> Optional[str]:
    if value is None:
        return None
    tenant = " ".join(str(value).split())
    return tenant or None


def collect_total_values(
    text: str,
    numeric_parser: Optional[NumericParser] = None,
    tokenizer: Optional[RowTokenizer] = None,
) -> Set[Decimal]:
    """Every non-zero amount found on a line that mentions "total"."""
    parser = numeric_parser or get_numeric_parser()
    tokenizer = tokenizer or get_row_tokenizer()
    values: Set[Decimal] = set()
    for line in normalize_lines(text or ""):
        if not TOTAL_LINE_PATTERN.search(line):
            continue
        tokens = [t for cell in tokenizer.tokenize(line).cells for t in cell.split()]
        for token in tokens:
            if not parser.is_amount_token(token):
                continue
            value = parser.parse(token).value
            if value is not None and value != 0:
                values.add(abs(value))
    return values


class RentRollNormalizer:
    """
    Normalizer for per-lot rent-roll rows.

    Rows whose lot token has no digits are dropped. A record without any
    lot key is numbered by its position.
    """

    def __init__(
        self,
        policy: RentRollPolicy = DEFAULT_RENT_ROLL_POLICY,
        tokenizer: Optional[RowTokenizer] = None,
        numeric_parser: Optional[NumericParser] = None,
    ):
        self._policy = policy
        self._tokenizer = tokenizer or get_row_tokenizer()
        self._parser = numeric_parser or get_numeric_parser()

    def _lot(self, token: Any) -> Optional[Tuple[str, int]]:
        return normalize_lot_token(token, self._policy.lot_display_width)

    def rows_from_records(self, records: Iterable[Dict[str, Any]]) -> List[RentRollRow]:
        """
        Normalize loosely keyed records.

        Args:
            records: Dicts using any of the accepted lot, tenant, rent and
                occupancy keys.

        Returns:
            Rows in input order.
        """
        rows: List[RentRollRow] = []
        dropped = 0

        for index, record in enumerate(records):
            if not isinstance(record, Mapping):
                dropped += 1
                continue

            raw_lot = _first(record, LOT_KEYS)
            if raw_lot is None or not str(raw_lot).strip():
                raw_lot = str(index + 1)
            lot = self._lot(raw_lot)
            if lot is None:
                dropped += 1
                continue

            occupancy = _first(record, OCCUPANCY_KEYS)
            if occupancy is None and record.get("vacant") is False:
                occupancy = True

            rows.append(RentRollRow(
                lot_number=lot[0],
                lot_numeric=lot[1],
                occupied=coerce_occupied(occupancy),
                rent=coerce_rent(_first(record, RENT_KEYS)),
                tenant=_clean_tenant(_first(record, TENANT_KEYS)),
                original_token=str(raw_lot).strip(),
            ))

        if dropped:
            logger.info("Dropped records without a lot number", dropped=dropped)
        return rows

    def parse_text(self, text: str) -> List[RentRollRow]:
        """
        Deterministic rent-roll text parser.

        Each line whose first cell is a lot token yields a row. The rent is
        the right-most numeric cell after it; the remaining text is the
        tenant. A line mentioning "vacant" is unoccupied; otherwise a row
        is occupied when it has a tenant or a rent.
        """
        rows: List[RentRollRow] = []

        for line in normalize_lines(text or ""):
            if TOTAL_LINE_PATTERN.search(line) or HEADER_LINE_PATTERN.search(line):
                continue

            cells = self._tokenizer.tokenize(line).cells
            if len(cells) == 1:
                cells = cells[0].split()
            if len(cells) > 1 and cells[0].lower().rstrip(":#") in LOT_PREFIXES:
                cells = [f"{cells[0]} {cells[1]}"] + cells[2:]
            if not cells or not LOT_CELL_PATTERN.match(cells[0]):
                continue

            lot = self._lot(cells[0])
            if lot is None:
                continue

            rest = cells[1:]
            rent = None
            rent_index = None
            for i in range(len(rest) - 1, -1, -1):
                if self._parser.is_amount_token(rest[i]):
                    rent_index = i
                    rent = coerce_rent(rest[i])
                    break

            tenant_parts = [
                cell for i, cell in enumerate(rest)
                if i != rent_index
                and not self._parser.is_amount_token(cell)
                and cell.lower() not in STATUS_WORDS
            ]
            tenant = _clean_tenant(" ".join(tenant_parts))
            occupied = not VACANT_PATTERN.search(line) and (tenant is not None or rent is not None)

            rows.append(RentRollRow(
                lot_number=lot[0],
                lot_numeric=lot[1],
                occupied=occupied,
                rent=rent,
                tenant=tenant,
                original_token=cells[0],
            ))

        logger.info("Rent roll text parsed", rows=len(rows))
        return rows

    def discard_total_matches(self, rows: List[RentRollRow], source_text: Optional[str]) -> List[str]:
        """
        Null rents that equal a figure from a "Total" line of the source.

        Returns:
            Lot numbers whose rent was discarded.
        """
        totals = collect_total_values(source_text or "", self._parser, self._tokenizer)
        if not totals:
            return []

        matched = []
        for row in rows:
            if row.rent is not None and row.rent in totals:
                row.rent = None
                row.matched_total = True
                matched.append(row.lot_number)

        if matched:
            logger.info("Discarded rents matching total figures", lots=len(matched))
        return matched
