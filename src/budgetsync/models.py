from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum

from budgetsync.grid import column_letter

MIN_DATE = date.min  # sentinel for unparseable dates

Cell = tuple[int, int]  # (row, column), 1-based


class CategoryType(str, Enum):
    INCOME = "income"
    SHARED_EXPENSE = "shared_expense"
    PERSONAL_EXPENSE = "personal_expense"
    SAVINGS = "savings"
    OTHER = "other"


@dataclass(frozen=True)
class Transaction:
    row_number: int
    clearing_number: str
    account_number: str
    product: str
    currency: str
    booking_date: date
    transaction_date: date
    currency_date: date
    reference: str
    description: str
    amount: Decimal  # negative = expense, positive = income
    booked_balance: Decimal = Decimal(0)

    @property
    def year(self) -> int:
        return self.booking_date.year

    @property
    def month(self) -> int:
        return self.booking_date.month

    @property
    def mapping_key(self) -> str:
        """Normalized key used for pattern matching: reference first, then description."""
        if self.reference:
            return self.reference.strip().upper()
        return self.description.strip().upper()

    @property
    def is_income(self) -> bool:
        return self.amount > 0

    @property
    def is_expense(self) -> bool:
        return self.amount < 0

    @property
    def absolute_amount(self) -> Decimal:
        return abs(self.amount)

    @property
    def has_booking_date(self) -> bool:
        return self.booking_date != MIN_DATE

    def __str__(self) -> str:
        return f"{self.booking_date.isoformat()} {self.description} {self.amount:.2f} ({self.reference})"


@dataclass(frozen=True)
class BudgetCategory:
    name: str
    section: str  # grouping label, e.g. Gemensamma, Mina egna, Sparande
    row_index: int
    category_type: CategoryType
    patterns: tuple[str, ...] = ()

    def matches(self, transaction: Transaction) -> bool:
        key = transaction.mapping_key
        return any(pattern.upper() in key for pattern in self.patterns)

    def __str__(self) -> str:
        return f"{self.section} - {self.name}"


@dataclass(frozen=True)
class SheetStructure:
    """Layout of one year tab: fixed header rows, month columns and category rows."""
    categories: tuple[BudgetCategory, ...] = ()
    year_row: int = 1
    income_row: int = 2
    month_header_row: int = 3
    first_data_row: int = 4
    month_start_column: int = 2  # column B

    def __post_init__(self):
        seen: dict[int, str] = {}
        for cat in self.categories:
            if cat.row_index in seen:
                raise ValueError(
                    f"Categories '{seen[cat.row_index]}' and '{cat.name}' share row {cat.row_index}"
                )
            seen[cat.row_index] = cat.name

    def column_for_month(self, month: int) -> int:
        if not 1 <= month <= 12:
            raise ValueError(f"Month out of range: {month}")
        return self.month_start_column + (month - 1)

    def column_letter_for_month(self, month: int) -> str:
        return column_letter(self.column_for_month(month))

    def find_category(self, name: str) -> BudgetCategory | None:
        wanted = name.casefold()
        for cat in self.categories:
            if cat.name.casefold() == wanted:
                return cat
        return None

    def find_best_match(self, transaction: Transaction) -> BudgetCategory | None:
        for cat in self.categories:
            if cat.matches(transaction):
                return cat
        return None

    def first_income_category(self) -> BudgetCategory | None:
        for cat in self.categories:
            if cat.category_type is CategoryType.INCOME:
                return cat
        return None


@dataclass(frozen=True)
class RowResult:
    """Outcome of parsing one CSV row: a transaction or a reason for skipping it."""
    line_number: int
    transaction: Transaction | None = None
    skip_reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.transaction is not None


@dataclass(frozen=True)
class CategoryMonthTotal:
    category: BudgetCategory
    month: int
    total: Decimal  # sum of absolute amounts, never negative
    count: int


@dataclass
class SyncResult:
    sheet_name: str
    totals: list[CategoryMonthTotal] = field(default_factory=list)
    unmapped: list[Transaction] = field(default_factory=list)
    undated: list[Transaction] = field(default_factory=list)  # no booking date, so no month column
    updates: dict[Cell, Decimal] = field(default_factory=dict)
    dry_run: bool = False
