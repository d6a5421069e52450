import logging
from dataclasses import dataclass, field

from budgetsync.models import BudgetCategory, SheetStructure, Transaction
from budgetsync.rules import MappingRules

logger = logging.getLogger(__name__)


@dataclass
class Categorization:
    mapped: list[tuple[Transaction, BudgetCategory]] = field(default_factory=list)
    unmapped: list[Transaction] = field(default_factory=list)


def classify(
    transaction: Transaction,
    structure: SheetStructure,
    rules: MappingRules,
) -> BudgetCategory | None:
    """Pick the category for a transaction. Configured rules win over category patterns,
    which win over the income catch-all. Unmatched expenses stay unmapped."""
    key = transaction.mapping_key

    for pattern, category_name in rules.match(key):
        category = structure.find_category(category_name)
        if category is not None:
            logger.debug("Mapped %r to %r using rule %r", key, category.name, pattern)
            return category

    category = structure.find_best_match(transaction)
    if category is not None:
        logger.debug("Mapped %r to %r using category patterns", key, category.name)
        return category

    if transaction.is_income:
        category = structure.first_income_category()
        if category is not None:
            logger.debug("Mapped income transaction %r to %r", key, category.name)
            return category

    logger.debug("No mapping found for transaction: %s", transaction)
    return None


def categorize_transactions(
    transactions: list[Transaction],
    structure: SheetStructure,
    rules: MappingRules,
) -> Categorization:
    result = Categorization()
    for txn in transactions:
        category = classify(txn, structure, rules)
        if category is None:
            result.unmapped.append(txn)
        else:
            result.mapped.append((txn, category))
    return result


def get_unmapped_categories(
    transactions: list[Transaction],
    structure: SheetStructure,
    rules: MappingRules,
) -> list[BudgetCategory]:
    """Categories that received no transaction in this batch, in sheet order."""
    used = {cat.name for _, cat in categorize_transactions(transactions, structure, rules).mapped}
    return [cat for cat in structure.categories if cat.name not in used]
