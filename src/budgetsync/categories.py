from budgetsync.models import BudgetCategory, CategoryType, SheetStructure

# (name, section, row, type, patterns)
DEFAULT_CATEGORIES = [
    # Income
    ("Inkomst", "Income", 2, CategoryType.INCOME, ("LÖN", "L\ufffdN", "LON", "LOEN", "SALARY")),
    # Gemensamma
    ("Hyra", "Gemensamma", 4, CategoryType.SHARED_EXPENSE, ("HALMSTADS FASTIG", "HYRA", "RENT")),
    ("Tele2", "Gemensamma", 5, CategoryType.SHARED_EXPENSE, ("TELE2",)),
    ("Netflix", "Gemensamma", 7, CategoryType.SHARED_EXPENSE, ("NETFLIX",)),
    ("Billån", "Gemensamma", 9, CategoryType.SHARED_EXPENSE, ("MOTORHALLAND FIN", "BILLÅN", "BILLAN")),
    ("IF Skadeförsäkring", "Gemensamma", 11, CategoryType.SHARED_EXPENSE, ("IF SKADEFÖRS", "IF SKADEF")),
    # Mina egna
    ("Spotify", "Mina egna", 16, CategoryType.PERSONAL_EXPENSE, ("SPOTIFY",)),
    ("Bliwa Sjuk & Olycksförsäkring", "Mina egna", 17, CategoryType.PERSONAL_EXPENSE, ("BLIWA",)),
    ("Comviq mobil", "Mina egna", 18, CategoryType.PERSONAL_EXPENSE, ("COMVIQ",)),
    ("Playstation+", "Mina egna", 19, CategoryType.PERSONAL_EXPENSE, ("PLAYSTATION",)),
    ("A-kassa", "Mina egna", 20, CategoryType.PERSONAL_EXPENSE, ("UNION AKASSA", "A-KASSA", "AKASSA")),
    ("Fackavgift", "Mina egna", 21, CategoryType.PERSONAL_EXPENSE, ("UNIONEN", "FACK")),
    ("CSN", "Mina egna", 22, CategoryType.PERSONAL_EXPENSE, ("CSN",)),
    ("Bäckamot", "Mina egna", 24, CategoryType.PERSONAL_EXPENSE, ("BÄCKAMOT", "BACKAMOT")),
    ("Mat", "Mina egna", 25, CategoryType.PERSONAL_EXPENSE, ("MAT", "FOOD", "ICA", "COOP", "WILLYS")),
    # Sparande
    ("Kontant", "Sparande", 32, CategoryType.SAVINGS, ("SPARANDE", "SAVING")),
]


def default_categories() -> tuple[BudgetCategory, ...]:
    return tuple(
        BudgetCategory(name=name, section=section, row_index=row, category_type=cat_type, patterns=patterns)
        for name, section, row, cat_type, patterns in DEFAULT_CATEGORIES
    )


def default_structure() -> SheetStructure:
    return SheetStructure(categories=default_categories())
