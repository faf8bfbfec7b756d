import logging
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from tracker.domain import EXPENSE, INCOME, TRANSACTION_TYPES
from tracker.interfaces import CategoryStore

logger = logging.getLogger(__name__)

DEFAULT_INCOME_CATEGORIES = ("Salary", "Business", "Freelance", "Gifts", "Adjusted", "Other")
DEFAULT_EXPENSE_CATEGORIES = (
    "Food", "Transport", "Rent", "Utilities", "Entertainment",
    "Health", "Shopping", "Education", "Adjusted", "Other",
)

# Labels the user can never remove. "Other" stays deletable.
PROTECTED_CATEGORIES = frozenset(
    DEFAULT_INCOME_CATEGORIES + DEFAULT_EXPENSE_CATEGORIES
) - {"Other"}


@dataclass(frozen=True)
class CategorySet:
    income: Tuple[str, ...] = DEFAULT_INCOME_CATEGORIES
    expense: Tuple[str, ...] = DEFAULT_EXPENSE_CATEGORIES

    @classmethod
    def from_dict(cls, data: Dict[str, List[str]]) -> "CategorySet":
        return cls(
            income=_unique(data.get(INCOME) or DEFAULT_INCOME_CATEGORIES),
            expense=_unique(data.get(EXPENSE) or DEFAULT_EXPENSE_CATEGORIES),
        )

    def to_dict(self) -> Dict[str, List[str]]:
        return {INCOME: list(self.income), EXPENSE: list(self.expense)}

    def for_type(self, category_type: str) -> Tuple[str, ...]:
        if category_type == INCOME:
            return self.income
        if category_type == EXPENSE:
            return self.expense
        raise ValueError(f"Unknown category type: {category_type!r}")

    def with_added(self, label: str, category_type: str) -> "CategorySet":
        current = self.for_type(category_type)
        if label in current:
            return self
        return self._replace(category_type, current + (label,))

    def with_removed(self, label: str, category_type: str) -> "CategorySet":
        current = self.for_type(category_type)
        return self._replace(category_type, tuple(c for c in current if c != label))

    def _replace(self, category_type: str, labels: Tuple[str, ...]) -> "CategorySet":
        if category_type == INCOME:
            return CategorySet(income=labels, expense=self.expense)
        return CategorySet(income=self.income, expense=labels)


def is_deletable(label: str) -> bool:
    return label not in PROTECTED_CATEGORIES


def _unique(labels) -> Tuple[str, ...]:
    return tuple(dict.fromkeys(labels))


@dataclass
class CategoryService:
    """Category labels of one identity, mirrored from a CategoryStore.

    add/delete report failures as False and only update the local set once
    the store accepted the change.
    """

    store: CategoryStore
    uid: str
    categories: CategorySet = field(default_factory=CategorySet)

    async def load(self) -> CategorySet:
        try:
            saved = await self.store.load(self.uid)
            if saved is None:
                # first visit: materialise the defaults
                self.categories = CategorySet()
                await self.store.save(self.uid, self.categories.to_dict())
            else:
                self.categories = CategorySet.from_dict(saved)
        except Exception as e:
            logger.error("Error loading categories for %s: %s", self.uid, e)
        return self.categories

    async def add(self, label: str, category_type: str) -> bool:
        label = (label or "").strip()
        if not label or category_type not in TRANSACTION_TYPES:
            return False
        if label in self.categories.for_type(category_type):
            logger.info("Category %s already exists for %s", label, category_type)
            return False
        try:
            await self.store.add(self.uid, category_type, label)
        except Exception as e:
            logger.error("Error adding category %s: %s", label, e)
            return False
        self.categories = self.categories.with_added(label, category_type)
        return True

    async def delete(self, label: str, category_type: str) -> bool:
        if category_type not in TRANSACTION_TYPES:
            return False
        if not is_deletable(label):
            logger.warning("Refusing to delete protected category %s", label)
            return False
        if label not in self.categories.for_type(category_type):
            return False
        try:
            await self.store.delete(self.uid, category_type, label)
        except Exception as e:
            logger.error("Error deleting category %s: %s", label, e)
            return False
        self.categories = self.categories.with_removed(label, category_type)
        return True
