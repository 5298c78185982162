"""Evaluation item catalog.

Every evaluated call is scored on sixteen yes/no items split into an attitude
category (5 items) and an operations category (11 items). Catalog order is
significant: it is the tie-break order whenever two items have the same count.
"""

from dataclasses import dataclass
from typing import Final

from .constants import ErrorCategory


@dataclass(frozen=True)
class ErrorItem:
    """A single evaluation item.

    Attributes:
        id: Stable identifier used as the key of per-item counts.
        category: Category the item belongs to.
        name: Human readable name.
        position: Position in the catalog (tie-break order).
        aliases: Column names the item may appear under in raw exports.
    """

    id: str
    category: ErrorCategory
    name: str
    position: int
    aliases: tuple[str, ...] = ()


def _item(
    position: int, id: str, category: ErrorCategory, name: str, *aliases: str
) -> ErrorItem:
    return ErrorItem(
        id=id,
        category=category,
        name=name,
        position=position,
        aliases=(f"{id}_error", *aliases),
    )


ERROR_ITEMS: Final[tuple[ErrorItem, ...]] = (
    _item(0, "greeting", ErrorCategory.ATTITUDE, "Missing greeting/closing", "첫인사끝인사누락"),
    _item(1, "empathy", ErrorCategory.ATTITUDE, "Missing empathy", "공감표현누락"),
    _item(2, "apology", ErrorCategory.ATTITUDE, "Missing apology", "사과표현누락"),
    _item(3, "additional_inquiry", ErrorCategory.ATTITUDE, "Missing follow-up offer", "추가문의누락"),
    _item(4, "unkind", ErrorCategory.ATTITUDE, "Unkind manner", "불친절"),
    _item(5, "consult_type", ErrorCategory.OPERATIONS, "Wrong consultation type", "상담유형오설정"),
    _item(6, "guide", ErrorCategory.OPERATIONS, "Guide not followed", "가이드미준수"),
    _item(7, "identity_check", ErrorCategory.OPERATIONS, "Missing identity check", "본인확인누락"),
    _item(8, "required_search", ErrorCategory.OPERATIONS, "Missing required lookup", "필수탐색누락"),
    _item(9, "wrong_guide", ErrorCategory.OPERATIONS, "Wrong information given", "오안내"),
    _item(10, "process_missing", ErrorCategory.OPERATIONS, "System processing missed", "전산처리누락"),
    _item(11, "process_incomplete", ErrorCategory.OPERATIONS, "System processing incomplete", "전산처리미흡정정"),
    _item(12, "system_operation", ErrorCategory.OPERATIONS, "System operation error", "전산조작미흡오류", "system_error"),
    _item(13, "id_mapping", ErrorCategory.OPERATIONS, "Call/trip ID mapping error", "콜픽트립ID매핑누락오기재"),
    _item(14, "flag_keyword", ErrorCategory.OPERATIONS, "Flag/keyword error", "플래그키워드누락오기재"),
    _item(15, "history", ErrorCategory.OPERATIONS, "Incomplete consultation history", "상담이력기재미흡"),
)

ITEMS_BY_ID: Final[dict[str, ErrorItem]] = {item.id: item for item in ERROR_ITEMS}

ITEM_IDS: Final[tuple[str, ...]] = tuple(item.id for item in ERROR_ITEMS)

ATTITUDE_ITEM_IDS: Final[tuple[str, ...]] = tuple(
    item.id for item in ERROR_ITEMS if item.category == ErrorCategory.ATTITUDE
)

OPERATIONS_ITEM_IDS: Final[tuple[str, ...]] = tuple(
    item.id for item in ERROR_ITEMS if item.category == ErrorCategory.OPERATIONS
)

ITEM_ALIASES: Final[dict[str, str]] = {
    alias: item.id for item in ERROR_ITEMS for alias in (item.id, *item.aliases)
}


def item_name(item_id: str) -> str:
    """Return the display name for an item id, or the id itself if unknown."""
    item = ITEMS_BY_ID.get(item_id)
    return item.name if item else item_id


def item_position(item_id: str) -> int:
    """Return the catalog position of an item (unknown ids sort last)."""
    item = ITEMS_BY_ID.get(item_id)
    return item.position if item else len(ERROR_ITEMS)
