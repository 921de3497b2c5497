"""Builders that turn parsed dump rows into output documents.

Each builder takes one source row, the run's :class:`IdentifierMapper`,
the configured :class:`Defaults` and whatever related rows it needs, and
returns a document dataclass whose ``to_dict`` gives the stored shape.
"""

from .listings import (
    LISTING_BUILDERS,
    ListingDocument,
    ListingLookups,
    build_business,
    build_franchise,
    build_investor,
    register_references,
)
from .messaging import ChatroomDocument, MessageDocument, build_chatroom, build_message
from .plans import PlanDocument, build_plan
from .reviews import ReviewDocument, build_review
from .subscriptions import SubscriptionDocument, build_subscription
from .transactions import TransactionDocument, build_transaction, merge_transaction_sources
from .users import UserDocument, build_user

__all__ = [
    "LISTING_BUILDERS",
    "ChatroomDocument",
    "ListingDocument",
    "ListingLookups",
    "MessageDocument",
    "PlanDocument",
    "ReviewDocument",
    "SubscriptionDocument",
    "TransactionDocument",
    "UserDocument",
    "build_business",
    "build_chatroom",
    "build_franchise",
    "build_investor",
    "build_message",
    "build_plan",
    "build_review",
    "build_subscription",
    "build_transaction",
    "build_user",
    "merge_transaction_sources",
    "register_references",
]
