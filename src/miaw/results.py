"""
Uniform result records returned by client commands and queries.

Every command reports `success` plus either its payload or an `error` string;
routine failures (not connected, rejected request, bad argument) never raise.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .types import (
    BusinessProfile,
    Chat,
    Contact,
    ContactInfo,
    GroupInfo,
    GroupInviteInfo,
    GroupParticipant,
    Label,
    MiawMessage,
    NewsletterMessage,
    NewsletterMetadata,
    ParticipantOperationResult,
    Product,
    ProductCollection,
)


@dataclass(slots=True)
class OperationResult:
    success: bool
    error: str | None = None


@dataclass(slots=True)
class SendMessageResult(OperationResult):
    message_id: str | None = None


@dataclass(slots=True)
class CheckNumberResult(OperationResult):
    exists: bool = False
    jid: str | None = None


@dataclass(slots=True)
class CheckNumbersResult(OperationResult):
    results: list[CheckNumberResult] = field(default_factory=list)


@dataclass(slots=True)
class DownloadMediaResult(OperationResult):
    data: bytes | None = None


@dataclass(slots=True)
class ContactInfoResult(OperationResult):
    contact: ContactInfo | None = None


@dataclass(slots=True)
class BusinessProfileResult(OperationResult):
    profile: BusinessProfile | None = None


@dataclass(slots=True)
class ProfilePictureResult(OperationResult):
    url: str | None = None


@dataclass(slots=True)
class ContactsResult(OperationResult):
    contacts: list[Contact] = field(default_factory=list)


@dataclass(slots=True)
class ChatsResult(OperationResult):
    chats: list[Chat] = field(default_factory=list)


@dataclass(slots=True)
class MessagesResult(OperationResult):
    messages: list[MiawMessage] = field(default_factory=list)


@dataclass(slots=True)
class GroupsResult(OperationResult):
    groups: list[GroupInfo] = field(default_factory=list)


@dataclass(slots=True)
class LabelsResult(OperationResult):
    labels: list[Label] = field(default_factory=list)


@dataclass(slots=True)
class GroupInfoResult(OperationResult):
    group: GroupInfo | None = None


@dataclass(slots=True)
class CreateGroupResult(OperationResult):
    group_jid: str | None = None
    group_info: GroupInfo | None = None


@dataclass(slots=True)
class ParticipantsResult(OperationResult):
    participants: list[ParticipantOperationResult] = field(default_factory=list)


@dataclass(slots=True)
class InviteLinkResult(OperationResult):
    link: str | None = None


@dataclass(slots=True)
class AcceptInviteResult(OperationResult):
    group_jid: str | None = None


@dataclass(slots=True)
class GroupInviteInfoResult(OperationResult):
    info: GroupInviteInfo | None = None


@dataclass(slots=True)
class LabelOperationResult(OperationResult):
    label_id: str | None = None


@dataclass(slots=True)
class ProductCatalog(OperationResult):
    products: list[Product] = field(default_factory=list)
    next_cursor: str | None = None


@dataclass(slots=True)
class CollectionsResult(OperationResult):
    collections: list[ProductCollection] = field(default_factory=list)


@dataclass(slots=True)
class ProductOperationResult(OperationResult):
    product_id: str | None = None
    deleted_count: int | None = None


@dataclass(slots=True)
class NewsletterOperationResult(OperationResult):
    newsletter_id: str | None = None


@dataclass(slots=True)
class NewsletterMetadataResult(OperationResult):
    metadata: NewsletterMetadata | None = None


@dataclass(slots=True)
class NewsletterMessagesResult(OperationResult):
    messages: list[NewsletterMessage] = field(default_factory=list)


@dataclass(slots=True)
class GroupParticipantsResult(OperationResult):
    participants: list[GroupParticipant] = field(default_factory=list)
