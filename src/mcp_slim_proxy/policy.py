"""Method-name driven field drop policies for slimming MCP responses."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Optional

from .config import SlimConfig

# UI/API metadata that is safe to drop from any response.
UNIVERSAL_DROP_KEYS = frozenset(
    {
        "expand",
        "self",
        "iconUrl",
        "avatarUrl",
        "avatarUrls",
        "avatarId",
        "picture",
        "schema",
    }
)

ISSUE_DROP_KEYS = frozenset(
    {
        "renderedFields",
        "operations",
        "permissions",
        "transitions",
        "watchers",
        "worklog",
        "attachments",
        "properties",
        "names",
        "subtask",
        "hierarchyLevel",
        "editmeta",
        "versionedRepresentations",
        "colorName",
    }
)

# `url` stays: search results need it for page id extraction.
DOCUMENT_DROP_KEYS = frozenset({"_links", "status", "lastModified"})

IDENTITY_DROP_KEYS = frozenset(
    {
        "account_status",
        "characteristics",
        "last_updated",
        "created_at",
        "nickname",
        "locale",
        "extended_profile",
        "account_type",
        "email_verified",
    }
)

RESOURCE_DROP_KEYS = frozenset({"scopes", "url"})

BULK_LISTING_DROP_KEYS = frozenset(
    {
        "body",
        "description",
        "content",
        "comments",
        "comment",
        "changelog",
        "history",
        "adf",
    }
)

# Kept by allow-list filtering regardless of the allow-list contents.
STRUCTURAL_KEYS = frozenset({"error", "message", "tool", "type"})

# Never allow-list filtered so the payload beneath them can still be reached.
CARRIER_KEYS = frozenset({"data", "result"})


@dataclass(frozen=True)
class MethodCategory:
    name: str
    pattern: re.Pattern
    drop_keys: frozenset

    def matches(self, method_name: str) -> bool:
        return bool(self.pattern.search(method_name))


METHOD_CATEGORIES: tuple[MethodCategory, ...] = (
    MethodCategory("issue-tracking", re.compile(r"jira|issue", re.IGNORECASE), ISSUE_DROP_KEYS),
    MethodCategory("document-space", re.compile(r"confluence|page|space", re.IGNORECASE), DOCUMENT_DROP_KEYS),
    MethodCategory("identity", re.compile(r"user.*info", re.IGNORECASE), IDENTITY_DROP_KEYS),
    MethodCategory("resource-listing", re.compile(r"resource", re.IGNORECASE), RESOURCE_DROP_KEYS),
    MethodCategory("bulk-listing", re.compile(r"search|list", re.IGNORECASE), BULK_LISTING_DROP_KEYS),
)


@dataclass(frozen=True)
class SlimPolicy:
    """Field filters active for one message."""

    drop_keys: frozenset = frozenset()
    allow_keys: frozenset = frozenset()


def method_categories(method_name: Optional[str]) -> list[str]:
    """Return the names of every category whose pattern matches the method name."""
    if not method_name:
        return []
    name = str(method_name)
    return [category.name for category in METHOD_CATEGORIES if category.matches(name)]


class PolicyResolver:
    """Resolve drop/allow sets for a JSON-RPC method name.

    Category matches are independent: a name such as ``confluence.searchPages``
    hits both document-space and bulk-listing and gets the union of both.
    """

    def __init__(self, extra_drop_keys: Iterable[str] = (), allow_keys: Iterable[str] = ()):
        self.base_drop_keys = UNIVERSAL_DROP_KEYS | frozenset(extra_drop_keys)
        self.allow_keys = frozenset(allow_keys)

    @classmethod
    def from_config(cls, config: SlimConfig) -> "PolicyResolver":
        return cls(extra_drop_keys=config.extra_drop_keys, allow_keys=config.allow_keys)

    def resolve(self, method_name: Optional[str]) -> SlimPolicy:
        drop_keys = set(self.base_drop_keys)
        if method_name is not None:
            name = str(method_name)
            for category in METHOD_CATEGORIES:
                if category.matches(name):
                    drop_keys.update(category.drop_keys)
        return SlimPolicy(drop_keys=frozenset(drop_keys), allow_keys=self.allow_keys)


def resolve_policy(
    method_name: Optional[str],
    *,
    extra_drop_keys: Iterable[str] = (),
    allow_keys: Iterable[str] = (),
) -> SlimPolicy:
    return PolicyResolver(extra_drop_keys, allow_keys).resolve(method_name)
