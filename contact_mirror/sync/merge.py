"""
Additive merge of a duplicate cluster into one golden contact.

The merge never deletes or overwrites data contributed by any member:
- The first member is the base.
- Singular text fields are only filled when still empty (first non-empty
  value in cluster order wins).
- Birthday and image are taken from the first member that has one.
- Notes are concatenated, skipping snippets already contained in the note.
- Labeled multi-valued fields are unioned, dropping entries that are
  labeled_equals to one already present, keeping first-appearance order.

Merging a singleton cluster yields a copy of its member, so merging a golden
contact on its own reproduces it.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Union

from contact_mirror.sync.contact import (
    FILLABLE_TEXT_FIELDS,
    LABELED_FIELDS,
    ContactRecord,
    GoldenContact,
    LabeledValue,
    display_name,
    labeled_equals,
)

logger = logging.getLogger(__name__)

# Separator placed between notes from different members
DEFAULT_NOTE_SEPARATOR = " | "

MergeSource = Union[ContactRecord, GoldenContact]


class MergePreconditionError(ValueError):
    """Raised when merge is called with an empty cluster."""

    pass


class ContactMerger:
    """
    Reduces a duplicate cluster to one GoldenContact.

    Usage:
        merger = ContactMerger()
        golden = merger.merge(cluster)

    Attributes:
        note_separator: Text placed between notes from different members
    """

    def __init__(self, note_separator: str = DEFAULT_NOTE_SEPARATOR):
        self.note_separator = note_separator

    def merge(self, cluster: Sequence[MergeSource]) -> GoldenContact:
        """
        Merge the members of a cluster into a new golden contact.

        Args:
            cluster: Non-empty ordered sequence of records (or golden contacts)

        Returns:
            New GoldenContact; the inputs are left untouched

        Raises:
            MergePreconditionError: If the cluster is empty
        """
        if not cluster:
            raise MergePreconditionError("Cannot merge an empty cluster")

        golden = GoldenContact.from_record(cluster[0])
        # The base itself may repeat an entry
        for name in LABELED_FIELDS:
            setattr(golden, name, add_unique(name, [], getattr(golden, name)))

        for member in cluster[1:]:
            self._fold(golden, member)

        if len(cluster) > 1:
            logger.debug(
                f"Merged {len(cluster)} records into '{display_name(golden)}'"
            )
        return golden

    def merge_all(self, clusters: Sequence[Sequence[MergeSource]]) -> list[GoldenContact]:
        """Merge every cluster, preserving cluster order."""
        return [self.merge(cluster) for cluster in clusters]

    def _fold(self, golden: GoldenContact, member: MergeSource) -> None:
        for name in FILLABLE_TEXT_FIELDS:
            incoming = getattr(member, name)
            if not getattr(golden, name) and incoming:
                setattr(golden, name, incoming)

        if golden.birthday is None and member.birthday is not None:
            golden.birthday = member.birthday

        if golden.image_data is None and member.image_data is not None:
            golden.image_data = member.image_data

        golden.note = self.merge_notes(golden.note, member.note)

        for name in LABELED_FIELDS:
            setattr(
                golden,
                name,
                add_unique(name, getattr(golden, name), getattr(member, name)),
            )

    def merge_notes(self, accumulated: str, incoming: str) -> str:
        """
        Append incoming to accumulated unless it is empty or already contained.

        Both sides are trimmed before comparison.
        """
        accumulated = (accumulated or "").strip()
        incoming = (incoming or "").strip()
        if not incoming or incoming in accumulated:
            return accumulated
        if not accumulated:
            return incoming
        return f"{accumulated}{self.note_separator}{incoming}"


def add_unique(
    field_name: str,
    existing: Sequence[LabeledValue],
    incoming: Sequence[LabeledValue],
) -> list[LabeledValue]:
    """
    Union two labeled value lists of one field.

    Incoming entries are appended when no entry already in the result is
    labeled_equals to them. Existing entries are never removed.
    """
    result = list(existing)
    for entry in incoming:
        if not any(labeled_equals(field_name, current, entry) for current in result):
            result.append(entry)
    return result


def merge_cluster(cluster: Sequence[MergeSource]) -> GoldenContact:
    """Merge a cluster with the default separator."""
    return ContactMerger().merge(cluster)
