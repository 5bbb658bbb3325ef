from __future__ import annotations

from dataclasses import replace

from fakes import FakeReader, make_message
from models.mailbox import Folder
from services.errors import FetchError
from services.mailbox_lister import MailboxLister


def test_merged_listing_is_sorted_newest_first_and_truncated(credential):
    reader = FakeReader(
        {
            Folder.INBOX: [[make_message(f"i{n}", minutes=n * 3) for n in range(5)]],
            Folder.DELETED_ITEMS: [[make_message(f"d{n}", minutes=n * 3 + 1) for n in range(5)]],
            Folder.JUNK: [[make_message(f"j{n}", minutes=n * 3 + 2) for n in range(5)]],
        }
    )

    messages = MailboxLister(reader).list_messages(credential, limit=5)

    assert len(messages) == 5
    assert [m.id for m in messages] == ["j4", "d4", "i4", "j3", "d3"]
    timestamps = [m.received_at for m in messages]
    assert timestamps == sorted(timestamps, reverse=True)
    assert all(limit == 5 for _, limit in reader.calls)


def test_failing_folder_contributes_nothing(credential):
    reader = FakeReader(
        {
            Folder.INBOX: [FetchError.from_status(401)],
            Folder.JUNK: [[make_message("j", minutes=1)]],
        }
    )

    messages = MailboxLister(reader).list_messages(credential)

    assert [m.id for m in messages] == ["j"]
    assert reader.folders_called == [Folder.INBOX, Folder.DELETED_ITEMS, Folder.JUNK]


def test_messages_without_timestamp_sort_last(credential):
    undated = replace(make_message("undated"), received_at=None)
    reader = FakeReader({Folder.INBOX: [[undated, make_message("dated", minutes=1)]]})

    messages = MailboxLister(reader).list_messages(credential, folders=[Folder.INBOX])

    assert [m.id for m in messages] == ["dated", "undated"]


def test_zero_limit_reads_nothing(credential):
    reader = FakeReader()

    assert MailboxLister(reader).list_messages(credential, limit=0) == []
    assert reader.calls == []
