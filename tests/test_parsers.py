"""Tests for the status, log, info, list, blame and proplist parsers."""

from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone

import pytest

from svnpilot.svn.executor import parse_xml
from svnpilot.svn.models import (
    ConflictKind,
    Depth,
    NodeKind,
    PathAction,
    StatusKind,
    Unrecognized,
)
from svnpilot.svn.parsers import (
    BlameParser,
    InfoParser,
    ListParser,
    LogParser,
    PropertyParser,
    StatusParser,
    merge_blame,
    parse_svn_date,
)


class TestDates:
    def test_xml_form(self):
        d = parse_svn_date("2024-01-10T12:34:56.123456Z")
        assert d == datetime(2024, 1, 10, 12, 34, 56, 123456, tzinfo=timezone.utc)

    def test_text_form(self):
        d = parse_svn_date("2024-01-09 08:00:00 +0100 (Tue, 09 Jan 2024)")
        assert d == datetime(2024, 1, 9, 8, 0, 0, tzinfo=timezone(timedelta(hours=1)))

    @pytest.mark.parametrize("value", [None, "", "yesterday", "2024-13-45"])
    def test_unparseable(self, value):
        assert parse_svn_date(value) is None


class TestStatusText:
    def test_all_lines_parsed(self, sample_status_text):
        entries = StatusParser.parse(sample_status_text)
        assert [e.path for e in entries] == [
            "src/app.py",
            "src/copied.py",
            "scratch.txt",
            "gone.txt",
            "conflicted.c",
            "tree/victim.txt",
            "locked.bin",
            "weird.txt",
            "feature/a.py",
        ]

    def test_item_codes(self, sample_status_text):
        by_path = {e.path: e for e in StatusParser.parse(sample_status_text)}
        assert by_path["src/app.py"].item == StatusKind.MODIFIED
        assert by_path["scratch.txt"].item == StatusKind.UNVERSIONED
        assert by_path["gone.txt"].item == StatusKind.MISSING
        assert by_path["conflicted.c"].has_conflict

    def test_flag_columns(self, sample_status_text):
        by_path = {e.path: e for e in StatusParser.parse(sample_status_text)}
        assert by_path["src/copied.py"].copied
        assert by_path["tree/victim.txt"].tree_conflicted
        assert by_path["tree/victim.txt"].item == StatusKind.NORMAL
        assert by_path["locked.bin"].is_locked

    def test_unknown_code_is_kept(self, sample_status_text):
        weird = [e for e in StatusParser.parse(sample_status_text) if e.path == "weird.txt"][0]
        assert weird.item == Unrecognized("Z")
        assert weird.display_status == "Z"

    def test_changelist(self, sample_status_text):
        entries = StatusParser.parse(sample_status_text)
        assert entries[-1].changelist == "feature"
        assert entries[0].changelist is None

    def test_show_updates_columns(self):
        text = (
            "M" + " " * 7 + "*       41       40 alice        src/app.py\n"
            + " " * 8 + "*         41 src/new.txt\n"
            + "Status against revision:     45\n"
        )
        entries = StatusParser.parse(text)
        assert len(entries) == 2
        app = entries[0]
        assert app.path == "src/app.py"
        assert app.out_of_date
        assert app.revision == 41
        assert app.last_changed_revision == 40
        assert app.last_changed_author == "alice"
        assert app.display_status == "modified (out of date)"
        assert entries[1].path == "src/new.txt"
        assert entries[1].out_of_date

    def test_path_with_spaces(self):
        entries = StatusParser.parse("?       my notes.txt\n")
        assert entries[0].path == "my notes.txt"

    def test_empty(self):
        assert StatusParser.parse("") == []

    def test_props_only_modification(self):
        entry = StatusParser.parse(" M      a.txt\n")[0]
        assert entry.props == StatusKind.MODIFIED
        assert entry.has_local_modifications
        assert entry.display_status == "modified (properties)"


class TestStatusXml:
    def test_entries(self, sample_status_xml):
        entries = StatusParser.parse_xml(parse_xml(sample_status_xml))
        assert [e.path for e in entries] == ["src/app.py", "new.txt", "tree.txt", "odd.txt", "feature/a.py"]

    def test_commit_details(self, sample_status_xml):
        app = StatusParser.parse_xml(parse_xml(sample_status_xml))[0]
        assert app.item == StatusKind.MODIFIED
        assert app.revision == 41
        assert app.last_changed_revision == 40
        assert app.last_changed_author == "alice"
        assert app.last_changed_date.year == 2024
        assert app.repos_item == StatusKind.MODIFIED
        assert app.out_of_date

    def test_flags_and_lock(self, sample_status_xml):
        entries = {e.path: e for e in StatusParser.parse_xml(parse_xml(sample_status_xml))}
        assert entries["new.txt"].copied
        assert not entries["new.txt"].out_of_date
        tree = entries["tree.txt"]
        assert tree.tree_conflicted and tree.has_conflict
        assert tree.lock.owner == "bob"
        assert tree.lock.token == "opaquelocktoken:1234"

    def test_unknown_item(self, sample_status_xml):
        odd = [e for e in StatusParser.parse_xml(parse_xml(sample_status_xml)) if e.path == "odd.txt"][0]
        assert odd.item == Unrecognized("shelved")
        assert odd.item.value == "shelved"

    def test_changelist_membership(self, sample_status_xml):
        entries = {e.path: e for e in StatusParser.parse_xml(parse_xml(sample_status_xml))}
        assert entries["feature/a.py"].changelist == "feature"
        assert entries["src/app.py"].changelist is None

    def test_none_root(self):
        assert StatusParser.parse_xml(None) == []


class TestLog:
    def test_text_entries(self, sample_log_text):
        entries = LogParser.parse(sample_log_text)
        assert [e.revision for e in entries] == [12, 11]
        first = entries[0]
        assert first.author == "alice"
        assert first.message == "Fix the parser"
        assert first.date == datetime(2024, 1, 10, 12, 34, 56, tzinfo=timezone.utc)
        assert first.display_revision == "r12"

    def test_text_changed_paths(self, sample_log_text):
        changed = LogParser.parse(sample_log_text)[0].changed_paths
        assert changed[0].action == PathAction.MODIFIED
        assert changed[0].path == "/trunk/src/app.py"
        assert changed[1].action == PathAction.ADDED
        assert changed[1].copy_from_path == "/trunk"
        assert changed[1].copy_from_revision == 11

    def test_text_no_author(self, sample_log_text):
        assert LogParser.parse(sample_log_text)[1].author == ""

    def test_multiline_message(self):
        text = (
            "------------------------------------------------------------------------\n"
            "r3 | bob | 2024-02-01 10:00:00 +0000 (Thu, 01 Feb 2024) | 3 lines\n"
            "\n"
            "first\n"
            "------------------------------------------------------------------------\n"
            "third\n"
            "------------------------------------------------------------------------\n"
        )
        entries = LogParser.parse(text)
        assert len(entries) == 1
        assert entries[0].message == (
            "first\n"
            "------------------------------------------------------------------------\n"
            "third"
        )

    def test_xml_entries(self, sample_log_xml):
        entries = LogParser.parse_xml(parse_xml(sample_log_xml))
        assert [e.revision for e in entries] == [12, 11]
        assert entries[0].message == "Fix the parser"
        assert entries[1].author == ""

    def test_xml_changed_paths(self, sample_log_xml):
        changed = LogParser.parse_xml(parse_xml(sample_log_xml))[0].changed_paths
        assert changed[0].kind == NodeKind.FILE
        assert changed[1].kind == NodeKind.DIR
        assert changed[1].copy_from_revision == 11
        assert changed[2].action == Unrecognized("X")
        assert changed[2].kind is None

    def test_empty(self):
        assert LogParser.parse("") == []
        assert LogParser.parse_xml(parse_xml("<log/>")) == []


class TestInfo:
    def test_text_blocks(self, sample_info_text):
        entries = InfoParser.parse(sample_info_text)
        assert [e.path for e in entries] == ["src/app.py", "docs"]

    def test_text_fields(self, sample_info_text):
        app = InfoParser.parse(sample_info_text)[0]
        assert app.url == "https://svn.example.com/repo/trunk/src/app.py"
        assert app.repository_root == "https://svn.example.com/repo"
        assert app.revision == 41
        assert app.is_file
        assert app.last_changed_revision == 40
        assert app.working_copy_root == "/home/alice/wc"

    def test_text_lock(self, sample_info_text):
        lock = InfoParser.parse(sample_info_text)[0].lock
        assert lock.owner == "bob"
        assert lock.comment == "editing\ndo not touch"

    def test_text_conflict_files(self, sample_info_text):
        conflict = InfoParser.parse(sample_info_text)[0].conflicts[0]
        assert conflict.kind == ConflictKind.TEXT
        assert conflict.base_file == os.path.join("src", "app.py.r38")
        assert conflict.my_file == os.path.join("src", "app.py.mine")
        assert conflict.their_file == os.path.join("src", "app.py.r41")

    def test_text_tree_conflict(self, sample_info_text):
        docs = InfoParser.parse(sample_info_text)[1]
        assert docs.is_directory
        assert docs.depth == Depth.EMPTY
        tree = docs.conflicts[0]
        assert tree.kind == ConflictKind.TREE
        assert tree.description.splitlines()[0].startswith("local dir edit")
        assert len(tree.description.splitlines()) == 3

    def test_xml(self, sample_info_xml):
        entry = InfoParser.parse_xml(parse_xml(sample_info_xml))[0]
        assert entry.path == "src/app.py"
        assert entry.relative_url == "^/trunk/src/app.py"
        assert entry.repository_uuid.startswith("0fd6c0a6")
        assert entry.depth == Depth.INFINITY
        assert entry.last_changed_author == "alice"
        assert entry.has_conflict
        conflict = entry.conflicts[0]
        assert conflict.operation == "update"
        assert conflict.base_file == os.path.join("src", "app.py.r38")

    def test_xml_tree_conflict(self):
        xml = (
            '<info><entry kind="dir" path="docs" revision="4">'
            '<tree-conflict victim="docs" kind="dir" operation="update" action="delete" reason="edit"/>'
            "</entry></info>"
        )
        conflict = InfoParser.parse_xml(parse_xml(xml))[0].conflicts[0]
        assert conflict.kind == ConflictKind.TREE
        assert conflict.description == "local edit, incoming delete upon update"

    def test_empty(self):
        assert InfoParser.parse("") == []
        assert InfoParser.parse_xml(None) == []


class TestList:
    def test_verbose(self, sample_list_verbose):
        entries = ListParser.parse(sample_list_verbose)
        assert [e.name for e in entries] == ["docs", "README.txt", "locked.bin"]
        assert entries[0].is_directory
        assert entries[0].size is None
        assert entries[1].size == 1234
        assert entries[1].author == "bob"
        assert entries[2].size == 77
        assert entries[2].date == datetime(2020, 5, 2)

    def test_plain_names(self):
        entries = ListParser.parse("branches/\nREADME\n")
        assert entries[0].kind == NodeKind.DIR
        assert entries[0].name == "branches"
        assert entries[1].kind == NodeKind.FILE

    def test_xml(self):
        xml = (
            '<lists><list path="^/trunk">'
            '<entry kind="file"><name>a.txt</name><size>12</size>'
            '<commit revision="5"><author>al</author><date>2024-01-01T00:00:00.000000Z</date></commit></entry>'
            '<entry kind="dir"><name>src</name><commit revision="6"/></entry>'
            "</list></lists>"
        )
        entries = ListParser.parse_xml(parse_xml(xml))
        assert entries[0].size == 12
        assert entries[0].author == "al"
        assert entries[1].is_directory
        assert entries[1].revision == 6


class TestBlame:
    def test_text(self, sample_blame_text):
        result = BlameParser.parse(sample_blame_text, path="app.py")
        assert [l.line_number for l in result.lines] == [1, 2, 3, 4]
        assert result.lines[0].revision == 12
        assert result.lines[0].content == "import os"
        assert result.lines[2].revision is None
        assert result.lines[2].author is None
        assert result.lines[3].content == ""

    def test_aggregates(self, sample_blame_text):
        result = BlameParser.parse(sample_blame_text)
        assert result.unique_revisions == [12, 40]
        assert result.unique_authors == ["alice", "bob"]
        assert result.author_line_count == {"alice": 2, "bob": 1}

    def test_xml_and_merge(self, sample_blame_text):
        xml = (
            '<blame><target path="app.py">'
            '<entry line-number="1"><commit revision="12"><author>alice</author>'
            "<date>2024-01-01T00:00:00.000000Z</date></commit></entry>"
            '<entry line-number="2"><commit revision="40"><author>bob</author></commit>'
            '<merged path="/branches/x"><commit revision="38"><author>carol</author></commit></merged></entry>'
            "</target></blame>"
        )
        xml_result = BlameParser.parse_xml(parse_xml(xml))
        assert xml_result.path == "app.py"
        assert xml_result.lines[1].is_merged
        assert xml_result.lines[1].author == "carol"

        merged = merge_blame(xml_result, BlameParser.parse(sample_blame_text))
        assert merged.lines[0].content == "import os"
        assert merged.lines[0].date is not None
        assert merged.lines[1].revision == 38

    def test_merge_without_xml(self, sample_blame_text):
        text_result = BlameParser.parse(sample_blame_text)
        assert merge_blame(None, text_result) is text_result


class TestProperties:
    def test_verbose_text(self, sample_proplist_text):
        props = PropertyParser.parse(sample_proplist_text)
        assert [(p.name, p.value) for p in props] == [
            ("svn:executable", "*"),
            ("svn:ignore", "*.pyc\nbuild"),
        ]
        assert all(p.path == "build.sh" for p in props)
        assert props[0].is_svn_property

    def test_names_only(self):
        props = PropertyParser.parse("Properties on 'x':\n  custom:owner\n")
        assert props[0].name == "custom:owner"
        assert props[0].value is None
        assert not props[0].is_svn_property

    def test_xml(self):
        xml = (
            '<properties><target path="x">'
            '<property name="svn:eol-style">native</property>'
            "</target></properties>"
        )
        props = PropertyParser.parse_xml(parse_xml(xml))
        assert props[0].value == "native"
        assert props[0].path == "x"
