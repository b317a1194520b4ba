"""Tests for ingestkit_xlsx.archive."""

from __future__ import annotations

import zipfile
from pathlib import Path

import pytest

from ingestkit_xlsx.archive import is_safe_member_name, open_archive
from ingestkit_xlsx.errors import ErrorCode, XlsxImportException


class TestOpenArchive:
    def test_scratch_directory_removed(self, make_xlsx):
        path = make_xlsx([[1, 2]])
        with open_archive(path) as archive:
            root = archive.root
            assert archive.has_member("xl/workbook.xml")
            assert archive.list_members("xl/worksheets") == ["sheet1.xml"]
        assert not Path(root).exists()

    def test_scratch_directory_removed_on_error(self, make_xlsx):
        path = make_xlsx([[1, 2]])
        with pytest.raises(XlsxImportException):
            with open_archive(path) as archive:
                root = archive.root
                archive.parse_member("xl/missing.xml", "worksheet")
        assert not Path(root).exists()

    def test_not_a_zip(self, tmp_path):
        path = tmp_path / "fake.xlsx"
        path.write_text("plain text")
        with pytest.raises(XlsxImportException) as exc_info:
            with open_archive(str(path)):
                pass
        assert exc_info.value.code == ErrorCode.E_ARCHIVE_UNREADABLE

    def test_unsafe_member_rejected(self, tmp_path):
        path = tmp_path / "evil.xlsx"
        with zipfile.ZipFile(path, "w") as zf:
            zf.writestr("../evil.xml", "<x/>")
        with pytest.raises(XlsxImportException) as exc_info:
            with open_archive(str(path)):
                pass
        assert exc_info.value.code == ErrorCode.E_SECURITY_UNSAFE_MEMBER

    def test_corrupt_deflate_stream(self, make_xlsx, damage_member):
        path = damage_member(make_xlsx([[1, 2]]), "xl/worksheets/sheet1.xml")
        with pytest.raises(XlsxImportException) as exc_info:
            with open_archive(path):
                pass
        assert exc_info.value.code == ErrorCode.E_ARCHIVE_UNREADABLE

    def test_encrypted_member(self, make_xlsx, damage_member):
        path = damage_member(
            make_xlsx([[1, 2]]), "xl/worksheets/sheet1.xml", mode="encrypt"
        )
        with pytest.raises(XlsxImportException) as exc_info:
            with open_archive(path):
                pass
        assert exc_info.value.code == ErrorCode.E_ARCHIVE_UNREADABLE


class TestParseMember:
    def test_missing(self, make_xlsx):
        with open_archive(make_xlsx([[1]])) as archive:
            with pytest.raises(XlsxImportException) as exc_info:
                archive.parse_member("xl/sharedStrings.xml", "sst")
        assert exc_info.value.code == ErrorCode.E_ARCHIVE_MEMBER_MISSING

    def test_wrong_root(self, make_xlsx):
        with open_archive(make_xlsx([[1]])) as archive:
            with pytest.raises(XlsxImportException) as exc_info:
                archive.parse_member("xl/workbook.xml", "worksheet")
        assert exc_info.value.code == ErrorCode.E_ARCHIVE_BAD_ROOT

    def test_malformed_xml(self, make_xlsx):
        path = make_xlsx({"Sheet1": "<worksheet><sheetData>"})
        with open_archive(path) as archive:
            with pytest.raises(XlsxImportException) as exc_info:
                archive.parse_member("xl/worksheets/sheet1.xml", "worksheet")
        assert exc_info.value.code == ErrorCode.E_PARSE_CORRUPT

    def test_entity_declaration(self, make_xlsx):
        xml = (
            '<!DOCTYPE worksheet [<!ENTITY a "aaaa">]>'
            "<worksheet><sheetData/></worksheet>"
        )
        with open_archive(make_xlsx({"Sheet1": xml})) as archive:
            with pytest.raises(XlsxImportException) as exc_info:
                archive.parse_member("xl/worksheets/sheet1.xml", "worksheet")
        assert exc_info.value.code == ErrorCode.E_SECURITY_ENTITY_DECLARATION

    def test_unknown_encoding(self, make_xlsx):
        xml = '<?xml version="1.0" encoding="bogus"?><worksheet><sheetData/></worksheet>'
        with open_archive(make_xlsx({"Sheet1": xml})) as archive:
            with pytest.raises(XlsxImportException) as exc_info:
                archive.parse_member("xl/worksheets/sheet1.xml", "worksheet")
        assert exc_info.value.code == ErrorCode.E_PARSE_CORRUPT

    def test_repeated_parse_reuses_tree(self, make_xlsx):
        with open_archive(make_xlsx([[1]])) as archive:
            first = archive.parse_member("xl/worksheets/sheet1.xml", "worksheet")
            again = archive.parse_member("xl/worksheets/sheet1.xml", "worksheet")
            archive.parse_member("xl/workbook.xml", "workbook")
            fresh = archive.parse_member("xl/worksheets/sheet1.xml", "worksheet")
        assert again is first
        assert fresh is not first

    def test_cached_tree_still_checks_root(self, make_xlsx):
        with open_archive(make_xlsx([[1]])) as archive:
            archive.parse_member("xl/worksheets/sheet1.xml", "worksheet")
            with pytest.raises(XlsxImportException) as exc_info:
                archive.parse_member("xl/worksheets/sheet1.xml", "sst")
        assert exc_info.value.code == ErrorCode.E_ARCHIVE_BAD_ROOT


class TestMemberNames:
    @pytest.mark.parametrize("name", ["xl/workbook.xml", "[Content_Types].xml"])
    def test_safe(self, name):
        assert is_safe_member_name(name)

    @pytest.mark.parametrize("name", ["../x.xml", "/etc/passwd", "xl/../../x", "C:/x", "\\x"])
    def test_unsafe(self, name):
        assert not is_safe_member_name(name)
