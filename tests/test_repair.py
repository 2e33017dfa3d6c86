"""Tests for link extraction, link repair, orphan marking and the
attachment/identifier helpers that create repairable links."""

from pathlib import Path

import pytest

from ordex import core
from ordex.context import WorkspaceSettings
from ordex.errors import TargetNotFound
from ordex.hashing import compute_fingerprint
from ordex.indexer.identifiers import read_identifier
from ordex.models import AttachmentInfo, LinkKind, LinkRecord
from ordex.orphans import mark_orphan, reconcile_orphans
from ordex.parser import decode_link_path, encode_link_path, extract_links
from ordex.repair import apply_replacements, repair_document

SETTINGS = WorkspaceSettings()


def make_attachment(directory: Path, stem: str, data: bytes, extension: str = ".png") -> tuple[Path, str]:
    """Write data under its fingerprinted name."""
    directory.mkdir(parents=True, exist_ok=True)
    scratch = directory / f"{stem}{extension}.tmp"
    scratch.write_bytes(data)
    fingerprint = compute_fingerprint(scratch)
    path = directory / f"{stem}.ATTACH-{fingerprint}{extension}"
    scratch.rename(path)
    return path, fingerprint


# ─────────────────────────────────────────────────────────────────────────────
# Link Extraction
# ─────────────────────────────────────────────────────────────────────────────


class TestExtractLinks:
    """Tagged link records."""

    def test_hash_and_identifier_links(self):
        fp = "c" * 32
        identifier = "d" * 32
        content = (
            f"See ![diagram](img/diagram.ATTACH-{fp}.png) and\n"
            f"<!-- TARGET-GUID:{identifier} -->[Notes](docs/notes.md)\n"
            "and [plain](other.md)\n"
        )

        records = extract_links(content, SETTINGS)

        assert [r.kind for r in records] == [LinkKind.HASH, LinkKind.IDENTIFIER]
        hash_link, id_link = records
        assert hash_link.is_image and hash_link.text == "diagram"
        assert hash_link.key == fp
        assert content[hash_link.path_start : hash_link.path_end] == f"img/diagram.ATTACH-{fp}.png"
        assert id_link.key == identifier
        assert id_link.target == "docs/notes.md"
        assert not id_link.is_image

    def test_url_encoded_target_still_yields_fingerprint(self):
        fp = "e" * 32
        records = extract_links(f"[f](my%20file.ATTACH-{fp}.pdf)", SETTINGS)

        assert records[0].key == fp
        assert decode_link_path(records[0].target) == f"my file.ATTACH-{fp}.pdf"

    def test_encode_link_path_per_segment(self):
        assert encode_link_path("my dir/a b.png") == "my%20dir/a%20b.png"
        assert encode_link_path("../assets/x.png") == "../assets/x.png"


# ─────────────────────────────────────────────────────────────────────────────
# Single-Document Repair
# ─────────────────────────────────────────────────────────────────────────────


class TestRepairDocument:
    """repair_document behavior."""

    def test_rewrites_to_new_location(self, tmp_path):
        attachment, fp = make_attachment(tmp_path / "assets", "img", b"image bytes")
        doc = tmp_path / "doc.md"
        doc.write_text(f"# Title\n\n![x](img.ATTACH-{fp}.png)\n")
        index = {fp: AttachmentInfo(fingerprint=fp, full_path=attachment, filename=attachment.name)}

        result = repair_document(doc, index, {}, SETTINGS)

        assert doc.read_text() == f"# Title\n\n![x](assets/img.ATTACH-{fp}.png)\n"
        assert result.modified
        assert len(result.repairs) == 1
        assert result.referenced == {fp}

    def test_leaves_resolving_links_alone(self, tmp_path):
        attachment, fp = make_attachment(tmp_path, "img", b"ok")
        doc = tmp_path / "doc.md"
        original = f"![x]({attachment.name})\n"
        doc.write_text(original)
        index = {fp: AttachmentInfo(fingerprint=fp, full_path=attachment, filename=attachment.name)}

        result = repair_document(doc, index, {}, SETTINGS)

        assert doc.read_text() == original
        assert not result.modified
        assert result.referenced == {fp}

    def test_missing_target_is_reported_not_removed(self, tmp_path):
        fp = "f" * 32
        doc = tmp_path / "doc.md"
        original = f"![x](gone.ATTACH-{fp}.png)\n"
        doc.write_text(original)

        result = repair_document(doc, {}, {}, SETTINGS)

        assert doc.read_text() == original
        assert result.missing == [f"gone.ATTACH-{fp}.png"]

    def test_urls_are_skipped(self, tmp_path):
        fp = "a" * 32
        doc = tmp_path / "doc.md"
        original = f"![x](https://example.com/img.ATTACH-{fp}.png)\n"
        doc.write_text(original)

        result = repair_document(doc, {}, {}, SETTINGS)

        assert doc.read_text() == original
        assert result.missing == []

    def test_new_path_is_url_encoded(self, tmp_path):
        attachment, fp = make_attachment(tmp_path / "my assets", "my img", b"spaces")
        doc = tmp_path / "doc.md"
        doc.write_text(f"![x](my%20img.ATTACH-{fp}.png)")
        index = {fp: AttachmentInfo(fingerprint=fp, full_path=attachment, filename=attachment.name)}

        repair_document(doc, index, {}, SETTINGS)

        assert doc.read_text() == f"![x](my%20assets/my%20img.ATTACH-{fp}.png)"

    def test_relative_path_climbs_directories(self, tmp_path):
        attachment, fp = make_attachment(tmp_path / "assets", "img", b"up")
        doc = tmp_path / "chapters" / "one" / "doc.md"
        doc.parent.mkdir(parents=True)
        doc.write_text(f"![x](img.ATTACH-{fp}.png)")
        index = {fp: AttachmentInfo(fingerprint=fp, full_path=attachment, filename=attachment.name)}

        repair_document(doc, index, {}, SETTINGS)

        assert doc.read_text() == f"![x](../../assets/img.ATTACH-{fp}.png)"

    def test_identifier_link(self, tmp_path):
        identifier = "1" * 32
        target = tmp_path / "moved" / "notes.md"
        target.parent.mkdir()
        target.write_text(f"<!-- GUID:{identifier} -->\n# Notes\n")
        doc = tmp_path / "doc.md"
        doc.write_text(f"<!-- TARGET-GUID:{identifier} -->[Notes](notes.md)\n")

        result = repair_document(doc, {}, {identifier: target}, SETTINGS)

        assert doc.read_text() == f"<!-- TARGET-GUID:{identifier} -->[Notes](moved/notes.md)\n"
        assert result.repairs[0].kind == LinkKind.IDENTIFIER

    def test_preserves_crlf_line_endings(self, tmp_path):
        attachment, fp = make_attachment(tmp_path / "assets", "img", b"crlf")
        doc = tmp_path / "doc.md"
        doc.write_bytes(f"line one\r\n![x](img.ATTACH-{fp}.png)\r\n".encode())
        index = {fp: AttachmentInfo(fingerprint=fp, full_path=attachment, filename=attachment.name)}

        repair_document(doc, index, {}, SETTINGS)

        assert doc.read_bytes() == f"line one\r\n![x](assets/img.ATTACH-{fp}.png)\r\n".encode()

    def test_dry_run_does_not_write(self, tmp_path):
        attachment, fp = make_attachment(tmp_path / "assets", "img", b"dry")
        doc = tmp_path / "doc.md"
        original = f"![x](img.ATTACH-{fp}.png)"
        doc.write_text(original)
        index = {fp: AttachmentInfo(fingerprint=fp, full_path=attachment, filename=attachment.name)}

        result = repair_document(doc, index, {}, SETTINGS, dry_run=True)

        assert result.modified
        assert doc.read_text() == original


class TestApplyReplacements:
    """Overlapping spans."""

    def _record(self, start, end, path_start, path_end):
        return LinkRecord(
            kind=LinkKind.HASH,
            start=start,
            end=end,
            path_start=path_start,
            path_end=path_end,
            is_image=False,
            text="",
            target="old",
            key="a" * 32,
        )

    def test_applies_from_end(self):
        content = "[](aa) [](bb)"
        first = self._record(0, 6, 3, 5)
        second = self._record(7, 13, 10, 12)

        new_content, applied, warnings = apply_replacements(content, [(first, "X/aa"), (second, "Y/bb")])

        assert new_content == "[](X/aa) [](Y/bb)"
        assert len(applied) == 2
        assert warnings == []

    def test_skips_overlap(self):
        content = "[](aaaa)"
        outer = self._record(0, 8, 3, 7)
        inner = self._record(2, 8, 3, 7)

        new_content, applied, warnings = apply_replacements(content, [(outer, "new"), (inner, "other")])

        assert new_content == "[](new)"
        assert applied == [(outer, "new")]
        assert len(warnings) == 1


# ─────────────────────────────────────────────────────────────────────────────
# Workspace Repair
# ─────────────────────────────────────────────────────────────────────────────


class TestRepairLinks:
    """core.repair_links end to end."""

    @pytest.mark.asyncio
    async def test_round_trip_after_move(self, tmp_path):
        attachment, fp = make_attachment(tmp_path, "photo", b"round trip")
        doc = tmp_path / "doc.md"
        doc.write_text(f"![p]({attachment.name})\n")

        new_home = tmp_path / "media"
        new_home.mkdir()
        attachment.rename(new_home / attachment.name)

        first = await core.repair_links(tmp_path)
        text_after_first = doc.read_text()
        second = await core.repair_links(tmp_path)

        assert first.links_repaired == 1
        assert first.hash_links_repaired == 1
        assert text_after_first == f"![p](media/{attachment.name})\n"
        assert (tmp_path / "media" / attachment.name).exists()
        assert second.links_repaired == 0
        assert doc.read_text() == text_after_first

    @pytest.mark.asyncio
    async def test_identifier_round_trip(self, tmp_path):
        target = tmp_path / "notes.md"
        target.write_text("# Notes\n")
        doc = tmp_path / "index.md"
        await core.link_identifier(doc, target, text="Notes", append=True)

        moved = tmp_path / "archive" / "renamed.md"
        moved.parent.mkdir()
        target.rename(moved)

        summary = await core.repair_links(tmp_path)

        assert summary.identifier_links_repaired == 1
        assert "[Notes](archive/renamed.md)" in doc.read_text()

    @pytest.mark.asyncio
    async def test_reports_missing_with_document(self, tmp_path):
        fp = "9" * 32
        (tmp_path / "doc.md").write_text(f"![x](nowhere.ATTACH-{fp}.png)")

        summary = await core.repair_links(tmp_path)

        assert summary.missing == [f"doc.md: nowhere.ATTACH-{fp}.png"]
        assert summary.links_repaired == 0

    @pytest.mark.asyncio
    async def test_respects_include_globs(self, tmp_path):
        attachment, fp = make_attachment(tmp_path / "assets", "img", b"globs")
        (tmp_path / "doc.txt").write_text(f"![x](img.ATTACH-{fp}.png)")
        settings = WorkspaceSettings(include=["**/*.md"])

        summary = await core.repair_links(tmp_path, settings)

        assert summary.documents_scanned == 0
        assert (tmp_path / "doc.txt").read_text() == f"![x](img.ATTACH-{fp}.png)"


# ─────────────────────────────────────────────────────────────────────────────
# Orphans
# ─────────────────────────────────────────────────────────────────────────────


class TestOrphans:
    """Marking unreferenced attachments."""

    @pytest.mark.asyncio
    async def test_unreferenced_attachment_is_marked(self, tmp_path):
        used, _ = make_attachment(tmp_path, "used", b"used")
        unused, _ = make_attachment(tmp_path, "unused", b"unused")
        (tmp_path / "doc.md").write_text(f"![u]({used.name})")

        summary = await core.repair_links(tmp_path)

        assert summary.orphans_found == 1
        assert used.exists()
        assert not unused.exists()
        assert (tmp_path / f"ORPHAN-{unused.name}").exists()

    @pytest.mark.asyncio
    async def test_never_double_prefixes(self, tmp_path):
        unused, _ = make_attachment(tmp_path, "lonely", b"lonely")

        await core.repair_links(tmp_path)
        second = await core.repair_links(tmp_path)

        names = sorted(p.name for p in tmp_path.iterdir())
        assert names == [f"ORPHAN-{unused.name}"]
        assert second.orphans_found == 1
        assert second.orphans.marked == []
        assert not any("ORPHAN-ORPHAN-" in name for name in names)

    @pytest.mark.asyncio
    async def test_dry_run_renames_nothing(self, tmp_path):
        unused, _ = make_attachment(tmp_path, "keep", b"keep")

        summary = await core.repair_links(tmp_path, dry_run=True)

        assert unused.exists()
        assert summary.orphans_found == 1

    @pytest.mark.asyncio
    async def test_failed_rename_is_reported(self, tmp_path):
        unused, fp = make_attachment(tmp_path, "busy", b"busy")
        (tmp_path / f"ORPHAN-{unused.name}").write_bytes(b"squatter")
        index = {fp: AttachmentInfo(fingerprint=fp, full_path=unused, filename=unused.name)}

        report = await reconcile_orphans(index, set())

        assert report.marked == []
        assert len(report.failed) == 1
        assert unused.exists()

    def test_mark_orphan_skips_marked(self, tmp_path):
        path = tmp_path / f"ORPHAN-x.ATTACH-{'a' * 32}.png"
        path.write_bytes(b"x")
        info = AttachmentInfo(fingerprint="a" * 32, full_path=path, filename=path.name)

        assert mark_orphan(info) is None
        assert path.exists()


# ─────────────────────────────────────────────────────────────────────────────
# Creating Links
# ─────────────────────────────────────────────────────────────────────────────


class TestAttach:
    """attach_file and save_attachment_bytes."""

    @pytest.mark.asyncio
    async def test_renames_and_links(self, tmp_path):
        (tmp_path / "assets").mkdir()
        photo = tmp_path / "assets" / "photo.png"
        photo.write_bytes(b"pixels")
        doc = tmp_path / "doc.md"
        doc.write_text("# Doc")

        result = await core.attach_file(doc, photo, append=True)

        assert result.renamed
        assert not photo.exists()
        assert result.path.name == f"photo.ATTACH-{result.fingerprint}.png"
        assert result.link == f"![photo](assets/photo.ATTACH-{result.fingerprint}.png)"
        assert doc.read_text() == f"# Doc\n{result.link}\n"

    @pytest.mark.asyncio
    async def test_already_named_file_is_kept(self, tmp_path):
        attachment, fp = make_attachment(tmp_path, "report", b"pdf", extension=".pdf")

        result = await core.attach_file(tmp_path / "doc.md", attachment)

        assert not result.renamed
        assert result.fingerprint == fp
        assert result.link == f"[report]({attachment.name})"

    @pytest.mark.asyncio
    async def test_save_bytes_is_content_addressed(self, tmp_path):
        first = await core.save_attachment_bytes(tmp_path / "assets", b"clip", stem="paste")
        second = await core.save_attachment_bytes(tmp_path / "assets", b"clip", stem="paste")

        assert first == second
        assert first.read_bytes() == b"clip"
        assert first.name == f"paste.ATTACH-{compute_fingerprint(first)}.png"


class TestIdentifiers:
    """assign_identifier, link_identifier and locate."""

    @pytest.mark.asyncio
    async def test_assigns_once(self, tmp_path):
        path = tmp_path / "notes.md"
        path.write_text("# Notes\n")

        first = await core.assign_identifier(path)
        second = await core.assign_identifier(path)

        assert first.created and not second.created
        assert first.identifier == second.identifier
        assert path.read_text() == f"<!-- GUID:{first.identifier} -->\n# Notes\n"
        assert read_identifier(path, "GUID") == first.identifier

    @pytest.mark.asyncio
    async def test_rejects_binary(self, tmp_path):
        path = tmp_path / "blob.bin"
        path.write_bytes(b"\x00\x01\x02")

        with pytest.raises(ValueError):
            await core.assign_identifier(path)

    @pytest.mark.asyncio
    async def test_link_identifier_renders_marker(self, tmp_path):
        target = tmp_path / "docs" / "guide.md"
        target.parent.mkdir()
        target.write_text("# Guide\n")

        rendered = await core.link_identifier(tmp_path / "index.md", target)

        identifier = read_identifier(target, "GUID")
        assert rendered == f"<!-- TARGET-GUID:{identifier} -->[guide](docs/guide.md)"

    @pytest.mark.asyncio
    async def test_locate(self, tmp_path):
        attachment, fp = make_attachment(tmp_path / "a", "img", b"locate")
        target = tmp_path / "b" / "notes.md"
        target.parent.mkdir()
        target.write_text("# Notes\n")
        assigned = await core.assign_identifier(target)

        assert await core.locate(tmp_path, fp) == (LinkKind.HASH, attachment)
        assert await core.locate(tmp_path, assigned.identifier.upper()) == (LinkKind.IDENTIFIER, target)
        with pytest.raises(TargetNotFound):
            await core.locate(tmp_path, "0" * 32)
