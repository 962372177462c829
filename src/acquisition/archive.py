import logging
import re
import zipfile
import zlib
from pathlib import Path

from acquisition.domain import ExtractedPayload

logger = logging.getLogger(__name__)

_LINE_BREAK = re.compile(r"\r\n|\r|\n")


class ArchiveExtractionError(Exception):
    pass


class NoTextMemberFound(ArchiveExtractionError):
    pass


def split_lines(text: str) -> list[str]:
    """Split on any CR/LF boundary, trim each line, drop the empty ones."""
    return [line.strip() for line in _LINE_BREAK.split(text) if line.strip()]


class ArchiveUnpacker:
    """
    Reads the first text member of a zip archive.

    Only the FIRST member whose name ends with the text suffix (in archive
    listing order) is read. Any further text members are ignored.
    """

    def __init__(self, text_member_suffix: str = ".txt", encoding: str = "utf-8") -> None:
        self.text_member_suffix = text_member_suffix
        self.encoding = encoding

    def unpack(self, archive_path: Path, *, split: bool = False) -> ExtractedPayload:
        try:
            with zipfile.ZipFile(archive_path) as archive:
                member = self._first_text_member(archive)
                if member is None:
                    raise NoTextMemberFound(f"No {self.text_member_suffix} files found in {archive_path}")
                raw = archive.read(member)
        except (zipfile.BadZipFile, zlib.error, EOFError, RuntimeError, NotImplementedError, OSError) as e:
            raise ArchiveExtractionError(f"Unreadable archive {archive_path}: {e}") from e

        try:
            text = raw.decode(self.encoding)
        except UnicodeDecodeError as e:
            raise ArchiveExtractionError(f"Member {member.filename} is not valid {self.encoding}: {e}") from e

        lines = tuple(split_lines(text)) if split else None
        logger.debug("Unpacked %s from %s (%s bytes)", member.filename, archive_path, len(raw))
        return ExtractedPayload(member_name=member.filename, text=text, lines=lines)

    def _first_text_member(self, archive: zipfile.ZipFile) -> zipfile.ZipInfo | None:
        for info in archive.infolist():
            if info.is_dir():
                continue
            if info.filename.endswith(self.text_member_suffix):
                return info
        return None
