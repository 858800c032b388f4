"""Append-only CSV report of minter attribution rows."""

import csv
import logging
from pathlib import Path

from ..core.models import MinterRecord

logger = logging.getLogger(__name__)

MINTERS_FILE = "minters_information.csv"
MINTERS_HEADER = ["Token Address", "Minter Address", "Mint Price", "Mint Date", "Signature"]


class MinterReport:
    """
    Minter attribution CSV, written one row at a time.

    An existing report is resumed: tokens already listed are reported by
    ``contains`` and new rows are appended after them. ``fresh=True``
    discards the existing file.
    """

    def __init__(self, path: Path, fresh: bool = False):
        self.path = Path(path)
        self._tokens: set[str] = set()

        if fresh or not self.path.exists() or self.path.stat().st_size == 0:
            self._write_header()
        else:
            self._load()

    def _write_header(self) -> None:
        with open(self.path, "w", encoding="utf-8", newline="") as f:
            f.write(", ".join(MINTERS_HEADER) + "\n")

    def _load(self) -> None:
        with open(self.path, "r", encoding="utf-8", newline="") as f:
            for row in csv.reader(f):
                if not row or row[0].strip() == MINTERS_HEADER[0]:
                    continue
                self._tokens.add(row[0].strip())
        logger.info(f"Resuming {self.path}: {len(self._tokens)} tokens already reported")

    def contains(self, token: str) -> bool:
        return token in self._tokens

    def append(self, record: MinterRecord) -> None:
        """Append one row and flush it to disk."""
        if record.token in self._tokens:
            return
        # a comma inside a field would shift the columns of this row
        row = [field.replace(",", "") for field in record.to_row()]
        with open(self.path, "a", encoding="utf-8", newline="") as f:
            writer = csv.writer(f, lineterminator="\n")
            writer.writerow(row)
        self._tokens.add(record.token)

    def __len__(self) -> int:
        return len(self._tokens)
