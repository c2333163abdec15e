"""CSV to JSON batch conversion and line transforms.

These helpers prepare input for the validation engine: CSV rows become
records (dicts) with numeric-looking cells converted to numbers and empty
cells converted to None, so that absent values behave as absent.

Both plain and gzip-compressed (``.gz``) files are supported.
"""

from __future__ import annotations

import csv
import gzip
import json
import logging
import math
import os
import tempfile
from pathlib import Path
from typing import IO, TYPE_CHECKING, Any, Dict, List, Union

from .exceptions import BatchProcessingError, InvalidFormatError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Mapping, Sequence

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _open(path: PathLike, mode: str) -> IO[str]:
    if str(path).endswith(".gz"):
        return gzip.open(path, mode=f"{mode}t", encoding="utf-8", newline="")  # type: ignore[return-value]
    return open(path, mode=mode, encoding="utf-8", newline="")


def _write_atomically(path: PathLike, write: Callable[[IO[str]], int]) -> int:
    """Run ``write`` against a temporary file and move it onto ``path`` on success.

    On failure the temporary file is removed and ``path`` is left untouched.
    """
    target = Path(path)
    suffix = ".tmp.gz" if str(target).endswith(".gz") else ".tmp"
    temp_fd, temp_path = tempfile.mkstemp(dir=target.parent, suffix=suffix)
    os.close(temp_fd)

    try:
        with _open(temp_path, "w") as out:
            count = write(out)
        os.replace(temp_path, target)
    except Exception:
        if os.path.exists(temp_path):
            os.remove(temp_path)
        raise
    return count


def parse_cell(value: str) -> Any:
    """Convert a CSV cell to int, float or None where it looks like one."""
    text = value.strip()
    if text == "":
        return None
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        return value
    return number if math.isfinite(number) else value


class CsvJsonConverter:
    """Converts CSV files with a header row into JSON arrays of objects.

    Args:
        expected_header: Required column names, in order. When given, any
            other header raises InvalidFormatError.
        field_map: Optional renaming of columns to output keys
        coerce: Convert numeric-looking cells to numbers and blanks to None
    """

    def __init__(
        self,
        expected_header: Sequence[str] | None = None,
        field_map: Mapping[str, str] | None = None,
        coerce: bool = True,
    ):
        self.expected_header = list(expected_header) if expected_header is not None else None
        self.field_map = dict(field_map or {})
        self.coerce = coerce

    def read_records(self, input_path: PathLike) -> Iterator[Dict[str, Any]]:
        """Yield one record per well-formed CSV row.

        Rows whose column count differs from the header are skipped.

        Raises:
            InvalidFormatError: If the header is missing or unexpected
            BatchProcessingError: If the file cannot be read
        """
        try:
            with _open(input_path, "r") as f:
                reader = csv.reader(f)
                header = next(reader, None)
                self._check_header(header, input_path)
                keys = [self.field_map.get(name, name) for name in header]

                for line_number, row in enumerate(reader, start=2):
                    if not row:
                        continue
                    if len(row) != len(keys):
                        logger.debug(
                            f"{input_path}:{line_number}: expected {len(keys)} columns, "
                            f"got {len(row)}; skipping"
                        )
                        continue
                    yield {
                        key: parse_cell(cell) if self.coerce else cell
                        for key, cell in zip(keys, row)
                    }
        except (OSError, csv.Error) as e:
            raise BatchProcessingError(f"Failed to read {input_path}: {e}", path=str(input_path)) from e

    def convert(self, input_path: PathLike, output_path: PathLike) -> int:
        """Write the records of a CSV file as a JSON array.

        The array is written to a temporary file next to ``output_path`` and
        only moved into place once the whole input has been read. A failed
        conversion leaves ``output_path`` untouched.

        Returns:
            Number of records written

        Raises:
            InvalidFormatError: If the header is missing or unexpected
            BatchProcessingError: If either file cannot be read or written
        """
        def write(out: IO[str]) -> int:
            written = 0
            out.write("[")
            for record in self.read_records(input_path):
                if written:
                    out.write(",")
                out.write("\n")
                out.write(json.dumps(record, ensure_ascii=False))
                written += 1
            out.write("\n]\n")
            return written

        try:
            count = _write_atomically(output_path, write)
        except OSError as e:
            raise BatchProcessingError(f"Failed to write {output_path}: {e}", path=str(output_path)) from e

        logger.info(f"Converted {count} records from {input_path} to {output_path}")
        return count

    def _check_header(self, header: List[str] | None, path: PathLike) -> None:
        if not header:
            raise InvalidFormatError(f"Missing CSV header in {path}", path=str(path))
        if self.expected_header is not None and header != self.expected_header:
            raise InvalidFormatError(
                f"Invalid CSV header in {path}: {','.join(header)} "
                f"(expected {','.join(self.expected_header)})",
                path=str(path),
            )


def transform_lines(source: PathLike, target: PathLike, func: Callable[[str], str]) -> int:
    """Stream each line of ``source`` through ``func`` into ``target``.

    Line endings are stripped before ``func`` is called and re-added on write.

    Returns:
        Number of lines written

    Raises:
        BatchProcessingError: If either file cannot be read or written
    """
    def write(dst: IO[str]) -> int:
        written = 0
        with _open(source, "r") as src:
            for line in src:
                dst.write(func(line.rstrip("\r\n")))
                dst.write("\n")
                written += 1
        return written

    try:
        count = _write_atomically(target, write)
    except OSError as e:
        raise BatchProcessingError(f"Failed to transform {source} into {target}: {e}", path=str(source)) from e
    return count


def load_records(path: PathLike) -> List[Dict[str, Any]]:
    """Load records from a JSON file (object or array of objects) or a CSV file.

    Raises:
        InvalidFormatError: If the content is not an object or list of objects
        BatchProcessingError: If the file cannot be read
    """
    suffixes = [s.lower() for s in Path(path).suffixes]
    if ".csv" in suffixes:
        return list(CsvJsonConverter().read_records(path))

    try:
        with _open(path, "r") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise InvalidFormatError(f"Invalid JSON in {path}: {e}", path=str(path)) from e
    except OSError as e:
        raise BatchProcessingError(f"Failed to read {path}: {e}", path=str(path)) from e

    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        raise InvalidFormatError(f"{path} must contain a JSON object or a list of objects", path=str(path))
    return data


__all__ = ["CsvJsonConverter", "transform_lines", "load_records", "parse_cell"]
