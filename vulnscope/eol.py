"""Print end-of-life dates for Debian and Ubuntu releases as table entries."""

from __future__ import annotations

import argparse
from datetime import datetime
from pathlib import Path
from typing import Iterable, Iterator


def _date(text: str) -> tuple[int, int, int]:
    """Parse ``YYYY-M-D``; anything unparsable yields the zero date."""
    try:
        parsed = datetime.strptime(text, "%Y-%m-%d")
    except ValueError:
        return 1, 1, 1
    return parsed.year, parsed.month, parsed.day


def _entry(name: str, when: tuple[int, int, int]) -> str:
    year, month, day = when
    return f'"{name}": time.Date({year}, {month}, {day}, 23, 59, 59, 0, time.UTC),'


def debian_eol(lines: Iterable[str]) -> Iterator[str]:
    """Yield an entry per release; releases without an EOL column never expire."""
    for line in lines:
        fields = line.rstrip("\n").removesuffix("\r").split(",")
        if len(fields) < 6 and fields[0]:
            yield _entry(fields[0], (3000, 1, 1))
        elif len(fields) == 6:
            yield _entry(fields[0], _date(fields[5]))


def ubuntu_eol(lines: Iterable[str]) -> Iterator[str]:
    """Yield an entry per release keyed by the version number, dated by the last column."""
    for line in lines:
        fields = line.rstrip("\n").removesuffix("\r").split(",")
        words = fields[0].split()
        if not words:
            raise ValueError(f"malformed release line: {line!r}")
        yield _entry(words[0], _date(fields[-1]))


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Display EOL dates.")
    parser.add_argument("data_dir", nargs="?", default="data")
    data_dir = Path(parser.parse_args(argv).data_dir)

    for title, name, entries in (
        ("Debian", "debian.csv", debian_eol),
        ("\nUbuntu", "ubuntu.csv", ubuntu_eol),
    ):
        print(title)
        with open(data_dir / name, encoding="utf-8") as handle:
            for entry in entries(handle):
                print(entry)


if __name__ == "__main__":
    main()