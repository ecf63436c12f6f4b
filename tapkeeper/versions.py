"""Version parsing and comparison utilities.

Handles conversion between version strings and comparable Version objects,
the per-architecture VersionParser container, and the comparison that
decides whether a current version is newer than upstream.
"""

from __future__ import annotations

import functools
import re
from typing import Union

MESSAGE_REGEX = re.compile(
    r"^(?:error:|skipped|unable to get(?: throttled)? versions)", re.IGNORECASE
)
UNABLE_TO_GET_VERSIONS = "unable to get versions"
UNABLE_TO_GET_THROTTLED_VERSIONS = "unable to get throttled versions"
SKIPPED = "skipped"

VERSION_SYMBOLS = ("general", "arm", "intel")

_TOKEN_REGEX = re.compile(r"\d+|[A-Za-z]+")
_PRERELEASE_RANKS = {"alpha": 0, "a": 0, "beta": 1, "b": 1, "pre": 2, "rc": 3}


@functools.total_ordering
class Version:
    """A comparable version parsed into numeric and alphabetic tokens.

    Ordering of a single token position:
    pre-release words < missing/0 < other words < positive numbers.
    Missing trailing positions compare as missing, so "1.2" == "1.2.0".
    """

    def __init__(self, value: str) -> None:
        value = str(value).strip()
        if not value:
            raise ValueError("Version value must not be empty")
        self.value = value
        self._key = self._tokenize(value)

    @staticmethod
    def _tokenize(value: str) -> tuple[tuple[int, int, str], ...]:
        raw = _TOKEN_REGEX.findall(value)
        key: list[tuple[int, int, str]] = []
        for i, token in enumerate(raw):
            if token.isdigit():
                key.append((1, int(token), ""))
                continue
            word = token.lower()
            # "a"/"b" only count as pre-release markers when a number follows
            short = word in ("a", "b")
            next_is_digit = i + 1 < len(raw) and raw[i + 1].isdigit()
            if word in _PRERELEASE_RANKS and (not short or next_is_digit):
                key.append((0, _PRERELEASE_RANKS[word], ""))
            else:
                key.append((1, 0, word))
        return tuple(key)

    def _padded(self, length: int) -> tuple[tuple[int, int, str], ...]:
        return self._key + ((1, 0, ""),) * (length - len(self._key))

    @property
    def is_latest(self) -> bool:
        return self.value == "latest"

    @property
    def patch(self) -> int:
        """The third numeric component, or 0 when absent."""
        numbers = [int(t) for t in _TOKEN_REGEX.findall(self.value) if t.isdigit()]
        return numbers[2] if len(numbers) > 2 else 0

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        length = max(len(self._key), len(other._key))
        return self._padded(length) == other._padded(length)

    def __lt__(self, other: Version) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        length = max(len(self._key), len(other._key))
        return self._padded(length) < other._padded(length)

    def __hash__(self) -> int:
        key = list(self._key)
        while key and key[-1] == (1, 0, ""):
            key.pop()
        return hash(tuple(key))

    def __str__(self) -> str:
        return self.value

    def __repr__(self) -> str:
        return f"Version({self.value!r})"


VersionReading = Union[Version, str]


def is_message(reading: object) -> bool:
    """Return True if the reading is a livecheck message rather than a version."""
    return isinstance(reading, str) and bool(MESSAGE_REGEX.match(reading))


def parse_reading(value: VersionReading | None) -> VersionReading | None:
    """Classify a raw value as a Version or a message string.

    Messages ("skipped", "error: ...", ...) are kept as strings, anything else
    is parsed into a Version. Empty values become None.
    """
    if value is None or isinstance(value, Version):
        return value
    value = str(value)
    if not value.strip():
        return None
    if is_message(value):
        return value
    return Version(value)


class VersionParserError(ValueError):
    """Raised when a VersionParser has no usable combination of readings."""


class VersionParser:
    """Up to three version readings for a package: general, arm and intel.

    Either `general` or both `arm` and `intel` must be present. When only
    per-arch readings are given and they are equal, they collapse into a
    general-only reading.
    """

    def __init__(
        self,
        general: VersionReading | None = None,
        arm: VersionReading | None = None,
        intel: VersionReading | None = None,
    ) -> None:
        self.general = parse_reading(general)
        self.arm = parse_reading(arm)
        self.intel = parse_reading(intel)

        if self.general is not None:
            return
        if self.arm is None and self.intel is None:
            raise VersionParserError("version must not be empty")
        if self.arm is None:
            raise VersionParserError("arm version must not be empty")
        if self.intel is None:
            raise VersionParserError("intel version must not be empty")

        if self.arm == self.intel:
            self.general, self.arm, self.intel = self.arm, None, None

    def get(self, key: str) -> VersionReading | None:
        return getattr(self, key)

    def populated(self) -> dict[str, VersionReading]:
        """Map of populated slot name → reading, in general/arm/intel order."""
        return {
            key: value
            for key in VERSION_SYMBOLS
            if (value := self.get(key)) is not None
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VersionParser):
            return NotImplemented
        return (
            self.general == other.general
            and self.arm == other.arm
            and self.intel == other.intel
        )

    def __repr__(self) -> str:
        slots = ", ".join(f"{k}={v!r}" for k, v in self.populated().items())
        return f"VersionParser({slots})"


def compare_versions(
    current_version: VersionParser, new_version: VersionParser
) -> dict[str, dict[str, bool]]:
    """Compare current and new readings per architecture.

    Pairs are formed in this order of precedence:
    1. Same key in both current and new.
    2. When current differs by arch and new has a general reading, each
       unpaired current arch is compared against new's general reading.
    3. When current is general-only but new differs by arch, current's
       general reading is compared against the highest real version among
       new's arch readings (messages excluded).

    A pair whose new value is a message (or missing) is never reported as
    newer than upstream.

    Returns:
        {"multiple_versions": {"current": bool, "new": bool},
         "newer_than_upstream": {key: bool, ...}}
    """
    current_versions = {
        key: value
        for key, value in current_version.populated().items()
        if isinstance(value, Version)
    }
    new_versions = new_version.populated()

    multiple_versions = {
        "current": len(current_versions) > 1,
        "new": len(new_versions) > 1,
    }

    comparison_pairs: dict[str, tuple[Version, VersionReading | None]] = {}

    for key in current_versions:
        if key in new_versions:
            comparison_pairs[key] = (current_versions[key], new_versions[key])

    if multiple_versions["current"] and "general" in new_versions:
        for key in current_versions:
            if key not in new_versions:
                comparison_pairs.setdefault(
                    key, (current_versions[key], new_versions["general"])
                )

    if (
        "general" not in comparison_pairs
        and "general" in current_versions
        and multiple_versions["new"]
    ):
        candidates = [
            value
            for key, value in new_versions.items()
            if key not in current_versions and isinstance(value, Version)
        ]
        highest_new_version = max(candidates) if candidates else None
        comparison_pairs["general"] = (current_versions["general"], highest_new_version)

    newer_than_upstream: dict[str, bool] = {}
    for key, (current_value, new_value) in comparison_pairs.items():
        if isinstance(new_value, Version):
            newer_than_upstream[key] = current_value > new_value
        else:
            newer_than_upstream[key] = False

    return {
        "multiple_versions": multiple_versions,
        "newer_than_upstream": newer_than_upstream,
    }
