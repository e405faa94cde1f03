"""
M3U Parser Service.
Single-pass parser for M3U/M3U8 playlist text, built for playlists with 10K+ entries.
"""
import re
import logging

from channel_guide.models.channel import UNCATEGORIZED, Channel, IngestionResult

logger = logging.getLogger(__name__)

# Regex to detect an EXTINF entry line
EXTINF_PATTERN = re.compile(r'^#EXTINF:\s*-?\d+\s*,?\s*')

TVG_NAME_PATTERN = re.compile(r'tvg-name="([^"]*)"')
TVG_LOGO_PATTERN = re.compile(r'tvg-logo="([^"]*)"')
GROUP_PATTERN = re.compile(r'group-title="([^"]*)"')
TVG_LANGUAGE_PATTERN = re.compile(r'tvg-language="([^"]*)"')

_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def fast_hash(value: str) -> str:
    """
    Stable channel ID from a string.

    Rolling hash over UTF-16 code units: h = h * 31 + c, wrapped to a signed
    32-bit integer, then the absolute value in base 36. Not cryptographic and
    collisions are possible, but every derived channel ID (and any favorite
    stored by ID) depends on this exact output, so it must not change.
    """
    data = value.encode("utf-16-le", "surrogatepass")
    h = 0
    for i in range(0, len(data), 2):
        code_unit = data[i] | (data[i + 1] << 8)
        h = ((h << 5) - h + code_unit) & 0xFFFFFFFF
    if h & 0x80000000:
        h -= 0x100000000
    return _to_base36(abs(h))


def _to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36_DIGITS[remainder])
    return "".join(reversed(digits))


def _extract_attribute(line: str, pattern: re.Pattern) -> str:
    match = pattern.search(line)
    return match.group(1).strip() if match else ""


def _extract_display_name(line: str) -> str:
    """Display name is whatever follows the last comma of the EXTINF line."""
    comma_idx = line.rfind(",")
    if comma_idx == -1:
        return "Unknown"
    return line[comma_idx + 1:].strip() or "Unknown"


def sort_categories(groups) -> list[str]:
    """Case-sensitive alphabetical order with "Uncategorized" always last."""
    return sorted(set(groups), key=lambda name: (name == UNCATEGORIZED, name))


def parse_m3u(content: str) -> IngestionResult:
    """
    Parse playlist text into channels and categories.

    Entries without a following http(s) URL are skipped silently; this never
    raises on malformed input.

    Args:
        content: Raw playlist text

    Returns:
        IngestionResult with channels in playlist order and sorted categories
    """
    lines = content.split("\n")
    total = len(lines)
    channels: list[Channel] = []
    groups: set[str] = set()

    i = 0
    while i < total:
        line = lines[i].strip()

        if not EXTINF_PATTERN.match(line):
            i += 1
            continue

        # The next non-empty, non-comment line is the URL
        url = ""
        j = i + 1
        while j < total:
            next_line = lines[j].strip()
            if next_line and not next_line.startswith("#"):
                url = next_line
                break
            j += 1

        if url.startswith("http://") or url.startswith("https://"):
            name = _extract_attribute(line, TVG_NAME_PATTERN) or _extract_display_name(line)
            group = _extract_attribute(line, GROUP_PATTERN) or UNCATEGORIZED

            channels.append(Channel(
                id=fast_hash(url),
                name=name,
                url=url,
                logo=_extract_attribute(line, TVG_LOGO_PATTERN),
                group=group,
                language=_extract_attribute(line, TVG_LANGUAGE_PATTERN),
            ))
            groups.add(group)

        # Resume after the URL line (or past the end when none was found)
        i = j + 1

    logger.info(f"Parsed {len(channels)} channels in {len(groups)} categories")

    return IngestionResult(channels=channels, categories=sort_categories(groups))
