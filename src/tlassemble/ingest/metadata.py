"""Image metadata probing into a nested property tree."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Union

from PIL import ExifTags, Image, UnidentifiedImageError

Scalar = Union[str, int, float, bool]

# Pillow's image.info keys that carry binary payloads rather than properties.
_BINARY_INFO_KEYS = {"exif", "icc_profile", "xmp", "photoshop", "mpinfo", "adobe", "adobe_transform"}


class MetadataProbeError(Exception):
    """Raised when a file cannot be opened as an image at all."""


@dataclass(frozen=True, slots=True)
class MetadataNode:
    """One level of an image's property tree.

    Values are either scalars or nested ``MetadataNode`` instances, in the
    order the decoder reported them.
    """

    entries: tuple[tuple[str, "MetadataValue"], ...] = ()

    def __iter__(self) -> Iterator[tuple[str, MetadataValue]]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def get(self, key: str, default: MetadataValue | None = None) -> MetadataValue | None:
        for name, value in self.entries:
            if name == key:
                return value
        return default

    def child(self, key: str) -> MetadataNode | None:
        value = self.get(key)
        if isinstance(value, MetadataNode):
            return value
        return None


MetadataValue = Union[Scalar, MetadataNode]


def _scalar(value: Any) -> Scalar | None:
    if isinstance(value, str):
        return value.strip("\x00 \t\r\n")
    if isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, bytes):
        return None
    if isinstance(value, (tuple, list)):
        parts = [_scalar(item) for item in value]
        return ", ".join(str(part) for part in parts if part is not None)
    try:
        # IFDRational and friends.
        return float(value)
    except (TypeError, ValueError):
        return str(value)


def build_node(mapping: Mapping[str, Any]) -> MetadataNode:
    """Convert a plain nested mapping into a ``MetadataNode`` tree."""

    entries: list[tuple[str, MetadataValue]] = []
    for key, value in mapping.items():
        if isinstance(value, Mapping):
            entries.append((str(key), build_node(value)))
            continue
        scalar = _scalar(value)
        if scalar is not None:
            entries.append((str(key), scalar))
    return MetadataNode(entries=tuple(entries))


def _named_tags(values: Mapping[int, Any], names: Mapping[int, str]) -> dict[str, Any]:
    return {names.get(tag, str(tag)): value for tag, value in values.items()}


def _exif_properties(image: Image.Image) -> dict[str, Any]:
    exif = image.getexif()
    if not exif:
        return {}

    pointers = {ExifTags.Base.ExifOffset, ExifTags.Base.GPSInfo}
    tiff = {tag: value for tag, value in exif.items() if tag not in pointers}
    properties: dict[str, Any] = {}
    if tiff:
        properties["TIFF"] = _named_tags(tiff, ExifTags.TAGS)

    exif_ifd = exif.get_ifd(ExifTags.IFD.Exif)
    if exif_ifd:
        properties["Exif"] = _named_tags(exif_ifd, ExifTags.TAGS)

    gps_ifd = exif.get_ifd(ExifTags.IFD.GPSInfo)
    if gps_ifd:
        properties["GPS"] = _named_tags(gps_ifd, ExifTags.GPSTAGS)
    return properties


def probe(path: Path) -> MetadataNode:
    """Read the property tree of an image without decoding its pixels."""

    try:
        with Image.open(path) as image:
            properties: dict[str, Any] = {
                "PixelWidth": image.width,
                "PixelHeight": image.height,
                "Format": image.format or "",
                "ColorModel": image.mode,
            }
            for key, value in image.info.items():
                if key in _BINARY_INFO_KEYS or isinstance(value, bytes):
                    continue
                properties[str(key)] = value
            properties.update(_exif_properties(image))
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as exc:
        raise MetadataProbeError(f"Unable to get image metadata for \"{path}\": {exc}") from exc
    return build_node(properties)
