"""Conversion of per-site upload metadata into CallRecording candidates.

Two upload formats exist:

- DTR: multi-site trunked recorders. Keys contain ``/dtr`` and the object
  carries the full capture metadata (start/stop time, talkgroup, radios...).
- VHF: legacy single-site conventional receivers. Only ``datetime`` (ms),
  ``len`` and ``tone`` are supplied; talkgroup and frequency are inferred
  from the receiver name embedded in the object key.

Metadata values arrive as strings and may be missing or malformed. Parsing
never raises: unparseable numbers become ``None``.
"""

import json
import logging
import math
from dataclasses import dataclass, field
from typing import ClassVar, Mapping, Optional, Union

from radiocap.config import Settings
from radiocap.db.models import UNKNOWN_TALKGROUP, CallRecording

logger = logging.getLogger(__name__)

DTR_MARKER = "/dtr"


def to_number(value) -> Optional[float]:
    """Parse a metadata value as a finite number, or None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def to_int(value) -> Optional[int]:
    number = to_number(value)
    if number is None or not number.is_integer():
        return None
    return int(number)


def parse_source_list(raw: Optional[str]) -> list[int]:
    """
    Parse the contributing-radio list supplied by a DTR site.

    The list is a JSON array of ``{"pos": ..., "src": ...}`` objects. Returns
    distinct positive radio IDs in first-seen order; malformed input yields
    an empty list.
    """
    if not raw:
        return []
    try:
        items = json.loads(raw)
    except (TypeError, ValueError):
        logger.debug(f"Ignoring malformed source_list: {raw!r}")
        return []
    if not isinstance(items, list):
        return []

    sources: list[int] = []
    for item in items:
        src = item.get("src") if isinstance(item, dict) else item
        radio_id = to_int(src)
        if radio_id is None or radio_id <= 0 or radio_id in sources:
            continue
        sources.append(radio_id)
    return sources


def file_identifier(key: str) -> str:
    """Human-facing file name: the third path segment, else the second."""
    parts = key.split("/")
    if len(parts) > 2 and parts[2]:
        return parts[2]
    if len(parts) > 1 and parts[1]:
        return parts[1]
    return key


@dataclass(frozen=True)
class VhfSite:
    talkgroup: int
    freq: int


@dataclass(frozen=True)
class NormalizerConfig:
    """Static site configuration used while normalizing uploads."""

    vhf_sites: Mapping[str, VhfSite] = field(default_factory=dict)
    dtr_marker: str = DTR_MARKER

    @classmethod
    def from_settings(cls, settings: Settings) -> "NormalizerConfig":
        return cls(
            vhf_sites={
                name: VhfSite(talkgroup=int(site["talkgroup"]), freq=int(site["freq"]))
                for name, site in settings.vhf_sites.items()
            }
        )


@dataclass(frozen=True)
class DtrMetadata:
    """Metadata from a multi-site trunked (DTR) upload."""

    kind: ClassVar[str] = "dtr"
    multi_site: ClassVar[bool] = True

    talkgroup: Optional[int]
    start_time: Optional[float]
    stop_time: Optional[float]
    call_length: Optional[float]
    freq: Optional[int]
    emergency: int
    tone: bool
    tower: Optional[str]
    sources: tuple[int, ...] = ()


@dataclass(frozen=True)
class VhfMetadata:
    """Metadata from a legacy single-site VHF upload."""

    kind: ClassVar[str] = "vhf"
    multi_site: ClassVar[bool] = False

    talkgroup: int
    freq: int
    datetime_ms: Optional[float]
    length: Optional[float]
    tone: bool
    site: Optional[str] = None


UploadMetadata = Union[DtrMetadata, VhfMetadata]


@dataclass
class NormalizedUpload:
    """A candidate row plus what was learned while building it."""

    recording: CallRecording
    metadata: UploadMetadata
    upload_latency: Optional[float] = None  # Seconds between capture end and ingestion

    @property
    def kind(self) -> str:
        return self.metadata.kind


class MetadataNormalizer:
    """Builds CallRecording candidates from raw object metadata."""

    def __init__(self, config: NormalizerConfig):
        self.config = config

    def detect_format(self, key: str) -> str:
        return DtrMetadata.kind if self.config.dtr_marker in key else VhfMetadata.kind

    def parse(self, key: str, raw: Mapping[str, str]) -> UploadMetadata:
        """Resolve the upload format once and parse its metadata."""
        if self.detect_format(key) == DtrMetadata.kind:
            return DtrMetadata(
                talkgroup=to_int(raw.get("talkgroup_num")),
                start_time=to_number(raw.get("start_time")),
                stop_time=to_number(raw.get("stop_time")),
                call_length=to_number(raw.get("call_length")),
                freq=to_int(raw.get("freq")),
                emergency=1 if raw.get("emergency") == "1" else 0,
                tone=raw.get("tone") == "true",
                tower=raw.get("source"),
                sources=tuple(parse_source_list(raw.get("source_list"))),
            )

        site_name = None
        site = VhfSite(talkgroup=UNKNOWN_TALKGROUP, freq=0)
        for name, configured in self.config.vhf_sites.items():
            if name in key:
                site_name, site = name, configured
                break
        if site_name is None:
            logger.warning(f"No VHF site matches {key}, using unknown talkgroup")

        return VhfMetadata(
            talkgroup=site.talkgroup,
            freq=site.freq,
            datetime_ms=to_number(raw.get("datetime")),
            length=to_number(raw.get("len")),
            tone=raw.get("tone") == "y",
            site=site_name,
        )

    def to_recording(self, key: str, metadata: UploadMetadata, added: int) -> CallRecording:
        """Build the candidate row for a parsed upload."""
        if isinstance(metadata, DtrMetadata):
            talkgroup = metadata.talkgroup
            if talkgroup is None:
                talkgroup = UNKNOWN_TALKGROUP
            return CallRecording(
                key=key,
                talkgroup=talkgroup,
                added=added,
                start_time=metadata.start_time,
                end_time=metadata.stop_time,
                len=metadata.call_length,
                freq=metadata.freq,
                emergency=metadata.emergency,
                tone=metadata.tone,
                tone_index="y" if metadata.tone else "n",
                tower=metadata.tower,
                sources=list(metadata.sources) or None,
            )

        start_time = None
        end_time = None
        if metadata.datetime_ms is not None:
            start_time = metadata.datetime_ms / 1000
            end_time = start_time + (metadata.length or 0)
        return CallRecording(
            key=key,
            talkgroup=metadata.talkgroup,
            added=added,
            start_time=start_time,
            end_time=end_time,
            len=metadata.length,
            freq=metadata.freq,
            emergency=0,
            tone=metadata.tone,
            tone_index="y" if metadata.tone else "n",
            tower="vhf",
            sources=None,
        )

    def normalize(self, key: str, raw: Mapping[str, str], added: int) -> NormalizedUpload:
        """
        Convert raw object metadata into a candidate row.

        Args:
            key: Object key of the upload
            raw: User metadata attached to the object
            added: Ingestion time in ms since epoch

        Returns:
            NormalizedUpload with the candidate and its upload latency
        """
        metadata = self.parse(key, raw)
        recording = self.to_recording(key, metadata, added)

        upload_latency = None
        if isinstance(metadata, DtrMetadata) and metadata.stop_time is not None:
            upload_latency = math.floor(added / 1000 + 0.5) - metadata.stop_time

        return NormalizedUpload(
            recording=recording,
            metadata=metadata,
            upload_latency=upload_latency,
        )
