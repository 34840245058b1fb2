"""Dataset and waveform record entities held by the record store."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class Channel:
    """One named waveform trace (e.g. a single ECG lead)."""

    name: str
    samples: List[float] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "samples": list(self.samples)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Channel":
        return cls(name=data["name"], samples=[float(v) for v in data.get("samples") or []])


@dataclass
class RecordInput:
    """Unsaved record as supplied by an ingest collaborator.

    Attributes:
        patient_id: Subject identifier.
        timestamp: Capture time as ISO-8601 text.
        heart_rate: Beats per minute.
        pr_interval: PR interval in milliseconds.
        qrs_duration: QRS duration in milliseconds.
        qt_interval: QT interval in milliseconds.
        auto_analysis: Opaque machine analysis text.
        channels: Ordered named channels; every record in a dataset must
            carry the same channel names in the same order.
    """

    patient_id: str
    timestamp: Optional[str] = None
    heart_rate: Optional[float] = None
    pr_interval: Optional[float] = None
    qrs_duration: Optional[float] = None
    qt_interval: Optional[float] = None
    auto_analysis: str = ""
    channels: List[Channel] = field(default_factory=list)

    @property
    def channel_names(self) -> List[str]:
        return [c.name for c in self.channels]


@dataclass
class Record:
    """Immutable record as stored; `channels` is empty when loaded without samples."""

    id: str
    dataset_id: str
    position: int
    patient_id: str
    timestamp: Optional[str] = None
    heart_rate: Optional[float] = None
    pr_interval: Optional[float] = None
    qrs_duration: Optional[float] = None
    qt_interval: Optional[float] = None
    auto_analysis: str = ""
    channels: List[Channel] = field(default_factory=list)

    def to_dict(self, include_channels: bool = True) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "dataset_id": self.dataset_id,
            "position": self.position,
            "patient_id": self.patient_id,
            "timestamp": self.timestamp,
            "heart_rate": self.heart_rate,
            "pr_interval": self.pr_interval,
            "qrs_duration": self.qrs_duration,
            "qt_interval": self.qt_interval,
            "auto_analysis": self.auto_analysis,
        }
        if include_channels:
            data["channels"] = [c.to_dict() for c in self.channels]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any], include_channels: bool = True) -> "Record":
        channels = [Channel.from_dict(c) for c in data.get("channels") or []] if include_channels else []
        return cls(
            id=data["id"],
            dataset_id=data["dataset_id"],
            position=int(data["position"]),
            patient_id=data.get("patient_id") or "",
            timestamp=data.get("timestamp"),
            heart_rate=data.get("heart_rate"),
            pr_interval=data.get("pr_interval"),
            qrs_duration=data.get("qrs_duration"),
            qt_interval=data.get("qt_interval"),
            auto_analysis=data.get("auto_analysis") or "",
            channels=channels,
        )


@dataclass
class Dataset:
    """Dataset metadata plus the ordered ids of its records (no samples).

    Attributes:
        id: Unique dataset id.
        name: Display name.
        description: Free-text description.
        uploaded_by: Username of the uploader (weak reference).
        upload_date: ISO date of the ingest.
        channel_names: Channel name sequence shared by every record.
        record_ids: Record ids in ingest order.
    """

    id: str
    name: str
    description: str
    uploaded_by: str
    upload_date: str
    channel_names: List[str] = field(default_factory=list)
    record_ids: List[str] = field(default_factory=list)

    @property
    def record_count(self) -> int:
        return len(self.record_ids)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "uploaded_by": self.uploaded_by,
            "upload_date": self.upload_date,
            "channel_names": list(self.channel_names),
            "record_ids": list(self.record_ids),
            "record_count": self.record_count,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Dataset":
        return cls(
            id=data["id"],
            name=data["name"],
            description=data.get("description") or "",
            uploaded_by=data.get("uploaded_by") or "",
            upload_date=data.get("upload_date") or "",
            channel_names=list(data.get("channel_names") or []),
            record_ids=list(data.get("record_ids") or []),
        )


@dataclass
class IngestResult:
    """Outcome of a best-effort bulk ingest."""

    dataset: Dataset
    created: int
    skipped: int = 0
