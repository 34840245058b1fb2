"""Demo users and a small 12-lead dataset for empty installations."""

from __future__ import annotations

import logging
import math
import random
from typing import List, Optional

from models.dataset_models import Channel, Dataset, RecordInput
from services.record_store import RecordStore
from services.user_directory import UserDirectory

LOGGER = logging.getLogger(__name__)

LEAD_NAMES = ["I", "II", "III", "aVR", "aVL", "aVF", "V1", "V2", "V3", "V4", "V5", "V6"]

SAMPLE_USERS = (
    ("admin", "admin", "System Administrator"),
    ("doctor1", "expert", "Beijing Tsinghua Hospital"),
    ("doctor2", "expert", "Qingdao Hospital"),
    ("tech1", "annotator", "Beijing Tsinghua Hospital"),
    ("tech2", "annotator", "Tianjin Hospital"),
)


def generate_waveform(rng: random.Random, num_samples: int = 500, kind: str = "normal") -> List[float]:
    """Synthetic lead trace: a sine carrier with noise; `afib` adds irregular amplitude."""
    samples = []
    for i in range(num_samples):
        base = rng.random() * 0.3 if kind == "afib" else 0.0
        noise = rng.random() * (0.2 if kind == "noisy" else 0.05)
        samples.append(round(math.sin(i * 0.1) * (0.5 + base) + noise, 4))
    return samples


def sample_records(seed: int = 2024, num_samples: int = 500) -> List[RecordInput]:
    rng = random.Random(seed)
    specs = (
        ("P001", "2024-10-01T10:30:00", 72, 160, 90, 380, "normal", "Normal sinus rhythm"),
        ("P002", "2024-10-01T11:00:00", 95, 180, 95, 420, "afib",
         "Possible atrial fibrillation - irregular rhythm detected"),
        ("P003", "2024-10-01T11:30:00", 68, 155, 88, 390, "normal", "Normal sinus rhythm with sinus arrhythmia"),
    )
    return [
        RecordInput(
            patient_id=patient,
            timestamp=timestamp,
            heart_rate=hr,
            pr_interval=pr,
            qrs_duration=qrs,
            qt_interval=qt,
            auto_analysis=analysis,
            channels=[Channel(name=lead, samples=generate_waveform(rng, num_samples, kind)) for lead in LEAD_NAMES],
        )
        for patient, timestamp, hr, pr, qrs, qt, kind, analysis in specs
    ]


async def seed_sample_data(users: UserDirectory, records: RecordStore) -> Optional[Dataset]:
    """Register the demo users and dataset if the store holds no datasets yet.

    Returns the created dataset, or None when data already existed.
    """
    if await records.list_datasets():
        return None

    for username, role, institution in SAMPLE_USERS:
        await users.ensure_user(username, role, institution)

    dataset = await records.create_dataset(
        "Beijing Tsinghua Hospital - Resting ECG",
        "12-lead resting ECG records from cardiology department",
        "admin",
        sample_records(),
    )
    LOGGER.info("Seeded sample dataset %s and %d users", dataset.id, len(SAMPLE_USERS))
    return dataset
