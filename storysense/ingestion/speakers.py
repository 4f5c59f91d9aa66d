"""Speaker identity resolution within one pipeline run."""

from __future__ import annotations

import uuid

from storysense.ingestion.models import JobMetadata, Speaker, SpeakerJob
from storysense.pipeline_config import DEFAULT_PALETTE, IdStrategy

# Fixed namespace so deterministic ids are stable across deployments
SPEAKER_ID_NAMESPACE = uuid.UUID("6f1c2b1e-4d4a-5e0b-9a53-2f5d3c7e8a11")


def speaker_id_for(job_id: str, label: str, strategy: IdStrategy) -> str:
    if strategy is IdStrategy.DETERMINISTIC:
        return str(uuid.uuid5(SPEAKER_ID_NAMESPACE, f"{job_id}:{label}"))
    return str(uuid.uuid4())


class SpeakerResolver:
    """Maps raw diarization labels to speakers, creating them on first sight.

    Only labels from the current transcript are known; speakers from earlier
    runs in the same project are never merged here.
    """

    def __init__(
        self,
        job: JobMetadata,
        palette: tuple[str, ...] = DEFAULT_PALETTE,
        id_strategy: IdStrategy = IdStrategy.DETERMINISTIC,
    ) -> None:
        if not palette:
            raise ValueError("Speaker palette must contain at least one colour")
        self.job = job
        self.palette = palette
        self.id_strategy = id_strategy
        self._speakers: list[Speaker] = []

    @property
    def speakers(self) -> list[Speaker]:
        """Speakers in creation order."""
        return list(self._speakers)

    def resolve(self, label: str) -> Speaker:
        for speaker in self._speakers:
            if speaker.name == label:
                return speaker

        speaker_id = speaker_id_for(self.job.transcript_id, label, self.id_strategy)
        speaker = Speaker(
            id=speaker_id,
            name=label,
            color=self.palette[len(self._speakers) % len(self.palette)],
            user_id=self.job.user_id,
            project_id=self.job.project_id,
            jobs=[
                SpeakerJob(
                    job_id=self.job.transcript_id,
                    filename=self.job.file_name,
                    speaker_id=speaker_id,
                )
            ],
        )
        self._speakers.append(speaker)
        return speaker
