"""Transcription client.

Recorded audio is uploaded to a provider, which returns a job reference; the
client then polls the job on a fixed interval until it completes, fails, the
attempt cap is hit, or the owning session is abandoned.

Two providers are shipped:

- `AssemblyAIProvider`: hosted upload/poll API over `httpx`.
- `WhisperJobProvider`: local `faster-whisper` run as a background task.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum

import httpx

from mock_interviewer.config import get_settings
from mock_interviewer.errors import (
    TranscriptionCancelled,
    TranscriptionFailed,
    TranscriptionTimeout,
)
from mock_interviewer.voice.stt import STTProvider, WhisperSTT

logger = logging.getLogger(__name__)


class JobState(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class TranscriptionStatus:
    """Status of one transcription job."""

    state: JobState
    text: str = ""
    error: str = ""

    @classmethod
    def pending(cls) -> TranscriptionStatus:
        return cls(state=JobState.PENDING)

    @classmethod
    def completed(cls, text: str) -> TranscriptionStatus:
        return cls(state=JobState.COMPLETED, text=text)

    @classmethod
    def failed(cls, error: str) -> TranscriptionStatus:
        return cls(state=JobState.FAILED, error=error)


class TranscriptionProvider(ABC):
    """Upload/poll transcription backend."""

    @abstractmethod
    async def upload(self, audio: bytes) -> str:
        """
        Submit audio for transcription.

        Args:
            audio: Recorded audio bytes.

        Returns:
            Provider job reference.

        Raises:
            TranscriptionFailed: If the provider rejected the upload.
        """
        ...

    @abstractmethod
    async def poll_status(self, job_ref: str) -> TranscriptionStatus:
        """
        Check the state of a job.

        Raises:
            TranscriptionFailed: On transport errors.
        """
        ...

    async def cancel(self, job_ref: str) -> None:
        """Stop a job the client gave up on. Providers without job control ignore it."""
        return None

    async def close(self) -> None:
        """Release provider resources."""
        return None


class AssemblyAIProvider(TranscriptionProvider):
    """
    Hosted transcription over the AssemblyAI v2 REST API.

    One `httpx.AsyncClient` is shared by every session using this provider.
    """

    _PENDING_STATUSES = frozenset({"queued", "processing"})
    _FAILED_STATUSES = frozenset({"error", "failed"})

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        language_code: str = "en_us",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the provider.

        Args:
            api_key: API key (uses config if not provided).
            base_url: API base URL (uses config if not provided).
            timeout: Per-request timeout in seconds (uses config if not provided).
            language_code: Language hint sent with each job.
            client: Pre-built HTTP client, mainly for tests.
        """
        settings = get_settings()
        self._api_key = api_key if api_key is not None else settings.assemblyai_api_key
        self._base_url = base_url or settings.assemblyai_base_url
        self._timeout = timeout or settings.transcription_timeout
        self._language_code = language_code
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                headers={"authorization": self._api_key},
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def upload(self, audio: bytes) -> str:
        client = await self._get_client()
        try:
            response = await client.post(
                "/v2/upload",
                content=audio,
                headers={"content-type": "application/octet-stream"},
            )
            response.raise_for_status()
            upload_url = response.json()["upload_url"]

            response = await client.post(
                "/v2/transcript",
                json={
                    "audio_url": upload_url,
                    "punctuate": True,
                    "format_text": True,
                    "language_code": self._language_code,
                },
            )
            response.raise_for_status()
            job_id = response.json()["id"]
        except httpx.HTTPError as e:
            logger.warning(f"Transcription upload failed: {e}")
            raise TranscriptionFailed(f"Transcription upload failed: {e}") from e
        except (KeyError, ValueError) as e:
            raise TranscriptionFailed(f"Unexpected transcription response: {e}") from e

        logger.debug(f"Transcription job created: {job_id}")
        return str(job_id)

    async def poll_status(self, job_ref: str) -> TranscriptionStatus:
        client = await self._get_client()
        try:
            response = await client.get(f"/v2/transcript/{job_ref}")
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            logger.warning(f"Transcription status check failed: {e}")
            raise TranscriptionFailed(f"Transcription status check failed: {e}") from e
        except ValueError as e:
            raise TranscriptionFailed(f"Unexpected transcription response: {e}") from e

        status = str(data.get("status", "")).lower()
        if status == "completed":
            return TranscriptionStatus.completed(data.get("text") or "")
        if status in self._FAILED_STATUSES:
            return TranscriptionStatus.failed(str(data.get("error") or "transcription failed"))
        if status in self._PENDING_STATUSES:
            return TranscriptionStatus.pending()
        return TranscriptionStatus.failed(f"Unknown transcription status: {status or '<missing>'}")


class WhisperJobProvider(TranscriptionProvider):
    """Local faster-whisper transcription exposed as upload/poll jobs."""

    def __init__(self, stt: STTProvider | None = None) -> None:
        self._stt = stt or WhisperSTT()
        self._jobs: dict[str, asyncio.Task] = {}

    @property
    def pending_jobs(self) -> int:
        return len(self._jobs)

    async def upload(self, audio: bytes) -> str:
        job_id = uuid.uuid4().hex
        self._jobs[job_id] = asyncio.create_task(self._stt.transcribe(audio))
        return job_id

    async def poll_status(self, job_ref: str) -> TranscriptionStatus:
        task = self._jobs.get(job_ref)
        if task is None:
            return TranscriptionStatus.failed(f"Unknown transcription job: {job_ref}")
        if not task.done():
            return TranscriptionStatus.pending()

        self._jobs.pop(job_ref, None)
        if task.cancelled():
            return TranscriptionStatus.failed("transcription job was cancelled")
        error = task.exception()
        if error is not None:
            logger.warning(f"Local transcription failed: {error}")
            return TranscriptionStatus.failed(str(error))
        return TranscriptionStatus.completed(task.result().text)

    async def cancel(self, job_ref: str) -> None:
        task = self._jobs.pop(job_ref, None)
        if task is None:
            return
        task.cancel()
        logger.debug(f"Cancelled local transcription job {job_ref}")

    async def close(self) -> None:
        for job_ref in list(self._jobs):
            await self.cancel(job_ref)


class TranscriptionClient:
    """
    Bounded, cancellable polling over a transcription provider.

    Every call returns text or raises a `TranscriptionFailed`; there is no
    unbounded wait.
    """

    def __init__(
        self,
        provider: TranscriptionProvider,
        poll_interval_s: float | None = None,
        max_poll_attempts: int | None = None,
        min_transcript_chars: int | None = None,
    ) -> None:
        """
        Initialize the transcription client.

        Args:
            provider: Upload/poll backend.
            poll_interval_s: Seconds between polls (uses config if not provided).
            max_poll_attempts: Poll cap (uses config if not provided).
            min_transcript_chars: Shortest usable transcript (uses config if not provided).
        """
        settings = get_settings()
        self._provider = provider
        self._poll_interval_s = (
            settings.transcription_poll_interval if poll_interval_s is None else poll_interval_s
        )
        self._max_poll_attempts = (
            settings.transcription_max_polls if max_poll_attempts is None else max_poll_attempts
        )
        self._min_transcript_chars = (
            settings.min_transcript_chars if min_transcript_chars is None else min_transcript_chars
        )

    @property
    def provider(self) -> TranscriptionProvider:
        return self._provider

    async def submit(self, audio: bytes, cancel: asyncio.Event | None = None) -> str:
        """
        Transcribe recorded audio.

        Args:
            audio: Recorded audio bytes.
            cancel: Set when the owning session is abandoned.

        Returns:
            Transcript text, stripped of whitespace.

        Raises:
            TranscriptionFailed: Empty audio, provider failure, or a transcript
                that is too short.
            TranscriptionTimeout: The poll cap was hit.
            TranscriptionCancelled: `cancel` was set while waiting.
        """
        if not audio:
            raise TranscriptionFailed("No audio recorded")
        self._check_cancel(cancel)

        job_ref = await self._provider.upload(audio)
        logger.info(f"Polling transcription job {job_ref}")

        try:
            return await self._poll(job_ref, cancel)
        except (TranscriptionFailed, asyncio.CancelledError):
            await self._provider.cancel(job_ref)
            raise

    async def _poll(self, job_ref: str, cancel: asyncio.Event | None) -> str:
        for attempt in range(1, self._max_poll_attempts + 1):
            self._check_cancel(cancel)
            status = await self._provider.poll_status(job_ref)

            if status.state == JobState.COMPLETED:
                text = status.text.strip()
                if len(text) < self._min_transcript_chars:
                    raise TranscriptionFailed("Transcript is empty or too short")
                logger.debug(f"Transcription {job_ref} completed after {attempt} poll(s)")
                return text

            if status.state == JobState.FAILED:
                logger.warning(f"Transcription {job_ref} failed: {status.error}")
                raise TranscriptionFailed(f"Transcription failed: {status.error}")

            if attempt < self._max_poll_attempts:
                await self._wait(cancel)

        logger.warning(f"Transcription {job_ref} still pending after {self._max_poll_attempts} polls")
        raise TranscriptionTimeout(
            f"Transcription did not finish after {self._max_poll_attempts} polls"
        )

    async def _wait(self, cancel: asyncio.Event | None) -> None:
        if cancel is None:
            await asyncio.sleep(self._poll_interval_s)
            return
        try:
            await asyncio.wait_for(cancel.wait(), timeout=self._poll_interval_s)
        except asyncio.TimeoutError:
            return
        raise TranscriptionCancelled("Session abandoned during transcription")

    @staticmethod
    def _check_cancel(cancel: asyncio.Event | None) -> None:
        if cancel is not None and cancel.is_set():
            raise TranscriptionCancelled("Session abandoned during transcription")
