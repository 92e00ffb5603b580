"""Tests for Settings, PipelineConfig, status enums and plan mapping."""

from __future__ import annotations

import pytest

from src.config import Settings
from src.pipeline_config import (
    PipelineConfig,
    PlanTier,
    ProcessingStatus,
    SttProvider,
    SummaryProvider,
    TranscriptionState,
    transcription_trial_flag,
)

# ---------------------------------------------------------------------------
# Enum tests
# ---------------------------------------------------------------------------


class TestProcessingStatus:
    def test_values(self) -> None:
        assert [s.value for s in ProcessingStatus] == [
            "pending",
            "processing",
            "transcribing",
            "complete",
            "failed",
        ]

    def test_is_str_subclass(self) -> None:
        """Enum values behave as plain strings for JSON serialization."""
        assert isinstance(ProcessingStatus.COMPLETE, str)


class TestTranscriptionState:
    def test_from_string(self) -> None:
        assert TranscriptionState("fetching") is TranscriptionState.FETCHING
        assert TranscriptionState("done") is TranscriptionState.DONE

    def test_invalid_raises(self) -> None:
        with pytest.raises(ValueError):
            TranscriptionState("invalid")


class TestProviders:
    def test_stt_from_string(self) -> None:
        assert SttProvider("speechmatics") is SttProvider.SPEECHMATICS
        assert SttProvider("assemblyai") is SttProvider.ASSEMBLYAI

    def test_summary_from_string(self) -> None:
        assert SummaryProvider("huggingface") is SummaryProvider.HUGGINGFACE
        assert SummaryProvider("anthropic") is SummaryProvider.ANTHROPIC

    def test_invalid_raises(self) -> None:
        with pytest.raises(ValueError):
            SttProvider("whisper")


# ---------------------------------------------------------------------------
# Plan mapping
# ---------------------------------------------------------------------------


class TestTranscriptionTrialFlag:
    def test_free_is_trial(self) -> None:
        assert transcription_trial_flag("FREE") is True
        assert transcription_trial_flag(PlanTier.FREE) is True

    def test_pro_is_paid(self) -> None:
        assert transcription_trial_flag("PRO") is False

    @pytest.mark.parametrize("plan", [None, "", "free", "ENTERPRISE"])
    def test_other_plans_skip_transcription(self, plan: str | None) -> None:
        assert transcription_trial_flag(plan) is None


# ---------------------------------------------------------------------------
# PipelineConfig tests
# ---------------------------------------------------------------------------


class TestPipelineConfig:
    def test_defaults(self) -> None:
        cfg = PipelineConfig()
        assert cfg.retry_attempts == 3
        assert cfg.language == "en"
        assert cfg.stt_provider is SttProvider.SPEECHMATICS
        assert cfg.summary_provider is SummaryProvider.HUGGINGFACE

    def test_immutable(self) -> None:
        cfg = PipelineConfig()
        with pytest.raises(AttributeError):
            cfg.retry_attempts = 10  # type: ignore[misc]

    def test_from_settings(self) -> None:
        settings = Settings(
            _env_file=None,  # type: ignore[call-arg]
            request_timeout=5.0,
            retry_attempts=7,
            transcription_language="de",
            stt_provider="assemblyai",
            summary_provider="anthropic",
        )
        cfg = PipelineConfig.from_settings(settings)
        assert cfg.request_timeout == 5.0
        assert cfg.retry_attempts == 7
        assert cfg.language == "de"
        assert cfg.stt_provider is SttProvider.ASSEMBLYAI
        assert cfg.summary_provider is SummaryProvider.ANTHROPIC

    def test_from_settings_rejects_unknown_provider(self) -> None:
        settings = Settings(_env_file=None, stt_provider="nope")  # type: ignore[call-arg]
        with pytest.raises(ValueError):
            PipelineConfig.from_settings(settings)


class TestSettings:
    def test_reads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("NEXT_API_HOST", "https://app.example.com/api")
        monkeypatch.setenv("MAX_UPLOAD_BYTES", "1024")
        settings = Settings(_env_file=None)  # type: ignore[call-arg]
        assert settings.next_api_host == "https://app.example.com/api"
        assert settings.max_upload_bytes == 1024

    def test_upload_limit_default_is_50_mb(self) -> None:
        assert Settings(_env_file=None).max_upload_bytes == 50 * 1024 * 1024  # type: ignore[call-arg]
