"""Dictation pipeline: microphone capture, VAD, transcription and rewrite."""

from .pipeline import PipelineConfig, PipelineState, TranscriptionOrchestrator

__all__ = ["PipelineConfig", "PipelineState", "TranscriptionOrchestrator"]
