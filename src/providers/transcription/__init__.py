"""Asynchronous audio transcription providers."""

from src.providers.transcription.assemblyai_provider import AssemblyAITranscriptionProvider

__all__ = ["AssemblyAITranscriptionProvider"]
