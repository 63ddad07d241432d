"""
Dictation Pipeline Tests
========================

Unit tests for capture, voice activity detection, providers and the
recording pipeline. Audio hardware and network services are always faked.

Test Structure:
- test_audio_buffer.py / test_resampler.py / test_vad.py: audio primitives
- test_capture.py: capture engine with sounddevice patched out
- test_retry.py / test_providers.py / test_registry.py: transcription layer
- test_prompts.py / test_rewrite.py: transcript rewriting
- test_pipeline.py: orchestrator state machine, cancellation and timeouts
- fakes.py: shared test doubles; conftest.py: shared fixtures

To run tests:
    pytest tests/
"""
