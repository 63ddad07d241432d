import os
from pathlib import Path
from typing import Optional
from pydantic import BaseModel, Field, field_validator
from dotenv import load_dotenv
import logging

from ..audio.types import VadAggressiveness, VadAutoStopConfig, VadConfig
from ..llm.base import RewriteConfig
from ..llm.prompts import PromptSections
from ..output import OutputMode
from ..pipeline import PipelineConfig
from ..stt.registry import HOSTED_PROVIDERS, LOCAL_PROVIDERS
from ..stt.retry import RetryConfig

logger = logging.getLogger(__name__)

REWRITE_PROVIDERS = ("openai", "anthropic", "ollama")


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


def _env_optional(name: str) -> Optional[str]:
    value = os.getenv(name, "").strip()
    return value or None


class DictationSettings(BaseModel):
    stt_provider: str = Field(default="groq", description="Transcription provider (openai, groq, deepgram, local-whisper)")
    stt_api_key: str = Field(default="", description="API key for the hosted transcription provider")
    stt_model: Optional[str] = Field(default=None, description="Transcription model override")
    whisper_model_path: Optional[str] = Field(default=None, description="Model path or size for local-whisper")
    max_duration_secs: float = Field(default=300.0, gt=0, description="Maximum recording length; older audio is dropped")
    transcription_timeout_secs: float = Field(default=60.0, gt=0, description="Deadline for the whole transcription phase")
    max_recording_bytes: int = Field(default=50 * 1024 * 1024, ge=0, description="Largest WAV accepted for transcription (0 = unlimited)")
    retry_max_retries: int = Field(default=3, ge=0, description="Retries after the first failed transcription attempt")
    retry_initial_delay_ms: int = Field(default=500, ge=0, description="Backoff before the first retry")
    retry_max_delay_ms: int = Field(default=10000, ge=0, description="Backoff cap")
    retry_on_rate_limit: bool = Field(default=True, description="Retry HTTP 429 / rate limit responses")
    vad_enabled: bool = Field(default=False, description="Feed captured audio to the voice activity detector")
    vad_auto_stop: bool = Field(default=False, description="Stop recording when speech ends")
    vad_aggressiveness: str = Field(default="aggressive", description="quality, low_bitrate, aggressive, very_aggressive or 0-3")
    vad_speech_frames: int = Field(default=3, ge=1, description="Consecutive speech frames to confirm speech start")
    vad_hangover_frames: int = Field(default=30, ge=1, description="Consecutive silence frames to confirm speech end")
    vad_pre_roll_ms: int = Field(default=300, ge=0, description="Audio kept from before speech was confirmed")
    vad_frame_ms: int = Field(default=10, description="Detector frame length: 10, 20 or 30 ms")
    rewrite_enabled: bool = Field(default=False, description="Rewrite transcripts with a text-completion model")
    rewrite_provider: str = Field(default="openai", description="Rewrite provider (openai, anthropic, ollama)")
    rewrite_api_key: str = Field(default="", description="API key for the rewrite provider")
    rewrite_model: Optional[str] = Field(default=None, description="Rewrite model override")
    rewrite_base_url: Optional[str] = Field(default=None, description="Base URL override (e.g. Ollama daemon)")
    rewrite_timeout_secs: float = Field(default=30.0, gt=0, description="Deadline for the rewrite phase")
    prompt_advanced_enabled: bool = Field(default=False, description="Include correction and list-formatting rules")
    prompt_dictionary_enabled: bool = Field(default=False, description="Include the personal dictionary")
    prompt_dictionary_entries: list[str] = Field(default_factory=list, description="Personal dictionary entries")
    output_mode: str = Field(default="paste", description="How the host delivers final text")
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("stt_provider")
    @classmethod
    def _known_stt_provider(cls, value: str) -> str:
        if value not in HOSTED_PROVIDERS + LOCAL_PROVIDERS:
            raise ValueError(f"Unknown transcription provider: {value}")
        return value

    @field_validator("rewrite_provider")
    @classmethod
    def _known_rewrite_provider(cls, value: str) -> str:
        if value not in REWRITE_PROVIDERS:
            raise ValueError(f"Unknown rewrite provider: {value}")
        return value

    @field_validator("vad_aggressiveness")
    @classmethod
    def _valid_aggressiveness(cls, value: str) -> str:
        VadAggressiveness.parse(value)
        return value

    def to_pipeline_config(self) -> PipelineConfig:
        return PipelineConfig(
            max_duration_secs=self.max_duration_secs,
            stt_provider=self.stt_provider,
            stt_api_key=self.stt_api_key,
            stt_model=self.stt_model,
            whisper_model_path=self.whisper_model_path,
            retry=RetryConfig(
                max_retries=self.retry_max_retries,
                initial_delay_s=self.retry_initial_delay_ms / 1000.0,
                max_delay_s=self.retry_max_delay_ms / 1000.0,
                retry_on_rate_limit=self.retry_on_rate_limit,
            ),
            vad=VadAutoStopConfig(
                enabled=self.vad_enabled,
                auto_stop=self.vad_auto_stop,
                vad=VadConfig(
                    aggressiveness=VadAggressiveness.parse(self.vad_aggressiveness),
                    speech_frames_threshold=self.vad_speech_frames,
                    hangover_frames=self.vad_hangover_frames,
                    pre_roll_ms=self.vad_pre_roll_ms,
                    frame_duration_ms=self.vad_frame_ms,
                ),
            ),
            transcription_timeout_s=self.transcription_timeout_secs,
            max_recording_bytes=self.max_recording_bytes,
            rewrite=RewriteConfig(
                enabled=self.rewrite_enabled,
                provider=self.rewrite_provider,
                api_key=self.rewrite_api_key,
                model=self.rewrite_model,
                base_url=self.rewrite_base_url,
                timeout_s=self.rewrite_timeout_secs,
                prompts=PromptSections(
                    advanced_enabled=self.prompt_advanced_enabled,
                    dictionary_enabled=self.prompt_dictionary_enabled,
                    dictionary_entries=tuple(self.prompt_dictionary_entries),
                ),
            ),
        )

    @property
    def output(self) -> OutputMode:
        return OutputMode.from_str(self.output_mode)


def load_config(config_path: Optional[Path] = None) -> DictationSettings:
    if config_path is None:
        config_path = Path(".env")

    if config_path.exists():
        load_dotenv(config_path)
        logger.info(f"Loaded environment variables from {config_path}")
    else:
        logger.warning(f"Config file {config_path} not found, using environment variables only")

    try:
        config = DictationSettings(
            stt_provider=os.getenv("STT_PROVIDER", "groq"),
            stt_api_key=os.getenv("STT_API_KEY", ""),
            stt_model=_env_optional("STT_MODEL"),
            whisper_model_path=_env_optional("WHISPER_MODEL_PATH"),
            max_duration_secs=float(os.getenv("MAX_DURATION_SECS", "300")),
            transcription_timeout_secs=float(os.getenv("TRANSCRIPTION_TIMEOUT_SECS", "60")),
            max_recording_bytes=int(os.getenv("MAX_RECORDING_BYTES", str(50 * 1024 * 1024))),
            retry_max_retries=int(os.getenv("RETRY_MAX_RETRIES", "3")),
            retry_initial_delay_ms=int(os.getenv("RETRY_INITIAL_DELAY_MS", "500")),
            retry_max_delay_ms=int(os.getenv("RETRY_MAX_DELAY_MS", "10000")),
            retry_on_rate_limit=_env_bool("RETRY_ON_RATE_LIMIT", "true"),
            vad_enabled=_env_bool("VAD_ENABLED", "false"),
            vad_auto_stop=_env_bool("VAD_AUTO_STOP", "false"),
            vad_aggressiveness=os.getenv("VAD_AGGRESSIVENESS", "aggressive"),
            vad_speech_frames=int(os.getenv("VAD_SPEECH_FRAMES", "3")),
            vad_hangover_frames=int(os.getenv("VAD_HANGOVER_FRAMES", "30")),
            vad_pre_roll_ms=int(os.getenv("VAD_PRE_ROLL_MS", "300")),
            vad_frame_ms=int(os.getenv("VAD_FRAME_MS", "10")),
            rewrite_enabled=_env_bool("REWRITE_ENABLED", "false"),
            rewrite_provider=os.getenv("REWRITE_PROVIDER", "openai"),
            rewrite_api_key=os.getenv("REWRITE_API_KEY", ""),
            rewrite_model=_env_optional("REWRITE_MODEL"),
            rewrite_base_url=_env_optional("REWRITE_BASE_URL"),
            rewrite_timeout_secs=float(os.getenv("REWRITE_TIMEOUT_SECS", "30")),
            prompt_advanced_enabled=_env_bool("PROMPT_ADVANCED_ENABLED", "false"),
            prompt_dictionary_enabled=_env_bool("PROMPT_DICTIONARY_ENABLED", "false"),
            prompt_dictionary_entries=[
                entry.strip() for entry in os.getenv("PROMPT_DICTIONARY_ENTRIES", "").split(";") if entry.strip()
            ],
            output_mode=os.getenv("OUTPUT_MODE", "paste"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

        if config.stt_provider in HOSTED_PROVIDERS and not config.stt_api_key:
            logger.warning(f"STT_API_KEY is not set. The '{config.stt_provider}' provider will not be available.")
        if config.stt_provider in LOCAL_PROVIDERS and not config.whisper_model_path:
            logger.warning("WHISPER_MODEL_PATH is not set. Local transcription will not be available.")

        return config

    except Exception as e:
        logger.error(f"Failed to load configuration: {e}")
        raise

def create_example_env_file(path: Path = Path(".env.example")):
    example_content = """# Transcription provider: openai, groq, deepgram, local-whisper
STT_PROVIDER=groq
STT_API_KEY=your_api_key_here
# STT_MODEL=whisper-large-v3
# WHISPER_MODEL_PATH=base.en

# Recording limits
MAX_DURATION_SECS=300
TRANSCRIPTION_TIMEOUT_SECS=60
MAX_RECORDING_BYTES=52428800

# Retry policy for transcription requests
RETRY_MAX_RETRIES=3
RETRY_INITIAL_DELAY_MS=500
RETRY_MAX_DELAY_MS=10000
RETRY_ON_RATE_LIMIT=true

# Voice activity detection
VAD_ENABLED=false
VAD_AUTO_STOP=false
VAD_AGGRESSIVENESS=aggressive
VAD_SPEECH_FRAMES=3
VAD_HANGOVER_FRAMES=30
VAD_PRE_ROLL_MS=300
VAD_FRAME_MS=10

# Transcript rewriting: openai, anthropic, ollama
REWRITE_ENABLED=false
REWRITE_PROVIDER=openai
REWRITE_API_KEY=your_api_key_here
# REWRITE_MODEL=gpt-4o-mini
# REWRITE_BASE_URL=http://localhost:11434
REWRITE_TIMEOUT_SECS=30
PROMPT_ADVANCED_ENABLED=false
PROMPT_DICTIONARY_ENABLED=false
# Semicolon-separated
# PROMPT_DICTIONARY_ENTRIES=PyTorch;pie torch = PyTorch

# paste, paste_and_clipboard, clipboard, keystrokes, keystrokes_and_clipboard
OUTPUT_MODE=paste

# Logging level
LOG_LEVEL=INFO
"""

    with open(path, "w") as f:
        f.write(example_content)

    logger.info(f"Created example environment file at {path}")

def setup_logging(log_level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("faster_whisper").setLevel(logging.WARNING)
