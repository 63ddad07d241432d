import asyncio
import argparse
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import Optional

from .audio.capture import default_input_device_info, list_input_devices
from .audio.types import CaptureEvent
from .config.settings import create_example_env_file, load_config, setup_logging
from .core.errors import DictationError, NotRecordingError, OperationCancelledError
from .output import StdoutOutput, deliver_text
from .pipeline import TranscriptionOrchestrator

logger = logging.getLogger(__name__)

POLL_INTERVAL_S = 0.05


class EnterListener:
    """Daemon thread that flags each line read from stdin."""

    def __init__(self):
        self._pressed = threading.Event()
        self._thread = threading.Thread(target=self._run, name="EnterListener", daemon=True)

    def _run(self) -> None:
        for _ in sys.stdin:
            self.press()

    def press(self) -> None:
        self._pressed.set()

    def start(self) -> None:
        self._thread.start()

    def consume(self) -> bool:
        if self._pressed.is_set():
            self._pressed.clear()
            return True
        return False


async def wait_for_enter(listener: EnterListener, quit_requested: Optional[asyncio.Event] = None) -> bool:
    """True on Enter, False once a quit was requested."""
    while not listener.consume():
        if quit_requested is not None and quit_requested.is_set():
            return False
        await asyncio.sleep(POLL_INTERVAL_S)
    return True


async def wait_for_stop(orchestrator: TranscriptionOrchestrator, listener: EnterListener) -> str:
    """Block until the user presses Enter, speech ends with auto-stop enabled, or the session is cancelled."""
    auto_stop = orchestrator.is_vad_auto_stop_enabled()
    while True:
        if not orchestrator.is_recording():
            return "cancelled"
        if listener.consume():
            return "enter"
        event = orchestrator.poll_vad_event()
        if event is CaptureEvent.SPEECH_START:
            logger.info("Speech detected")
        elif event is CaptureEvent.SPEECH_END and auto_stop:
            return "speech_end"
        await asyncio.sleep(POLL_INTERVAL_S)


class InterruptHandler:
    """SIGINT callback: cancels an active session, otherwise asks the loop to quit."""

    def __init__(self, orchestrator: TranscriptionOrchestrator):
        self._orchestrator = orchestrator
        self.quit_requested = asyncio.Event()

    def __call__(self) -> None:
        if not self._orchestrator.state().can_cancel():
            self.quit_requested.set()
            return
        try:
            self._orchestrator.cancel()
        except NotRecordingError:
            # session finished between the check and the cancel
            logger.debug("Interrupt arrived after the session ended")
            return
        logger.info("Interrupt received, session cancelled")


def check_system_status(orchestrator: TranscriptionOrchestrator) -> dict[str, str]:
    status = {}
    try:
        name, sample_rate, channels = default_input_device_info()
        status["input_device"] = f"{name} ({sample_rate} Hz, {channels} ch)"
    except DictationError as e:
        status["input_device"] = f"unavailable: {e}"
    provider = orchestrator.current_provider_name()
    status["transcription"] = provider or "not configured"
    rewrite = orchestrator.config.rewrite
    status["rewrite"] = rewrite.provider if rewrite.enabled else "disabled"
    status["vad_auto_stop"] = "on" if orchestrator.is_vad_auto_stop_enabled() else "off"
    return status


async def dictation_loop(orchestrator: TranscriptionOrchestrator, output_mode) -> None:
    listener = EnterListener()
    listener.start()
    sink = StdoutOutput()
    interrupt = InterruptHandler(orchestrator)

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, interrupt)
        installed = True
    except NotImplementedError:
        # no signal handlers on this event loop; Ctrl-C exits via KeyboardInterrupt
        logger.debug("SIGINT handler unsupported, Ctrl-C will quit")
        installed = False

    try:
        await _dictation_turns(orchestrator, output_mode, listener, sink, interrupt.quit_requested)
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)


async def _dictation_turns(orchestrator, output_mode, listener, sink, quit_requested: asyncio.Event) -> None:
    while True:
        print("Press Enter to start recording (Ctrl-C to quit)", file=sys.stderr)
        if not await wait_for_enter(listener, quit_requested):
            print("\nGoodbye!", file=sys.stderr)
            return

        try:
            orchestrator.start_recording()
        except DictationError as e:
            print(f"Could not start recording: {e}", file=sys.stderr)
            continue

        print("Recording... press Enter to stop, Ctrl-C to cancel", file=sys.stderr)
        try:
            reason = await wait_for_stop(orchestrator, listener)
            if reason == "cancelled":
                print("Cancelled", file=sys.stderr)
                continue
            logger.debug(f"Stopping recording ({reason})")
            text = await orchestrator.stop_and_transcribe()
        except OperationCancelledError:
            print("Cancelled", file=sys.stderr)
            continue
        except DictationError as e:
            print(f"Transcription failed: {e}", file=sys.stderr)
            continue

        if not deliver_text(sink, text, output_mode):
            print("(no speech recognized)", file=sys.stderr)


async def main():
    parser = argparse.ArgumentParser(description="Push-to-talk dictation")
    parser.add_argument("--config", type=str, help="Path to config file", default=".env")
    parser.add_argument("--check", action="store_true", help="Check system status")
    parser.add_argument("--create-config", action="store_true", help="Create example config file")
    parser.add_argument("--list-devices", action="store_true", help="List audio input devices")

    args = parser.parse_args()

    if args.create_config:
        create_example_env_file()
        print("Example configuration file created at .env.example")
        print("Please copy it to .env and fill in your API keys.")
        return

    if args.list_devices:
        for device in list_input_devices():
            print(f"  [{device['id']}] {device['name']} ({device['channels']} ch, {device['sample_rate']:g} Hz)")
        return

    config_path = Path(args.config) if args.config else None

    try:
        settings = load_config(config_path)
        setup_logging(settings.log_level)
        orchestrator = TranscriptionOrchestrator(settings.to_pipeline_config())

        if args.check:
            print("Checking system status...")
            for component, state in check_system_status(orchestrator).items():
                print(f"  {component}: {state}")
            return

        try:
            await dictation_loop(orchestrator, settings.output)
        finally:
            orchestrator.force_reset()

    except ValueError as e:
        print(f"Configuration error: {e}")
        print("Please check your configuration file and API keys.")
    except Exception as e:
        print(f"Error: {e}")


def run():
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nGoodbye!")


if __name__ == "__main__":
    run()
