#!/usr/bin/env python3
"""
Main entry point for PitchCoach.

    python -m pitchcoach [--text] [--scenario=<id>] [--context=<text>] [--api-url=<url>]
    python -m pitchcoach serve [--port=N]
    python -m pitchcoach history
"""
import asyncio
import os
import sys
import threading
from typing import Optional

from .config import get_config, Config, SCENARIOS, DEFAULT_SCENARIO_ID, SERVER_HOST, SERVER_PORT
from .utils import setup_logging
from .simulation import (
    ConversationOrchestrator, SpeechCaptureManager, AnalysisTrigger, HistoryWindower,
    Scenario, AnalysisOutcome, EventType, build_api_services
)
from .infrastructure.data import SessionRecord, SessionStore


def _find_scenario(scenario_id: str) -> Optional[Scenario]:
    for data in SCENARIOS:
        if data["id"] == scenario_id:
            return Scenario.from_dict(data)
    return None


def _option(name: str) -> Optional[str]:
    prefix = f"--{name}="
    for arg in sys.argv[1:]:
        if arg.startswith(prefix):
            return arg[len(prefix):]
    return None


def _format_duration(seconds: int) -> str:
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


def _print_event(event) -> None:
    data = event.data
    if event.event_type is EventType.UTTERANCE_RECEIVED:
        print(f"🧑 You: {data['text']}")
    elif event.event_type is EventType.UTTERANCE_QUEUED:
        print("   (the client is still answering, this line stays in the transcript only)")
    elif event.event_type is EventType.AI_REPLY_RECEIVED:
        print(f"🤖 Client: {data['text']}")
    elif event.event_type is EventType.CAPTURE_ERROR:
        print(f"⚠️  {data['message']}")
    elif event.event_type is EventType.ERROR_OCCURRED:
        print(f"❌ {data['error_message']}")


def _display_results(outcome: AnalysisOutcome, elapsed_seconds: int) -> None:
    """Display the end-of-session report."""
    print("\n" + "=" * 50)
    if outcome.available:
        result = outcome.result
        print("🎯 REHEARSAL COMPLETE")
        print("=" * 50)
        print(f"🔢 Score: {result.score:.0f}/100")
        if result.advice:
            print("👍 Advice:")
            for item in result.advice:
                print(f"   • {item}")
        if result.improvements:
            print("🛠️  To improve:")
            for item in result.improvements:
                print(f"   • {item}")
    elif outcome.skipped:
        print("📭 NOTHING TO ANALYSE")
        print("=" * 50)
        print("No messages were exchanged.")
    else:
        print("⚠️  ANALYSIS UNAVAILABLE")
        print("=" * 50)
        print(f"🛑 Reason: {outcome.error}")
    print(f"⏱️  Duration: {_format_duration(elapsed_seconds)}")
    print("=" * 50)


def _watch_keyboard(loop: asyncio.AbstractEventLoop, orchestrator: ConversationOrchestrator,
                    done: asyncio.Event) -> None:
    """Voice mode: 'r' + Enter resumes listening, a bare Enter ends the session."""
    while True:
        line = sys.stdin.readline()
        if line.strip().lower() == "r":
            loop.call_soon_threadsafe(orchestrator.resume_listening)
            continue
        loop.call_soon_threadsafe(done.set)
        return


async def run_rehearsal(config: Config, scenario: Scenario, user_context: str,
                        text_mode: bool) -> Optional[SessionRecord]:
    """Run one rehearsal until the user ends it, then analyse and return its record."""
    # Audio modules pull in pyaudio and the Google clients
    from .infrastructure.audio import ConsoleSpeechEngine, MicrophoneSpeechEngine, SubprocessAudioSink

    loop = asyncio.get_running_loop()
    done = asyncio.Event()

    def on_command(command: str) -> None:
        if command == "/end":
            done.set()
        else:
            print(f"❓ Unknown command {command} (use /end)")

    if text_mode:
        engine = ConsoleSpeechEngine(on_command=on_command)
    else:
        engine = MicrophoneSpeechEngine(language=config.language_code)

    chat_service, analysis_service = build_api_services(config.api_base_url, config.api_timeout)
    orchestrator = ConversationOrchestrator(
        capture=SpeechCaptureManager(engine),
        chat_service=chat_service,
        analysis_trigger=AnalysisTrigger(analysis_service),
        audio_sink=SubprocessAudioSink(),
        windower=HistoryWindower(config.turn_window),
    )
    orchestrator.event_bus.subscribe_all(_print_event)

    print(f"🎭 Scenario: {scenario.title}")
    print(f"   {scenario.description}")
    if text_mode:
        print("📝 Type your pitch line by line. /end finishes the session.")
    else:
        print("🎤 Speak your pitch. Press Enter to finish, or r + Enter to resume listening after an error.")
        threading.Thread(target=_watch_keyboard, args=(loop, orchestrator, done), daemon=True).start()

    orchestrator.start_session(scenario, user_context)
    await done.wait()

    print("⏳ Analysing your pitch...")
    outcome = await orchestrator.end_session()
    context = orchestrator.context
    _display_results(outcome, context.elapsed_seconds)

    if not context.transcript:
        return None
    record = SessionRecord.from_session(context, outcome)
    store = SessionStore(os.path.join(config.workdir, "sessions"))
    store.save(record)
    return record


def _show_history(config: Config) -> None:
    store = SessionStore(os.path.join(config.workdir, "sessions"))
    records = store.list_records()
    if not records:
        print("📭 No rehearsals yet.")
        return

    average = store.average_score()
    if average is not None:
        print(f"📊 Average score: {average:.0f}/100 over {len(records)} session(s)")
    for record in records:
        score = f"{record.score:.0f}" if record.score is not None else "--"
        print(f"{record.date}  {score:>3}  {record.scenario_title}  ({_format_duration(record.elapsed_seconds)})")
        if record.summary:
            print(f"      {record.summary}")


def _serve(config: Config) -> None:
    import uvicorn
    from .backend import create_app

    port = SERVER_PORT
    port_arg = _option("port")
    if port_arg is not None:
        try:
            port = int(port_arg)
        except ValueError:
            print("❌ Invalid port value. Use --port=8000")
            sys.exit(1)

    try:
        app = create_app(config=config)
    except ValueError as e:
        print(f"❌ Configuration Error: {e}")
        sys.exit(1)

    print(f"🚀 Serving on http://{SERVER_HOST}:{port}/api")
    uvicorn.run(app, host=SERVER_HOST, port=port)


def main():
    """Command-line interface for PitchCoach."""

    # Load configuration from environment
    config = get_config()
    api_url = _option("api-url")
    if api_url:
        config.api_base_url = api_url.rstrip("/")

    setup_logging(config.log_file, config.log_level)

    if "serve" in sys.argv[1:]:
        _serve(config)
        return
    if "history" in sys.argv[1:]:
        _show_history(config)
        return

    scenario_id = _option("scenario") or DEFAULT_SCENARIO_ID
    scenario = _find_scenario(scenario_id)
    if scenario is None:
        known = ", ".join(s["id"] for s in SCENARIOS)
        print(f"❌ Unknown scenario '{scenario_id}'. Choose one of: {known}")
        sys.exit(1)

    text_mode = "--text" in sys.argv or not config.enable_voice
    user_context = _option("context") or ""

    try:
        asyncio.run(run_rehearsal(config, scenario, user_context, text_mode))
    except KeyboardInterrupt:
        print("\n🛑 Rehearsal interrupted")

    # Detailed information is in the log file


if __name__ == "__main__":
    main()
