"""
Interactive Socratic Tutoring in the Terminal

Starts one session, asks for a problem, then runs the dialogue until the
student types /quit. Ending the session prints the session summary and, when
a student id is given, updates that student's profile.

Commands during the dialogue:
    /analytics   show session analytics
    /new         start a new problem
    /quit        end the session

Usage:
    python scripts/chat_cli.py
    python scripts/chat_cli.py --student-id alice --strict
    python scripts/chat_cli.py --demo        # no OPENAI_API_KEY needed
"""

import asyncio
import json
import logging
import os
import sys
import uuid
from dataclasses import replace

from dotenv import load_dotenv

project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, os.path.join(project_root, "adaptive_socratic_tutor", "src"))

from adaptive_socratic_tutor.config import EngineSettings
from adaptive_socratic_tutor.errors import InvalidInputError, InvalidProblemError, UpstreamUnavailableError
from adaptive_socratic_tutor.socratic_tutor import SocraticTutor


async def _ask_problem(tutor: SocraticTutor, session_id: str, student_id) -> bool:
    while True:
        problem = input("\n📝 Problem: ").strip()
        if problem in ("/quit", "/exit"):
            return False
        try:
            opening = await tutor.start_problem(session_id, problem, student_id)
        except InvalidProblemError as e:
            print(f"[ERROR] {e.message}")
            for error in e.errors[1:]:
                print(f"        {error}")
            continue
        except UpstreamUnavailableError:
            print("[ERROR] Tutoring service unavailable, please try again.")
            continue
        print(f"\n🧑‍🏫 Tutor: {opening}")
        return True


async def main(student_id=None, strict: bool = False, demo: bool = False):
    """Run one interactive session.

    Args:
        student_id: Load and update this student's profile
        strict: Replace tutor replies that leak the answer
        demo: Use the offline question bank instead of the completion service
    """
    settings = EngineSettings.from_env()
    settings = replace(settings, strict_mode=strict or settings.strict_mode, allow_demo_fallback=demo or settings.allow_demo_fallback)
    if demo:
        settings = replace(settings, openai_api_key=None)

    try:
        tutor = SocraticTutor(settings=settings)
    except ValueError as e:
        print(f"ERROR: {e}")
        print("   Set OPENAI_API_KEY in .env or run with --demo")
        return 1

    session_id = f"cli-{uuid.uuid4()}"
    print("=" * 60)
    print("ADAPTIVE SOCRATIC TUTOR")
    print("=" * 60)
    print("Type /analytics, /new or /quit at any time.")

    if not await _ask_problem(tutor, session_id, student_id):
        return 0

    try:
        while True:
            text = input("\n🙋 You: ").strip()
            if text in ("/quit", "/exit"):
                break
            if text == "/analytics":
                engine = tutor.get_session(session_id)
                print(json.dumps(engine.generate_analytics(), indent=2, default=str))
                continue
            if text == "/new":
                if not await _ask_problem(tutor, session_id, student_id):
                    break
                continue

            try:
                reply = await tutor.respond(session_id, text)
            except InvalidInputError as e:
                print(f"[INFO] {e.message}")
                continue
            except UpstreamUnavailableError:
                print("[ERROR] Tutoring service unavailable. Send the same message again to retry.")
                continue
            print(f"\n🧑‍🏫 Tutor: {reply}")
    finally:
        # Ctrl+C and end of input still finalize the session
        performance = await tutor.end_session(session_id)
        _print_summary(performance)
    return 0


def _print_summary(performance) -> None:
    print("\n" + "=" * 60)
    print("SESSION SUMMARY")
    print("=" * 60)
    print(f"Turns: {performance.total_interactions}")
    print(f"Max depth: {performance.max_depth_reached}/5")
    print(f"Engagement: {performance.engagement_score:.2f}")
    print(f"Concepts: {', '.join(performance.concepts_explored) or '-'}")
    if performance.direct_answer_count:
        print(f"[WARN] Direct answers flagged: {performance.direct_answer_count}")


if __name__ == "__main__":
    import argparse

    load_dotenv()
    parser = argparse.ArgumentParser(description="Interactive Socratic tutoring session")
    parser.add_argument("--student-id", help="Student id whose profile is loaded and updated")
    parser.add_argument("--strict", action="store_true", help="Replace replies that leak the answer")
    parser.add_argument("--demo", action="store_true", help="Run without the completion service")
    parser.add_argument("--verbose", action="store_true", help="Show engine logs")

    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING)
    try:
        sys.exit(asyncio.run(main(student_id=args.student_id, strict=args.strict, demo=args.demo)))
    except (KeyboardInterrupt, EOFError):
        print("\nBye!")
        sys.exit(0)
