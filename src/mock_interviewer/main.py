"""
Main entry point for the mock interviewer (text mode).
"""

import argparse
import asyncio
import logging
import sys

from mock_interviewer.agents import DialogueGenerator
from mock_interviewer.config import Settings, get_settings
from mock_interviewer.db import (
    SqlSessionStore,
    create_engine,
    create_schema,
    create_session_factory,
)
from mock_interviewer.io.text_interface import TextInterface, render_history
from mock_interviewer.models.llm_client import LLMClient
from mock_interviewer.orchestrator.interview_orchestrator import ConversationOrchestrator
from mock_interviewer.schemas import InterviewContext


def setup_logging() -> None:
    """Configure application logging."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mock_interviewer")
    parser.add_argument("--company", help="Company the interview is for")
    parser.add_argument("--role", help="Role being interviewed for")
    parser.add_argument("--level", help="Seniority level, e.g. L4")
    parser.add_argument("--user-id", help="Account id to store the session under")
    parser.add_argument(
        "--no-store",
        action="store_true",
        help="Do not persist the session",
    )
    parser.add_argument(
        "--history",
        metavar="USER_ID",
        help="Print the score history of a user and exit",
    )
    parser.add_argument(
        "--evaluate-each-turn",
        action="store_true",
        default=None,
        help="Score every answer as it arrives",
    )
    return parser


async def run_interview(argv: list[str] | None = None) -> None:
    """
    Run an interactive interview session, or print a user's history.

    This is the main async entry point that initializes all components
    and runs the interview loop.
    """
    settings = get_settings()
    args = build_parser().parse_args(argv)

    if args.no_store and not args.history:
        await _run_session(args, settings, store=None)
        return

    engine = create_engine(settings.database_url)
    try:
        await create_schema(engine)
        store = SqlSessionStore(create_session_factory(engine))
        if args.history:
            sessions = await store.load_recent_sessions(args.history, limit=100)
            print(render_history(sessions))
            return
        await _run_session(args, settings, store=store)
    finally:
        await engine.dispose()


async def _run_session(args: argparse.Namespace, settings: Settings, store: SqlSessionStore | None) -> None:
    logger = logging.getLogger(__name__)
    logger.info("Initializing mock interviewer...")
    logger.debug(f"Using LLM model: {settings.llm_model_name}")

    llm_client = LLMClient(
        model=settings.llm_model_name,
        timeout=settings.llm_timeout,
    )
    orchestrator = ConversationOrchestrator(
        dialogue=DialogueGenerator(llm_client=llm_client),
        store=store,
        user_id=args.user_id,
        evaluate_each_turn=args.evaluate_each_turn,
    )

    context = None
    if args.company or args.role or args.level:
        context = InterviewContext.from_value(
            {"company": args.company or "", "role": args.role or "", "level": args.level or ""}
        )

    logger.info("Starting interview session...")
    await TextInterface(orchestrator, context=context).run()


def main() -> None:
    """Main entry point for the application."""
    setup_logging()

    try:
        asyncio.run(run_interview(sys.argv[1:]))
    except KeyboardInterrupt:
        print("\nInterview session terminated by user.")
        sys.exit(0)
    except Exception as e:
        logging.error(f"Application error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
