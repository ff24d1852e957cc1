"""PlayerValue-Pro Entry Point.

Bootstrap layer only; all functional code lives in /src.

Responsibilities:
    1. Load and validate configuration
    2. Initialize logging infrastructure (fail-fast on error)
    3. Run one valuation campaign
    4. Map outcomes to process exit codes (0 ok, 1 failure, 130 interrupted)

Usage:
    python main.py
"""

import asyncio
import sys
from typing import NoReturn

from loguru import logger

from config.settings import GlobalConfig, get_config
from src.browser import SessionManager
from src.campaign import Campaign
from src.exceptions import ConfigurationError, CrawlerError, LoggingInitializationError
from src.exclusions import load_exclusion_set
from src.logger import configure_logging
from src.reporter import ReportGenerator
from src.store import DocumentStore


def _validate_startup_requirements(config: GlobalConfig) -> None:
    """Pre-flight checks before any browser or store is opened.

    Raises:
        ConfigurationError: If the connection string is missing.
        SystemExit: If the output directory cannot be created.
    """
    if not config.mongodb_url:
        raise ConfigurationError("mongodb_url", "MONGODB_URL is not defined")

    if config.generate_reports:
        try:
            config.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.critical(
                "Failed to create output directory",
                output_dir=str(config.output_dir),
                error=str(exc),
            )
            sys.exit(1)

    logger.debug(
        "Startup validation complete",
        database=config.database_name,
        environment=config.environment,
    )


async def _run_pipeline(config: GlobalConfig) -> int:
    """Execute one campaign and its reports.

    Returns:
        Exit code (0 for success).
    """
    logger.info(
        "Pipeline execution started",
        app_name=config.app_name,
        environment=config.environment,
        max_concurrent_tasks=config.max_concurrent_tasks,
    )

    exclusions = load_exclusion_set(config.exclusion_list_path)

    async with DocumentStore.create(config) as store:
        async with SessionManager.create(config) as session:
            campaign = Campaign(store, session, exclusions, config)
            result = await campaign.run()

    if not config.generate_reports:
        logger.info("Report generation disabled")
    elif not result.successes:
        logger.warning("No successful valuations - skipping report generation")
    else:
        reporter = ReportGenerator(config)
        reports = reporter.generate_all(result.records)
        logger.info(
            "Reports generated successfully",
            excel_path=str(reports["excel"]),
            dashboard_path=str(reports["dashboard"]),
        )

    logger.info("Crawling process completed", written=result.written)
    return 0


def _handle_fatal_error(exc: Exception) -> NoReturn:
    """Log a fatal error and exit with code 1."""
    if isinstance(exc, CrawlerError):
        logger.critical(
            "Fatal application error",
            error_type=type(exc).__name__,
            message=exc.message,
            context=exc.context,
        )
        sys.exit(1)

    logger.exception("Unexpected fatal error", error=str(exc))
    sys.exit(1)


def main() -> int:
    """Application entry point.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    try:
        config = get_config()
    except Exception as exc:
        print(f"FATAL: Configuration loading failed: {exc}", file=sys.stderr)
        return 1

    try:
        configure_logging(config)
    except LoggingInitializationError as exc:
        print(f"FATAL: {exc}", file=sys.stderr)
        return 1

    try:
        _validate_startup_requirements(config)
    except SystemExit:
        raise
    except ConfigurationError as exc:
        logger.critical("Startup validation failed", message=exc.message)
        return 1

    try:
        return asyncio.run(_run_pipeline(config))
    except KeyboardInterrupt:
        logger.warning("Pipeline interrupted by user (Ctrl+C)")
        return 130
    except Exception as exc:
        _handle_fatal_error(exc)


if __name__ == "__main__":
    sys.exit(main())
