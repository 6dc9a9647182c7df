import sys
import json
import logging
import argparse

from dotenv import load_dotenv

from .config import Settings
from .errors import ConfigError
from .models import ScrapeConfig
from .orchestrator import ScrapeOrchestrator
from .sites import SITES

logger = logging.getLogger("recorder_scraper")


def setup_logging(log_file: str = "scraper.log", log_level: str = "INFO") -> logging.Logger:
    """
    Configure and set up logging for the application

    Args:
        log_file: Path to the log file; empty to log to the console only
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        Logger instance configured for the application
    """
    # Convert string log level to logging constant
    numeric_level = getattr(logging, log_level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f'Invalid log level: {log_level}')

    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=numeric_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers
    )
    app_logger = logging.getLogger("recorder_scraper")
    app_logger.setLevel(numeric_level)
    return app_logger


def parse_arguments(argv=None):
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(description='County recorder document scraper')
    parser.add_argument('--days-back', type=int, default=30,
                        help='Number of days to search back from today (1-365)')
    parser.add_argument('--record-type', help='Instrument type to search for, passed to the site verbatim')
    parser.add_argument('--site', choices=sorted(SITES), help='Target site (default: RECORDER_SITE or chatham_nc)')
    parser.add_argument('--show-browser', action='store_true', help='Run Chrome with a visible window')
    parser.add_argument('--local-store', help='Store documents under this directory instead of S3')
    parser.add_argument('--log-file', help='Log file path', default='scraper.log')
    parser.add_argument('--log-level', help='Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)',
                        default='INFO', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'])

    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Main function to run the scraper."""
    args = parse_arguments(argv)

    # Load environment variables from .env file
    load_dotenv()
    setup_logging(args.log_file, args.log_level)

    try:
        settings = Settings.from_env()
        if args.show_browser:
            settings.headless = False
        if args.local_store:
            settings.local_store = args.local_store
        config = ScrapeConfig(days_back=args.days_back, record_type=args.record_type)
        orchestrator = ScrapeOrchestrator.from_settings(settings, args.site)
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    result = orchestrator.execute(config)
    print(json.dumps(result.to_dict(), indent=2))
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
