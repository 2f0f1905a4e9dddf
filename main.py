"""
Journey Dispatcher - Main Entry Point

Reads a routing request (bookings to combine into one journey) from a JSON
file, computes the stop order and the dispatch submission payload, and writes
the result as JSON.
"""

import sys
import json
import logging
import argparse
from datetime import datetime
import time

import config
from demand.request_loader import load_request
from optimizer.errors import JourneyPayloadError
from optimizer.journey_payload import generate_journey_payload


def setup_logging(log_level=None, log_file=None):
    """
    Configure the logging system with a console handler and an optional file handler.

    Args:
        log_level: Override log level from config
        log_file: Override log file path from config
    """
    level = log_level or config.LOG_LEVEL
    file_path = log_file or config.LOG_FILE

    formatter = logging.Formatter(
        '[%(asctime)s] [%(levelname)s] [%(name)s] - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    logger = logging.getLogger()
    logger.setLevel(level)
    logger.handlers = []

    # Console handler on stderr so stdout stays valid JSON
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if file_path:
        try:
            file_handler = logging.FileHandler(file_path, mode='a', encoding='utf-8')
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
        except OSError as e:
            logger.warning(f"Failed to create log file handler: {e}")


def parse_arguments(argv=None):
    """
    Parse command line arguments.

    Returns:
        argparse.Namespace: Parsed arguments
    """
    parser = argparse.ArgumentParser(
        description='Build a multi-stop journey payload from individual bookings',
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        'request',
        type=str,
        help='Path to the routing request JSON file'
    )

    parser.add_argument(
        '--output',
        type=str,
        help='Write the result to this file instead of stdout'
    )

    parser.add_argument(
        '--timezone',
        type=str,
        help='Timezone for scheduled times without offset (overrides config)'
    )

    parser.add_argument(
        '--log-level',
        type=str,
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        help='Logging level (overrides config)'
    )

    parser.add_argument(
        '--map',
        type=str,
        help='Also render the computed route to this HTML file'
    )

    return parser.parse_args(argv)


def build_config_dict(cmd_overrides):
    """
    Build configuration dictionary from config module and command line overrides.

    Args:
        cmd_overrides: Dictionary containing command line parameter overrides

    Returns:
        dict: Complete configuration dictionary
    """
    config_dict = config.get_config()

    if 'timezone' in cmd_overrides:
        config_dict['site_timezone'] = cmd_overrides['timezone']

    if 'output' in cmd_overrides:
        config_dict['output_file'] = cmd_overrides['output']

    if 'log_level' in cmd_overrides:
        config_dict['log_level'] = cmd_overrides['log_level']

    return config_dict


def write_result(result_dict, output_file=None):
    text = json.dumps(result_dict, indent=2, ensure_ascii=False)
    if output_file:
        with open(output_file, 'w', encoding='utf-8') as f:
            f.write(text)
    else:
        print(text)


def main(argv=None):
    """
    Main entry point for the journey dispatcher tool.

    Returns:
        int: Exit code (0 for success, 1 for failure)
    """
    real_start_time = time.time()

    args = parse_arguments(argv)
    setup_logging(log_level=args.log_level)
    logger = logging.getLogger(__name__)

    cmd_overrides = {}
    if args.timezone:
        cmd_overrides['timezone'] = args.timezone
    if args.output:
        cmd_overrides['output'] = args.output
    if args.log_level:
        cmd_overrides['log_level'] = args.log_level

    config_dict = build_config_dict(cmd_overrides)

    if cmd_overrides:
        logger.info("Applied configuration overrides:")
        for key, value in cmd_overrides.items():
            logger.info(f"  {key} = {value}")

    if not config.validate_config(config_dict):
        logger.error("Configuration validation failed")
        return 1

    try:
        request = load_request(args.request, timezone=config_dict['site_timezone'])
        result = generate_journey_payload(request)
    except FileNotFoundError as e:
        logger.error(f"Request file not found: {e}")
        return 1
    except json.JSONDecodeError as e:
        logger.error(f"Request file is not valid JSON: {e}")
        return 1
    except JourneyPayloadError as e:
        logger.error(f"Cannot build journey payload: {e}")
        return 1
    except (KeyError, TypeError, ValueError) as e:
        logger.error(f"Invalid routing request: {e}")
        return 1

    write_result(result.to_dict(), config_dict['output_file'])

    if args.map:
        from utils.render_journey_map import save_journey_map
        save_journey_map(result.ordered_stops, args.map)

    total_time = time.time() - real_start_time
    logger.info(
        f"Journey payload ready: {len(result.ordered_stops)} stop(s), "
        f"{len(result.payload['journeys'][0]['bookings'])} line(s), "
        f"{len(result.events)} event(s) in {total_time:.3f}s "
        f"(finished {datetime.now().strftime('%Y-%m-%d %H:%M:%S')})"
    )

    return 0


if __name__ == "__main__":
    sys.exit(main())
