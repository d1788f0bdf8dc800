"""
Command-line entry point.

    enricher run firme.xlsx --mode companies --sheet Companii --max-rows 5
    enricher modes
"""
import argparse
import logging
import sys

from enricher.errors import StructuralValidationError
from enricher.logging_config import configure_logging

logger = logging.getLogger('enricher.cli')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='enricher', description='Enrich spreadsheet rows with Gemini')
    parser.add_argument('--log-level', default=None, help='Override LOG_LEVEL (DEBUG, INFO, ...)')
    sub = parser.add_subparsers(dest='command', required=True)

    run = sub.add_parser('run', help='Process one batch of rows in a workbook')
    run.add_argument('workbook', help='Path to the .xlsx workbook')
    run.add_argument('--mode', default='companies', help='companies, profiles or candidates')
    run.add_argument('--sheet', default=None, help='Data sheet name (default: the active sheet)')
    run.add_argument('--max-rows', type=int, default=None, help='Per-run cap of processed rows')
    run.add_argument('--api-key', default=None, help='Gemini API key (default: GEMINI_API_KEY)')

    sub.add_parser('modes', help='List available enrichment modes')
    return parser


def _cmd_run(args) -> int:
    from enricher.pipeline.manager import execute_batch, summarize
    from enricher.pipeline.base import get_adapter
    from enricher.pipeline.modes import ADAPTERS

    try:
        result = execute_batch(
            args.workbook, args.mode,
            sheet=args.sheet,
            max_rows=args.max_rows,
            api_key=args.api_key,
        )
    except StructuralValidationError as e:
        print(str(e), file=sys.stderr)
        return 2
    except (ValueError, KeyError, FileNotFoundError) as e:
        print(f'Error: {e}', file=sys.stderr)
        return 2

    print(summarize(result, get_adapter(ADAPTERS, args.mode).noun))
    for line in result.errors:
        print(f'  {line}')
    return 1 if result.failed or result.abandoned else 0


def _cmd_modes(args) -> int:
    from enricher.pipeline.base import get_modes_info
    from enricher.pipeline.modes import ADAPTERS

    for mode, info in get_modes_info(ADAPTERS).items():
        print(f'{mode:<12} {info["description"]}')
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(level_name=args.log_level)

    if args.command == 'run':
        return _cmd_run(args)
    return _cmd_modes(args)


if __name__ == '__main__':
    sys.exit(main())
