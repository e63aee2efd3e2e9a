"""
Command-line interface for generating and submitting synthetic form responses.

Usage:
    python -m formsynth weights --schema form.json -o weighted.json
    python -m formsynth plan --schema form.json --count 100 --output ./output
    python -m formsynth run --schema form.json --url https://docs.google.com/forms/d/e/.../viewform -n 100
    python -m formsynth prompt --schema form.json --count 20
"""

import argparse
import asyncio
import json
import logging
import random
import signal
import sys
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import ValidationError as SchemaValidationError

from . import __version__
from .audit import audit_plan
from .delivery import FormDelivery
from .engine import ResponseEngine, build_plan
from .exceptions import ConfigurationError, FatalEngineError, FormSynthError
from .exporters import SUPPORTED_FORMATS, export_plan
from .models import FormAnalysis, LogEntry, RunConfig, RunStatus
from .names import generate_names, parse_name_list
from .responses import build_answer_prompt, parse_answer_json, parse_override_pools
from .scheduler import CancellationToken
from .settings import EngineSettings
from .weights import apply_suggested_weights, needs_weights


# Configure logging
def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr
    )


logger = logging.getLogger(__name__)

EXIT_CODES = {RunStatus.DONE: 0, RunStatus.ERROR: 1, RunStatus.ABORTED: 130}


def _load_analysis(path: str) -> FormAnalysis:
    schema_path = Path(path)
    if not schema_path.exists():
        raise ConfigurationError(f"Schema file not found: {path}")
    try:
        with open(schema_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        return FormAnalysis.model_validate(data)
    except (json.JSONDecodeError, SchemaValidationError) as e:
        raise ConfigurationError(f"Invalid form schema in {path}: {e}") from e


def _prepare_analysis(args) -> FormAnalysis:
    analysis = _load_analysis(args.schema)
    if any(needs_weights(q) for q in analysis.questions):
        logger.info("Some questions carry no weights; applying statistical defaults")
        analysis = apply_suggested_weights(analysis)
    return analysis


def _load_overrides(args, analysis: FormAnalysis) -> Dict[str, List[str]]:
    pools: Dict[str, List[str]] = {}
    if getattr(args, 'overrides', None):
        with open(args.overrides, 'r', encoding='utf-8') as f:
            pools.update(parse_override_pools(json.load(f)))
    if getattr(args, 'answers', None):
        with open(args.answers, 'r', encoding='utf-8') as f:
            pools.update(parse_answer_json(f.read(), analysis.questions))
    return pools


def _run_config(args, analysis: FormAnalysis) -> RunConfig:
    try:
        return RunConfig(
            target_count=args.count,
            delay_min=getattr(args, 'delay', 0),
            name_source=args.names,
            names=parse_name_list(args.custom_names),
            custom_field_responses=_load_overrides(args, analysis),
            seed=args.seed,
        )
    except SchemaValidationError as e:
        raise ConfigurationError(f"Invalid run options: {e}") from e


def _print_log(entry: LogEntry) -> None:
    print(f"[{entry.status.value:<8}] ({entry.count:>4}) {entry.msg}")  # Keep this print for user-facing output


def cmd_weights(args):
    """Fill in statistical default weights."""
    setup_logging(verbose=args.verbose)
    analysis = _load_analysis(args.schema)
    weighted = apply_suggested_weights(analysis, overwrite=args.overwrite)
    text = weighted.model_dump_json(indent=2, by_alias=True)
    if args.output:
        Path(args.output).write_text(text, encoding='utf-8')
        logger.info(f"Weighted schema saved to {args.output}")
    else:
        print(text)
    return 0


def cmd_plan(args):
    """Build and audit a response plan without submitting anything."""
    setup_logging(verbose=args.verbose)
    analysis = _prepare_analysis(args)
    config = _run_config(args, analysis)
    rng = random.Random(config.seed)
    settings = EngineSettings.from_env()

    logger.info(f"Planning {config.target_count} responses for '{analysis.title}'...")
    logger.info(f"Random seed: {config.seed if config.seed is not None else 'random'}")

    if config.name_source == 'custom':
        names = generate_names(0, 'custom', custom=config.names, rng=rng)
    else:
        names = generate_names(config.target_count, config.name_source, rng=rng)

    plan = build_plan(
        analysis.questions,
        config.target_count,
        overrides=config.custom_field_responses,
        names=names,
        hidden_fields=analysis.hidden_fields,
        settings=settings,
        rng=rng,
    )
    report = audit_plan(analysis.questions, plan.decks, plan.aligned, plan.roles)
    print(report.summary())  # Keep this print for user-facing output

    output_dir = Path(args.output)
    output_path = output_dir / f"{args.basename}.{args.format}"
    export_plan(plan.batch, str(output_path), fmt=args.format)
    if plan.batch.invalid_count:
        logger.warning(f"{plan.batch.invalid_count} row(s) failed required-field validation")
    return 0


async def _run_async(args, analysis: FormAnalysis, config: RunConfig) -> int:
    settings = EngineSettings.from_env()
    token = CancellationToken()

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, token.cancel)
    except (NotImplementedError, RuntimeError):
        logger.debug("Signal handlers unavailable; Ctrl-C will not cancel gracefully")

    delivery = FormDelivery(settings=settings, require_confirmation=args.require_confirmation)
    engine = ResponseEngine(delivery, settings=settings, seed=config.seed, show_progress=args.progress)
    try:
        result = await engine.run_config(
            analysis,
            config,
            endpoint_url=args.url,
            cancel_token=token,
            log_sink=None if args.progress else _print_log,
        )
    finally:
        delivery.close()

    logger.info(
        f"Run finished: {result.status.value} - {result.success_count}/{result.target_count} submitted, "
        f"{result.failure_count} failed, {result.invalid_rows} invalid"
    )
    return EXIT_CODES[result.status]


def cmd_run(args):
    """Generate and submit responses."""
    setup_logging(verbose=args.verbose)
    analysis = _prepare_analysis(args)
    config = _run_config(args, analysis)
    logger.info(f"Submitting {config.target_count} responses to {args.url}")
    try:
        return asyncio.run(_run_async(args, analysis, config))
    except FatalEngineError as e:
        logger.error(str(e))
        return 1


def cmd_prompt(args):
    """Print the answer-generation prompt for the form's text questions."""
    setup_logging(verbose=args.verbose)
    analysis = _load_analysis(args.schema)
    print(build_answer_prompt(analysis.title, analysis.description, analysis.questions, args.count))
    return 0


def _add_generation_args(p: argparse.ArgumentParser) -> None:
    p.add_argument('-s', '--schema', type=str, required=True,
                   help='Form schema JSON (FormAnalysis)')
    p.add_argument('-n', '--count', type=int, default=10,
                   help='Number of responses (default: 10)')
    p.add_argument('--seed', type=int, default=None,
                   help='Random seed for reproducibility')
    p.add_argument('--names', type=str, default='auto', choices=['auto', 'indian', 'custom'],
                   help='Name source (default: auto)')
    p.add_argument('--custom-names', type=str, default=None,
                   help='Comma-separated names for --names custom')
    p.add_argument('--overrides', type=str, default=None,
                   help='JSON file mapping question id to comma-separated answers')
    p.add_argument('--answers', type=str, default=None,
                   help='JSON file of generated answers keyed by question title')


def main(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(
        description='Generate synthetic Google Form responses with weighted, demographically consistent answers'
    )
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Enable verbose logging')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # Weights command
    weights_parser = subparsers.add_parser('weights', help='Fill statistical default weights')
    weights_parser.add_argument('-s', '--schema', type=str, required=True,
                                help='Form schema JSON (FormAnalysis)')
    weights_parser.add_argument('-o', '--output', type=str, default=None,
                                help='Output file (default: stdout)')
    weights_parser.add_argument('--overwrite', action='store_true',
                                help='Replace existing weights')

    # Plan command
    plan_parser = subparsers.add_parser('plan', help='Build and export a response plan (no submission)')
    _add_generation_args(plan_parser)
    plan_parser.add_argument('-o', '--output', type=str, default='./output',
                             help='Output directory (default: ./output)')
    plan_parser.add_argument('--basename', type=str, default='response_plan',
                             help='Output file base name')
    plan_parser.add_argument('-f', '--format', type=str, default='parquet', choices=SUPPORTED_FORMATS,
                             help='Output format (default: parquet)')

    # Run command
    run_parser = subparsers.add_parser('run', help='Generate and submit responses')
    _add_generation_args(run_parser)
    run_parser.add_argument('-u', '--url', type=str, required=True,
                            help='Form URL (viewform or formResponse)')
    run_parser.add_argument('--delay', type=int, default=0,
                            help='Minimum delay between groups in ms; 0 = max speed')
    run_parser.add_argument('--require-confirmation', action='store_true',
                            help='Count a submission only when the confirmation page is returned')
    run_parser.add_argument('--progress', action='store_true',
                            help='Show a progress bar instead of per-response log lines')

    # Prompt command
    prompt_parser = subparsers.add_parser('prompt', help='Print an answer-generation prompt')
    prompt_parser.add_argument('-s', '--schema', type=str, required=True,
                               help='Form schema JSON (FormAnalysis)')
    prompt_parser.add_argument('-n', '--count', type=int, default=10,
                               help='Answers per question')

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    commands = {
        'weights': cmd_weights,
        'plan': cmd_plan,
        'run': cmd_run,
        'prompt': cmd_prompt,
    }

    try:
        return commands[args.command](args)
    except FormSynthError as e:
        logger.error(str(e))
        return 1


if __name__ == '__main__':
    sys.exit(main())
