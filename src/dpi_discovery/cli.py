"""
Command-line interface for the discovery console.

This module provides the main CLI entry point with commands for:
- start: Start a discovery for a domain or URL and follow it
- watch: Resume following the stored session
- status: Print a one-off snapshot of the stored session
- cancel: Cancel the stored session
- reset: Forget the stored session locally
- fingerprint: Probe the DPI in front of a domain
- add-preset: Turn a working preset into a bypass set
- logs: Stream the service's discovery log
- config: Configuration management
"""

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from . import __version__, aggregator
from .client import DiscoveryClient
from .config import (
    ConsoleConfig,
    LoggingConfig,
    LogStreamConfig,
    PersistenceConfig,
    PollConfig,
    RetryConfig,
    ServiceConfig,
)
from .coordinator import SessionCoordinator, ViewModel
from .enums import CoordinatorState, LogLevel, TLSVersion
from .event_logger import EventLogger
from .exceptions import DiscoveryError
from .i18n import SUPPORTED_LANGUAGES, get_message
from .models import DiscoveryOptions, DiscoverySession
from .session_store import SessionStore
from .streams import DiscoveryLogStream, auth_headers, log_stream_url
from .target_validator import TargetValidator


DEFAULT_CONFIG_DIR = Path.home() / ".dpi_discovery"
DEFAULT_CONFIG_PATH = DEFAULT_CONFIG_DIR / "config.json"
DEFAULT_SESSION_FILE = DEFAULT_CONFIG_DIR / "session.json"
DEFAULT_HMAC_SECRET = "default-secret-change-me"

VALID_LOG_LEVELS = {level.value for level in LogLevel}
VALID_OUTPUT_FORMATS = {"json", "text", "both"}


def create_default_config(
    language: str = "en",
    session_file: Optional[Path] = None,
    hmac_secret: str = DEFAULT_HMAC_SECRET,
    base_url: str = "http://127.0.0.1:7000",
) -> ConsoleConfig:
    """
    Create a default console configuration.

    Args:
        language: Output language ('en' or 'ru')
        session_file: Path of the stored session id
        hmac_secret: Secret for HMAC protection of the session file
        base_url: Address of the daemon's web API

    Returns:
        ConsoleConfig with default settings
    """
    return ConsoleConfig(
        service=ServiceConfig(base_url=base_url),
        poll=PollConfig(),
        retry=RetryConfig(),
        persistence=PersistenceConfig(
            session_file_path=session_file or DEFAULT_SESSION_FILE,
            hmac_secret=hmac_secret,
        ),
        logging=LoggingConfig(),
        log_stream=LogStreamConfig(),
        language=language,
    )


def load_config_from_file(config_path: Path) -> Optional[ConsoleConfig]:
    """
    Load configuration from a JSON file.

    Missing sections and keys fall back to their defaults.

    Args:
        config_path: Path to the configuration file

    Returns:
        ConsoleConfig if successful, None otherwise
    """
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        service_data = data.get("service", {})
        service = ServiceConfig(
            base_url=service_data.get("base_url", "http://127.0.0.1:7000"),
            api_prefix=service_data.get("api_prefix", "/api"),
            timeout_seconds=float(service_data.get("timeout_seconds", 10.0)),
            api_token=service_data.get("api_token"),
            verify_tls=bool(service_data.get("verify_tls", True)),
        )

        poll_data = data.get("poll", {})
        poll = PollConfig(
            interval_seconds=float(poll_data.get("interval_seconds", 1.5)),
            resume_failure_limit=int(poll_data.get("resume_failure_limit", 5)),
            use_push=bool(poll_data.get("use_push", False)),
            reconnect_delay_seconds=float(poll_data.get("reconnect_delay_seconds", 3.0)),
        )

        retry_data = data.get("retry", {})
        retry = RetryConfig(
            max_retries=int(retry_data.get("max_retries", 2)),
            base_delay_seconds=float(retry_data.get("base_delay_seconds", 0.5)),
            max_delay_seconds=float(retry_data.get("max_delay_seconds", 5.0)),
        )
        if "retryable_errors" in retry_data:
            retry.retryable_errors = list(retry_data["retryable_errors"])

        persistence_data = data.get("persistence", {})
        session_file_path = persistence_data.get("session_file_path")
        persistence = PersistenceConfig(
            session_file_path=Path(session_file_path) if session_file_path else DEFAULT_SESSION_FILE,
            hmac_secret=persistence_data.get("hmac_secret", DEFAULT_HMAC_SECRET),
        )

        logging_data = data.get("logging", {})
        logging_config = LoggingConfig(
            level=logging_data.get("level", "info"),
            output_format=logging_data.get("output_format", "text"),
        )

        log_stream_data = data.get("log_stream", {})
        log_stream = LogStreamConfig(
            max_lines=int(log_stream_data.get("max_lines", 500)),
            reconnect_delay_seconds=float(log_stream_data.get("reconnect_delay_seconds", 3.0)),
        )

        return ConsoleConfig(
            service=service,
            poll=poll,
            retry=retry,
            persistence=persistence,
            logging=logging_config,
            log_stream=log_stream,
            language=data.get("language", "en"),
        )

    except (json.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return None
    except FileNotFoundError:
        return None


def save_config_to_file(config: ConsoleConfig, config_path: Path) -> bool:
    """
    Save configuration to a JSON file.

    Args:
        config: ConsoleConfig to save
        config_path: Path to save the configuration

    Returns:
        True if successful, False otherwise
    """
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "service": {
                "base_url": config.service.base_url,
                "api_prefix": config.service.api_prefix,
                "timeout_seconds": config.service.timeout_seconds,
                "api_token": config.service.api_token,
                "verify_tls": config.service.verify_tls,
            },
            "poll": {
                "interval_seconds": config.poll.interval_seconds,
                "resume_failure_limit": config.poll.resume_failure_limit,
                "use_push": config.poll.use_push,
                "reconnect_delay_seconds": config.poll.reconnect_delay_seconds,
            },
            "retry": {
                "max_retries": config.retry.max_retries,
                "base_delay_seconds": config.retry.base_delay_seconds,
                "max_delay_seconds": config.retry.max_delay_seconds,
                "retryable_errors": list(config.retry.retryable_errors),
            },
            "persistence": {
                "session_file_path": str(config.persistence.session_file_path),
                "hmac_secret": config.persistence.hmac_secret,
            },
            "logging": {
                "level": config.logging.level,
                "output_format": config.logging.output_format,
            },
            "log_stream": {
                "max_lines": config.log_stream.max_lines,
                "reconnect_delay_seconds": config.log_stream.reconnect_delay_seconds,
            },
            "language": config.language,
        }

        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

        return True

    except (OSError, TypeError) as e:
        print(f"Error saving config: {e}", file=sys.stderr)
        return False


def _float_env(env: Mapping[str, str], name: str, default: float) -> float:
    try:
        return float(env.get(name, default))
    except (TypeError, ValueError):
        return default


def _int_env(env: Mapping[str, str], name: str, default: int) -> int:
    try:
        return int(env.get(name, default))
    except (TypeError, ValueError):
        return default


def _bool_env(env: Mapping[str, str], name: str, default: bool) -> bool:
    value = env.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def apply_env_overrides(
    config: ConsoleConfig,
    environ: Optional[Mapping[str, str]] = None,
) -> ConsoleConfig:
    """
    Override configuration values from DISCOVERY_* environment variables.

    Unparsable numeric values are ignored and the configured value kept.

    Args:
        config: Configuration to update in place
        environ: Environment mapping (defaults to os.environ)

    Returns:
        The same config object
    """
    env = os.environ if environ is None else environ

    if env.get("DISCOVERY_BASE_URL"):
        config.service.base_url = env["DISCOVERY_BASE_URL"].strip()
    if env.get("DISCOVERY_API_PREFIX") is not None:
        config.service.api_prefix = env["DISCOVERY_API_PREFIX"].strip()
    if env.get("DISCOVERY_API_TOKEN"):
        config.service.api_token = env["DISCOVERY_API_TOKEN"].strip()
    config.service.timeout_seconds = _float_env(env, "DISCOVERY_TIMEOUT", config.service.timeout_seconds)
    config.service.verify_tls = _bool_env(env, "DISCOVERY_VERIFY_TLS", config.service.verify_tls)

    config.poll.interval_seconds = _float_env(env, "DISCOVERY_POLL_INTERVAL", config.poll.interval_seconds)
    config.poll.resume_failure_limit = _int_env(
        env, "DISCOVERY_RESUME_FAILURE_LIMIT", config.poll.resume_failure_limit
    )
    config.poll.use_push = _bool_env(env, "DISCOVERY_USE_PUSH", config.poll.use_push)

    if env.get("DISCOVERY_SESSION_FILE"):
        config.persistence.session_file_path = Path(env["DISCOVERY_SESSION_FILE"])
    if env.get("DISCOVERY_HMAC_SECRET"):
        config.persistence.hmac_secret = env["DISCOVERY_HMAC_SECRET"]

    if env.get("DISCOVERY_LOG_LEVEL"):
        config.logging.level = env["DISCOVERY_LOG_LEVEL"].strip().lower()
    if env.get("DISCOVERY_LANGUAGE"):
        config.language = env["DISCOVERY_LANGUAGE"].strip().lower()

    return config


def validate_config(config: ConsoleConfig) -> list[str]:
    """
    Check a configuration for values the console cannot work with.

    Returns:
        List of problems, empty if the configuration is usable
    """
    problems = []

    if not config.service.base_url.startswith(("http://", "https://")):
        problems.append(f"service.base_url must be an http(s) URL: {config.service.base_url}")
    if config.service.timeout_seconds <= 0:
        problems.append("service.timeout_seconds must be positive")
    if config.poll.interval_seconds <= 0:
        problems.append("poll.interval_seconds must be positive")
    if config.poll.resume_failure_limit < 1:
        problems.append("poll.resume_failure_limit must be at least 1")
    if config.poll.reconnect_delay_seconds < 0:
        problems.append("poll.reconnect_delay_seconds must not be negative")
    if config.retry.max_retries < 0:
        problems.append("retry.max_retries must not be negative")
    if config.retry.base_delay_seconds < 0 or config.retry.max_delay_seconds < 0:
        problems.append("retry delays must not be negative")
    if not config.persistence.hmac_secret:
        problems.append("persistence.hmac_secret must not be empty")
    if config.logging.level not in VALID_LOG_LEVELS:
        problems.append(f"logging.level must be one of {sorted(VALID_LOG_LEVELS)}")
    if config.logging.output_format not in VALID_OUTPUT_FORMATS:
        problems.append(f"logging.output_format must be one of {sorted(VALID_OUTPUT_FORMATS)}")
    if config.log_stream.max_lines < 1:
        problems.append("log_stream.max_lines must be at least 1")
    if config.language not in SUPPORTED_LANGUAGES:
        problems.append(f"language must be one of {sorted(SUPPORTED_LANGUAGES)}")

    return problems


def resolve_config(args: argparse.Namespace) -> Optional[ConsoleConfig]:
    """
    Build the effective configuration for a command.

    Order: config file (or defaults), then .env / environment, then
    command line flags.
    """
    load_dotenv()

    config_path = Path(args.config) if args.config else DEFAULT_CONFIG_PATH
    config = load_config_from_file(config_path)
    if config is None:
        if args.config:
            print(get_message("config.load_failed", args.language, path=args.config), file=sys.stderr)
            return None
        config = create_default_config()

    apply_env_overrides(config)

    if args.language:
        config.language = args.language
    if getattr(args, "verbose", False):
        config.logging.level = LogLevel.DEBUG.value

    return config


def build_logger(config: ConsoleConfig) -> EventLogger:
    """Create the event logger described by the logging configuration."""
    try:
        level = LogLevel(config.logging.level)
    except ValueError:
        level = LogLevel.INFO
    output_format = config.logging.output_format
    if output_format not in VALID_OUTPUT_FORMATS:
        output_format = "text"
    return EventLogger(output_format=output_format, level=level)


def build_store(config: ConsoleConfig) -> SessionStore:
    return SessionStore(
        file_path=config.persistence.session_file_path,
        hmac_secret=config.persistence.hmac_secret,
    )


def format_speed(speed: Optional[float]) -> str:
    """Human-readable transfer speed from bytes per second."""
    if speed is None:
        return "-"
    if speed >= 1024 * 1024:
        return f"{speed / (1024 * 1024):.2f} MB/s"
    if speed >= 1024:
        return f"{speed / 1024:.1f} KB/s"
    return f"{speed:.0f} B/s"


def format_progress_line(view: ViewModel, language: str) -> str:
    """One-line status of a view model."""
    state = get_message(f"state.{view.state.value}", language)
    session = view.session
    if session is None:
        return get_message("cli.waiting", language, state=state)

    phase = aggregator.phase_label(session.current_phase)
    if view.indeterminate:
        return get_message("cli.progress_indeterminate", language, state=state, phase=phase)
    return get_message(
        "cli.progress",
        language,
        state=state,
        phase=phase,
        completed=session.completed_checks,
        total=session.total_checks,
        progress=view.progress,
    )


def format_results(session: DiscoverySession, language: str, verbose: bool = False) -> list[str]:
    """Result lines for every domain of a session, best domain first."""
    lines = [get_message("results.header", language)]
    summaries = aggregator.summarize(session)

    for domain in aggregator.rank_domains(session):
        summary = summaries[domain]
        if summary.best_success:
            lines.append(get_message(
                "results.best",
                language,
                domain=domain,
                preset=summary.best_preset,
                speed=format_speed(summary.best_speed),
            ))
            if summary.improvement is not None:
                lines.append(get_message("results.improvement", language, improvement=summary.improvement))
        else:
            lines.append(get_message("results.no_working", language, domain=domain))

        lines.append(get_message(
            "results.trials",
            language,
            successful=summary.successful_count,
            total=summary.trial_count,
        ))
        if summary.working_families:
            families = ", ".join(aggregator.family_label(f) for f in summary.working_families)
            lines.append(get_message("results.families", language, families=families))

        if verbose:
            groups = aggregator.group_by_phase(session.domain_results[domain])
            for phase, trials in groups.items():
                if not trials:
                    continue
                lines.append(get_message("results.phase", language, phase=aggregator.phase_label(phase)))
                for trial in trials:
                    if trial.succeeded:
                        lines.append(get_message(
                            "results.trial_ok", language,
                            preset=trial.preset_name, speed=format_speed(trial.speed),
                        ))
                    else:
                        lines.append(get_message(
                            "results.trial_failed", language,
                            preset=trial.preset_name, error=trial.error or "-",
                        ))

    return lines


async def follow_session(
    coordinator: SessionCoordinator,
    language: str,
    verbose: bool = False,
) -> int:
    """
    Print progress until the tracked session finishes.

    Returns:
        Exit code (0 for Complete, 1 otherwise)
    """
    last_line: Optional[str] = None
    last_warning: Optional[str] = None

    def on_view(view: ViewModel) -> None:
        nonlocal last_line, last_warning
        line = format_progress_line(view, language)
        if line != last_line:
            print(line)
            last_line = line
        if view.warning and view.warning != last_warning:
            print(get_message("cli.warning", language, message=view.warning), file=sys.stderr)
        last_warning = view.warning

    unsubscribe = coordinator.subscribe(on_view)
    try:
        on_view(coordinator.view)
        view = await coordinator.wait_finished()
    finally:
        unsubscribe()

    state_text = get_message(f"state.{view.state.value}", language)
    print(get_message("cli.finished", language, session_id=view.session_id, state=state_text))
    if view.error:
        print(get_message("cli.error", language, message=view.error), file=sys.stderr)
    if view.session is not None:
        for line in format_results(view.session, language, verbose):
            print(line)

    return 0 if view.state == CoordinatorState.COMPLETE else 1


async def start_discovery(
    target: str,
    options: DiscoveryOptions,
    config: ConsoleConfig,
    detach: bool = False,
    verbose: bool = False,
) -> int:
    """Start a discovery and, unless detached, follow it to the end."""
    language = config.language
    logger = build_logger(config)
    store = build_store(config)

    async with DiscoveryClient(config.service, logger=logger) as client:
        coordinator = SessionCoordinator(
            client,
            store,
            poll_config=config.poll,
            retry_config=config.retry,
            logger=logger,
        )
        if coordinator.state != CoordinatorState.IDLE:
            print(
                get_message("cli.session_active", language, session_id=coordinator.session_id),
                file=sys.stderr,
            )
            return 1

        print(get_message("cli.starting_discovery", language, target=target))
        view = await coordinator.start(target, options)
        if view.error:
            print(get_message("cli.error", language, message=view.error), file=sys.stderr)
            return 1

        print(get_message("cli.discovery_started", language, session_id=view.session_id))
        if detach:
            await coordinator.aclose()
            print(get_message("cli.discovery_detached", language))
            return 0

        async with coordinator:
            return await follow_session(coordinator, language, verbose)


async def watch_discovery(config: ConsoleConfig, verbose: bool = False) -> int:
    """Resume following the stored session."""
    language = config.language
    logger = build_logger(config)
    store = build_store(config)

    async with DiscoveryClient(config.service, logger=logger) as client:
        coordinator = SessionCoordinator(
            client,
            store,
            poll_config=config.poll,
            retry_config=config.retry,
            logger=logger,
        )
        if coordinator.state == CoordinatorState.IDLE:
            if coordinator.view.warning:
                print(get_message("cli.warning", language, message=coordinator.view.warning), file=sys.stderr)
            print(get_message("cli.no_session", language))
            return 1

        print(get_message("cli.resuming", language, session_id=coordinator.session_id))
        async with coordinator:
            return await follow_session(coordinator, language, verbose)


async def show_status(config: ConsoleConfig, verbose: bool = False) -> int:
    """Print one snapshot of the stored session without tracking it."""
    language = config.language
    logger = build_logger(config)

    try:
        session_id = build_store(config).load()
    except DiscoveryError as e:
        print(get_message("cli.error", language, message=e.message), file=sys.stderr)
        return 1

    if not session_id:
        print(get_message("cli.no_session", language))
        return 1

    async with DiscoveryClient(config.service, logger=logger) as client:
        try:
            session = await client.status(session_id)
        except DiscoveryError as e:
            print(get_message("cli.error", language, message=e.message), file=sys.stderr)
            return 1

    view = ViewModel(
        state=CoordinatorState.RUNNING if not session.is_terminal else CoordinatorState(session.status.value),
        session_id=session.id,
        session=session,
        progress=aggregator.progress(session),
        indeterminate=aggregator.is_indeterminate(session),
    )
    print(format_progress_line(view, language))
    for line in format_results(session, language, verbose):
        print(line)
    return 0


async def cancel_discovery(config: ConsoleConfig) -> int:
    """Cancel the stored session."""
    language = config.language
    logger = build_logger(config)
    store = build_store(config)

    async with DiscoveryClient(config.service, logger=logger) as client:
        coordinator = SessionCoordinator(
            client,
            store,
            poll_config=config.poll,
            retry_config=config.retry,
            logger=logger,
        )
        if not coordinator.state.is_active:
            print(get_message("cli.no_session", language))
            return 1

        view = await coordinator.cancel()

    if view.warning:
        print(get_message("cli.warning", language, message=view.warning), file=sys.stderr)
    print(get_message("cli.canceled", language))
    return 0


async def fingerprint_domain(domain: str, config: ConsoleConfig) -> int:
    """Run a DPI fingerprint against a domain and print it."""
    language = config.language
    logger = build_logger(config)

    validation = TargetValidator().validate(domain)
    if not validation.valid:
        print(get_message("cli.error", language, message=validation.error.message), file=sys.stderr)
        return 1

    target = validation.target
    print(get_message("fingerprint.running", language, domain=target.domain))

    async with DiscoveryClient(config.service, logger=logger) as client:
        try:
            fingerprint = await client.fingerprint(target.domain)
        except DiscoveryError as e:
            print(get_message("cli.error", language, message=e.message), file=sys.stderr)
            return 1

    print(get_message(
        "fingerprint.type", language,
        dpi_type=fingerprint.dpi_type.value,
        confidence=fingerprint.confidence,
    ))
    print(get_message("fingerprint.method", language, method=fingerprint.blocking_method.value))
    if fingerprint.recommended_families:
        families = ", ".join(aggregator.family_label(f) for f in fingerprint.recommended_families)
        print(get_message("fingerprint.recommended", language, families=families))
    return 0


async def add_preset(
    domain: str,
    preset: str,
    config: ConsoleConfig,
    session_id: Optional[str] = None,
    name: Optional[str] = None,
    set_id: Optional[str] = None,
) -> int:
    """
    Turn a preset that worked for a domain into a bypass set.

    With set_id the domain is added to that existing set instead of
    creating a new one.
    """
    language = config.language
    logger = build_logger(config)

    if session_id is None:
        try:
            session_id = build_store(config).load()
        except DiscoveryError as e:
            print(get_message("cli.error", language, message=e.message), file=sys.stderr)
            return 1
    if not session_id:
        print(get_message("preset.no_session", language))
        return 1

    async with DiscoveryClient(config.service, logger=logger) as client:
        try:
            session = await client.status(session_id)
            domain_result = session.domain_results.get(domain)
            trial = domain_result.results.get(preset) if domain_result else None
            if trial is None or not trial.succeeded:
                print(get_message("preset.not_found", language, preset=preset, domain=domain), file=sys.stderr)
                return 1

            if set_id:
                await client.add_domain_to_set(set_id, domain)
                print(get_message("preset.added_to_set", language, domain=domain, set_id=set_id))
                return 0

            set_config = dict(trial.set_config or {})
            similar = await client.find_similar_sets(set_config)
            if similar:
                sets = ", ".join(f"{s.name} ({s.id})" for s in similar)
                print(get_message("preset.similar_sets", language, sets=sets))

            message = await client.add_preset_as_set(set_config, name or f"{domain} {preset}", domain)
        except DiscoveryError as e:
            print(get_message("cli.error", language, message=e.message), file=sys.stderr)
            return 1

    print(message)
    return 0


async def stream_logs(config: ConsoleConfig) -> int:
    """Print the discovery log until interrupted."""
    url = log_stream_url(config.service)
    print(get_message("logs.connecting", config.language, url=url))

    stream = DiscoveryLogStream(
        url,
        max_lines=config.log_stream.max_lines,
        reconnect_delay=config.log_stream.reconnect_delay_seconds,
        on_line=print,
        headers=auth_headers(config.service),
        logger=build_logger(config),
    )
    async with stream:
        await asyncio.Event().wait()
    return 0


def _run(coro, language: str) -> int:
    try:
        return asyncio.run(coro)
    except KeyboardInterrupt:
        print(get_message("cli.interrupted", language), file=sys.stderr)
        return 130


def cmd_start(args: argparse.Namespace) -> int:
    """Handle the 'start' command."""
    config = resolve_config(args)
    if config is None:
        return 1

    options = DiscoveryOptions(
        skip_dns=args.skip_dns,
        payload_files=tuple(args.payload_file or ()),
        validation_tries=max(1, args.validation_tries),
        tls_version=TLSVersion(args.tls_version),
    )
    return _run(start_discovery(
        target=args.target,
        options=options,
        config=config,
        detach=args.detach,
        verbose=args.verbose,
    ), config.language)


def cmd_watch(args: argparse.Namespace) -> int:
    """Handle the 'watch' command."""
    config = resolve_config(args)
    if config is None:
        return 1
    return _run(watch_discovery(config, verbose=args.verbose), config.language)


def cmd_status(args: argparse.Namespace) -> int:
    """Handle the 'status' command."""
    config = resolve_config(args)
    if config is None:
        return 1
    return _run(show_status(config, verbose=args.verbose), config.language)


def cmd_cancel(args: argparse.Namespace) -> int:
    """Handle the 'cancel' command."""
    config = resolve_config(args)
    if config is None:
        return 1
    return _run(cancel_discovery(config), config.language)


def cmd_reset(args: argparse.Namespace) -> int:
    """Handle the 'reset' command: forget the stored session, no network."""
    config = resolve_config(args)
    if config is None:
        return 1
    try:
        build_store(config).clear()
    except DiscoveryError as e:
        print(get_message("cli.error", config.language, message=e.message), file=sys.stderr)
        return 1
    print(get_message("cli.reset_done", config.language))
    return 0


def cmd_fingerprint(args: argparse.Namespace) -> int:
    """Handle the 'fingerprint' command."""
    config = resolve_config(args)
    if config is None:
        return 1
    return _run(fingerprint_domain(args.domain, config), config.language)


def cmd_add_preset(args: argparse.Namespace) -> int:
    """Handle the 'add-preset' command."""
    config = resolve_config(args)
    if config is None:
        return 1
    return _run(add_preset(
        domain=args.domain,
        preset=args.preset,
        config=config,
        session_id=args.session,
        name=args.name,
        set_id=args.to_set,
    ), config.language)


def cmd_logs(args: argparse.Namespace) -> int:
    """Handle the 'logs' command."""
    config = resolve_config(args)
    if config is None:
        return 1
    return _run(stream_logs(config), config.language)


def cmd_config(args: argparse.Namespace) -> int:
    """Handle the 'config' command."""
    config_path = Path(args.path) if args.path else DEFAULT_CONFIG_PATH
    language = args.language

    if args.action == "show":
        config = load_config_from_file(config_path)
        if config is None:
            print(get_message("config.not_found", language, path=config_path))
            return 1

        print(f"Configuration from: {config_path}")
        print(f"  Service: {config.service.base_url}{config.service.api_prefix}")
        print(f"  API token: {'set' if config.service.api_token else 'not set'}")
        print(f"  Poll interval: {config.poll.interval_seconds}s")
        print(f"  Push updates: {config.poll.use_push}")
        print(f"  Session file: {config.persistence.session_file_path}")
        print(f"  Log level: {config.logging.level}")
        print(f"  Language: {config.language}")
        return 0

    elif args.action == "init":
        if config_path.exists() and not args.force:
            print(get_message("config.exists", language, path=config_path))
            return 1

        config = create_default_config(language=language or "en")
        if save_config_to_file(config, config_path):
            print(get_message("config.created", language, path=config_path))
            return 0
        return 1

    elif args.action == "validate":
        config = load_config_from_file(config_path)
        if config is None:
            print(get_message("config.load_failed", language, path=config_path), file=sys.stderr)
            return 1

        problems = validate_config(config)
        if problems:
            for problem in problems:
                print(f"  - {problem}", file=sys.stderr)
            return 1

        print(get_message("config.valid", language, path=config_path))
        return 0

    return 1


def _common_arguments() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config", "-c",
        help="Path to configuration file",
    )
    common.add_argument(
        "--language", "-l",
        choices=sorted(SUPPORTED_LANGUAGES),
        default=None,
        help="Output language (default: from configuration, en)",
    )
    common.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output and debug logging",
    )
    return common


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="dpi-discovery",
        description="Track DPI bypass strategy discovery sessions",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    common = _common_arguments()
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # 'start' command
    start_parser = subparsers.add_parser(
        "start",
        parents=[common],
        help="Start a discovery for a domain or URL",
    )
    start_parser.add_argument(
        "target",
        help="Domain or URL to test (e.g., youtube.com)",
    )
    start_parser.add_argument(
        "--skip-dns",
        action="store_true",
        help="Skip the DNS poisoning detection phase",
    )
    start_parser.add_argument(
        "--payload-file",
        action="append",
        help="Captured payload to use for fake packets (repeatable)",
    )
    start_parser.add_argument(
        "--validation-tries",
        type=int,
        default=1,
        help="How many times a working preset is re-checked (default: 1)",
    )
    start_parser.add_argument(
        "--tls-version",
        choices=[v.value for v in TLSVersion],
        default=TLSVersion.AUTO.value,
        help="TLS version used for checks (default: auto)",
    )
    start_parser.add_argument(
        "--detach", "-d",
        action="store_true",
        help="Return after the session is accepted instead of following it",
    )
    start_parser.set_defaults(func=cmd_start)

    # 'watch' command
    watch_parser = subparsers.add_parser(
        "watch",
        parents=[common],
        help="Follow the stored discovery session",
    )
    watch_parser.set_defaults(func=cmd_watch)

    # 'status' command
    status_parser = subparsers.add_parser(
        "status",
        parents=[common],
        help="Print the current state of the stored session",
    )
    status_parser.set_defaults(func=cmd_status)

    # 'cancel' command
    cancel_parser = subparsers.add_parser(
        "cancel",
        parents=[common],
        help="Cancel the stored discovery session",
    )
    cancel_parser.set_defaults(func=cmd_cancel)

    # 'reset' command
    reset_parser = subparsers.add_parser(
        "reset",
        parents=[common],
        help="Forget the stored session without contacting the service",
    )
    reset_parser.set_defaults(func=cmd_reset)

    # 'fingerprint' command
    fingerprint_parser = subparsers.add_parser(
        "fingerprint",
        parents=[common],
        help="Fingerprint the DPI in front of a domain",
    )
    fingerprint_parser.add_argument(
        "domain",
        help="Domain to fingerprint",
    )
    fingerprint_parser.set_defaults(func=cmd_fingerprint)

    # 'add-preset' command
    add_preset_parser = subparsers.add_parser(
        "add-preset",
        parents=[common],
        help="Create a bypass set from a preset that worked",
    )
    add_preset_parser.add_argument(
        "domain",
        help="Domain the preset worked for",
    )
    add_preset_parser.add_argument(
        "preset",
        help="Preset name from the session results",
    )
    add_preset_parser.add_argument(
        "--session", "-s",
        help="Session id (default: the stored session)",
    )
    add_preset_parser.add_argument(
        "--name", "-n",
        help="Name of the new set",
    )
    add_preset_parser.add_argument(
        "--to-set",
        metavar="SET_ID",
        help="Add the domain to this existing set instead",
    )
    add_preset_parser.set_defaults(func=cmd_add_preset)

    # 'logs' command
    logs_parser = subparsers.add_parser(
        "logs",
        parents=[common],
        help="Stream the discovery log",
    )
    logs_parser.set_defaults(func=cmd_logs)

    # 'config' command
    config_parser = subparsers.add_parser(
        "config",
        help="Configuration management",
    )
    config_parser.add_argument(
        "action",
        choices=["show", "init", "validate"],
        help="Configuration action",
    )
    config_parser.add_argument(
        "--path", "-p",
        help="Path to configuration file",
    )
    config_parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Force overwrite existing configuration",
    )
    config_parser.add_argument(
        "--language", "-l",
        choices=sorted(SUPPORTED_LANGUAGES),
        default=None,
        help="Default language for new configuration",
    )
    config_parser.set_defaults(func=cmd_config)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
