"""
Command-line interface for the chunked uploader.
"""
import argparse
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .connectivity import PollingConnectivityMonitor
from .events import UploadEvent
from .exceptions import ConfigurationError
from .models import UploadConfig
from .uploader import ChunkedUploader

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_INTERRUPTED = 130


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application.

    Args:
        verbose: Whether to enable debug logging
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def load_config(config_file: Optional[Path] = None) -> dict:
    """Load upload options from a JSON file.

    Args:
        config_file: Path to config file

    Returns:
        Dictionary of configuration values
    """
    if not config_file:
        return {}

    try:
        with open(config_file) as f:
            return json.load(f)
    except Exception as e:
        logger.error(f"Error loading config file: {e}")
        return {}


def parse_header(value: str) -> Tuple[str, str]:
    """Split a ``Name: value`` header argument."""
    name, sep, header_value = value.partition(':')
    if not sep or not name.strip():
        raise argparse.ArgumentTypeError(f"Invalid header {value!r}, expected 'Name: value'")
    return name.strip(), header_value.strip()


def parse_param(value: str) -> Tuple[str, str]:
    """Split a ``key=value`` form field argument."""
    key, sep, param_value = value.partition('=')
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"Invalid parameter {value!r}, expected 'key=value'")
    return key, param_value


def parse_probe(value: str) -> Tuple[str, int]:
    """Split a ``host:port`` probe argument."""
    host, sep, port = value.rpartition(':')
    if not sep or not host or not port.isdigit():
        raise argparse.ArgumentTypeError(f"Invalid probe {value!r}, expected 'host:port'")
    return host, int(port)


def build_options(args: argparse.Namespace) -> Dict[str, Any]:
    """Merge the config file with command line arguments, the latter winning.

    Args:
        args: Command line arguments

    Returns:
        Upload options accepted by UploadConfig.from_mapping
    """
    options = load_config(args.config)

    headers = dict(options.get('headers') or {})
    headers.update(args.header)
    post_params = dict(options.pop('postParams', None) or options.get('post_params') or {})
    post_params.update(args.param)

    options.update({
        'endpoint': args.endpoint,
        'file': args.file,
        'headers': headers or None,
        'post_params': post_params or None,
    })
    for name in ('chunk_size', 'retries', 'delay_before_retry'):
        value = getattr(args, name)
        if value is not None:
            options[name] = value
    return options


def run_upload(args: argparse.Namespace) -> int:
    """Upload the file and wait for the outcome.

    Args:
        args: Command line arguments

    Returns:
        Process exit code
    """
    try:
        config = UploadConfig.from_mapping(build_options(args))
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        return EXIT_FAILED

    monitor = None
    if args.probe:
        host, port = args.probe
        monitor = PollingConnectivityMonitor(host, port)
        monitor.start()

    result: Dict[str, Any] = {}

    def on_progress(percent: int) -> None:
        logger.info(f"Progress: {percent}%")

    def on_retry(context) -> None:
        logger.warning(context.message)

    def on_finish(body: str) -> None:
        result['body'] = body

    def on_error(error) -> None:
        result['error'] = error

    try:
        uploader = ChunkedUploader.from_config(
            config,
            connectivity=monitor,
            listeners={
                UploadEvent.PROGRESS: on_progress,
                UploadEvent.FILE_RETRY: on_retry,
                UploadEvent.FINISH: on_finish,
                UploadEvent.ERROR: on_error,
                UploadEvent.OFFLINE: lambda: logger.warning("Offline, upload suspended"),
                UploadEvent.ONLINE: lambda: logger.info("Back online, resuming upload"),
            }
        )
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        if monitor:
            monitor.stop()
        return EXIT_FAILED

    if hasattr(signal, 'SIGUSR1'):
        signal.signal(signal.SIGUSR1, lambda s, f: uploader.toggle_pause())

    try:
        while not uploader.wait(0.5):
            pass
    except KeyboardInterrupt:
        logger.info("Upload interrupted by user")
        return EXIT_INTERRUPTED
    finally:
        if monitor:
            monitor.stop()

    if 'error' in result:
        logger.error(f"Upload failed: {result['error']}")
        return EXIT_FAILED

    print(result.get('body', ''))
    return EXIT_OK


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Upload a large file in chunks over HTTP")
    parser.add_argument('-v', '--verbose', action='store_true',
                        help="Enable verbose logging")
    parser.add_argument('-c', '--config', type=Path,
                        help="Path to JSON config file")
    parser.add_argument('file', type=str,
                        help="File to upload")
    parser.add_argument('endpoint', type=str,
                        help="URL receiving the chunks")
    parser.add_argument('-H', '--header', type=parse_header, action='append', default=[],
                        help="Extra header 'Name: value', may be repeated")
    parser.add_argument('-p', '--param', type=parse_param, action='append', default=[],
                        help="Form field 'key=value' sent with the last chunk, may be repeated")
    parser.add_argument('--chunk-size', type=float, dest='chunk_size',
                        help="Chunk size in MB (default 10)")
    parser.add_argument('--retries', type=int,
                        help="Retries allowed for the whole upload (default 5)")
    parser.add_argument('--delay', type=float, dest='delay_before_retry',
                        help="Seconds to wait before a retry (default 5)")
    parser.add_argument('--probe', type=parse_probe,
                        help="host:port probed to detect connectivity loss")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the CLI."""
    args = create_parser().parse_args(argv)
    setup_logging(args.verbose)

    try:
        code = run_upload(args)
    except Exception as e:
        logger.error(f"Error: {e}")
        code = EXIT_FAILED

    sys.exit(code)


if __name__ == '__main__':
    main()
