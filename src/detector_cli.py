"""
Media Detector CLI
Scan pages for playable video and replay captured traffic through the
stream classifier.
"""

import argparse
import json
import sys
from pathlib import Path

from candidate_aggregator import aggregate, pick_capture_url
from detector_config import load_config
from detector_errors import DetectorError
from dom_scanner import DomMediaScanner
from har_import import replay_har
from network_capture import LiveTabMonitor
from page_fetcher import PageFetcher
from session_manager import SessionLifecycleManager
from stream_rules import StreamRuleset
from utils import dump_models, format_bytes, save_json

EXIT_FOUND = 0
EXIT_NOTHING = 1
EXIT_INPUT_ERROR = 2


def parse_cli_args(argv=None):
    parser = argparse.ArgumentParser(
        description='Detect playable video on web pages and in captured traffic',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Scan a live page's markup
  python src/detector_cli.py scan-url https://www.youtube.com/watch?v=dQw4w9WgXcQ

  # Scan a saved page
  python src/detector_cli.py scan-file page.html --page-url https://example.com/watch

  # Classify the responses in a DevTools HAR export
  python src/detector_cli.py replay-har capture.har

  # Watch a page in Chromium for 15 seconds (needs playwright)
  python src/detector_cli.py watch https://example.com/live --seconds 15
        """
    )
    parser.add_argument('--config', default='config.json', help='Config file (default: config.json)')
    parser.add_argument('--output', help='Also write the result as JSON to this file')
    parser.add_argument('--json', action='store_true', help='Print JSON instead of a summary')
    parser.add_argument('--verbose', action='store_true', help='Print every accepted stream')

    sub = parser.add_subparsers(dest='command', required=True)

    scan_url = sub.add_parser('scan-url', help='Fetch a page and scan its DOM')
    scan_url.add_argument('url')

    scan_file = sub.add_parser('scan-file', help='Scan a saved HTML file')
    scan_file.add_argument('path')
    scan_file.add_argument('--page-url', required=True, help='URL the page was saved from')
    scan_file.add_argument('--title', help='Tab title to use for untitled media')

    har = sub.add_parser('replay-har', help='Classify responses from a HAR file')
    har.add_argument('path')
    har.add_argument('--session-id', type=int, default=1)
    har.add_argument('--no-navigation', action='store_true',
                     help='Keep streams from every page instead of resetting on page change')

    watch = sub.add_parser('watch', help='Observe pages live in Chromium')
    watch.add_argument('urls', nargs='+')
    watch.add_argument('--seconds', type=float, default=10)
    watch.add_argument('--show-browser', action='store_true')

    return parser.parse_args(argv)


def _print_entries(entries, capture_url):
    print("\n" + "=" * 80)
    print(f"MEDIA FOUND: {len(entries)}")
    print("=" * 80)
    for entry in entries:
        details = [entry.platform]
        if entry.stream_kind:
            details.append(entry.stream_kind)
        if entry.quality_label:
            details.append(entry.quality_label)
        if entry.size_bytes:
            details.append(format_bytes(entry.size_bytes))
        print(f"  • [{entry.origin}] {entry.title} ({', '.join(details)})")
        print(f"      {entry.source_url or entry.url}")
    if capture_url:
        print(f"\nCapture URL: {capture_url}")


def _scan_html(settings, ruleset, html, page_url, title):
    scanner = DomMediaScanner.from_config(settings, ruleset=ruleset)
    videos = scanner.scan(html, page_url, title)
    entries = aggregate(videos, (), page_title=title)
    return {
        'page_url': page_url,
        'videos': dump_models(videos),
        'entries': dump_models(entries),
        'capture_url': pick_capture_url(entries),
    }, entries


def run(args):
    settings = load_config(args.config)
    if args.verbose:
        settings['verbose'] = True
    ruleset = StreamRuleset.from_config(settings)

    if args.command == 'scan-url':
        html, final_url = PageFetcher.from_config(settings).fetch(args.url)
        return _scan_html(settings, ruleset, html, final_url, None)

    if args.command == 'scan-file':
        path = Path(args.path)
        try:
            html = path.read_text(encoding='utf-8', errors='replace')
        except OSError as e:
            raise DetectorError(f"Cannot read {path}: {e}") from e
        return _scan_html(settings, ruleset, html, args.page_url, args.title)

    if args.command == 'replay-har':
        manager = SessionLifecycleManager.from_config(settings, ruleset=ruleset, with_queue=False)
        summary = replay_har(args.path, manager, session_id=args.session_id,
                             follow_navigation=not args.no_navigation)
        streams = manager.get_streams(args.session_id)
        entries = aggregate((), streams)
        return {
            'summary': summary,
            'streams': dump_models(streams),
            'capture_url': pick_capture_url(entries),
        }, entries

    # watch
    manager = SessionLifecycleManager.from_config(settings, ruleset=ruleset, with_queue=False)
    scanner = DomMediaScanner.from_config(settings, ruleset=ruleset)
    monitor = LiveTabMonitor(manager=manager, scanner=scanner, headless=not args.show_browser)
    result = monitor.watch(args.urls, seconds=args.seconds)
    if not result['available']:
        raise DetectorError(result['error'])

    # tabs that failed to load still report the streams seen before the error
    found = [item for tab in result['tabs'] for item in tab.get('entries') or tab.get('streams') or []]
    return result, found


def main(argv=None):
    """CLI entry point"""
    args = parse_cli_args(argv)

    try:
        result, entries = run(args)
    except DetectorError as e:
        print(f"[✗] {e}", file=sys.stderr)
        return EXIT_INPUT_ERROR

    if args.output:
        save_json(result, args.output)
        print(f"[+] Result written to {args.output}")

    if args.json or args.command == 'watch':
        print(json.dumps(result, indent=2, ensure_ascii=False))
    else:
        _print_entries(entries, result.get('capture_url'))

    return EXIT_FOUND if entries else EXIT_NOTHING


if __name__ == "__main__":
    sys.exit(main())
