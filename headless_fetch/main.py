#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Headless Fetch Main Script

Command-line interface that fetches a list of URLs with a headless
browser and writes the per-URL outcome as JSON.
"""

import asyncio
import json
import logging
import os
import sys
from argparse import ArgumentParser, ArgumentDefaultsHelpFormatter, Namespace
from typing import Any, Dict, List

from tqdm import tqdm

from headless_fetch.core.crawler import Crawler, DEFAULT_TIMEOUT
from headless_fetch.core.events import Events
from headless_fetch.core.exceptions import HeadlessFetchError
from headless_fetch.utils.config_loader import authentication_entries, crawler_kwargs, load_config
from headless_fetch.utils.url_utils import normalize_url

logger = logging.getLogger('headless_fetch')


def setup_argparse() -> ArgumentParser:
    """
    Set up command-line argument parsing.

    Returns:
        Configured argument parser
    """
    parser = ArgumentParser(
        description='Fetch pages with a headless browser',
        formatter_class=ArgumentDefaultsHelpFormatter
    )

    parser.add_argument('urls', nargs='*', help='URLs to fetch (or use a file with --url-file)')
    parser.add_argument('--url-file', help='File containing URLs to fetch (one per line)')
    parser.add_argument('-c', '--config', help='YAML configuration file')
    parser.add_argument('-o', '--output', default='fetch_results.json', help='JSON file the fetch results are written to')

    # Settings below override the configuration file
    parser.add_argument('--timeout', type=int, help=f'Navigation timeout in milliseconds (default {DEFAULT_TIMEOUT})')
    parser.add_argument('--concurrency', type=int, help='Maximum number of concurrent fetches')
    parser.add_argument('--ignore-invalid-ssl', action='store_true', default=None,
                        help='Accept invalid TLS certificates')
    parser.add_argument('--headed', action='store_true', help='Show the browser window')
    parser.add_argument('--proxy-host', help='Upstream proxy host')
    parser.add_argument('--proxy-port', type=int, help='Upstream proxy port')
    parser.add_argument('--proxy-user', help='Upstream proxy user')
    parser.add_argument('--proxy-pass', help='Upstream proxy password')
    parser.add_argument('--basic-auth', action='append', default=[], metavar='DOMAIN:USER:PASS',
                        help='Basic auth credentials for a domain (repeatable)')

    parser.add_argument('--verbose', action='store_true', help='Enable verbose output')

    return parser


def get_urls_from_file(filename: str) -> List[str]:
    """
    Read URLs from a file, skipping blank lines and # comments.

    Args:
        filename: Path to a file containing URLs (one per line)

    Returns:
        List of URLs
    """
    urls = []
    with open(filename, 'r', encoding='utf-8') as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith('#'):
                urls.append(line)
    return urls


def parse_basic_auth(value: str) -> List[str]:
    parts = value.split(':', 2)
    if len(parts) != 3 or not parts[0]:
        raise HeadlessFetchError(f"Invalid --basic-auth value {value!r}, expected DOMAIN:USER:PASS")
    return parts


def build_crawler(args: Namespace) -> Crawler:
    """
    Create a crawler from the configuration file and command-line overrides.

    Args:
        args: Command-line arguments

    Returns:
        Configured crawler
    """
    config: Dict[str, Any] = load_config(args.config) if args.config else {}
    kwargs = crawler_kwargs(config)

    if args.timeout is not None:
        kwargs['timeout'] = args.timeout
    if args.concurrency is not None:
        kwargs['max_concurrency'] = args.concurrency
    if args.ignore_invalid_ssl:
        kwargs['ignore_invalid_ssl'] = True
    if args.headed:
        kwargs['headless'] = False
    if args.proxy_host:
        kwargs.update(
            use_proxy=True,
            proxy_hostname=args.proxy_host,
            proxy_port=args.proxy_port,
            proxy_user=args.proxy_user,
            proxy_pass=args.proxy_pass,
        )

    crawler = Crawler(**kwargs)

    for auth_type, entry in authentication_entries(config):
        if auth_type == 'basic':
            crawler.authentications.set_basic_auth(entry['domain'], entry['username'], entry['password'])
        else:
            crawler.authentications.set_x509_auth(
                entry['domain'], entry['certificate_path'], entry.get('certificate_passphrase'))
    for value in args.basic_auth:
        domain, username, password = parse_basic_auth(value)
        crawler.authentications.set_basic_auth(domain, username, password)

    return crawler


def attach_progress(crawler: Crawler, total: int) -> tqdm:
    """
    Show a progress bar that advances whenever a fetch cycle finishes.
    """
    progress = tqdm(total=total, desc='Fetching', unit='page')

    def advance(queue_item, *args):
        progress.update(1)

    for event in (Events.FETCH_COMPLETE, Events.FETCH_TIMEOUT, Events.FETCH_CLIENT_ERROR):
        crawler.on(event, advance)
    crawler.on(Events.QUEUE_ERROR, lambda error, queue_item: logger.error(f"Queue error for {queue_item.url}: {error}"))

    return progress


def save_results(crawler: Crawler, filename: str) -> str:
    """
    Save the crawl stats and queue items to a JSON file.

    Args:
        crawler: Crawler whose queue holds the results
        filename: Path of the JSON file; missing parent directories are created

    Returns:
        Path of the written file
    """
    output_dir = os.path.dirname(filename)
    if output_dir:
        os.makedirs(output_dir, exist_ok=True)

    results = {
        'stats': crawler.get_stats(),
        'items': [item.to_dict() for item in crawler.queue],
    }
    with open(filename, 'w', encoding='utf-8') as f:
        json.dump(results, f, indent=2, ensure_ascii=False, default=str)

    logger.info(f"Results saved to {filename}")
    return filename


async def run(args: Namespace, urls: List[str]) -> Crawler:
    crawler = build_crawler(args)
    queued = crawler.add_urls(urls)
    progress = attach_progress(crawler, len(queued))
    try:
        await crawler.crawl()
    finally:
        progress.close()
    return crawler


def main() -> None:
    """
    Main entry point for the script.
    """
    parser = setup_argparse()
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    urls = list(args.urls)
    if args.url_file:
        try:
            urls.extend(get_urls_from_file(args.url_file))
        except OSError as e:
            logger.error(f"Error reading URL file: {e}")
            sys.exit(1)

    if not urls:
        parser.print_help()
        sys.exit(1)

    # Deduplicate while keeping order
    urls = list(dict.fromkeys(normalize_url(url) for url in urls))

    try:
        crawler = asyncio.run(run(args, urls))
    except HeadlessFetchError as e:
        logger.error(str(e))
        sys.exit(1)

    save_results(crawler, args.output)


if __name__ == "__main__":
    main()
