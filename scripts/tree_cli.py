#!/usr/bin/env python3
"""Command-line client for the gratitude tree (works offline too)."""

from __future__ import annotations

import argparse
import logging
import sys

from config import Config
from services.exceptions import RemoteUnavailable, ValidationError
from services.local_store import LocalFallbackStore
from services.remote_store import RemoteStore
from services.render import TextRenderer, submission_message
from services.sync_core import GratitudeTree


def build_tree(api_base_url: str, local_store_path: str) -> GratitudeTree:
    return GratitudeTree(
        remote=RemoteStore(api_base_url, timeout=Config.REMOTE_TIMEOUT),
        local=LocalFallbackStore(local_store_path),
    )


def parse_leaf_id(value: str):
    return int(value) if value.isdigit() else value


def show_stats(tree: GratitudeTree, out):
    stats = tree.stats()
    out.write(f'leaves={stats.total_leaves}\n')
    out.write(f'students={stats.total_students}\n')
    out.write(f'teachers={stats.total_teachers}\n')


def show_server_stats(tree: GratitudeTree, out) -> int:
    try:
        stats = tree.server_stats()
    except RemoteUnavailable as exc:
        out.write(f'server_unavailable: {exc}\n')
        return 1
    out.write(f'leaves={stats.total_leaves}\n')
    out.write(f'students={stats.total_students}\n')
    out.write(f'teachers={stats.total_teachers}\n')
    out.write(f'recent_leaves_24h={stats.recent_leaves}\n')
    out.write(f'last_updated={stats.last_updated}\n')
    return 0


def main(argv=None, out=None) -> int:
    out = out or sys.stdout
    parser = argparse.ArgumentParser(description='Gratitude tree client')
    parser.add_argument('--api', default=Config.API_BASE_URL, help='Base URL of the leaves API')
    parser.add_argument('--local-store', default=Config.LOCAL_STORE_PATH, help='Local fallback storage file')
    sub = parser.add_subparsers(dest='cmd', required=True)

    sub.add_parser('list')

    p_add = sub.add_parser('add')
    p_add.add_argument('--student', required=True)
    p_add.add_argument('--teacher', required=True)
    p_add.add_argument('--message', required=True)

    p_show = sub.add_parser('show')
    p_show.add_argument('--id', required=True)

    sub.add_parser('stats')
    sub.add_parser('server-stats')

    args = parser.parse_args(argv)

    logging.basicConfig(level=Config.LOG_LEVEL, format='%(asctime)s %(levelname)s %(name)s %(message)s')

    tree = build_tree(args.api, args.local_store)
    if args.cmd == 'server-stats':
        return show_server_stats(tree, out)

    renderer = TextRenderer(stream=out)
    mode = tree.initialize()
    renderer.show_status(mode)

    if args.cmd == 'list':
        renderer.render(tree.get_all_leaves())
    elif args.cmd == 'add':
        tree.add_renderer(renderer)
        try:
            tree.add_leaf(args.student, args.teacher, args.message)
        except ValidationError as exc:
            renderer.show_message(str(exc), is_error=True)
            return 1
        renderer.show_message(submission_message(len(tree.leaves)))
    elif args.cmd == 'show':
        tree.add_renderer(renderer)
        if tree.select_leaf(parse_leaf_id(args.id)) is None:
            out.write('leaf_not_found\n')
            return 1
    elif args.cmd == 'stats':
        show_stats(tree, out)
    return 0


if __name__ == '__main__':
    sys.exit(main())
