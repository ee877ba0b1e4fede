"""
daylist - Main Application
Builds rule-driven playlists from a Subsonic library and publishes them back
"""
import argparse
import logging
import sys
from typing import List, Optional

import requests

from daylist.config_loader import Config
from daylist.logging_utils import (
    RunSummary,
    add_logging_args,
    configure_logging,
    get_run_id,
    new_run_id,
    redact,
    resolve_log_level,
    stage_timer,
    truncate_list,
)
from daylist.playlist.config import load_playlist_entries
from daylist.playlist.exceptions import ConfigurationError
from daylist.playlist.pipeline import GenerationResult, GenerationStatus, generate_playlists
from daylist.playlist.reporter import format_report
from daylist.retry_helper import RetryableError
from daylist.subsonic_client import SubsonicAPIError, SubsonicClient

logger = logging.getLogger("daylist.app")

EXIT_OK = 0
EXIT_NO_PLAYLISTS = 1
EXIT_SETUP_FAILED = 2


class PlaylistApp:
    """Main application orchestrator"""

    def __init__(self, config: Config, client: Optional[SubsonicClient] = None):
        self.config = config
        self.client = client or SubsonicClient(
            config.subsonic_url,
            config.subsonic_username,
            config.subsonic_password,
            timeout=config.subsonic_timeout,
            verify_ssl=config.subsonic_verify_ssl,
        )

    def generate(
        self,
        playlists_path: Optional[str] = None,
        seed: Optional[int] = None,
        workers: Optional[int] = None,
    ) -> List[GenerationResult]:
        """Fetch candidates and generate every configured playlist"""
        path = playlists_path or self.config.playlists_path
        entries = load_playlist_entries(path)

        with stage_timer("Connect", logger):
            self.client.ping()
        with stage_timer("Fetch candidates", logger):
            candidates = self.client.get_random_songs(self.config.fetch_size)

        return generate_playlists(
            candidates,
            entries,
            seed=seed if seed is not None else self.config.random_seed,
            max_workers=workers or self.config.max_workers,
        )

    def publish(self, results: List[GenerationResult], summary: RunSummary) -> None:
        for result in results:
            if not result.songs:
                continue
            try:
                self.client.replace_playlist(result.display_name, result.base_name, result.song_ids)
                summary.increment("published")
            except (SubsonicAPIError, RetryableError, requests.RequestException) as e:
                logger.error("Failed to publish '%s': %s", result.display_name, e)
                summary.increment("publish_failures")

    def run(
        self,
        playlists_path: Optional[str] = None,
        dry_run: bool = False,
        seed: Optional[int] = None,
        workers: Optional[int] = None,
    ) -> int:
        """Run one batch and return the process exit code"""
        summary = RunSummary("Playlist run", logger)
        summary.add("run_id", get_run_id() or "-")
        try:
            results = self.generate(playlists_path, seed=seed, workers=workers)
        except (FileNotFoundError, ConfigurationError) as e:
            logger.error("Cannot load playlists: %s", e)
            return EXIT_SETUP_FAILED
        except (SubsonicAPIError, RetryableError, requests.RequestException) as e:
            logger.error("Cannot reach %s: %s", redact(self.config.subsonic_url), e)
            return EXIT_SETUP_FAILED

        summary.add("playlists", len(results))
        for result in results:
            summary.increment(f"status_{result.status.value}")
            if result.status == GenerationStatus.FAILED:
                logger.error("'%s' failed: %s", result.spec_name, result.error)
                continue
            if result.report is not None:
                for line in format_report(result.report, title=result.display_name):
                    logger.info(line)
            if dry_run:
                for position, song in enumerate(result.songs, start=1):
                    bpm = song.bpm if song.bpm is not None else "-"
                    genres = truncate_list(sorted(song.genre_tokens), max_items=2)
                    logger.info(
                        "  %2d. %s - %s [%s bpm] %s", position, song.artist, song.title, bpm, genres
                    )

        if dry_run:
            logger.info("Dry run: nothing published")
        else:
            self.publish(results, summary)

        summary.log()
        if not any(result.songs for result in results):
            logger.error("No playlists were generated")
            return EXIT_NO_PLAYLISTS
        return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point"""
    parser = argparse.ArgumentParser(
        description="Generate playlists from a Subsonic library using playlist rules"
    )
    parser.add_argument(
        "--config", "-c",
        default="config.yaml",
        help="Application config file (default: config.yaml)",
    )
    parser.add_argument(
        "--playlists", "-p",
        help="Playlist definitions file (default: playlists.config_path from the config)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log the generated playlists instead of publishing them",
    )
    parser.add_argument("--seed", type=int, help="Random seed for reproducible playlists")
    parser.add_argument("--workers", type=int, help="Generate this many playlists concurrently")
    add_logging_args(parser)
    args = parser.parse_args(argv)

    try:
        config = Config(args.config)
    except (FileNotFoundError, ValueError, OSError) as e:
        configure_logging(level=resolve_log_level(args))
        logger.error("Configuration error: %s", e)
        return EXIT_SETUP_FAILED

    configure_logging(
        level=resolve_log_level(args, default=config.log_level),
        log_file=args.log_file or config.log_file,
        run_id=new_run_id(),
        show_run_id=args.show_run_id,
    )

    app = PlaylistApp(config)
    return app.run(
        playlists_path=args.playlists,
        dry_run=args.dry_run,
        seed=args.seed,
        workers=args.workers,
    )


if __name__ == "__main__":
    sys.exit(main())
