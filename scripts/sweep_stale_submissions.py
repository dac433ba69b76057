"""
Mark submissions stuck in `processing` as failed.

A run that crashed between the checkpoint and its final write leaves the
attempt in processing with nobody left to finish it. Run this periodically
(cron, k8s CronJob) so those attempts become retryable.

Usage:
  python scripts/sweep_stale_submissions.py
  python scripts/sweep_stale_submissions.py --older-than 3600
"""
import argparse
import sys

from config.log_setup import configure_logging
from config.settings import settings
from services.submission_pipeline import build_pipeline
from utils.errors import PipelineError


def main(argv=None):
    parser = argparse.ArgumentParser(description="Fail submissions stuck in processing")
    parser.add_argument('--older-than', type=int, default=settings.STALE_PROCESSING_SECONDS,
                        help='seconds since submission after which processing counts as stuck')
    args = parser.parse_args(argv)

    configure_logging(settings.LOG_LEVEL)
    pipeline = build_pipeline()
    pipeline.stale_seconds = args.older_than

    try:
        swept = pipeline.sweep_stale()
    except PipelineError as e:
        print(f"Sweep failed: {e}")
        return 1

    print(f"Marked {swept} stale submission(s) as failed")
    return 0

if __name__ == "__main__":
    sys.exit(main())
