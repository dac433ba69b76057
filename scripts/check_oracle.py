"""
Quick cropping/grading oracle diagnostic.

Usage:
  python scripts/check_oracle.py
  python scripts/check_oracle.py --url https://example.com/page1.png
  Optionally set env vars beforehand:
    export ORACLE_BASE_URL="http://localhost:8000"
    export ORACLE_TIMEOUT_SECONDS=60

Sends one cropping request (and, if regions come back, one grading request
with an empty rubric) and prints the classified outcome with guidance for
the usual failures: cold start, connection refused, HTTP errors, bad JSON.
"""
import argparse
import sys

from config.settings import settings
from services.oracle_client import GradingClient, RegionExtractionClient
from utils.errors import OracleTimeout, PipelineError, RemoteError, ServiceUnavailable

ADVICE = {
    OracleTimeout: "The oracle did not answer in time. It may be cold-starting; retry in a minute "
                   "or raise ORACLE_TIMEOUT_SECONDS.",
    ServiceUnavailable: "Connection refused/reset. Check ORACLE_BASE_URL and that the service is up.",
    RemoteError: "The oracle answered but not with a usable body. See status/body below.",
}


def explain(error):
    for error_type, advice in ADVICE.items():
        if isinstance(error, error_type):
            return advice
    return "Unexpected pipeline error."


def run_diagnostic(argv=None):
    parser = argparse.ArgumentParser(description="Check the cropping and grading oracles")
    parser.add_argument('--url', action='append', default=[], help='page image url to send (repeatable)')
    parser.add_argument('--timeout', type=float, default=settings.ORACLE_TIMEOUT_SECONDS)
    args = parser.parse_args(argv)

    print(f"Oracle origin: {settings.ORACLE_BASE_URL}")
    extractor = RegionExtractionClient(timeout=args.timeout)
    grader = GradingClient(timeout=args.timeout)

    try:
        print(f"POST {extractor.url} with {len(args.url)} url(s)")
        region_map = extractor.extract_regions(args.url)
        print(f"SUCCESS: {len(region_map)} region(s): {region_map.to_dict()}")

        if len(region_map):
            questions = [{'question_id': qid, 'image_url': url, 'rubric': ''} for qid, url in region_map]
            print(f"POST {grader.url} with {len(questions)} question(s)")
            results = grader.grade(questions)
            for result in results:
                print(f"- {result.question_id}: +{result.total_awarded} -{result.total_deducted}")
        return 0
    except PipelineError as e:
        print(f"\nFAILED ({e.code}): {e}")
        print(explain(e))
        if isinstance(e, RemoteError):
            print(f"status={e.status}")
            print(f"body (truncated): {str(e.body)[:1000]}")
        return 1

if __name__ == "__main__":
    sys.exit(run_diagnostic())
