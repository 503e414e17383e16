"""Cron entrypoint for the weekly fair-play award.

Schedule with ``0 0 * * 0`` (Sunday 00:00 UTC). Enqueues the award on the
rewards RQ queue; pass ``--inline`` to run it in-process instead.
"""

import asyncio
import os
import sys

# Add parent dir to path to find services
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from services.fair_play import process_weekly_fair_play_award_job_async
from services.job_queue import enqueue_weekly_fair_play_award


def main(argv=None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    if "--inline" in args:
        print("🪙 Running weekly fair-play award inline...")
        result = asyncio.run(process_weekly_fair_play_award_job_async())
        print(
            f"✅ awarded={result['awarded']} evaluated={result['evaluated']} "
            f"skipped={result['skipped']} date={result['award_date']}"
        )
        for error in result["errors"]:
            print(f"   ⚠️ {error}")
        return 0

    try:
        job = enqueue_weekly_fair_play_award()
    except Exception as exc:
        print(f"❌ Could not enqueue weekly fair-play award: {exc}")
        return 1
    print(f"📬 Enqueued weekly fair-play award job {job.id} ({job.get_status()})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
