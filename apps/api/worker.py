"""RQ worker process entrypoint for rewards jobs (weekly fair-play award)."""

import logging

from rq import Worker

from services.job_queue import REWARDS_QUEUE_NAME, get_redis_connection


def main():
    logging.basicConfig(level=logging.INFO)
    redis_conn = get_redis_connection()
    worker = Worker([REWARDS_QUEUE_NAME], connection=redis_conn)
    worker.work(with_scheduler=True)


if __name__ == "__main__":
    main()
