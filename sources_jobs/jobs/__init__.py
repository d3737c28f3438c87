"""Background job orchestration: job variants, queues, worker pool and scheduler."""
