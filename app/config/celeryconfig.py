from .settings import settings

_redis_url = f"redis://:{settings.REDIS_PASSWORD}@{settings.REDIS_HOST}:{settings.REDIS_PORT}/{settings.REDIS_DB}"

broker_url = _redis_url
result_backend = _redis_url

include = ["app.tasks.email_sender"]

timezone = "Asia/Tashkent"
enable_utc = True

# Emails are fire-and-forget; request handlers never wait on a result
task_ignore_result = True
result_expires = 3600

task_serializer = "json"
accept_content = ["json"]
result_serializer = "json"

# A single SMTP round trip; anything slower is a stuck connection
task_time_limit = 2 * 60
task_soft_time_limit = 90

worker_prefetch_multiplier = 1
worker_max_tasks_per_child = 1000

# Re-deliver on worker loss so a queued status email is not dropped
task_acks_late = True
task_reject_on_worker_lost = True
task_default_retry_delay = 60
task_max_retries = 3

task_default_queue = "admissions"
task_routes = {"app.tasks.email_sender.*": {"queue": "admissions.email"}}
