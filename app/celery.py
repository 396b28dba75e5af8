from celery import Celery

# Worker for outbound side effects (email); request handlers only enqueue.
# celery -A app.celery worker -Q admissions,admissions.email
celery = Celery("admissions")
celery.config_from_object("app.config.celeryconfig")
