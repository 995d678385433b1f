from celery import Celery

# Create Celery app
celery = Celery("careerpath")

# Load configuration from careerpath.config.celeryconfig module
celery.config_from_object("careerpath.config.celeryconfig")
