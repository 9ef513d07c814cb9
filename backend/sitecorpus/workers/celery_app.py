from celery import Celery
from sitecorpus.config import get_settings

settings = get_settings()

celery_app = Celery(
    "sitecorpus",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["sitecorpus.workers.tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=6 * 3600,
    task_soft_time_limit=6 * 3600 - 300,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_routes={
        "sitecorpus.workers.tasks.crawl_entities": {"queue": "corpus.crawl"},
        "sitecorpus.workers.tasks.reprocess_binary_documents": {"queue": "corpus.crawl"},
        "sitecorpus.workers.tasks.score_keywords": {"queue": "corpus.score"},
        "sitecorpus.workers.tasks.generate_embeddings": {"queue": "corpus.embed"},
    },
    task_annotations={
        # Scoring is a single pass over stored text
        "sitecorpus.workers.tasks.score_keywords": {
            "time_limit": 3600,
            "soft_time_limit": 3300,
        },
    },
)
