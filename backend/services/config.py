"""
Application settings for feeds, media and realtime delivery.
"""
import os
import logging

logger = logging.getLogger(__name__)

class AppConfig:
    """Feed, storage and realtime settings read from the environment."""

    def __init__(self):
        # Feed
        self.feed_default_page_size = int(os.getenv("FEED_DEFAULT_PAGE_SIZE", "20"))
        self.feed_max_page_size = int(os.getenv("FEED_MAX_PAGE_SIZE", "100"))
        self.hotness_scorer = os.getenv("HOTNESS_SCORER", "decay").lower()
        self.hotness_gravity = float(os.getenv("HOTNESS_GRAVITY", "1.5"))

        # Comments
        self.comment_max_depth = int(os.getenv("COMMENT_MAX_DEPTH", "6"))

        # Uploads and object storage
        self.max_images_per_photo = int(os.getenv("MAX_IMAGES_PER_PHOTO", "9"))
        self.max_upload_bytes = int(os.getenv("MAX_UPLOAD_BYTES", str(20 * 1024 * 1024)))
        self.storage_backend = os.getenv("STORAGE_BACKEND", "local").lower()
        self.storage_path = os.getenv("STORAGE_PATH", "./storage")
        self.media_base_url = os.getenv("MEDIA_BASE_URL", "/media").rstrip("/")
        self.s3_bucket = os.getenv("S3_BUCKET", "photos")
        self.aws_region = os.getenv("AWS_DEFAULT_REGION", "us-east-1")

        # Realtime
        self.realtime_queue_size = int(os.getenv("REALTIME_QUEUE_SIZE", "100"))

        self._validate_config()

    def _validate_config(self):
        if self.feed_default_page_size > self.feed_max_page_size:
            logger.warning("FEED_DEFAULT_PAGE_SIZE exceeds FEED_MAX_PAGE_SIZE, clamping")
            self.feed_default_page_size = self.feed_max_page_size
        if self.hotness_scorer not in ("decay", "linear"):
            logger.warning(f"Unknown HOTNESS_SCORER '{self.hotness_scorer}', using 'decay'")
            self.hotness_scorer = "decay"
        if self.storage_backend not in ("local", "s3"):
            raise ValueError(f"Unsupported STORAGE_BACKEND: {self.storage_backend}")

app_config = AppConfig()
