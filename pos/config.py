import os
from typing import Optional


class Settings:
    def _float(self, name: str, default: Optional[float]) -> Optional[float]:
        raw = (os.getenv(name) or "").strip()
        if not raw:
            return default
        if raw.lower() == "none":
            # no timeout: a hung backend call hangs the operation
            return None
        return float(raw)

    def __init__(self) -> None:
        self.env = os.getenv("POS_ENV", "local")
        self.backend_url = (os.getenv("POS_BACKEND_URL") or "http://127.0.0.1:8085").strip().rstrip("/")
        self.backend_key = (os.getenv("POS_BACKEND_KEY") or "").strip() or None
        self.image_bucket = os.getenv("POS_IMAGE_BUCKET", "product-images").strip() or "product-images"
        self.timeout = self._float("POS_TIMEOUT", 10.0)
        self.log_level = os.getenv("POS_LOG_LEVEL", "INFO").strip().upper() or "INFO"
        self.log_dir = os.getenv("POS_LOG_DIR", "data/logs").strip() or "data/logs"
        # placeholder stored on transactions sold without a customer name
        self.default_customer = os.getenv("POS_DEFAULT_CUSTOMER", "Guest").strip() or "Guest"
        self.default_payment_method = os.getenv("POS_PAYMENT_METHOD", "Tunai").strip() or "Tunai"


settings = Settings()
