# practica/config.py
from __future__ import annotations
import os

# ===================================================================
# ENVIRONMENT-DRIVEN SETTINGS
# ===================================================================
# Docker compose exposes the backend as 'django'. Override for local dev.
API_BASE_URL: str = os.environ.get('API_BASE_URL', 'http://django:8000/api/')
HTTP_TIMEOUT_SECONDS: float = float(os.environ.get('HTTP_TIMEOUT_SECONDS', '30'))

PORT: int = int(os.environ.get('PORT', 8080))
STORAGE_SECRET: str = os.environ.get('STORAGE_SECRET', 'a_very_secure_secret_key_for_local_dev')
HOME_ROUTE: str = os.environ.get('HOME_ROUTE', '/home')
REQUEST_ROUTE: str = '/solicitud'

# ===================================================================
# FIXED BUSINESS CONSTANTS (not configurable)
# ===================================================================
PDF_CONTENT_TYPE: str = 'application/pdf'
PDF_MAX_BYTES: int = 1024 * 1024
CONTRACT_MONTHS: int = 6
CONTRACT_MODALITY_TERM: str = 'contrato'
