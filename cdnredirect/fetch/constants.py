"""HTTP constants for the fetch layer."""

# HTTP Status Code Ranges
HTTP_STATUS_OK_MIN = 200
HTTP_STATUS_OK_MAX = 300
HTTP_STATUS_BAD_REQUEST = 400
HTTP_STATUS_SERVER_ERROR_MIN = 500
HTTP_STATUS_SERVER_ERROR_MAX = 600

# Range documents are a few hundred KB; cap well above that
DEFAULT_MAX_RESPONSE_SIZE_BYTES = 16 * 1024 * 1024  # 16 MB

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_USER_AGENT = "cdnredirect/0.1"
