"""Index schema constants shared by the write and read paths."""

# Document fields
FIELD_TIMESTAMP = "timestamp"
FIELD_LEVEL = "level"
FIELD_MESSAGE = "message"
FIELD_SERVICE = "service"
FIELD_HOST = "host"
FIELD_ENVIRONMENT = "environment"
FIELD_TRACE_ID = "traceId"
FIELD_SPAN_ID = "spanId"
FIELD_METADATA = "metadata"

# Aggregation names
AGG_VOLUME_OVER_TIME = "volume_over_time"
AGG_LEVEL_DISTRIBUTION = "level_distribution"
AGG_TOP_SERVICES = "top_services"

# Level values counted by the dashboard
LEVEL_ERROR = "ERROR"
LEVEL_WARN = "WARN"

# Metadata keys written during enrichment and scoring
META_PROCESSED_AT = "processedAt"
META_PROCESSOR = "processor"
META_MESSAGE_LENGTH = "messageLength"
META_HAS_EXCEPTION = "hasException"
META_HAS_TIMEOUT = "hasTimeout"
META_HAS_CONNECTION = "hasConnection"
META_ANOMALY_DETECTED = "anomalyDetected"
META_ANOMALY_SCORE = "anomalyScore"
META_ANOMALY_CONFIDENCE = "anomalyConfidence"
META_MODEL_VERSION = "mlModelVersion"

PROCESSOR_NAME = "log-processor-service"

VOLUME_INTERVAL = "1h"


def index_mapping(shards: int = 1, replicas: int = 0) -> dict:
    """Build the index creation body (settings and mappings)."""
    return {
        "settings": {
            "number_of_shards": shards,
            "number_of_replicas": replicas,
        },
        "mappings": {
            "properties": {
                FIELD_TIMESTAMP: {"type": "date", "format": "strict_date_optional_time"},
                FIELD_LEVEL: {"type": "keyword"},
                FIELD_MESSAGE: {"type": "text", "analyzer": "standard"},
                FIELD_SERVICE: {"type": "keyword"},
                FIELD_HOST: {"type": "keyword"},
                FIELD_ENVIRONMENT: {"type": "keyword"},
                FIELD_TRACE_ID: {"type": "keyword"},
                FIELD_SPAN_ID: {"type": "keyword"},
                FIELD_METADATA: {"type": "object", "enabled": True},
            }
        },
    }
