"""Constants for the analysis orchestrator.

Centralizes endpoint paths, panel names and progress timings.
"""

# Endpoints, tried in order
PRIMARY_ANALYSIS_PATH = "/api/initial-analysis"
FALLBACK_ANALYSIS_PATH = "/api/analysis"

# Panels
DEFAULT_PANEL = "analysis"
DETAILED_ANALYSIS_PANEL = "detailed-analysis"
# Panels that never trigger an automatic analysis on mount
EXCLUDED_PANELS = frozenset({"references", "roleplay"})

# HTTP status range treated as success
HTTP_STATUS_OK_MIN = 200
HTTP_STATUS_OK_MAX = 300

# Detailed-analysis progress ticker
PROGRESS_INTERVAL_SECONDS = 1.5
PROGRESS_STEP_DURATIONS_MS = (1000, 1500, 1500, 1500, 1500, 1000, 1000)
PROGRESS_ESTIMATED_TIME_MS = sum(PROGRESS_STEP_DURATIONS_MS)
DETAILED_REQUEST_TYPE = "detailed-analysis"
