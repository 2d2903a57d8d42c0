import os
from dotenv import load_dotenv

# Load environment variables from .env file if it exists
load_dotenv()

class Config:
    """
    Configuration class for DepartSync.
    This class loads configuration values from environment variables or uses default values.
    """
    # General configuration
    DEBUG = os.environ.get('DEBUG', 'False') == 'True'

    # Timezone used for calendar datetimes that carry no offset
    TIMEZONE = os.environ.get('TIMEZONE', 'Pacific/Auckland')

    # Routing / geocoding services
    OSM_URL = os.environ.get('OSM_URL', 'https://nominatim.openstreetmap.org/search')
    OSRM_URL = os.environ.get('OSRM_URL', 'https://router.project-osrm.org')
    OTP_URL = os.environ.get('OTP_URL', 'http://localhost:8080')
    ORIGIN_ADDRESS = os.environ.get('ORIGIN_ADDRESS', '')
    USER_AGENT = os.environ.get('USER_AGENT', 'DepartSync/1.0')
    HTTP_TIMEOUT_SECONDS = float(os.environ.get('HTTP_TIMEOUT_SECONDS', 10))

    # Scheduling
    REFRESH_INTERVAL_SECONDS = int(os.environ.get('REFRESH_INTERVAL_SECONDS', 5 * 60))
    ESTIMATE_TIMEOUT_SECONDS = float(os.environ.get('ESTIMATE_TIMEOUT_SECONDS', 30))
    DEFAULT_LEAD_TIME_MINUTES = int(os.environ.get('DEFAULT_LEAD_TIME_MINUTES', 30))
    LOOKAHEAD_DAYS = int(os.environ.get('LOOKAHEAD_DAYS', 7))
    POLL_INTERVAL_SECONDS = int(os.environ.get('POLL_INTERVAL_SECONDS', 15 * 60))

    PREFERENCES_PATH = os.environ.get('PREFERENCES_PATH', 'preferences.json')
