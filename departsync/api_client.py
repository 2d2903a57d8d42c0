import datetime
import logging

import pytz
import requests

from .config import Config
from .errors import NotFound, RouteUnavailable
from .providers import TravelEstimateProvider
from .transport_mode import TransportMode

# OSRM profile per routing hint; transit goes through OpenTripPlanner instead
OSRM_PROFILES = {
    "automobile": "driving",
    "walking": "foot",
}

TRANSIT_PLAN_QUERY = """
query PlanTrip($fromLat: Float!, $fromLon: Float!, $toLat: Float!, $toLon: Float!, $date: String!, $time: String!) {
  plan(
    from: {lat: $fromLat, lon: $fromLon}
    to: {lat: $toLat, lon: $toLon}
    date: $date
    time: $time
    numItineraries: 1
  ) {
    itineraries {
      duration
    }
  }
}
"""


class APIClient(TravelEstimateProvider):
    """
    Travel-time provider backed by public routing services.
    Geocodes with Nominatim, routes car/bike/walk trips with OSRM and transit
    trips with an OpenTripPlanner GraphQL endpoint.
    """

    def __init__(self, origin_address=None, session=None):
        """
        Initialize the API client.
        """
        self.origin_address = origin_address or Config.ORIGIN_ADDRESS
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": Config.USER_AGENT})
        self.geocode_cache = {}  # key: normalized address, value: (lat, lon)

        # List of possible GraphQL endpoint paths to try (in order of preference)
        self.graphql_endpoints = [
            "/otp/routers/default/index/graphql",
            "/otp/index/graphql",
            "/otp/gtfs/v1",
            "/graphql",
        ]
        # We'll find the working endpoint on first GraphQL call
        self.working_graphql_endpoint = None

    def _normalize_address(self, address: str) -> str:
        """Collapse whitespace so equivalent addresses share a cache entry."""
        if not address:
            return ""
        return " ".join(address.strip().split())

    def estimate(self, location, mode) -> datetime.timedelta:
        mode = TransportMode.parse(mode)
        if not self.origin_address:
            raise RouteUnavailable("No origin address configured")

        origin = self.geocode_address(self.origin_address)
        if origin is None:
            raise NotFound(f"Could not geocode origin '{self.origin_address}'")
        destination = self.geocode_address(location)
        if destination is None:
            raise NotFound(f"Could not geocode '{location}'")

        if mode.routing_hint == "transit":
            seconds = self.plan_transit(origin, destination)
        else:
            seconds = self.route_osrm(origin, destination, OSRM_PROFILES[mode.routing_hint])
        logging.info(f"Travel estimate to '{location}' by {mode.value}: {seconds / 60:.1f} min")
        return datetime.timedelta(seconds=seconds)

    def geocode_address(self, address: str):
        """
        Geocodes an address using Nominatim.
        Uses a cache to avoid repeat API calls.
        """
        normalized = self._normalize_address(address)
        if not normalized:
            logging.error("Empty address provided for geocoding")
            return None

        if normalized in self.geocode_cache:
            logging.debug("Cache hit for address '%s'", normalized)
            return self.geocode_cache[normalized]

        params = {"q": normalized, "format": "json", "limit": 1}
        try:
            response = self.session.get(Config.OSM_URL, params=params, timeout=Config.HTTP_TIMEOUT_SECONDS)
            if response.status_code != 200:
                logging.error("Nominatim geocoding failed: %s", response.text[:200])
                return None
            data = response.json()
            if not data:
                logging.error("No geocoding result for address: %s", normalized)
                return None
            coords = (float(data[0]['lat']), float(data[0]['lon']))
        except (requests.exceptions.RequestException, ValueError, KeyError) as e:
            logging.error("Exception during geocoding: %s", e)
            return None

        logging.info("Geocoded address '%s' to lat: %s, lon: %s", normalized, coords[0], coords[1])
        self.geocode_cache[normalized] = coords
        return coords

    def route_osrm(self, origin, destination, profile) -> float:
        """Return the OSRM route duration in seconds between two (lat, lon) points."""
        (origin_lat, origin_lon), (dest_lat, dest_lon) = origin, destination
        url = f"{Config.OSRM_URL}/route/v1/{profile}/{origin_lon},{origin_lat};{dest_lon},{dest_lat}"
        try:
            response = self.session.get(url, params={"overview": "false"}, timeout=Config.HTTP_TIMEOUT_SECONDS)
            response.raise_for_status()
            routes = response.json().get("routes") or []
        except (requests.exceptions.RequestException, ValueError) as e:
            raise RouteUnavailable(f"OSRM request failed: {e}") from e
        if not routes:
            raise RouteUnavailable("OSRM returned no routes")
        return float(routes[0].get("duration", 0))

    def plan_transit(self, origin, destination, depart_at=None) -> float:
        """
        Return the duration in seconds of the first OTP transit itinerary
        leaving at depart_at (default now). The planner is given local time in
        Config.TIMEZONE.
        """
        tz = pytz.timezone(Config.TIMEZONE)
        if depart_at is None:
            depart_at = datetime.datetime.now(tz)
        elif depart_at.tzinfo is None:
            depart_at = tz.localize(depart_at)
        else:
            depart_at = depart_at.astimezone(tz)
        variables = {
            "fromLat": origin[0],
            "fromLon": origin[1],
            "toLat": destination[0],
            "toLon": destination[1],
            "date": depart_at.strftime("%Y-%m-%d"),
            "time": depart_at.strftime("%H:%M"),
        }
        result = self.query_otp_graphql(TRANSIT_PLAN_QUERY, variables)
        if result is None:
            raise RouteUnavailable("Transit planner unavailable")

        plan = (result.get("data") or {}).get("plan") or {}
        itineraries = plan.get("itineraries") or []
        if not itineraries:
            raise RouteUnavailable("No transit itineraries found")
        return float(itineraries[0]["duration"])

    def query_otp_graphql(self, query: str, variables: dict):
        """
        Sends a GraphQL query to the OTP API.
        Tries the previously working endpoint first, then each known path.

        Returns the GraphQL query result or None if every endpoint fails.
        """
        base_url = Config.OTP_URL
        paths = list(self.graphql_endpoints)
        if self.working_graphql_endpoint:
            paths.remove(self.working_graphql_endpoint)
            paths.insert(0, self.working_graphql_endpoint)

        last_error = None
        for path in paths:
            endpoint = f"{base_url}{path}"
            try:
                logging.debug(f"Trying GraphQL endpoint: {endpoint}")
                response = self.session.post(
                    endpoint,
                    json={"query": query, "variables": variables},
                    timeout=Config.HTTP_TIMEOUT_SECONDS,
                )
                if response.status_code != 200:
                    last_error = f"HTTP {response.status_code}: {response.text[:200]}"
                    continue
                result = response.json()
                if 'errors' in result:
                    messages = [error.get('message', 'Unknown GraphQL error') for error in result['errors']]
                    last_error = f"GraphQL errors: {messages}"
                    continue
                self.working_graphql_endpoint = path
                return result
            except requests.exceptions.Timeout:
                last_error = f"Connection timeout for {endpoint}"
            except requests.exceptions.RequestException as e:
                last_error = f"Request error: {e}"
            except ValueError as e:
                last_error = f"Invalid JSON from {endpoint}: {e}"

        self.working_graphql_endpoint = None
        logging.error(f"All GraphQL endpoints failed. Last error: {last_error}")
        return None
