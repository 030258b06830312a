"""Import all models to register them with SQLAlchemy metadata."""
from fleetwatch.models.base import Base
from fleetwatch.models.vessel import Vessel
from fleetwatch.models.track_point import TrackPoint
from fleetwatch.models.zone import Zone
from fleetwatch.models.alert import Alert
