# TagSakay RFID — Database Models
# Import all models here for SQLAlchemy discovery

from app.models.user import User                 # noqa
from app.models.api_key import ApiKey            # noqa
from app.models.device import Device             # noqa
from app.models.rfid_tag import RfidTag          # noqa
from app.models.rfid_scan import RfidScan        # noqa
