"""Agency API (thuhongtour) fronting VietJet and Vietnam Airlines inventory."""
from farewatch.services.agency.client import AgencyClient
from farewatch.services.agency.config import AgencyConfig

__all__ = ["AgencyClient", "AgencyConfig"]
