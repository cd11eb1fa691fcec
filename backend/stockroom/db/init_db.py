"""Create all tables. Run on app startup."""
import logging

from stockroom.db.base import Base
from stockroom.db.session import engine as default_engine
from stockroom.models import organization, user, category, product, inventory, inventory_transaction  # noqa: F401 - register models

logger = logging.getLogger(__name__)


def init_db(engine=None):
    bind = engine if engine is not None else default_engine
    Base.metadata.create_all(bind=bind)
    logger.info(f"Database schema ready ({bind.url.render_as_string(hide_password=True)})")
