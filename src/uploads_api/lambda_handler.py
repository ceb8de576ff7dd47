"""Lambda handler for the Files API using Mangum."""
from mangum import Mangum

from uploads_api.config.settings import get_settings
from uploads_api.main import create_app

# Built once per Lambda container, reused across invocations
app = create_app(get_settings())

handler = Mangum(app, lifespan="off")
