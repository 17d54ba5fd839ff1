import os
import warnings

# Ignore deprecation noise from third-party packages
warnings.filterwarnings("ignore", category=DeprecationWarning, module="asyncpg.*")

# Set test environment variables before streamgate reads its config
os.environ.update(
    {
        "DEBUG": "false",
        "COOKIE_SECRET": "test-cookie-secret",
        "COOKIE_SECURE": "false",
        "INTERNAL_API_KEY": "test-internal-key",
        "OAUTH_CLIENT_ID": "",
        "RTMP_BASE": "rtmp://ingest.test/live",
    }
)

# Import shared fixtures so they are available to all tests
from tests.fixtures.oauth_fixtures import *  # noqa: E402, F403
from tests.fixtures.registry_fixtures import *  # noqa: E402, F403
