"""
Shared test setup.

Settings are cached on first use, so the environment is fixed here before
any test module imports the application.
"""

import os
import tempfile

os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="tax-estimator-tests-"))
os.environ.setdefault("SENTRY_DSN", "")
