import os
import tempfile

# Settings and secrets are resolved at import time; point them at a scratch dir.
_CONFIG_DIR = tempfile.mkdtemp(prefix="harmonydesk-tests-")
os.environ["HARMONYDESK_CONFIG_DIR"] = _CONFIG_DIR
os.environ.setdefault("HARMONYDESK_SECRET_KEY", "test-secret-key")
os.environ.pop("HARMONYDESK_DEMO_MODE", None)
